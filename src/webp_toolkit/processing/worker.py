"""单个文件的处理流程：加载 -> 缩放 -> 编码 -> 重命名 -> 写出。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from webp_toolkit.core.config import JobRequest
from webp_toolkit.core.exceptions import (
    DecodeError,
    EncodeError,
    ImageWriteError,
    ResizeError,
    UnsupportedFormatError,
)
from webp_toolkit.core.filesystem import FileSystem
from webp_toolkit.core.models import DiscoveredFile, TransformResult
from webp_toolkit.core.output_manager import OutputManager
from webp_toolkit.core.scanner import extension_of
from webp_toolkit.processing.codec import MediaCodec, format_for_extension
from webp_toolkit.processing.validation import measure_quality

LOGGER = logging.getLogger(__name__)

STATUS_LOAD = "error-load"
STATUS_RESIZE = "error-resize"
STATUS_UNSUPPORTED = "error-unsupported-format"
STATUS_ENCODE = "error-encode"
STATUS_WRITE = "error-write"


def scaled_size(size: tuple[int, int], width_percent: float) -> tuple[int, int]:
    """按统一比例缩放宽高，始终保持宽高比。"""

    factor = width_percent / 100.0
    width, height = size
    return max(1, int(width * factor)), max(1, int(height * factor))


def run_task(
    source: DiscoveredFile,
    request: JobRequest,
    codec: MediaCodec,
    fs: FileSystem,
    output_manager: OutputManager,
) -> TransformResult:
    """执行单个文件的完整处理流程，任何环节失败都只返回失败结果。"""

    path = source.source_path

    try:
        image = codec.decode(fs.read_bytes(path))
    except OSError as exc:
        return TransformResult.failure(path, STATUS_LOAD, f"无法读取文件: {exc}")
    except DecodeError as exc:
        return TransformResult.failure(path, STATUS_LOAD, str(exc))

    if request.options.resize:
        try:
            target_size = scaled_size(codec.dimensions(image), request.width_percent)
            image = codec.resize(image, target_size)
        except ResizeError as exc:
            return TransformResult.failure(path, STATUS_RESIZE, str(exc))

    try:
        image_format = _output_format(path, request)
    except UnsupportedFormatError as exc:
        return TransformResult.failure(path, STATUS_UNSUPPORTED, str(exc))

    try:
        encoded = codec.encode(image, image_format, request.encode_quality)
    except EncodeError as exc:
        return TransformResult.failure(path, STATUS_ENCODE, str(exc))

    destination = output_manager.decide_destination(source)
    try:
        output_manager.write(destination, encoded)
    except ImageWriteError as exc:
        return TransformResult.failure(path, STATUS_WRITE, str(exc))

    result = TransformResult.success(path, destination)
    if request.verify:
        _attach_metrics(result, image, encoded, codec)
    return result


def _output_format(path: Path, request: JobRequest) -> str:
    if request.options.reencode:
        return request.target_format.upper()
    image_format = format_for_extension(extension_of(path))
    if image_format is None:
        raise UnsupportedFormatError(f"unsupported format: .{extension_of(path) or '?'}")
    return image_format


def _attach_metrics(result: TransformResult, image: Any, encoded: bytes, codec: MediaCodec) -> None:
    # 校验失败只影响报告中的指标，不影响文件本身的处理结果
    try:
        written = codec.decode(encoded)
        metrics = measure_quality(image, written)
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("质量校验失败 %s: %s", result.source_path.name, exc)
        return
    result.ssim = metrics.ssim
    result.phash_distance = metrics.phash_distance
