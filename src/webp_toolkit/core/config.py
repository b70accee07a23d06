"""处理任务的配置模型与校验。"""

from __future__ import annotations

import os
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from webp_toolkit.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from webp_toolkit.core.filesystem import FileSystem

DEFAULT_ALLOWED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp"})

# 输出格式名 -> 文件扩展名
TARGET_FORMATS = {
    "jpeg": ".jpg",
    "png": ".png",
    "webp": ".webp",
}

FORMAT_ALIASES = {"jpg": "jpeg"}

# 输出容器 -> (视频编码器, 音频编码器)
VIDEO_PRESETS = {
    "webm": ("libvpx", "libvorbis"),
    "mp4": ("hevc_videotoolbox" if sys.platform == "darwin" else "libx265", "aac"),
}

FFMPEG_ENV = "WEBP_TOOLKIT_FFMPEG"
FFPROBE_ENV = "WEBP_TOOLKIT_FFPROBE"


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """统一为小写、不带点的扩展名集合。"""

    return frozenset(ext.strip().lower().lstrip(".") for ext in extensions if ext.strip().lstrip("."))


def normalize_format(value: str) -> str:
    """输出格式名统一为小写，并把常见别名（jpg）映射为标准名。"""

    name = value.strip().lower().lstrip(".")
    return FORMAT_ALIASES.get(name, name)


@dataclass(frozen=True, slots=True)
class TransformOptions:
    """各个可选处理环节的开关，可以任意组合。"""

    resize: bool = False
    reencode: bool = False
    rename: bool = False
    compress: bool = False


@dataclass(frozen=True, slots=True)
class JobRequest:
    """单次批量转换任务的配置，创建后不再修改。"""

    source_path: Path
    destination_root: Path
    options: TransformOptions = field(default_factory=TransformOptions)
    quality: float = 100.0
    width_percent: float = 100.0
    allowed_extensions: frozenset[str] = DEFAULT_ALLOWED_EXTENSIONS
    target_format: str = "webp"
    verify: bool = False
    report_filename: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "source_path", Path(self.source_path))
        object.__setattr__(self, "destination_root", Path(self.destination_root))
        object.__setattr__(self, "allowed_extensions", normalize_extensions(self.allowed_extensions))
        object.__setattr__(self, "target_format", normalize_format(self.target_format))

    @property
    def encode_quality(self) -> float:
        """实际用于编码的质量值；未开启压缩/转换时按最高质量写出。"""

        if self.options.reencode or self.options.compress:
            return self.quality
        return 100.0

    @property
    def target_extension(self) -> str:
        return TARGET_FORMATS[self.target_format]


@dataclass(frozen=True, slots=True)
class TranscodeRequest:
    """单个视频转码任务的配置。"""

    source_path: Path
    destination_dir: Path
    output_format: str = "webm"
    bitrate: str = "1M"
    video_codec: Optional[str] = None
    audio_codec: Optional[str] = None
    timeout: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "source_path", Path(self.source_path))
        object.__setattr__(self, "destination_dir", Path(self.destination_dir))
        object.__setattr__(self, "output_format", self.output_format.lower().lstrip("."))

    @property
    def output_path(self) -> Path:
        return self.destination_dir / f"{self.source_path.stem}.{self.output_format}"

    def codecs(self) -> tuple[str, str]:
        default_video, default_audio = VIDEO_PRESETS[self.output_format]
        return self.video_codec or default_video, self.audio_codec or default_audio


@dataclass(frozen=True, slots=True)
class ToolPaths:
    """外部可执行文件位置。"""

    ffmpeg: str
    ffprobe: str

    @classmethod
    def resolve(cls, ffmpeg: Optional[str] = None, ffprobe: Optional[str] = None) -> "ToolPaths":
        """按 命令行参数 -> 环境变量 -> PATH 的顺序查找。"""

        return cls(
            ffmpeg=_resolve_binary("ffmpeg", ffmpeg, FFMPEG_ENV),
            ffprobe=_resolve_binary("ffprobe", ffprobe, FFPROBE_ENV),
        )


def _resolve_binary(name: str, explicit: Optional[str], env_var: str) -> str:
    if explicit:
        return explicit
    from_env = os.environ.get(env_var)
    if from_env:
        return from_env
    return shutil.which(name) or name


def validate_job_request(request: JobRequest, fs: "FileSystem") -> None:
    """在处理任何文件之前校验配置，失败时不产生任何副作用。"""

    if not fs.exists(request.source_path):
        raise ConfigurationError(f"源路径不存在: {request.source_path}")
    if fs.exists(request.destination_root) and not fs.is_dir(request.destination_root):
        raise ConfigurationError(f"输出路径不是目录: {request.destination_root}")
    if not 0 <= request.quality <= 100:
        raise ConfigurationError(f"quality 必须位于 0~100 之间: {request.quality}")
    if not 0 < request.width_percent <= 100:
        raise ConfigurationError(f"width_percent 必须位于 (0, 100] 区间: {request.width_percent}")
    if request.target_format not in TARGET_FORMATS:
        raise ConfigurationError(f"不支持的目标格式: {request.target_format}")
    if not request.allowed_extensions:
        raise ConfigurationError("允许的扩展名集合不能为空")


def validate_transcode_request(request: TranscodeRequest, fs: "FileSystem") -> None:
    """校验视频转码配置。"""

    if not fs.is_file(request.source_path):
        raise ConfigurationError(f"请选择有效的视频文件: {request.source_path}")
    if fs.exists(request.destination_dir) and not fs.is_dir(request.destination_dir):
        raise ConfigurationError(f"输出路径不是目录: {request.destination_dir}")
    if request.output_format not in VIDEO_PRESETS:
        raise ConfigurationError(f"不支持的视频格式: {request.output_format}")
    if not request.bitrate.strip():
        raise ConfigurationError("码率不能为空")
    if request.timeout is not None and request.timeout <= 0:
        raise ConfigurationError(f"超时时间必须大于 0: {request.timeout}")
