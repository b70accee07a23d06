"""就地重命名：把文件名（不含扩展名）替换为 slug。"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from webp_toolkit.core.exceptions import ConfigurationError
from webp_toolkit.core.filesystem import FileSystem, LocalFileSystem
from webp_toolkit.core.models import BatchOutcome, TransformResult
from webp_toolkit.core.progress import ProgressCallback, emit_progress
from webp_toolkit.utils.slug import sanitize

LOGGER = logging.getLogger(__name__)

STATUS_EMPTY = "error-empty-name"
STATUS_EXISTS = "error-target-exists"
STATUS_MOVE = "error-move"


def renamed_path(path: Path, *, underscore: str = "drop") -> Optional[Path]:
    """计算重命名后的路径；slug 为空时返回 None。"""

    slug = sanitize(path.stem, underscore=underscore)
    if not slug:
        return None
    return path.with_name(slug + path.suffix)


def collect_targets(
    folder: Optional[Path],
    single_file: Optional[Path],
    fs: FileSystem,
) -> list[Path]:
    """目录只取第一层的普通文件，单个文件直接加入。"""

    if folder is None and single_file is None:
        raise ConfigurationError("请选择源目录或单个文件。")

    targets: list[Path] = []
    if folder is not None:
        if not fs.is_dir(folder):
            raise ConfigurationError(f"目录不存在: {folder}")
        # 隐藏文件（.DS_Store 等）不参与重命名
        targets.extend(path for path in fs.list_dir(folder) if not path.name.startswith("."))
    if single_file is not None:
        if not fs.is_file(single_file):
            raise ConfigurationError(f"文件不存在: {single_file}")
        if Path(single_file) not in targets:
            targets.append(Path(single_file))
    return targets


def rename_files(
    folder: Optional[Path] = None,
    single_file: Optional[Path] = None,
    *,
    underscore: str = "drop",
    fs: Optional[FileSystem] = None,
    on_progress: ProgressCallback = None,
) -> BatchOutcome:
    """批量就地重命名，单个文件失败不影响其余文件。"""

    fs = fs or LocalFileSystem()
    targets = collect_targets(folder, single_file, fs)
    outcome = BatchOutcome(total=len(targets))

    for path in targets:
        outcome.record(_rename_one(path, underscore, fs))
        emit_progress(on_progress, outcome.completed_count, outcome.total)

    LOGGER.info(outcome.summary())
    return outcome


def _rename_one(path: Path, underscore: str, fs: FileSystem) -> TransformResult:
    destination = renamed_path(path, underscore=underscore)
    if destination is None:
        return TransformResult.failure(path, STATUS_EMPTY, "名称清理后为空")
    if destination == path:
        return TransformResult.success(path, destination)
    if fs.exists(destination) and not _same_file(path, destination):
        return TransformResult.failure(path, STATUS_EXISTS, f"目标已存在: {destination.name}")

    try:
        fs.move_file(path, destination)
    except OSError as exc:
        LOGGER.error("重命名失败 %s: %s", path, exc)
        return TransformResult.failure(path, STATUS_MOVE, str(exc))
    LOGGER.debug("重命名 %s -> %s", path.name, destination.name)
    return TransformResult.success(path, destination)


def _same_file(a: Path, b: Path) -> bool:
    # 大小写不敏感的文件系统上 Photo.png 与 photo.png 指向同一个文件
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False
