"""文件扫描与筛选逻辑。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from webp_toolkit.core.config import normalize_extensions
from webp_toolkit.core.filesystem import FileSystem, LocalFileSystem
from webp_toolkit.core.models import DiscoveredFile

LOGGER = logging.getLogger(__name__)


def extension_of(path: Path) -> str:
    """返回小写、不带点的扩展名。"""

    return path.suffix.lower().lstrip(".")


def discover(
    root: Path,
    allowed_extensions: Iterable[str],
    fs: Optional[FileSystem] = None,
) -> list[DiscoveredFile]:
    """扫描根路径，返回待处理的文件列表。

    单个文件：直接返回该文件，不按扩展名过滤（用户显式选择的文件总会进入流水线，
    不支持的格式在编码环节记为失败）。目录：递归遍历，只保留扩展名在允许集合内的文件。
    """

    fs = fs or LocalFileSystem()
    root = Path(root)

    if not fs.exists(root):
        LOGGER.debug("扫描路径不存在: %s", root)
        return []

    resolved_root = root.resolve()

    if not fs.is_dir(resolved_root):
        return [DiscoveredFile(source_path=resolved_root, relative_path=Path(resolved_root.name))]

    allowed = normalize_extensions(allowed_extensions)
    collected: list[DiscoveredFile] = []
    for relative in fs.list_recursive(resolved_root):
        if extension_of(relative) not in allowed:
            continue
        collected.append(DiscoveredFile(source_path=resolved_root / relative, relative_path=Path(relative)))

    collected.sort(key=lambda item: (str(item.relative_path).lower(), str(item.relative_path)))
    LOGGER.debug("在 %s 中发现 %d 个文件", resolved_root, len(collected))
    return collected
