"""输出路径决策与写入模块。"""

from __future__ import annotations

import logging
from itertools import count
from pathlib import Path
from typing import Optional, Set

from webp_toolkit.core.config import JobRequest
from webp_toolkit.core.exceptions import ConfigurationError, ImageWriteError
from webp_toolkit.core.filesystem import FileSystem
from webp_toolkit.core.models import DiscoveredFile
from webp_toolkit.core.scanner import extension_of
from webp_toolkit.utils.slug import sanitize

LOGGER = logging.getLogger(__name__)


class OutputManager:
    """负责计算镜像目录结构下的输出路径并写入文件。"""

    def __init__(self, request: JobRequest, fs: FileSystem) -> None:
        self.request = request
        self.fs = fs
        self.output_dir = request.destination_root
        self._reserved: Set[Path] = set()

    def prepare(self) -> None:
        """创建输出根目录（可重复调用）；无法创建时视为配置错误。"""

        try:
            self.fs.create_directories(self.output_dir)
        except OSError as exc:
            raise ConfigurationError(f"无法创建输出目录: {self.output_dir} ({exc})") from exc

    def output_extension(self, source: DiscoveredFile) -> str:
        if self.request.options.reencode:
            return self.request.target_extension
        return f".{extension_of(source.relative_path)}"

    def output_name(self, source: DiscoveredFile) -> str:
        """按重命名开关生成输出文件名（含扩展名）。"""

        stem = source.relative_path.stem
        if self.request.options.rename:
            cleaned = sanitize(stem)
            if cleaned:
                stem = cleaned
            else:
                LOGGER.warning("文件名清理后为空，保留原名: %s", source.relative_path)
        return stem + self.output_extension(source)

    def decide_destination(self, source: DiscoveredFile) -> Path:
        """确定输出路径；同一批次内的重名输出会追加序号。"""

        destination = self.output_dir / source.relative_path.parent / self.output_name(source)
        key = _reservation_key(destination)
        if key in self._reserved:
            renamed = self._generate_renamed_path(destination)
            LOGGER.info("输出重名: %s -> %s", destination.name, renamed.name)
            destination = renamed
            key = _reservation_key(destination)
        self._reserved.add(key)
        return destination

    def write(self, destination: Path, data: bytes) -> None:
        """按需创建父目录并写入字节。"""

        try:
            self.fs.create_directories(destination.parent)
            self.fs.write_bytes(destination, data)
        except OSError as exc:
            raise ImageWriteError(f"写入文件失败: {destination} ({exc})") from exc

    def _generate_renamed_path(self, destination: Path) -> Path:
        """为批次内冲突的输出生成新的文件名。"""

        stem = destination.stem
        suffix = destination.suffix
        candidate: Optional[Path] = None
        for idx in count(1):
            candidate = destination.with_name(f"{stem}-{idx}{suffix}")
            if _reservation_key(candidate) not in self._reserved:
                break
        assert candidate is not None
        return candidate


def _reservation_key(path: Path) -> str:
    # 大小写不敏感的文件系统上 A.png 与 a.png 是同一个文件
    return str(path).lower()
