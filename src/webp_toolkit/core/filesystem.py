"""文件系统协作者：流水线只通过这里访问磁盘。"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Protocol


class FileSystem(Protocol):
    """流水线所需的最小文件系统能力集合。"""

    def exists(self, path: Path) -> bool: ...

    def is_dir(self, path: Path) -> bool: ...

    def is_file(self, path: Path) -> bool: ...

    def list_recursive(self, path: Path) -> list[Path]: ...

    def list_dir(self, path: Path) -> list[Path]: ...

    def create_directories(self, path: Path) -> None: ...

    def read_bytes(self, path: Path) -> bytes: ...

    def write_bytes(self, path: Path, data: bytes) -> None: ...

    def move_file(self, source: Path, destination: Path) -> None: ...

    def remove(self, path: Path) -> None: ...


class LocalFileSystem:
    """基于 pathlib 的本地磁盘实现。"""

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def is_dir(self, path: Path) -> bool:
        return Path(path).is_dir()

    def is_file(self, path: Path) -> bool:
        return Path(path).is_file()

    def list_recursive(self, path: Path) -> list[Path]:
        """返回目录下所有普通文件相对于 ``path`` 的路径。"""

        root = Path(path)
        collected: list[Path] = []
        for current, dirnames, filenames in os.walk(root):
            dirnames.sort()
            current_path = Path(current)
            for name in sorted(filenames):
                candidate = current_path / name
                if candidate.is_file():
                    collected.append(candidate.relative_to(root))
        return collected

    def list_dir(self, path: Path) -> list[Path]:
        """仅列出目录第一层的普通文件（绝对路径）。"""

        return sorted(child for child in Path(path).iterdir() if child.is_file())

    def create_directories(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def read_bytes(self, path: Path) -> bytes:
        return Path(path).read_bytes()

    def write_bytes(self, path: Path, data: bytes) -> None:
        Path(path).write_bytes(data)

    def move_file(self, source: Path, destination: Path) -> None:
        shutil.move(str(source), str(destination))

    def remove(self, path: Path) -> None:
        Path(path).unlink(missing_ok=True)
