"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

SUCCESS = "success"


@dataclass(frozen=True, slots=True)
class DiscoveredFile:
    """扫描阶段得到的源文件信息。"""

    source_path: Path
    relative_path: Path


@dataclass(slots=True)
class TransformResult:
    """记录单个文件的处理结果（用于报告/日志）。"""

    source_path: Path
    status: str
    destination_path: Optional[Path] = None
    reason: Optional[str] = None
    ssim: Optional[float] = None
    phash_distance: Optional[float] = None

    @classmethod
    def success(cls, source_path: Path, destination_path: Path) -> "TransformResult":
        return cls(source_path=source_path, status=SUCCESS, destination_path=destination_path)

    @classmethod
    def failure(cls, source_path: Path, status: str, reason: str) -> "TransformResult":
        return cls(source_path=source_path, status=status, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS


@dataclass(slots=True)
class BatchOutcome:
    """一次批处理的累计结果。"""

    total: int
    results: list[TransformResult] = field(default_factory=list)
    completed_count: int = 0
    cancelled: bool = False

    def record(self, result: TransformResult) -> None:
        """追加一条结果；无论成功失败，完成数都只加一。"""

        if self.completed_count >= self.total:
            raise ValueError("完成数不能超过文件总数")
        self.results.append(result)
        self.completed_count += 1

    @property
    def succeeded(self) -> list[TransformResult]:
        return [result for result in self.results if result.ok]

    @property
    def failed(self) -> list[TransformResult]:
        return [result for result in self.results if not result.ok]

    def summary(self) -> str:
        text = f"共 {self.total} 个文件：成功 {len(self.succeeded)} 个，失败 {len(self.failed)} 个"
        if self.cancelled:
            text += f"（已取消，未处理 {self.total - self.completed_count} 个）"
        return text + "。"


@dataclass(slots=True)
class TranscodeResult:
    """单个视频转码任务的结果。"""

    status: str
    output_path: Path
    exit_code: Optional[int] = None
    duration: float = 0.0
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS
