"""进度更新的数据模型。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(slots=True)
class ProgressUpdate:
    """批处理或转码过程中的进度信息。"""

    total: float
    completed: float
    message: Optional[str] = None
    status: str = "running"
    remaining_seconds: Optional[float] = None

    @property
    def fraction(self) -> float:
        """0.0 ~ 1.0 的完成比例。"""

        if self.total <= 0:
            return 0.0
        return min(max(self.completed / self.total, 0.0), 1.0)


ProgressCallback = Optional[Callable[[ProgressUpdate], None]]


def emit_progress(
    callback: ProgressCallback,
    completed: float,
    total: float,
    message: Optional[str] = None,
    *,
    status: str = "running",
    remaining_seconds: Optional[float] = None,
) -> None:
    if not callback:
        return
    callback(
        ProgressUpdate(
            total=total,
            completed=completed,
            message=message,
            status=status,
            remaining_seconds=remaining_seconds,
        )
    )
