"""协作式取消令牌。"""

from __future__ import annotations

import threading

from webp_toolkit.core.exceptions import ProcessingAborted


class CancellationToken:
    """在工作线程与界面线程之间共享的取消标记。

    工作线程在每个文件开始前（以及等待外部进程时）检查一次。
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ProcessingAborted("任务已被取消")
