"""处理流水线：校验配置、扫描、逐个处理文件并汇总进度。"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from webp_toolkit.core.cancellation import CancellationToken
from webp_toolkit.core.config import JobRequest, validate_job_request
from webp_toolkit.core.filesystem import FileSystem, LocalFileSystem
from webp_toolkit.core.models import BatchOutcome, TransformResult
from webp_toolkit.core.output_manager import OutputManager
from webp_toolkit.core.progress import ProgressCallback, emit_progress
from webp_toolkit.core.report import write_csv_report
from webp_toolkit.core.scanner import discover
from webp_toolkit.processing.codec import MediaCodec, PillowCodec
from webp_toolkit.processing.worker import run_task

LOGGER = logging.getLogger(__name__)


def run_batch(
    request: JobRequest,
    codec: Optional[MediaCodec] = None,
    on_progress: ProgressCallback = None,
    *,
    fs: Optional[FileSystem] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> BatchOutcome:
    """批量转换入口。

    配置错误在处理任何文件之前抛出 ``ConfigurationError``；单个文件的失败只记录在
    返回的 ``BatchOutcome`` 中，批次总会处理完所有文件（除非被取消）。
    """

    fs = fs or LocalFileSystem()
    codec = codec or PillowCodec()
    validate_job_request(request, fs)

    LOGGER.info("开始扫描输入路径: %s", request.source_path)
    sources = discover(request.source_path, request.allowed_extensions, fs)
    total = len(sources)
    LOGGER.info("发现 %d 个候选文件", total)

    outcome = BatchOutcome(total=total)
    output_manager = OutputManager(request, fs)
    output_manager.prepare()

    if total == 0:
        emit_progress(on_progress, 0, 0, "没有需要处理的文件", status="done")
        _write_report(request, outcome)
        return outcome

    emit_progress(on_progress, 0, total, "开始执行处理任务")

    for source in sources:
        if cancel_token is not None and cancel_token.cancelled:
            outcome.cancelled = True
            LOGGER.warning("任务已取消，已处理 %d/%d 个文件", outcome.completed_count, total)
            break

        try:
            result = run_task(source, request, codec, fs, output_manager)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("任务执行异常：%s", exc)
            result = TransformResult.failure(source.source_path, "error-worker", str(exc))

        if result.ok:
            LOGGER.debug("完成 %s -> %s", source.relative_path, result.destination_path)
        else:
            LOGGER.warning("处理失败 %s: %s", source.relative_path, result.reason)

        outcome.record(result)
        emit_progress(on_progress, outcome.completed_count, total, _describe(result))

    _write_report(request, outcome)
    LOGGER.info(outcome.summary())
    emit_progress(
        on_progress,
        outcome.completed_count,
        total,
        outcome.summary(),
        status="cancelled" if outcome.cancelled else "done",
    )
    return outcome


class BatchRunner:
    """在单个后台工作线程中执行批处理。

    进度回调在工作线程中触发，界面层需要自行切换回界面线程。
    """

    def __init__(self, codec: Optional[MediaCodec] = None, fs: Optional[FileSystem] = None) -> None:
        self._codec = codec
        self._fs = fs
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="batch-worker")
        self._token: Optional[CancellationToken] = None

    def submit(self, request: JobRequest, on_progress: ProgressCallback = None) -> "Future[BatchOutcome]":
        self._token = CancellationToken()
        return self._executor.submit(
            run_batch,
            request,
            self._codec,
            on_progress,
            fs=self._fs,
            cancel_token=self._token,
        )

    def cancel(self) -> None:
        """请求取消当前批次；正在处理的文件会先处理完。"""

        if self._token is not None:
            self._token.cancel()

    def shutdown(self, wait: bool = True) -> None:
        self.cancel()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "BatchRunner":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()


def _describe(result: TransformResult) -> str:
    if result.ok:
        assert result.destination_path is not None
        return f"完成 {result.source_path.name} -> {result.destination_path.name}"
    return f"失败 {result.source_path.name}: {result.reason}"


def _write_report(request: JobRequest, outcome: BatchOutcome) -> None:
    if not request.report_filename:
        return
    try:
        path = write_csv_report(outcome, request.destination_root, request.report_filename)
    except OSError as exc:
        LOGGER.error("写入报告失败：%s", exc)
        return
    LOGGER.info("报告文件：%s", path)
