"""视频转码：调用外部 ffprobe/ffmpeg，并从 stderr 中解析进度。

一次只运行一个外部进程。stderr 由后台线程逐行读取并放入队列，主循环在等待
队列的同时检查取消与超时，因此编码器卡死时也能强制结束。
"""

from __future__ import annotations

import logging
import queue
import subprocess
import threading
import time
from collections import deque
from pathlib import Path
from typing import IO, Iterable, Optional, Protocol

from webp_toolkit.core.cancellation import CancellationToken
from webp_toolkit.core.config import ToolPaths, TranscodeRequest, validate_transcode_request
from webp_toolkit.core.exceptions import ConfigurationError, ProcessError, ProcessingAborted, ProcessTimeout
from webp_toolkit.core.filesystem import FileSystem, LocalFileSystem
from webp_toolkit.core.models import SUCCESS, TranscodeResult
from webp_toolkit.core.progress import ProgressCallback, emit_progress
from webp_toolkit.processing.progress_parser import compute_fraction, parse_duration, parse_elapsed_seconds

LOGGER = logging.getLogger(__name__)

FAILED = "failed"
CANCELLED = "cancelled"
TIMEOUT = "timeout"

TERMINATE_GRACE_SECONDS = 5.0
STDERR_TAIL_LINES = 20


class TranscodeProcess(Protocol):
    """``subprocess.Popen`` 中转码流程用到的部分。"""

    stderr: Optional[IO[str]]
    returncode: Optional[int]

    def poll(self) -> Optional[int]: ...

    def wait(self, timeout: Optional[float] = None) -> int: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...


class FfmpegRunner:
    """外部进程协作者：构建命令并启动 ffprobe/ffmpeg。"""

    def __init__(self, paths: Optional[ToolPaths] = None) -> None:
        self.paths = paths or ToolPaths.resolve()

    def probe_command(self, source: Path) -> list[str]:
        return [
            self.paths.ffprobe,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(source),
        ]

    def transcode_command(self, request: TranscodeRequest) -> list[str]:
        video_codec, audio_codec = request.codecs()
        return [
            self.paths.ffmpeg,
            "-nostdin",
            "-y",
            "-i", str(request.source_path),
            "-c:v", video_codec,
            "-b:v", request.bitrate,
            "-c:a", audio_codec,
            str(request.output_path),
        ]

    def probe_duration(self, source: Path) -> float:
        """返回媒体时长（秒），未知时为 0.0。"""

        cmd = self.probe_command(source)
        try:
            completed = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as exc:
            raise ProcessError(f"无法启动 ffprobe: {exc}") from exc

        if completed.returncode != 0:
            raise ProcessError(
                f"ffprobe 执行失败 ({completed.returncode}): {completed.stderr.strip()}",
                exit_code=completed.returncode,
            )
        duration = parse_duration(completed.stdout)
        if duration <= 0:
            LOGGER.warning("无法获取视频时长，进度将不可用: %s", source)
        return duration

    def spawn_transcode(self, args: list[str]) -> TranscodeProcess:
        # text 模式使用通用换行，ffmpeg 用 \r 分隔的进度刷新也会被拆成独立的行
        return subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )


def command_as_string(cmd: Iterable[str]) -> str:
    """日志中使用的命令行文本。"""

    return " ".join(cmd)


def transcode_video(
    request: TranscodeRequest,
    runner: Optional[FfmpegRunner] = None,
    on_progress: ProgressCallback = None,
    *,
    cancel_token: Optional[CancellationToken] = None,
    fs: Optional[FileSystem] = None,
    poll_interval: float = 0.2,
) -> TranscodeResult:
    """执行单个转码任务。

    配置错误直接抛出 ``ConfigurationError``；进程层面的失败、超时与取消都以
    ``TranscodeResult`` 返回，并删除残留的不完整输出文件。
    """

    fs = fs or LocalFileSystem()
    runner = runner or FfmpegRunner()
    validate_transcode_request(request, fs)

    output_path = request.output_path
    if output_path.resolve() == request.source_path.resolve():
        raise ConfigurationError(f"输出文件与源文件相同: {output_path}")
    fs.create_directories(request.destination_dir)

    try:
        duration = runner.probe_duration(request.source_path)
    except ProcessError as exc:
        LOGGER.error("获取视频时长失败: %s", exc)
        return TranscodeResult(status=FAILED, output_path=output_path, exit_code=exc.exit_code, message=str(exc))

    args = runner.transcode_command(request)
    LOGGER.info("执行命令: %s", command_as_string(args))
    emit_progress(on_progress, 0.0, duration, f"开始转码 {request.source_path.name}")

    try:
        process = runner.spawn_transcode(args)
    except OSError as exc:
        LOGGER.error("无法启动 ffmpeg: %s", exc)
        return TranscodeResult(status=FAILED, output_path=output_path, duration=duration, message=str(exc))

    tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
    try:
        exit_code = _wait_with_progress(
            process, duration, on_progress, cancel_token, request.timeout, poll_interval, tail
        )
    except ProcessingAborted as exc:
        _remove_partial_output(fs, output_path)
        emit_progress(on_progress, 0.0, duration, str(exc), status=CANCELLED)
        return TranscodeResult(
            status=CANCELLED, output_path=output_path, exit_code=process.returncode, duration=duration, message=str(exc)
        )
    except ProcessTimeout as exc:
        _remove_partial_output(fs, output_path)
        emit_progress(on_progress, 0.0, duration, str(exc), status=TIMEOUT)
        return TranscodeResult(
            status=TIMEOUT, output_path=output_path, exit_code=process.returncode, duration=duration, message=str(exc)
        )

    if exit_code != 0:
        _remove_partial_output(fs, output_path)
        message = f"ffmpeg 以状态码 {exit_code} 退出"
        if tail:
            message += ":\n" + "\n".join(tail)
        LOGGER.error(message)
        emit_progress(on_progress, 0.0, duration, message, status=FAILED)
        return TranscodeResult(
            status=FAILED, output_path=output_path, exit_code=exit_code, duration=duration, message=message
        )

    LOGGER.info("转码完成: %s", output_path)
    emit_progress(on_progress, duration, duration, "转码完成", status="done", remaining_seconds=0.0)
    return TranscodeResult(status=SUCCESS, output_path=output_path, exit_code=0, duration=duration)


def _wait_with_progress(
    process: TranscodeProcess,
    duration: float,
    on_progress: ProgressCallback,
    cancel_token: Optional[CancellationToken],
    timeout: Optional[float],
    poll_interval: float,
    tail: deque[str],
) -> int:
    lines: "queue.Queue[Optional[str]]" = queue.Queue()
    reader = threading.Thread(target=_pump_lines, args=(process.stderr, lines), daemon=True)
    reader.start()
    deadline = time.monotonic() + timeout if timeout else None

    while True:
        if cancel_token is not None and cancel_token.cancelled:
            _terminate(process)
            cancel_token.raise_if_cancelled()
        if deadline is not None and time.monotonic() >= deadline:
            _terminate(process)
            raise ProcessTimeout(f"ffmpeg 超过 {timeout:g} 秒未完成，已强制结束")

        try:
            line = lines.get(timeout=poll_interval)
        except queue.Empty:
            continue
        if line is None:
            break

        tail.append(line)
        elapsed = parse_elapsed_seconds(line)
        if elapsed is None:
            continue
        fraction = compute_fraction(elapsed, duration)
        remaining = max(duration - elapsed, 0.0) if fraction is not None else None
        completed = min(elapsed, duration) if fraction is not None else elapsed
        emit_progress(on_progress, completed, duration, remaining_seconds=remaining)

    remaining_time = None if deadline is None else max(deadline - time.monotonic(), 0.0)
    try:
        exit_code = process.wait(timeout=remaining_time)
    except subprocess.TimeoutExpired as exc:
        _terminate(process)
        raise ProcessTimeout(f"ffmpeg 超过 {timeout:g} 秒未完成，已强制结束") from exc
    reader.join(timeout=TERMINATE_GRACE_SECONDS)
    return exit_code


def _pump_lines(stream: Optional[IO[str]], lines: "queue.Queue[Optional[str]]") -> None:
    try:
        if stream is None:
            return
        for raw in stream:
            stripped = raw.rstrip()
            if stripped:
                lines.put(stripped)
    finally:
        lines.put(None)


def _terminate(process: TranscodeProcess) -> None:
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        LOGGER.warning("ffmpeg 未响应 terminate，强制 kill")
        process.kill()
        process.wait()


def _remove_partial_output(fs: FileSystem, output_path: Path) -> None:
    if fs.exists(output_path):
        LOGGER.info("删除不完整的输出文件: %s", output_path)
        fs.remove(output_path)
