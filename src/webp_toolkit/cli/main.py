"""命令行入口。"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from webp_toolkit.core.cancellation import CancellationToken
from webp_toolkit.core.config import (
    DEFAULT_ALLOWED_EXTENSIONS,
    JobRequest,
    ToolPaths,
    TranscodeRequest,
    TransformOptions,
)
from webp_toolkit.core.exceptions import ConfigurationError, EncodeError, PdfRenderError
from webp_toolkit.core.models import BatchOutcome
from webp_toolkit.core.progress import ProgressUpdate
from webp_toolkit.processing.pdf_thumbnail import export_pdf_thumbnail
from webp_toolkit.processing.pipeline import BatchRunner
from webp_toolkit.processing.renamer import rename_files
from webp_toolkit.processing.transcode import FfmpegRunner, transcode_video
from webp_toolkit.utils.logging import setup_logging
from webp_toolkit.utils.slug import format_text

app = typer.Typer(help="图片批量转换、文件名整理、视频转码等小工具集合。")
console = Console()

T = TypeVar("T")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="同时把日志写入该文件"),
) -> None:
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)


def _parse_extensions(value: str) -> frozenset[str]:
    items = [item for item in value.replace(";", ",").split(",") if item.strip()]
    if not items:
        raise typer.BadParameter("至少需要一个扩展名")
    return frozenset(items)


def _new_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=console,
    )


def _build_progress_callback(progress: Progress, description: str):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total <= 0:
            return
        if task_id is None:
            task_id = progress.add_task(description, total=update.total)
        progress.update(task_id, completed=update.completed)

    return callback


def _wait_cancellable(future: "Future[T]", cancel: Callable[[], None]) -> T:
    """等待后台任务；Ctrl+C 时请求取消并等待任务收尾。"""

    try:
        return future.result()
    except KeyboardInterrupt:
        console.print("[yellow]正在取消，请稍候...[/yellow]")
        cancel()
        return future.result()


def _print_failures(outcome: BatchOutcome) -> None:
    failed = outcome.failed
    if not failed:
        return
    table = Table(title="失败文件")
    table.add_column("文件")
    table.add_column("状态")
    table.add_column("原因")
    for result in failed:
        table.add_row(str(result.source_path), result.status, result.reason or "")
    console.print(table)


@app.command("convert")
def convert_cli(  # noqa: PLR0913
    source: Path = typer.Argument(..., help="源图片文件或目录"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录（按源目录结构镜像）"),
    resize: bool = typer.Option(False, "--resize", help="按比例缩放"),
    width_percent: float = typer.Option(100.0, "--width-percent", help="缩放比例 (0, 100]"),
    reencode: bool = typer.Option(False, "--reencode", help="转换为目标格式"),
    target_format: str = typer.Option("webp", "--format", help="转换目标格式 webp/jpeg(jpg)/png"),
    quality: float = typer.Option(100.0, "--quality", "-q", help="压缩质量 0~100"),
    compress: bool = typer.Option(False, "--compress", help="保持原格式时也按 quality 压缩"),
    rename: bool = typer.Option(False, "--rename", help="输出文件名转换为 slug"),
    extensions: str = typer.Option(
        ",".join(sorted(DEFAULT_ALLOWED_EXTENSIONS)), "--extensions", help="目录扫描时允许的扩展名，逗号分隔"
    ),
    report: Optional[str] = typer.Option(None, "--report", help="在输出目录写入 CSV 报告，例如 report.csv"),
    verify: bool = typer.Option(False, "--verify", help="计算输出与处理前图像的 SSIM/pHash"),
) -> None:
    """批量转换图片：缩放、转换格式、重命名。"""

    request = JobRequest(
        source_path=source.expanduser().resolve(),
        destination_root=output.expanduser().resolve(),
        options=TransformOptions(resize=resize, reencode=reencode, rename=rename, compress=compress),
        quality=quality,
        width_percent=width_percent,
        allowed_extensions=_parse_extensions(extensions),
        target_format=target_format,
        verify=verify,
        report_filename=report,
    )

    runner = BatchRunner()
    try:
        with _new_progress() as progress:
            future = runner.submit(request, on_progress=_build_progress_callback(progress, "处理图片"))
            outcome = _wait_cancellable(future, runner.cancel)
    except ConfigurationError as exc:
        console.print(f"[red]配置错误：{exc}[/red]")
        raise typer.Exit(code=2) from exc
    finally:
        runner.shutdown()

    console.print(outcome.summary())
    _print_failures(outcome)
    if report:
        console.print(f"报告文件：{request.destination_root / report}")
    if outcome.failed or outcome.cancelled:
        raise typer.Exit(code=1)


@app.command("rename")
def rename_cli(
    folder: Optional[Path] = typer.Argument(None, help="目录（只处理第一层文件）"),
    single_file: Optional[Path] = typer.Option(None, "--file", "-f", help="单个文件"),
    underscore_as_hyphen: bool = typer.Option(False, "--underscore-as-hyphen", help="下划线视为分隔符而不是删除"),
) -> None:
    """把文件名就地替换为 slug，扩展名保持不变。"""

    try:
        outcome = rename_files(
            folder.expanduser().resolve() if folder else None,
            single_file.expanduser().resolve() if single_file else None,
            underscore="hyphen" if underscore_as_hyphen else "drop",
        )
    except ConfigurationError as exc:
        console.print(f"[red]配置错误：{exc}[/red]")
        raise typer.Exit(code=2) from exc

    for result in outcome.succeeded:
        assert result.destination_path is not None
        if result.destination_path != result.source_path:
            console.print(f"{result.source_path.name} -> {result.destination_path.name}")
    console.print(outcome.summary())
    _print_failures(outcome)
    if outcome.failed:
        raise typer.Exit(code=1)


@app.command("slug")
def slug_cli(
    text: str = typer.Argument(..., help="需要格式化的文本"),
    drop_underscores: bool = typer.Option(False, "--drop-underscores", help="删除下划线而不是替换为连字符"),
) -> None:
    """把文本格式化为 slug 并输出。"""

    try:
        formatted = format_text(text, underscore="drop" if drop_underscores else "hyphen")
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    typer.echo(formatted)


@app.command("video")
def video_cli(  # noqa: PLR0913
    source: Path = typer.Argument(..., help="视频文件"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录"),
    output_format: str = typer.Option("webm", "--format", help="输出格式 webm/mp4"),
    bitrate: str = typer.Option("1M", "--bitrate", help="视频码率"),
    video_codec: Optional[str] = typer.Option(None, "--video-codec", help="覆盖默认视频编码器"),
    audio_codec: Optional[str] = typer.Option(None, "--audio-codec", help="覆盖默认音频编码器"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="转码超时时间（秒）"),
    ffmpeg: Optional[str] = typer.Option(None, "--ffmpeg", help="ffmpeg 路径"),
    ffprobe: Optional[str] = typer.Option(None, "--ffprobe", help="ffprobe 路径"),
) -> None:
    """调用 ffmpeg 转码单个视频。"""

    request = TranscodeRequest(
        source_path=source.expanduser().resolve(),
        destination_dir=output.expanduser().resolve(),
        output_format=output_format,
        bitrate=bitrate,
        video_codec=video_codec,
        audio_codec=audio_codec,
        timeout=timeout,
    )
    runner = FfmpegRunner(ToolPaths.resolve(ffmpeg, ffprobe))
    token = CancellationToken()

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="transcode") as executor:
        try:
            with _new_progress() as progress:
                future = executor.submit(
                    transcode_video,
                    request,
                    runner,
                    _build_progress_callback(progress, "转码"),
                    cancel_token=token,
                )
                result = _wait_cancellable(future, token.cancel)
        except ConfigurationError as exc:
            console.print(f"[red]配置错误：{exc}[/red]")
            raise typer.Exit(code=2) from exc

    if result.ok:
        console.print(f"转码完成：{result.output_path}")
        return
    console.print(f"[red]转码失败（{result.status}）：{result.message}[/red]")
    raise typer.Exit(code=1)


@app.command("pdf-thumbnail")
def pdf_thumbnail_cli(
    pdf: Path = typer.Argument(..., help="PDF 文件"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录或文件"),
    output_format: str = typer.Option("webp", "--format", help="输出格式 webp/jpeg/png"),
    quality: float = typer.Option(100.0, "--quality", "-q", help="压缩质量 0~100"),
    page: int = typer.Option(1, "--page", min=1, help="页码（从 1 开始）"),
    zoom: float = typer.Option(1.0, "--zoom", help="渲染缩放倍数"),
) -> None:
    """导出 PDF 页面缩略图。"""

    try:
        target = export_pdf_thumbnail(
            pdf.expanduser().resolve(),
            output.expanduser().resolve(),
            output_format=output_format,
            quality=quality,
            page_index=page - 1,
            zoom=zoom,
        )
    except ConfigurationError as exc:
        console.print(f"[red]配置错误：{exc}[/red]")
        raise typer.Exit(code=2) from exc
    except (PdfRenderError, EncodeError, OSError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(f"已导出：{target}")


@app.command("gui")
def gui_cli() -> None:
    """启动图形界面。"""

    from webp_toolkit.gui.app import run_gui

    run_gui()


if __name__ == "__main__":
    app()
