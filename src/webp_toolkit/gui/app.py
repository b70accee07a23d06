"""Tkinter 图形界面实现。

界面只负责收集参数、构建请求并展示结果。所有耗时任务都在后台线程执行，
后台线程通过队列投递事件，由 ``_poll_queue`` 在 Tk 主线程中处理。
"""

from __future__ import annotations

import logging
import queue
import threading
import tkinter as tk
from concurrent.futures import Future
from pathlib import Path
from tkinter import filedialog, messagebox, ttk
from typing import Any, Callable, Optional

from webp_toolkit.core.cancellation import CancellationToken
from webp_toolkit.core.config import JobRequest, TranscodeRequest, TransformOptions
from webp_toolkit.core.exceptions import ToolkitError
from webp_toolkit.core.models import BatchOutcome, TranscodeResult
from webp_toolkit.core.progress import ProgressUpdate
from webp_toolkit.processing.pdf_thumbnail import export_pdf_thumbnail
from webp_toolkit.processing.pipeline import BatchRunner
from webp_toolkit.processing.renamer import rename_files
from webp_toolkit.processing.transcode import transcode_video
from webp_toolkit.utils.logging import setup_logging
from webp_toolkit.utils.slug import format_text

LOGGER = logging.getLogger(__name__)


class TextWidgetHandler(logging.Handler):
    """Logging handler that writes records into a Tk Text widget."""

    def __init__(self, widget: tk.Text) -> None:
        super().__init__()
        self._widget = widget

    def emit(self, record: logging.LogRecord) -> None:  # noqa: D401 - standard logging handler signature
        message = self.format(record)
        # Schedule UI update on main thread
        self._widget.after(0, self._write, message)

    def _write(self, message: str) -> None:
        if not self._widget.winfo_exists():
            return
        self._widget.configure(state=tk.NORMAL)
        self._widget.insert(tk.END, message + "\n")
        self._widget.configure(state=tk.DISABLED)
        self._widget.see(tk.END)


def _path_row(parent: tk.Widget, label: str, variable: tk.StringVar, choosers: list[tuple[str, Callable[[], str]]]) -> None:
    row = ttk.Frame(parent)
    row.pack(fill=tk.X, pady=2)
    ttk.Label(row, text=label, width=12).pack(side=tk.LEFT)
    ttk.Entry(row, textvariable=variable).pack(side=tk.LEFT, fill=tk.X, expand=True, padx=4)
    for text, chooser in choosers:
        ttk.Button(row, text=text, command=lambda c=chooser: variable.set(c() or variable.get())).pack(side=tk.LEFT)


def read_number(getter: Callable[[], float]) -> Optional[float]:
    """读取数值输入框；内容不是数字时返回 None。"""

    try:
        return float(getter())
    except (tk.TclError, ValueError):
        return None


class WebpToolkitApp(tk.Tk):
    """Tkinter 主窗口。"""

    def __init__(self) -> None:
        super().__init__()
        self.title("WebP Toolkit")
        self.geometry("820x560")
        setup_logging()

        self._event_queue: "queue.Queue[tuple[str, Any]]" = queue.Queue()
        self._batch_runner = BatchRunner()
        self._transcode_token: Optional[CancellationToken] = None
        self._busy = False

        self._build_ui()
        self._attach_log_handler()
        self.protocol("WM_DELETE_WINDOW", self._handle_close)
        self.after(100, self._poll_queue)

    # ---------------------- UI 构建 ---------------------- #

    def _build_ui(self) -> None:
        container = ttk.Frame(self, padding=10)
        container.pack(fill=tk.BOTH, expand=True)

        notebook = ttk.Notebook(container)
        notebook.pack(fill=tk.X)
        notebook.add(self._build_converter_tab(notebook), text="图片转换")
        notebook.add(self._build_renamer_tab(notebook), text="文件重命名")
        notebook.add(self._build_formatter_tab(notebook), text="文本格式化")
        notebook.add(self._build_video_tab(notebook), text="视频转码")
        notebook.add(self._build_pdf_tab(notebook), text="PDF 缩略图")

        status_frame = ttk.Frame(container)
        status_frame.pack(fill=tk.X, pady=(8, 4))
        self.progress_var = tk.DoubleVar(value=0.0)
        ttk.Progressbar(status_frame, variable=self.progress_var, maximum=100).pack(
            side=tk.LEFT, fill=tk.X, expand=True
        )
        self.cancel_button = ttk.Button(status_frame, text="取消", command=self._cancel, state=tk.DISABLED)
        self.cancel_button.pack(side=tk.LEFT, padx=(8, 0))

        self.log_text = tk.Text(container, height=12, state=tk.DISABLED)
        self.log_text.pack(fill=tk.BOTH, expand=True)

    def _build_converter_tab(self, parent: ttk.Notebook) -> ttk.Frame:
        frame = ttk.Frame(parent, padding=8)
        self.conv_source_var = tk.StringVar()
        self.conv_output_var = tk.StringVar()
        _path_row(frame, "图片/目录:", self.conv_source_var, [("选择目录", filedialog.askdirectory), ("选择文件", filedialog.askopenfilename)])
        _path_row(frame, "输出目录:", self.conv_output_var, [("选择目录", filedialog.askdirectory)])

        self.conv_compress_var = tk.BooleanVar(value=False)
        self.conv_rename_var = tk.BooleanVar(value=False)
        self.conv_convert_var = tk.BooleanVar(value=False)
        self.conv_resize_var = tk.BooleanVar(value=False)
        toggles = ttk.Frame(frame)
        toggles.pack(fill=tk.X, pady=4)
        for text, var in (
            ("压缩", self.conv_compress_var),
            ("重命名", self.conv_rename_var),
            ("转换为 WebP", self.conv_convert_var),
            ("缩放", self.conv_resize_var),
        ):
            ttk.Checkbutton(toggles, text=text, variable=var).pack(side=tk.LEFT, padx=(0, 12))

        self.conv_quality_var = tk.DoubleVar(value=100.0)
        self.conv_width_var = tk.DoubleVar(value=100.0)
        for text, var, low in (("质量 (%):", self.conv_quality_var, 0), ("缩放宽度 (%):", self.conv_width_var, 1)):
            row = ttk.Frame(frame)
            row.pack(fill=tk.X, pady=2)
            ttk.Label(row, text=text, width=12).pack(side=tk.LEFT)
            ttk.Scale(row, from_=low, to=100, variable=var).pack(side=tk.LEFT, fill=tk.X, expand=True, padx=4)
            ttk.Spinbox(row, from_=low, to=100, textvariable=var, width=6).pack(side=tk.LEFT)

        self.conv_run_button = ttk.Button(frame, text="开始转换", command=self._start_conversion)
        self.conv_run_button.pack(anchor=tk.W, pady=(6, 0))
        return frame

    def _build_renamer_tab(self, parent: ttk.Notebook) -> ttk.Frame:
        frame = ttk.Frame(parent, padding=8)
        self.ren_folder_var = tk.StringVar()
        self.ren_file_var = tk.StringVar()
        _path_row(frame, "目录:", self.ren_folder_var, [("选择目录", filedialog.askdirectory)])
        _path_row(frame, "单个文件:", self.ren_file_var, [("选择文件", filedialog.askopenfilename)])
        ttk.Button(frame, text="重命名文件", command=self._start_rename).pack(anchor=tk.W, pady=(6, 0))
        return frame

    def _build_formatter_tab(self, parent: ttk.Notebook) -> ttk.Frame:
        frame = ttk.Frame(parent, padding=8)
        self.fmt_input_var = tk.StringVar()
        self.fmt_output_var = tk.StringVar()
        row = ttk.Frame(frame)
        row.pack(fill=tk.X, pady=2)
        ttk.Label(row, text="原始文本:", width=12).pack(side=tk.LEFT)
        ttk.Entry(row, textvariable=self.fmt_input_var).pack(side=tk.LEFT, fill=tk.X, expand=True, padx=4)
        ttk.Button(row, text="格式化", command=self._format_text).pack(side=tk.LEFT)
        result_row = ttk.Frame(frame)
        result_row.pack(fill=tk.X, pady=2)
        ttk.Label(result_row, text="结果:", width=12).pack(side=tk.LEFT)
        ttk.Entry(result_row, textvariable=self.fmt_output_var, state="readonly").pack(
            side=tk.LEFT, fill=tk.X, expand=True, padx=4
        )
        ttk.Button(result_row, text="复制", command=self._copy_formatted).pack(side=tk.LEFT)
        return frame

    def _build_video_tab(self, parent: ttk.Notebook) -> ttk.Frame:
        frame = ttk.Frame(parent, padding=8)
        self.vid_source_var = tk.StringVar()
        self.vid_output_var = tk.StringVar()
        self.vid_format_var = tk.StringVar(value="webm")
        self.vid_eta_var = tk.StringVar(value="")
        _path_row(frame, "视频文件:", self.vid_source_var, [("选择文件", filedialog.askopenfilename)])
        _path_row(frame, "输出目录:", self.vid_output_var, [("选择目录", filedialog.askdirectory)])
        row = ttk.Frame(frame)
        row.pack(fill=tk.X, pady=2)
        ttk.Label(row, text="输出格式:", width=12).pack(side=tk.LEFT)
        ttk.Combobox(row, textvariable=self.vid_format_var, values=("webm", "mp4"), state="readonly", width=8).pack(
            side=tk.LEFT, padx=4
        )
        ttk.Label(row, textvariable=self.vid_eta_var).pack(side=tk.LEFT, padx=12)
        self.vid_run_button = ttk.Button(frame, text="开始转码", command=self._start_transcode)
        self.vid_run_button.pack(anchor=tk.W, pady=(6, 0))
        return frame

    def _build_pdf_tab(self, parent: ttk.Notebook) -> ttk.Frame:
        frame = ttk.Frame(parent, padding=8)
        self.pdf_source_var = tk.StringVar()
        self.pdf_output_var = tk.StringVar()
        pdf_chooser = lambda: filedialog.askopenfilename(filetypes=[("PDF 文件", "*.pdf")])  # noqa: E731
        _path_row(frame, "PDF 文件:", self.pdf_source_var, [("选择 PDF", pdf_chooser)])
        _path_row(frame, "输出目录:", self.pdf_output_var, [("选择目录", filedialog.askdirectory)])
        ttk.Button(frame, text="导出 WebP", command=self._export_pdf).pack(anchor=tk.W, pady=(6, 0))
        return frame

    def _attach_log_handler(self) -> None:
        self._log_handler = TextWidgetHandler(self.log_text)
        self._log_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s: %(message)s"))
        logging.getLogger("webp_toolkit").addHandler(self._log_handler)

    # ---------------------- 事件处理 ---------------------- #

    def _start_conversion(self) -> None:
        if not self._ensure_idle():
            return
        source = self.conv_source_var.get().strip()
        output = self.conv_output_var.get().strip()
        if not source or not output:
            messagebox.showwarning("提示", "请选择源图片/目录与输出目录。")
            return
        quality = read_number(self.conv_quality_var.get)
        width_percent = read_number(self.conv_width_var.get)
        if quality is None or width_percent is None:
            messagebox.showwarning("提示", "质量与缩放宽度必须是数字。")
            return

        request = JobRequest(
            source_path=Path(source).expanduser(),
            destination_root=Path(output).expanduser(),
            options=TransformOptions(
                resize=self.conv_resize_var.get(),
                reencode=self.conv_convert_var.get(),
                rename=self.conv_rename_var.get(),
                compress=self.conv_compress_var.get(),
            ),
            quality=quality,
            width_percent=width_percent,
        )

        def progress_callback(update: ProgressUpdate) -> None:
            self._event_queue.put(("progress", update))

        self._set_busy(True)
        future = self._batch_runner.submit(request, on_progress=progress_callback)
        future.add_done_callback(lambda f: self._event_queue.put(("batch-done", f)))

    def _start_rename(self) -> None:
        if not self._ensure_idle():
            return
        folder = self.ren_folder_var.get().strip()
        single = self.ren_file_var.get().strip()
        if not folder and not single:
            messagebox.showwarning("提示", "请选择源目录或单个文件。")
            return
        self._run_in_background(
            "rename-done",
            lambda: rename_files(Path(folder) if folder else None, Path(single) if single else None),
        )

    def _format_text(self) -> None:
        try:
            self.fmt_output_var.set(format_text(self.fmt_input_var.get()))
        except ToolkitError as exc:
            self.fmt_output_var.set("")
            messagebox.showerror("错误", str(exc))

    def _copy_formatted(self) -> None:
        text = self.fmt_output_var.get()
        if not text:
            return
        self.clipboard_clear()
        self.clipboard_append(text)
        messagebox.showinfo("成功", "已复制到剪贴板。")

    def _start_transcode(self) -> None:
        if not self._ensure_idle():
            return
        source = self.vid_source_var.get().strip()
        output = self.vid_output_var.get().strip()
        if not source or not output:
            messagebox.showwarning("提示", "请选择视频文件与输出目录。")
            return
        request = TranscodeRequest(
            source_path=Path(source).expanduser(),
            destination_dir=Path(output).expanduser(),
            output_format=self.vid_format_var.get(),
        )
        token = CancellationToken()
        self._transcode_token = token

        def progress_callback(update: ProgressUpdate) -> None:
            self._event_queue.put(("progress", update))

        self._run_in_background(
            "transcode-done",
            lambda: transcode_video(request, on_progress=progress_callback, cancel_token=token),
        )

    def _export_pdf(self) -> None:
        if not self._ensure_idle():
            return
        source = self.pdf_source_var.get().strip()
        output = self.pdf_output_var.get().strip()
        if not source or not output:
            messagebox.showwarning("提示", "请选择 PDF 文件与输出目录。")
            return
        self._run_in_background("pdf-done", lambda: export_pdf_thumbnail(Path(source), Path(output)))

    def _run_in_background(self, kind: str, job: Callable[[], Any]) -> None:
        def target() -> None:
            try:
                self._event_queue.put((kind, job()))
            except Exception as exc:  # noqa: BLE001
                LOGGER.debug("后台任务异常", exc_info=exc)
                self._event_queue.put(("error", str(exc)))

        self._set_busy(True)
        threading.Thread(target=target, daemon=True).start()

    def _cancel(self) -> None:
        self._batch_runner.cancel()
        if self._transcode_token is not None:
            self._transcode_token.cancel()
        self._append_log("已请求取消...")

    def _poll_queue(self) -> None:
        try:
            while True:
                kind, payload = self._event_queue.get_nowait()
                if kind == "progress":
                    self._handle_progress(payload)
                elif kind == "batch-done":
                    self._handle_batch_future(payload)
                elif kind == "rename-done":
                    self._handle_outcome(payload, "重命名")
                elif kind == "transcode-done":
                    self._handle_transcode(payload)
                elif kind == "pdf-done":
                    self._set_busy(False)
                    messagebox.showinfo("完成", f"已导出 {payload}")
                elif kind == "error":
                    self._handle_error(payload)
        except queue.Empty:
            pass
        finally:
            self.after(100, self._poll_queue)

    def _handle_progress(self, update: ProgressUpdate) -> None:
        self.progress_var.set(update.fraction * 100)
        if update.remaining_seconds is not None:
            self.vid_eta_var.set(f"预计剩余 {int(update.remaining_seconds)} 秒")

    def _handle_batch_future(self, future: "Future[BatchOutcome]") -> None:
        try:
            outcome = future.result()
        except Exception as exc:  # noqa: BLE001
            self._handle_error(str(exc))
            return
        self._handle_outcome(outcome, "图片转换")

    def _handle_outcome(self, outcome: BatchOutcome, title: str) -> None:
        self._set_busy(False)
        summary = outcome.summary()
        self._append_log(summary)
        for result in outcome.failed:
            self._append_log(f"  {result.source_path}: {result.reason}")
        if outcome.failed:
            messagebox.showwarning(title, summary + "\n失败详情见日志。")
        else:
            messagebox.showinfo(title, summary)

    def _handle_transcode(self, result: TranscodeResult) -> None:
        self._set_busy(False)
        self._transcode_token = None
        self.vid_eta_var.set("")
        if result.ok:
            messagebox.showinfo("成功", "视频转码完成。")
        else:
            messagebox.showerror("错误", f"视频转码失败（{result.status}）：{result.message}")

    def _handle_error(self, message: str) -> None:
        self._set_busy(False)
        self._transcode_token = None
        self._append_log(f"任务异常：{message}")
        messagebox.showerror("错误", message)

    # ---------------------- 辅助 ---------------------- #

    def _ensure_idle(self) -> bool:
        if self._busy:
            messagebox.showinfo("提示", "任务正在执行中，请稍候。")
            return False
        return True

    def _set_busy(self, busy: bool) -> None:
        self._busy = busy
        self.cancel_button.configure(state=tk.NORMAL if busy else tk.DISABLED)
        if busy:
            self.progress_var.set(0)

    def _append_log(self, text: str) -> None:
        self.log_text.configure(state=tk.NORMAL)
        self.log_text.insert(tk.END, text + "\n")
        self.log_text.configure(state=tk.DISABLED)
        self.log_text.see(tk.END)

    def _handle_close(self) -> None:
        if self._busy and not messagebox.askyesno("确认", "任务仍在执行，确定要取消并退出吗？"):
            return
        self._cancel()
        self._batch_runner.shutdown(wait=False)
        logging.getLogger("webp_toolkit").removeHandler(self._log_handler)
        self.destroy()


def run_gui() -> None:
    """启动 GUI 应用。"""

    app = WebpToolkitApp()
    app.mainloop()


if __name__ == "__main__":
    run_gui()
