"""项目内使用的自定义异常定义。"""


class ToolkitError(Exception):
    """基础异常类型。"""


class ConfigurationError(ToolkitError):
    """配置不合法时抛出，任务不会开始执行。"""


class PerFileError(ToolkitError):
    """单个文件处理失败，记录后继续处理下一个文件。"""


class DecodeError(PerFileError):
    """源文件无法解码。"""


class EncodeError(PerFileError):
    """图像编码失败。"""


class UnsupportedFormatError(PerFileError):
    """源文件扩展名没有对应的编码格式。"""


class ResizeError(PerFileError):
    """缩放失败。"""


class ImageWriteError(PerFileError):
    """输出写入失败。"""


class ProcessError(ToolkitError):
    """外部进程（ffmpeg/ffprobe）以非零状态退出。"""

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class ProcessTimeout(ProcessError):
    """外部进程超过允许的运行时间。"""


class ProcessingAborted(ToolkitError):
    """任务被用户中断时抛出。"""


class PdfRenderError(ToolkitError):
    """PDF 页面渲染失败。"""
