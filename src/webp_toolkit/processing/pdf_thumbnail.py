"""PDF 页面缩略图导出。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import fitz
from PIL import Image

from webp_toolkit.core.config import TARGET_FORMATS, normalize_format
from webp_toolkit.core.exceptions import ConfigurationError, PdfRenderError
from webp_toolkit.core.filesystem import FileSystem, LocalFileSystem
from webp_toolkit.processing.codec import MediaCodec, PillowCodec

LOGGER = logging.getLogger(__name__)


def thumbnail_name(pdf_path: Path, output_format: str) -> str:
    return f"{pdf_path.stem}-thumbnail{TARGET_FORMATS[output_format]}"


def render_page(pdf_path: Path, page_index: int = 0, zoom: float = 1.0) -> Image.Image:
    """按页面 MediaBox 尺寸（乘以 zoom）渲染单页为 RGB 图像。"""

    try:
        doc = fitz.open(pdf_path)
    except Exception as exc:  # noqa: BLE001
        raise PdfRenderError(f"无法打开 PDF {pdf_path}: {exc}") from exc

    try:
        if page_index < 0 or page_index >= len(doc):
            raise PdfRenderError(f"页码 {page_index} 超出范围 [0, {len(doc) - 1}]")
        page = doc[page_index]
        pixmap = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
        mode = "RGB" if pixmap.n < 4 else "RGBA"
        return Image.frombytes(mode, (pixmap.width, pixmap.height), pixmap.samples)
    except PdfRenderError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise PdfRenderError(f"渲染 PDF 第 {page_index + 1} 页失败: {exc}") from exc
    finally:
        doc.close()


def export_pdf_thumbnail(
    pdf_path: Path,
    destination: Path,
    *,
    codec: Optional[MediaCodec] = None,
    output_format: str = "webp",
    quality: float = 100.0,
    page_index: int = 0,
    zoom: float = 1.0,
    fs: Optional[FileSystem] = None,
) -> Path:
    """导出 PDF 指定页（默认首页）的缩略图，返回写出的文件路径。

    ``destination`` 带扩展名时视为目标文件，否则视为目录，文件名为
    ``<pdf 名>-thumbnail.<ext>``。
    """

    fs = fs or LocalFileSystem()
    codec = codec or PillowCodec()
    pdf_path = Path(pdf_path)
    destination = Path(destination)
    output_format = normalize_format(output_format)

    if pdf_path.suffix.lower() != ".pdf" or not fs.is_file(pdf_path):
        raise ConfigurationError(f"请选择有效的 PDF 文件: {pdf_path}")
    if output_format not in TARGET_FORMATS:
        raise ConfigurationError(f"不支持的输出格式: {output_format}")
    if not 0 <= quality <= 100:
        raise ConfigurationError(f"quality 必须位于 0~100 之间: {quality}")
    if zoom <= 0:
        raise ConfigurationError(f"zoom 必须大于 0: {zoom}")

    if destination.suffix and not fs.is_dir(destination):
        target = destination
    else:
        target = destination / thumbnail_name(pdf_path, output_format)

    image = render_page(pdf_path, page_index, zoom)
    data = codec.encode(image, output_format.upper(), quality)
    fs.create_directories(target.parent)
    fs.write_bytes(target, data)
    LOGGER.info("已导出缩略图: %s", target)
    return target
