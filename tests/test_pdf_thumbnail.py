"""PDF 缩略图导出。"""

from __future__ import annotations

from pathlib import Path

import fitz
import pytest
from PIL import Image

from webp_toolkit.core.exceptions import ConfigurationError, PdfRenderError
from webp_toolkit.processing.pdf_thumbnail import export_pdf_thumbnail, render_page


def _make_pdf(path: Path, pages: int = 1) -> Path:
    doc = fitz.open()
    for index in range(pages):
        page = doc.new_page(width=200, height=100)
        page.insert_text((20, 50), f"Page {index + 1}")
    doc.save(path)
    doc.close()
    return path


def test_render_page_uses_page_size_and_zoom(tmp_path: Path) -> None:
    pdf = _make_pdf(tmp_path / "doc.pdf")

    assert render_page(pdf).size == (200, 100)
    assert render_page(pdf, zoom=2.0).size == (400, 200)


def test_export_into_directory(tmp_path: Path) -> None:
    pdf = _make_pdf(tmp_path / "Report.pdf")
    output = tmp_path / "thumbs"

    target = export_pdf_thumbnail(pdf, output)

    assert target == output / "Report-thumbnail.webp"
    with Image.open(target) as image:
        assert image.format == "WEBP"
        assert image.size == (200, 100)


def test_export_to_explicit_file_and_page(tmp_path: Path) -> None:
    pdf = _make_pdf(tmp_path / "doc.pdf", pages=2)
    target = tmp_path / "out" / "cover.png"

    written = export_pdf_thumbnail(pdf, target, output_format="png", page_index=1)

    assert written == target
    with Image.open(target) as image:
        assert image.format == "PNG"


def test_page_out_of_range(tmp_path: Path) -> None:
    pdf = _make_pdf(tmp_path / "doc.pdf")
    with pytest.raises(PdfRenderError):
        export_pdf_thumbnail(pdf, tmp_path, page_index=3)


def test_invalid_pdf_content(tmp_path: Path) -> None:
    broken = tmp_path / "broken.pdf"
    broken.write_bytes(b"not a pdf at all")
    with pytest.raises(PdfRenderError):
        export_pdf_thumbnail(broken, tmp_path / "out")


@pytest.mark.parametrize(
    "kwargs",
    [{"output_format": "gif"}, {"quality": 101}, {"zoom": 0}],
)
def test_invalid_options(tmp_path: Path, kwargs: dict) -> None:
    pdf = _make_pdf(tmp_path / "doc.pdf")
    with pytest.raises(ConfigurationError):
        export_pdf_thumbnail(pdf, tmp_path / "out", **kwargs)


def test_non_pdf_source_rejected(tmp_path: Path) -> None:
    image = tmp_path / "image.png"
    Image.new("RGB", (4, 4)).save(image)
    with pytest.raises(ConfigurationError):
        export_pdf_thumbnail(image, tmp_path / "out")


def test_jpg_alias_for_output_format(tmp_path: Path) -> None:
    pdf = _make_pdf(tmp_path / "doc.pdf")

    target = export_pdf_thumbnail(pdf, tmp_path / "out", output_format="jpg")

    assert target.name == "doc-thumbnail.jpg"
    with Image.open(target) as image:
        assert image.format == "JPEG"
