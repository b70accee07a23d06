"""文件扫描：目录递归、扩展名过滤与单文件模式。"""

from __future__ import annotations

from pathlib import Path

from webp_toolkit.core.scanner import discover, extension_of


def _touch(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x")


def test_directory_scan_filters_by_extension(tmp_path: Path) -> None:
    _touch(tmp_path / "a.png")
    _touch(tmp_path / "b.txt")
    _touch(tmp_path / "sub" / "c.jpg")

    found = discover(tmp_path, {"png", "jpg"})

    assert {item.relative_path for item in found} == {Path("a.png"), Path("sub/c.jpg")}
    assert all(item.source_path == tmp_path.resolve() / item.relative_path for item in found)


def test_extension_match_is_case_insensitive(tmp_path: Path) -> None:
    _touch(tmp_path / "UPPER.JPG")
    _touch(tmp_path / "mixed.Png")

    found = discover(tmp_path, {".jpg", "PNG"})

    assert [str(item.relative_path) for item in found] == ["mixed.Png", "UPPER.JPG"]


def test_single_file_yields_one_entry(tmp_path: Path) -> None:
    photo = tmp_path / "photo.PNG"
    _touch(photo)

    found = discover(photo, {"png"})

    assert len(found) == 1
    assert found[0].relative_path == Path("photo.PNG")


def test_single_file_bypasses_extension_filter(tmp_path: Path) -> None:
    notes = tmp_path / "notes.txt"
    _touch(notes)

    found = discover(notes, {"png"})

    assert [item.relative_path for item in found] == [Path("notes.txt")]


def test_missing_root_yields_nothing(tmp_path: Path) -> None:
    assert discover(tmp_path / "missing", {"png"}) == []


def test_order_is_deterministic(tmp_path: Path) -> None:
    for name in ["b.png", "A.png", "sub/z.png", "c.png"]:
        _touch(tmp_path / name)

    first = [item.relative_path for item in discover(tmp_path, {"png"})]
    second = [item.relative_path for item in discover(tmp_path, {"png"})]

    assert first == second
    assert first == [Path("A.png"), Path("b.png"), Path("c.png"), Path("sub/z.png")]


def test_extension_of() -> None:
    assert extension_of(Path("dir/Photo.JPEG")) == "jpeg"
    assert extension_of(Path("README")) == ""
