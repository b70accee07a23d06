"""批处理流水线：失败隔离、缩放、重命名、取消与进度。

使用确定性的假编解码器，输出内容只取决于输入与参数。
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, replace
from pathlib import Path

import pytest

from webp_toolkit.core.cancellation import CancellationToken
from webp_toolkit.core.config import JobRequest, TransformOptions
from webp_toolkit.core.exceptions import ConfigurationError, DecodeError, EncodeError, ResizeError
from webp_toolkit.core.progress import ProgressUpdate
from webp_toolkit.processing.pipeline import BatchRunner, run_batch
from webp_toolkit.processing.worker import scaled_size


@dataclass(frozen=True)
class FakeImage:
    width: int
    height: int
    label: str


class FakeCodec:
    """文件内容形如 ``FAKE 200x100 label``，其它内容一律视为损坏。"""

    def __init__(self) -> None:
        self.encode_calls: list[tuple[str, float]] = []

    def decode(self, data: bytes) -> FakeImage:
        parts = data.decode("utf-8", errors="replace").split()
        if len(parts) != 3 or parts[0] not in {"FAKE", "JPEG", "PNG", "WEBP"}:
            raise DecodeError("corrupt input")
        width, height = (int(value) for value in parts[1].split("x"))
        return FakeImage(width, height, parts[2])

    def encode(self, image: FakeImage, image_format: str, quality: float) -> bytes:
        if image.label == "noencode":
            raise EncodeError("encoder exploded")
        self.encode_calls.append((image_format, quality))
        return f"{image_format} {image.width}x{image.height} {image.label}".encode()

    def resize(self, image: FakeImage, size: tuple[int, int]) -> FakeImage:
        if image.label == "noresize":
            raise ResizeError("cannot resize")
        return replace(image, width=size[0], height=size[1])

    def dimensions(self, image: FakeImage) -> tuple[int, int]:
        return image.width, image.height


def _fake_file(path: Path, width: int = 200, height: int = 100, label: str = "img") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(f"FAKE {width}x{height} {label}".encode())
    return path


def _request(source: Path, output: Path, **kwargs) -> JobRequest:
    options = TransformOptions(
        resize=kwargs.pop("resize", False),
        reencode=kwargs.pop("reencode", False),
        rename=kwargs.pop("rename", False),
        compress=kwargs.pop("compress", False),
    )
    return JobRequest(source_path=source, destination_root=output, options=options, **kwargs)


def test_corrupt_file_does_not_abort_batch(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    _fake_file(source / "1.png")
    (source / "2.png").write_bytes(b"\x00not an image")
    _fake_file(source / "3.png")

    outcome = run_batch(_request(source, output), FakeCodec())

    assert outcome.total == 3
    assert outcome.completed_count == 3
    assert len(outcome.succeeded) == 2
    assert len(outcome.failed) == 1
    failure = outcome.failed[0]
    assert failure.source_path.name == "2.png"
    assert failure.status == "error-load"
    assert (output / "1.png").exists()
    assert (output / "3.png").exists()
    assert not (output / "2.png").exists()


def test_resize_preserves_aspect_ratio(tmp_path: Path) -> None:
    source = _fake_file(tmp_path / "input" / "wide.png", 200, 100)
    output = tmp_path / "output"

    outcome = run_batch(_request(source, output, resize=True, width_percent=50), FakeCodec())

    assert outcome.failed == []
    assert (output / "wide.png").read_bytes() == b"PNG 100x50 img"


def test_scaled_size_never_collapses_to_zero() -> None:
    assert scaled_size((200, 100), 50) == (100, 50)
    assert scaled_size((3, 1), 10) == (1, 1)
    assert scaled_size((640, 480), 100) == (640, 480)


def test_rerun_produces_identical_output(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    _fake_file(source / "a.jpg", label="first")
    _fake_file(source / "nested" / "b.webp", label="second")
    request = _request(source, output, resize=True, width_percent=33, reencode=True, rename=True)

    run_batch(request, FakeCodec())
    snapshot = {path.relative_to(output): path.read_bytes() for path in output.rglob("*") if path.is_file()}
    run_batch(request, FakeCodec())
    again = {path.relative_to(output): path.read_bytes() for path in output.rglob("*") if path.is_file()}

    assert snapshot == again
    assert set(snapshot) == {Path("a.webp"), Path("nested/b.webp")}


def test_rename_and_reencode_mirror_tree(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    _fake_file(source / "sub" / "My Photo_2024!!.PNG")

    outcome = run_batch(_request(source, output, rename=True, reencode=True), FakeCodec())

    destination = output / "sub" / "my-photo2024.webp"
    assert outcome.succeeded[0].destination_path == destination
    assert destination.read_bytes().startswith(b"WEBP ")


def test_original_extension_is_lowercased_without_reencode(tmp_path: Path) -> None:
    source = _fake_file(tmp_path / "input" / "Shot.JPEG")
    output = tmp_path / "output"
    codec = FakeCodec()

    run_batch(_request(source, output), codec)

    assert (output / "Shot.jpeg").read_bytes().startswith(b"JPEG ")
    assert codec.encode_calls == [("JPEG", 100.0)]


def test_quality_applies_only_when_compressing_or_reencoding(tmp_path: Path) -> None:
    source = _fake_file(tmp_path / "input" / "a.png")
    codec = FakeCodec()

    run_batch(_request(source, tmp_path / "plain", quality=40), codec)
    run_batch(_request(source, tmp_path / "compressed", quality=40, compress=True), codec)
    run_batch(_request(source, tmp_path / "converted", quality=40, reencode=True, target_format="jpeg"), codec)

    assert codec.encode_calls == [("PNG", 100.0), ("PNG", 40), ("JPEG", 40)]
    assert (tmp_path / "converted" / "a.jpg").exists()


def test_unsupported_extension_fails_without_reencode(tmp_path: Path) -> None:
    source = _fake_file(tmp_path / "input" / "anim.gif")
    output = tmp_path / "output"

    outcome = run_batch(_request(source, output), FakeCodec())

    assert outcome.failed[0].status == "error-unsupported-format"
    assert outcome.failed[0].reason == "unsupported format: .gif"

    converted = run_batch(_request(source, output, reencode=True), FakeCodec())
    assert converted.failed == []
    assert (output / "anim.webp").exists()


def test_resize_and_encode_failures_are_isolated(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    _fake_file(source / "a.png", label="noresize")
    _fake_file(source / "b.png", label="noencode")
    _fake_file(source / "c.png")

    outcome = run_batch(_request(source, output, resize=True, width_percent=50), FakeCodec())

    statuses = {result.source_path.name: result.status for result in outcome.results}
    assert statuses == {"a.png": "error-resize", "b.png": "error-encode", "c.png": "success"}
    assert sorted(path.name for path in output.iterdir()) == ["c.png"]


def test_write_failure_is_recorded(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    _fake_file(source / "a.png")
    _fake_file(source / "b.png")
    # 目标位置已被目录占用
    (output / "a.png").mkdir(parents=True)

    outcome = run_batch(_request(source, output), FakeCodec())

    assert [result.status for result in outcome.results] == ["error-write", "success"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"quality": 150},
        {"quality": -1},
        {"width_percent": 0},
        {"width_percent": 120},
        {"target_format": "gif"},
        {"allowed_extensions": frozenset()},
    ],
)
def test_invalid_configuration_fails_before_any_work(tmp_path: Path, overrides: dict) -> None:
    source = _fake_file(tmp_path / "input" / "a.png")
    output = tmp_path / "output"
    codec = FakeCodec()

    with pytest.raises(ConfigurationError):
        run_batch(_request(source, output, **overrides), codec)

    assert not output.exists()
    assert codec.encode_calls == []


def test_missing_source_is_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        run_batch(_request(tmp_path / "missing", tmp_path / "output"), FakeCodec())
    assert not (tmp_path / "output").exists()


def test_destination_must_be_directory(tmp_path: Path) -> None:
    source = _fake_file(tmp_path / "input" / "a.png")
    blocker = tmp_path / "output"
    blocker.write_text("file")

    with pytest.raises(ConfigurationError):
        run_batch(_request(source, blocker), FakeCodec())


def test_destination_below_a_file_is_configuration_error(tmp_path: Path) -> None:
    source = _fake_file(tmp_path / "input" / "a.png")
    blocker = tmp_path / "blocker"
    blocker.write_text("file")
    codec = FakeCodec()

    with pytest.raises(ConfigurationError):
        run_batch(_request(source, blocker / "out"), codec)

    assert codec.encode_calls == []


def test_progress_is_monotonic_and_finishes_at_one(tmp_path: Path) -> None:
    source = tmp_path / "input"
    for name in ["a.png", "b.png", "c.png", "d.png"]:
        _fake_file(source / name)
    (source / "b.png").write_bytes(b"broken")
    updates: list[ProgressUpdate] = []

    run_batch(_request(source, tmp_path / "output"), FakeCodec(), updates.append)

    fractions = [update.fraction for update in updates]
    assert fractions == sorted(fractions)
    assert fractions[0] == 0.0
    assert fractions[-1] == 1.0
    assert updates[-1].status == "done"
    assert [update.completed for update in updates if update.status == "running"] == [0, 1, 2, 3, 4]


def test_empty_source_directory_reports_done(tmp_path: Path) -> None:
    source = tmp_path / "input"
    source.mkdir()
    updates: list[ProgressUpdate] = []

    outcome = run_batch(_request(source, tmp_path / "output"), FakeCodec(), updates.append)

    assert outcome.total == 0
    assert outcome.results == []
    assert updates[-1].status == "done"


def test_cancellation_stops_before_next_file(tmp_path: Path) -> None:
    source = tmp_path / "input"
    for name in ["a.png", "b.png", "c.png"]:
        _fake_file(source / name)
    token = CancellationToken()
    updates: list[ProgressUpdate] = []

    def on_progress(update: ProgressUpdate) -> None:
        updates.append(update)
        if update.completed == 1:
            token.cancel()

    outcome = run_batch(_request(source, tmp_path / "output"), FakeCodec(), on_progress, cancel_token=token)

    assert outcome.cancelled
    assert outcome.completed_count == 1
    assert outcome.total == 3
    assert updates[-1].status == "cancelled"
    assert "已取消" in outcome.summary()


def test_in_batch_name_collision_gets_suffix(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    _fake_file(source / "a b.png", label="spaced")
    _fake_file(source / "a-b.png", label="hyphenated")

    outcome = run_batch(_request(source, output, rename=True), FakeCodec())

    assert outcome.failed == []
    assert (output / "a-b.png").read_bytes() == b"PNG 200x100 spaced"
    assert (output / "a-b-1.png").read_bytes() == b"PNG 200x100 hyphenated"


def test_empty_slug_keeps_original_name(tmp_path: Path) -> None:
    source = _fake_file(tmp_path / "input" / "###.png")
    output = tmp_path / "output"

    run_batch(_request(source, output, rename=True), FakeCodec())

    assert (output / "###.png").exists()


def test_csv_report_lists_every_file(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    _fake_file(source / "good.png")
    (source / "bad.png").write_bytes(b"junk")

    run_batch(_request(source, output, report_filename="report.csv"), FakeCodec())

    with (output / "report.csv").open(encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert {row["status"] for row in rows} == {"success", "error-load"}
    bad = next(row for row in rows if row["source_path"].endswith("bad.png"))
    assert bad["destination_path"] == ""
    assert bad["reason"] == "corrupt input"
    assert bad["output_bytes"] == ""
    good = next(row for row in rows if row["status"] == "success")
    assert good["source_bytes"] == str(len(b"FAKE 200x100 img"))
    assert good["output_bytes"] == str(len(b"PNG 200x100 img"))
    assert good["ssim"] == ""


def test_batch_runner_runs_in_background(tmp_path: Path) -> None:
    source = _fake_file(tmp_path / "input" / "a.png")
    output = tmp_path / "output"

    with BatchRunner(codec=FakeCodec()) as runner:
        outcome = runner.submit(_request(source, output)).result(timeout=10)

    assert len(outcome.succeeded) == 1
    assert (output / "a.png").exists()


def test_batch_runner_propagates_configuration_error(tmp_path: Path) -> None:
    with BatchRunner(codec=FakeCodec()) as runner:
        future = runner.submit(_request(tmp_path / "missing", tmp_path / "output"))
        with pytest.raises(ConfigurationError):
            future.result(timeout=10)


def test_jpg_is_accepted_as_target_format(tmp_path: Path) -> None:
    source = _fake_file(tmp_path / "input" / "a.png")
    codec = FakeCodec()
    request = _request(source, tmp_path / "output", reencode=True, target_format=".JPG", quality=70)

    assert request.target_format == "jpeg"
    run_batch(request, codec)

    assert codec.encode_calls == [("JPEG", 70)]
    assert (tmp_path / "output" / "a.jpg").exists()
