"""批处理结果的 CSV 报告。"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Optional

from webp_toolkit.core.models import BatchOutcome, TransformResult

FIELDS = (
    "source_path",
    "destination_path",
    "status",
    "reason",
    "source_bytes",
    "output_bytes",
    "ssim",
    "phash_distance",
)


def write_csv_report(outcome: BatchOutcome, output_dir: Path, filename: str) -> Path:
    """每个已处理的文件一行；未处理（已取消）的文件不出现在报告中。"""

    report_path = output_dir / filename
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=FIELDS)
        writer.writeheader()
        writer.writerows(_row(result) for result in outcome.results)
    return report_path


def _row(result: TransformResult) -> dict[str, str]:
    return {
        "source_path": str(result.source_path),
        "destination_path": str(result.destination_path or ""),
        "status": result.status,
        "reason": result.reason or "",
        "source_bytes": _size_of(result.source_path),
        "output_bytes": _size_of(result.destination_path),
        "ssim": "" if result.ssim is None else f"{result.ssim:.4f}",
        "phash_distance": "" if result.phash_distance is None else f"{result.phash_distance:.0f}",
    }


def _size_of(path: Optional[Path]) -> str:
    if path is None:
        return ""
    try:
        return str(path.stat().st_size)
    except OSError:
        return ""
