# src/tracking/exporter.py - v1
"""Timing report export to CSV, report loading, and summary text.

The report is appended to once per monitored batch, so a single file
accumulates every batch of a run (and of previous runs).
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from podbatch.tracking.models import PressureSummary, TimingSample

logger = logging.getLogger(__name__)

REPORT_HEADER = "Read Time (ns), Write Time (ns), Buffer Size (bytes)"


def export_timing_csv(samples: list[TimingSample], path: Path) -> bool:
    """Append samples as CSV rows, writing the header if the file is new.

    Diagnostic data is never worth aborting a run: I/O errors are logged
    and swallowed.

    Args:
        samples: Samples in relay order.
        path: Report file path.

    Returns:
        True if every row was written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", newline="", encoding="utf-8") as f:
            if f.tell() == 0:
                f.write(REPORT_HEADER + "\n")
            writer = csv.writer(f, lineterminator="\n")
            writer.writerows(
                (s.read_ns, s.write_ns, s.byte_count) for s in samples
            )
    except OSError as e:
        logger.warning("error writing timing report %s: %s", path, e)
        return False

    logger.debug("Wrote %d timing rows to %s", len(samples), path)
    return True


def load_timing_csv(path: Path) -> list[TimingSample]:
    """Read every sample row of a report.

    Header lines are skipped wherever they appear, so reports written by
    older runs (one header per batch) load too.

    Raises:
        ValueError: On a malformed row.
    """
    samples: list[TimingSample] = []
    with path.open(newline="", encoding="utf-8") as f:
        for line_no, row in enumerate(csv.reader(f), start=1):
            if not row or row[0].strip().startswith("Read Time"):
                continue
            if len(row) != 3:
                raise ValueError(f"{path}:{line_no}: expected 3 columns, got {len(row)}")
            try:
                read_ns, write_ns, size = (int(v.strip()) for v in row)
            except ValueError as e:
                raise ValueError(f"{path}:{line_no}: non-integer value in {row!r}") from e
            samples.append(TimingSample(read_ns=read_ns, write_ns=write_ns, byte_count=size))
    return samples


def export_pressure_summary(summary: PressureSummary) -> str:
    """Generate a human-readable summary of a pressure summary."""
    verdict_text = {
        "producer": "basecaller (reads blocked longest)",
        "consumer": "compressor (writes blocked longest)",
        "balanced": "none, producer and consumer keep pace",
        "unknown": "not enough data",
    }[summary.verdict]

    lines: list[str] = [
        "=== Pipe Pressure Summary ===",
        f"Samples     : {summary.sample_count:,}",
        f"Bytes       : {summary.total_bytes:,}",
        f"Mean chunk  : {summary.mean_chunk_bytes:,.0f} bytes",
        f"Read wait   : {summary.total_read_ns / 1e9:.3f}s "
        f"(mean {summary.mean_read_ns / 1e3:.1f}us)",
        f"Write wait  : {summary.total_write_ns / 1e9:.3f}s "
        f"(mean {summary.mean_write_ns / 1e3:.1f}us)",
        f"Read share  : {summary.read_share * 100:.1f}%",
        f"Bottleneck  : {verdict_text}",
    ]
    return "\n".join(lines)
