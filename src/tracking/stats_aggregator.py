# src/tracking/stats_aggregator.py - v1
"""Aggregate timing samples into a PressureSummary."""

from __future__ import annotations

from collections.abc import Iterable

from podbatch.tracking.models import PressureSummary, TimingSample, Verdict

# Read share of total blocked time above which the producer is the bottleneck,
# and below (1 - threshold) the consumer is.
BOTTLENECK_THRESHOLD = 0.6


def summarize_samples(samples: Iterable[TimingSample]) -> PressureSummary:
    """Compute totals, means and the bottleneck verdict for ``samples``."""
    count = 0
    total_bytes = 0
    total_read = 0
    total_write = 0
    for s in samples:
        count += 1
        total_bytes += s.byte_count
        total_read += s.read_ns
        total_write += s.write_ns

    blocked = total_read + total_write
    read_share = total_read / blocked if blocked else 0.0

    return PressureSummary(
        sample_count=count,
        total_bytes=total_bytes,
        total_read_ns=total_read,
        total_write_ns=total_write,
        mean_read_ns=total_read / count if count else 0.0,
        mean_write_ns=total_write / count if count else 0.0,
        mean_chunk_bytes=total_bytes / count if count else 0.0,
        read_share=round(read_share, 4),
        verdict=_verdict(count, blocked, read_share),
    )


def _verdict(count: int, blocked: int, read_share: float) -> Verdict:
    if count == 0 or blocked == 0:
        return "unknown"
    if read_share >= BOTTLENECK_THRESHOLD:
        return "producer"
    if read_share <= 1 - BOTTLENECK_THRESHOLD:
        return "consumer"
    return "balanced"
