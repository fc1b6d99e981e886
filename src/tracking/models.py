# src/tracking/models.py - v1
"""Pressure tracking models: TimingSample, PressureSummary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel


@dataclass(frozen=True)
class TimingSample:
    """One relay iteration: how long the read and the write blocked."""

    read_ns: int
    write_ns: int
    byte_count: int


Verdict = Literal["producer", "consumer", "balanced", "unknown"]


class PressureSummary(BaseModel):
    """Aggregate view of a timing sample series.

    ``verdict`` names the side the relay spent most time waiting on:
    "producer" when reads dominate (basecaller is the bottleneck),
    "consumer" when writes dominate (compressor is the bottleneck).
    """

    sample_count: int
    total_bytes: int
    total_read_ns: int
    total_write_ns: int
    mean_read_ns: float
    mean_write_ns: float
    mean_chunk_bytes: float
    read_share: float
    verdict: Verdict
