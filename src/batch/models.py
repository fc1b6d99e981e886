# src/batch/models.py - v1
"""Batch processing models: SourceFile, BatchState, BatchWindow, RunSummary."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from podbatch.core.errors import PodBatchError


class SourceFile(BaseModel):
    """A single raw-signal file discovered during the scan."""

    model_config = ConfigDict(frozen=True)

    path: str
    name: str


@dataclass(frozen=True)
class BatchWindow:
    """Half-open slice [start, end) of the discovered files."""

    index: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass
class BatchState:
    """Mutable scheduler state, owned by a single BatchScheduler.

    The cursor only moves forward: 0 <= cursor <= len(files).
    """

    files: list[SourceFile]
    chunk_size: int
    staging_dir: Path
    output_path: Path
    monitor_enabled: bool = False
    cursor: int = 0
    batches_started: int = 0
    cursor_history: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.files)

    @property
    def remaining(self) -> int:
        return len(self.files) - self.cursor

    def next_window(self) -> BatchWindow:
        """Compute the window the next batch covers, without moving the cursor."""
        end = min(self.cursor + self.chunk_size, len(self.files))
        return BatchWindow(index=self.batches_started, start=self.cursor, end=end)

    def files_of(self, window: BatchWindow) -> list[SourceFile]:
        return self.files[window.start:window.end]

    def advance(self, window: BatchWindow) -> None:
        """Move the cursor to the end of ``window``.

        Raises:
            ValueError: If the window does not start at the cursor.
        """
        if window.start != self.cursor or window.end < window.start:
            raise ValueError(
                f"Window [{window.start}, {window.end}) does not continue cursor {self.cursor}"
            )
        self.cursor = window.end
        self.batches_started += 1
        self.cursor_history.append(self.cursor)


@dataclass
class RunSummary:
    """Summary result of a full scheduler run."""

    total_files: int
    batches_completed: int
    cursor: int
    success: bool
    error: PodBatchError | None = None
    duration_seconds: float = 0.0
