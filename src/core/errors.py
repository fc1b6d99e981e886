# src/core/errors.py - v1
"""Error taxonomy for a batch run.

Setup and discovery failures abort before any batch runs. Staging and
process failures abort the run after the current batch. Stream integrity
failures inside the pressure monitor abort the whole process. Report
write failures are never raised (see tracking.exporter).
"""

from __future__ import annotations


class PodBatchError(Exception):
    """Base class for all podbatch errors."""


class SetupError(PodBatchError):
    """Raised when the run cannot be prepared (e.g. staging dir creation)."""


class NoSourceFilesError(SetupError):
    """Raised when discovery finds no qualifying source file."""


class StagingError(PodBatchError):
    """Raised when a batch cannot be materialized in the staging directory."""


class ProcessError(PodBatchError):
    """Raised when an external process fails to start or exits non-zero.

    Attributes:
        process: Short name of the failing process ("basecaller", "compressor").
        returncode: Exit status, or None when the process never started.
    """

    def __init__(
        self, process: str, message: str, returncode: int | None = None,
    ) -> None:
        super().__init__(f"{process}: {message}")
        self.process = process
        self.returncode = returncode


class PipelineTimeoutError(ProcessError):
    """Raised when a batch exceeds the configured timeout."""


class StreamIntegrityError(PodBatchError):
    """Raised when bytes relayed between the two processes can't be trusted."""
