# src/batch/scheduler.py - v1
"""Batch scheduler: partition discovered files into fixed-size batches and
drive each one through staging and the pipeline stage.

Phases: IDLE -> STAGING -> RUNNING -> (DONE | FAILED), looping
STAGING -> RUNNING until the cursor reaches the end of the file list or
a batch fails. The cursor is advanced before the stage runs, so a failed
batch is never revisited. There is no retry: the run stops at the first
failure and the output artifact keeps every batch completed before it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from podbatch.batch.models import BatchState, BatchWindow, RunSummary
from podbatch.batch.scanner import find_name_collisions
from podbatch.core.errors import PodBatchError, StagingError
from podbatch.logging.context import clear_context, set_batch_context, set_phase

if TYPE_CHECKING:
    from podbatch.batch.staging import StagingArea
    from podbatch.pipeline.stage import PipelineResult, PipelineStage

logger = logging.getLogger(__name__)


class SchedulerPhase(str, Enum):
    IDLE = "idle"
    STAGING = "staging"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class StepOutcome:
    """What one scheduler step did."""

    window: BatchWindow
    result: PipelineResult
    done: bool


def step(state: BatchState, staging: StagingArea, stage: PipelineStage) -> StepOutcome:
    """Stage and run the next batch of ``state``.

    Raises:
        StagingError: If the batch could not be staged. The cursor is
            left untouched in that case.
    """
    window = state.next_window()
    set_batch_context(window.index, window.start, window.end)

    set_phase(SchedulerPhase.STAGING.value)
    staging.stage(state.files_of(window))

    logger.info(
        "basecalling from %d to %d files of %d",
        window.start, window.end, len(state.files),
    )
    state.advance(window)

    set_phase(SchedulerPhase.RUNNING.value)
    result = stage.run(state.staging_dir, state.monitor_enabled)
    return StepOutcome(window=window, result=result, done=state.exhausted)


class BatchScheduler:
    """Loop step() over a BatchState until done or failed.

    Args:
        state: Batch state; its cursor is advanced in place.
        staging: Staging area already created for state.staging_dir.
        stage: Pipeline stage run once per batch.
    """

    def __init__(
        self,
        state: BatchState,
        staging: StagingArea,
        stage: PipelineStage,
    ) -> None:
        self._state = state
        self._staging = staging
        self._stage = stage
        self._phase = SchedulerPhase.IDLE

    @property
    def phase(self) -> SchedulerPhase:
        return self._phase

    @property
    def state(self) -> BatchState:
        return self._state

    def run(self) -> RunSummary:
        """Process every batch in order.

        Returns:
            RunSummary; on failure ``error`` holds the first error and no
            further batch was issued.
        """
        t0 = time.perf_counter()
        completed = 0
        error: PodBatchError | None = None

        try:
            self._check_collisions()
            while not self._state.exhausted:
                self._set_phase(SchedulerPhase.STAGING)
                outcome = step(self._state, self._staging, self._stage)
                self._phase = SchedulerPhase.RUNNING

                if not outcome.result.success:
                    error = outcome.result.error or PodBatchError("unknown batch failure")
                    break
                completed += 1

                if not outcome.done:
                    self._staging.clear()
        except StagingError as e:
            error = e
        finally:
            clear_context()

        duration = round(time.perf_counter() - t0, 2)
        if error is not None:
            self._set_phase(SchedulerPhase.FAILED)
            logger.error(
                "Run aborted after %d batches (cursor %d/%d): %s",
                completed, self._state.cursor, len(self._state.files), error,
            )
        else:
            self._set_phase(SchedulerPhase.DONE)
            logger.info(
                "Run complete: %d files in %d batches, %.1fs",
                len(self._state.files), completed, duration,
            )

        return RunSummary(
            total_files=len(self._state.files),
            batches_completed=completed,
            cursor=self._state.cursor,
            success=error is None,
            error=error,
            duration_seconds=duration,
        )

    def _check_collisions(self) -> None:
        """Warn about base names that would share a staging link name.

        Duplicates only break a batch that holds two of them, where stage()
        raises StagingError. Hashed staging names avoid both.
        """
        if self._staging.naming != "basename":
            return
        collisions = find_name_collisions(self._state.files)
        if collisions:
            sample = ", ".join(sorted(collisions)[:5])
            logger.warning(
                "%d base names occur more than once in the input (%s); "
                "a batch holding two of them will fail to stage. "
                "Use hashed staging names to avoid this.",
                len(collisions), sample,
            )

    def _set_phase(self, phase: SchedulerPhase) -> None:
        logger.debug("Scheduler phase: %s -> %s", self._phase.value, phase.value)
        self._phase = phase
