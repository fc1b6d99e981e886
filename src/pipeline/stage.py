# src/pipeline/stage.py - v1
"""Pipeline stage: basecaller | compressor >> output, for one staged batch.

Lifecycle per batch:
  1. start the basecaller on the staging dir (stdout piped)
  2. start the compressor, stdout appended to the output artifact
  3. wire the two (directly, or through the stream monitor)
  4. wait for the basecaller, release its output, wait for the compressor
  5. join the monitor, if any

run() only returns once both processes have exited, so this batch's
compressed frames are complete in the output artifact before the next
batch starts. Both processes inherit our stderr.
"""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from podbatch.core.errors import (
    PipelineTimeoutError,
    PodBatchError,
    ProcessError,
)
from podbatch.pipeline.wiring import BaseWiring, DirectWiring, MonitoredWiring
from podbatch.tracking.monitor import DEFAULT_BUFFER_SIZE

if TYPE_CHECKING:
    from podbatch.config.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "hac"
DEFAULT_COMPRESSOR = "zstd"

# Grace period for killed processes to be reaped.
KILL_WAIT_S = 5.0


@dataclass
class PipelineResult:
    """Outcome of one batch."""

    success: bool
    error: PodBatchError | None = None


class PipelineStage:
    """Run the basecaller and compressor for one staged batch.

    Args:
        basecaller_path: Basecaller executable.
        output_path: Output artifact, opened in append mode per batch.
        model: Basecalling model (accuracy mode).
        basecaller_extra_args: Extra arguments inserted before the input dir.
        compressor_path: Compressor executable.
        compressor_args: Compressor arguments (default: none).
        report_path: Timing report path used when monitoring (None = no report).
        buffer_size: Monitor read size.
        timeout: Optional per-batch wall-clock limit in seconds.
    """

    def __init__(
        self,
        basecaller_path: str | Path,
        output_path: Path,
        model: str = DEFAULT_MODEL,
        basecaller_extra_args: Sequence[str] = (),
        compressor_path: str | Path = DEFAULT_COMPRESSOR,
        compressor_args: Sequence[str] = (),
        report_path: Path | None = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        timeout: float | None = None,
    ) -> None:
        self._basecaller_path = str(basecaller_path)
        self._output_path = Path(output_path)
        self._model = model
        self._basecaller_extra_args = list(basecaller_extra_args)
        self._compressor_path = str(compressor_path)
        self._compressor_args = list(compressor_args)
        self._report_path = report_path
        self._buffer_size = buffer_size
        self._timeout = timeout

    @classmethod
    def from_settings(
        cls, settings: Settings, basecaller_path: str | Path, output_path: Path,
    ) -> PipelineStage:
        return cls(
            basecaller_path=basecaller_path,
            output_path=output_path,
            model=settings.basecaller_model,
            basecaller_extra_args=settings.basecaller_extra_args_list,
            compressor_path=settings.compressor_path,
            compressor_args=settings.compressor_args_list,
            report_path=settings.report_path,
            buffer_size=settings.monitor_buffer_size,
            timeout=settings.batch_timeout_seconds,
        )

    @property
    def output_path(self) -> Path:
        return self._output_path

    def basecaller_command(self, staging_dir: Path) -> list[str]:
        return [
            self._basecaller_path, "basecaller", self._model, "-r", "--emit-fastq",
            *self._basecaller_extra_args,
            f"{staging_dir}/",
        ]

    def compressor_command(self) -> list[str]:
        return [self._compressor_path, *self._compressor_args]

    def make_wiring(self, monitor_enabled: bool) -> BaseWiring:
        if monitor_enabled:
            return MonitoredWiring(self._report_path, self._buffer_size)
        return DirectWiring()

    def run(self, staging_dir: Path, monitor_enabled: bool = False) -> PipelineResult:
        """Process everything in ``staging_dir`` into the output artifact.

        Returns:
            PipelineResult; ``error`` holds a ProcessError (start failure,
            non-zero exit, timeout) or a StreamIntegrityError.
        """
        wiring = self.make_wiring(monitor_enabled)
        t0 = time.perf_counter()
        try:
            self._execute(Path(staging_dir), wiring)
        except PodBatchError as e:
            logger.error("Batch failed after %.1fs: %s", time.perf_counter() - t0, e)
            return PipelineResult(success=False, error=e)
        except OSError as e:
            logger.error("Batch failed: cannot open output %s: %s", self._output_path, e)
            return PipelineResult(
                success=False,
                error=ProcessError("output", f"error opening file {self._output_path}: {e}"),
            )
        logger.info("Batch complete in %.1fs", time.perf_counter() - t0)
        return PipelineResult(success=True)

    def _execute(self, staging_dir: Path, wiring: BaseWiring) -> None:
        deadline = (
            time.monotonic() + self._timeout if self._timeout is not None else None
        )
        basecaller_cmd = self.basecaller_command(staging_dir)
        compressor_cmd = self.compressor_command()
        logger.debug("Basecaller: %s", basecaller_cmd)
        logger.debug("Compressor: %s", compressor_cmd)

        with self._output_path.open("ab") as out:
            try:
                producer = subprocess.Popen(
                    basecaller_cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    bufsize=0,
                )
            except OSError as e:
                raise ProcessError("basecaller", f"failed to start: {e}") from e

            try:
                consumer = subprocess.Popen(
                    compressor_cmd,
                    stdin=wiring.consumer_stdin(producer),
                    stdout=out,
                    bufsize=0,
                )
            except OSError as e:
                _kill(producer)
                if producer.stdout is not None:
                    producer.stdout.close()
                raise ProcessError("compressor", f"failed to start: {e}") from e

            wiring.after_start(
                producer, consumer, on_abort=lambda: _kill(producer, consumer),
            )

            try:
                producer_rc = producer.wait(timeout=_remaining(deadline))
                wiring.release(producer)
                consumer_rc = consumer.wait(timeout=_remaining(deadline))
            except subprocess.TimeoutExpired as e:
                _kill(producer, consumer)
                wiring.finish(timeout=KILL_WAIT_S)
                raise PipelineTimeoutError(
                    "pipeline", f"batch exceeded {self._timeout}s timeout",
                ) from e

            integrity_error = wiring.finish()

        if integrity_error is not None:
            raise integrity_error
        if producer_rc != 0:
            raise ProcessError(
                "basecaller", f"exited with status {producer_rc}", producer_rc,
            )
        if consumer_rc != 0:
            raise ProcessError(
                "compressor", f"exited with status {consumer_rc}", consumer_rc,
            )


def _remaining(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return max(deadline - time.monotonic(), 0.0)


def _kill(*procs: subprocess.Popen) -> None:
    """Kill and reap processes that are still running."""
    for proc in procs:
        if proc.poll() is None:
            try:
                proc.kill()
            except ProcessLookupError:
                continue
    for proc in procs:
        try:
            proc.wait(timeout=KILL_WAIT_S)
        except subprocess.TimeoutExpired:
            logger.warning("Process %s did not exit after kill", proc.pid)
