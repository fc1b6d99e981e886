# src/tracking/monitor.py - v1
"""Stream monitor: relay bytes from the basecaller to the compressor,
timing every read and every write.

Read time is how long the relay waited for the producer. Write time is
how long it waited for the consumer to drain the pipe. Together they show
which side of the pipeline applies backpressure. The extra user-space
copy is only paid when monitoring is requested.

The monitor runs on its own thread. Its only contract with the pipeline
stage is that the sink is closed once the source reaches end of data,
and that ``done`` is set when the loop ends for any reason. ``samples``
and ``error`` must only be read after ``done`` is set.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from podbatch.core.errors import StreamIntegrityError
from podbatch.tracking.exporter import export_timing_csv
from podbatch.tracking.models import TimingSample

if TYPE_CHECKING:
    from podbatch.pipeline.wiring import ByteSink, ByteSource

logger = logging.getLogger(__name__)

# zstd max block size
DEFAULT_BUFFER_SIZE = 128 * 1024


class StreamMonitor:
    """Copy ``source`` into ``sink`` chunk by chunk, recording TimingSamples.

    Args:
        source: Readable end of the producer's stdout.
        sink: Writable end of the consumer's stdin.
        report_path: CSV report appended to at end of stream (None = no report).
        buffer_size: Max bytes per read.
        on_abort: Called once on an integrity failure, before handles are
            closed. The pipeline stage uses it to kill both processes.
        clock: Nanosecond clock, injectable for tests.
    """

    def __init__(
        self,
        source: ByteSource,
        sink: ByteSink,
        report_path: Path | None = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        on_abort: Callable[[], None] | None = None,
        clock: Callable[[], int] = time.perf_counter_ns,
    ) -> None:
        if buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")
        self._source = source
        self._sink = sink
        self._report_path = report_path
        self._buffer_size = buffer_size
        self._on_abort = on_abort
        self._clock = clock
        self._thread: threading.Thread | None = None

        self.samples: list[TimingSample] = []
        self.error: StreamIntegrityError | None = None
        self.done = threading.Event()

    @property
    def bytes_relayed(self) -> int:
        return sum(s.byte_count for s in self.samples)

    def start(self) -> None:
        """Run observe() on a dedicated daemon thread."""
        if self._thread is not None:
            raise RuntimeError("StreamMonitor already started")
        self._thread = threading.Thread(
            target=self.observe, name="pressure-monitor", daemon=True,
        )
        self._thread.start()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the relay loop has ended. Returns False on timeout."""
        finished = self.done.wait(timeout)
        if finished and self._thread is not None:
            self._thread.join()
        return finished

    def observe(self) -> None:
        """Relay loop. Returns at end of stream or on the first failure."""
        try:
            self._relay()
        finally:
            self.done.set()

    def _relay(self) -> None:
        clock = self._clock
        while True:
            mark = clock()
            try:
                chunk = self._source.read(self._buffer_size)
            except (OSError, ValueError) as e:
                self._fail(f"error reading from basecaller: {e}", e)
                return
            read_ns = clock() - mark

            if not chunk:
                self._finish()
                return

            mark = clock()
            try:
                written = self._sink.write(chunk)
            except (OSError, ValueError) as e:
                self._fail(f"error writing to compressor: {e}", e)
                return
            write_ns = clock() - mark

            if written != len(chunk):
                self._fail(
                    f"wrote different number of bytes than read "
                    f"({written} of {len(chunk)})"
                )
                return

            self.samples.append(TimingSample(read_ns, write_ns, written))

    def _finish(self) -> None:
        if self._report_path is not None:
            export_timing_csv(self.samples, self._report_path)
        try:
            self._sink.close()
        except OSError as e:
            # Bytes were all written; the compressor's exit status reports the rest.
            logger.warning("error closing compressor stdin: %s", e)
        logger.debug(
            "Relay finished: %d samples, %d bytes",
            len(self.samples), self.bytes_relayed,
        )

    def _fail(self, message: str, cause: BaseException | None = None) -> None:
        error = StreamIntegrityError(message)
        error.__cause__ = cause
        self.error = error
        logger.error("Stream monitor stopped: %s", message)

        if self._on_abort is not None:
            try:
                self._on_abort()
            except Exception:
                logger.exception("Abort callback failed")

        for handle in (self._source, self._sink):
            try:
                handle.close()
            except (OSError, ValueError) as e:
                logger.debug("Ignoring close error after failure: %s", e)
