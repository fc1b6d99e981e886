# src/pipeline/wiring.py - v1
"""Wiring strategies between the basecaller (producer) and the compressor
(consumer).

Both strategies satisfy the same contract toward PipelineStage:

    stdin = wiring.consumer_stdin(producer)   # before the consumer starts
    wiring.after_start(producer, consumer, on_abort)
    ...producer exits...
    wiring.release(producer)
    ...consumer exits...
    error = wiring.finish()

DirectWiring hands the producer's stdout pipe to the consumer and copies
nothing. MonitoredWiring keeps both ends in this process and relays
through a StreamMonitor.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import IO, Protocol

from podbatch.core.errors import StreamIntegrityError
from podbatch.tracking.monitor import DEFAULT_BUFFER_SIZE, StreamMonitor

logger = logging.getLogger(__name__)


class ByteSource(Protocol):
    """Readable byte stream (e.g. an unbuffered process stdout)."""

    def read(self, size: int = -1, /) -> bytes | None: ...

    def close(self) -> None: ...


class ByteSink(Protocol):
    """Writable byte stream reporting how many bytes it accepted."""

    def write(self, data: bytes, /) -> int | None: ...

    def close(self) -> None: ...


class BaseWiring(ABC):
    """Connect producer stdout to consumer stdin."""

    @abstractmethod
    def consumer_stdin(self, producer: subprocess.Popen) -> int | IO[bytes]:
        """Return what the consumer process receives as its stdin."""

    def after_start(
        self,
        producer: subprocess.Popen,
        consumer: subprocess.Popen,
        on_abort: Callable[[], None],
    ) -> None:
        """Hook called once both processes are running."""

    def release(self, producer: subprocess.Popen) -> None:
        """Hook called once the producer has exited."""

    def finish(self, timeout: float | None = None) -> StreamIntegrityError | None:
        """Wait for any relay to end and return its integrity error, if any."""
        return None


class DirectWiring(BaseWiring):
    """producer | consumer, with the pipe owned by the OS."""

    def consumer_stdin(self, producer: subprocess.Popen) -> IO[bytes]:
        return producer.stdout

    def after_start(
        self,
        producer: subprocess.Popen,
        consumer: subprocess.Popen,
        on_abort: Callable[[], None],
    ) -> None:
        # The consumer holds its own copy now. Dropping ours lets the
        # producer receive SIGPIPE if the consumer exits early.
        if producer.stdout is not None:
            producer.stdout.close()


class MonitoredWiring(BaseWiring):
    """producer | monitor | consumer, relayed by a StreamMonitor thread."""

    def __init__(
        self,
        report_path: Path | None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        self._report_path = report_path
        self._buffer_size = buffer_size
        self.monitor: StreamMonitor | None = None

    def consumer_stdin(self, producer: subprocess.Popen) -> int:
        return subprocess.PIPE

    def after_start(
        self,
        producer: subprocess.Popen,
        consumer: subprocess.Popen,
        on_abort: Callable[[], None],
    ) -> None:
        self.monitor = StreamMonitor(
            source=producer.stdout,
            sink=consumer.stdin,
            report_path=self._report_path,
            buffer_size=self._buffer_size,
            on_abort=on_abort,
        )
        self.monitor.start()

    # The monitor owns the producer's stdout: it may still be draining
    # buffered bytes after the producer exits, so release() leaves it alone.

    def finish(self, timeout: float | None = None) -> StreamIntegrityError | None:
        if self.monitor is None:
            return None
        if not self.monitor.wait(timeout):
            logger.warning("Stream monitor still running after %.1fs", timeout or 0)
            return StreamIntegrityError("stream monitor did not finish")
        return self.monitor.error
