"""
Pattern Reader
==============

Blocking reads over a Transport, bounded by an idle budget.

The raw REPL interleaves control signals, banners and script output on
one byte stream, so the host mostly needs two primitives:

- read_until(terminator): consume bytes one at a time until the last N
  bytes equal an N-byte terminator, stopping exactly on the match
- read_exact(n): consume exactly n bytes

Idle Waiting
------------
A read that times out is not an error. The reader sleeps for one poll
interval and retries, counting each such interval against an optional
idle budget. Once the budget is exceeded the wait fails with
TimeoutError. Without a budget the reader waits forever, so callers may
only wait for bytes the protocol guarantees will eventually arrive.

A read that returns no bytes at all means the stream was closed and
fails immediately with ConnectionError.
"""

import logging
import time
from typing import Callable, Final, Optional

from serpico.comms.transport import Transport
from serpico.config import DEFAULT_POLL_INTERVAL
from serpico.errors import ConnectionError, TimeoutError

logger = logging.getLogger(__name__)

# Observer for echoed bytes
OutputCallback = Callable[[bytes], None]

# Read size used when discarding stale output
DRAIN_CHUNK_SIZE: Final[int] = 16

# Seed value for an unfilled window slot
PLACEHOLDER_BYTE: Final[int] = 0x00


# =============================================================================
# Sliding Window
# =============================================================================

class SlidingWindow:
    """
    Fixed-capacity circular buffer holding the last N bytes seen.

    The buffer is allocated once with N placeholder bytes and never
    grows. A match requires at least N real bytes, so placeholders can
    never complete a terminator.
    """

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError("window size must be positive")
        self._buf = bytearray([PLACEHOLDER_BYTE] * size)
        self._head = 0
        self._filled = 0

    def __len__(self) -> int:
        return len(self._buf)

    def push(self, byte: int) -> None:
        self._buf[self._head] = byte
        self._head = (self._head + 1) % len(self._buf)
        if self._filled < len(self._buf):
            self._filled += 1

    def matches(self, pattern: bytes) -> bool:
        size = len(self._buf)
        if len(pattern) != size or self._filled < size:
            return False
        for i in range(size):
            if self._buf[(self._head + i) % size] != pattern[i]:
                return False
        return True

    def contents(self) -> bytes:
        """Window contents, oldest byte first."""
        return bytes(self._buf[self._head:] + self._buf[:self._head])


# =============================================================================
# Idle Budget
# =============================================================================

class IdleBudget:
    """
    Count of idle poll intervals against an optional limit.

    Attributes:
        limit: Maximum idle intervals tolerated (None = unbounded)
        elapsed: Idle intervals counted so far
    """

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit
        self.elapsed = 0

    def tick(self) -> bool:
        """Record one idle interval; return False once the limit is exceeded."""
        self.elapsed += 1
        return self.limit is None or self.elapsed <= self.limit

    @property
    def exhausted(self) -> bool:
        return self.limit is not None and self.elapsed > self.limit


# =============================================================================
# Pattern Reader
# =============================================================================

class PatternReader:
    """
    Blocking pattern and exact-length reads over a transport.

    Each call to read_until() or read_exact() gets its own idle budget
    of `idle_timeout` intervals.

    Usage:
        reader = PatternReader(transport, idle_timeout=500)
        reader.read_until(b"raw REPL; CTRL-B to exit\\r\\n")
        size = reader.read_exact(2)
    """

    def __init__(
        self,
        transport: Transport,
        idle_timeout: Optional[int] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        observer: Optional[OutputCallback] = None,
    ):
        self.transport = transport
        self.idle_timeout = idle_timeout
        self.poll_interval = poll_interval
        self.observer = observer

    def _read(self, n: int, budget: IdleBudget, what: str) -> bytes:
        while True:
            data = self.transport.read(n)
            if data is None:
                if not budget.tick():
                    raise TimeoutError(
                        f"Timed out after {budget.limit} idle intervals "
                        f"waiting for {what}"
                    )
                if self.poll_interval > 0:
                    time.sleep(self.poll_interval)
                continue
            if not data:
                raise ConnectionError(f"Stream closed while waiting for {what}")
            return data

    def read_until(
        self,
        terminator: bytes,
        echo: bool = False,
        observer: Optional[OutputCallback] = None,
    ) -> bytes:
        """
        Read until the most recent bytes equal `terminator`.

        Args:
            terminator: Byte sequence to wait for (non-empty).
            echo: If True, hand every received byte to the observer.
            observer: Observer for this call (default: the reader's).

        Returns:
            All bytes consumed by this call, ending with the terminator.

        Raises:
            ValueError: If terminator is empty.
            TimeoutError: If the idle budget is exceeded.
            ConnectionError: If the stream is closed.
        """
        if not terminator:
            raise ValueError("terminator must not be empty")

        window = SlidingWindow(len(terminator))
        budget = IdleBudget(self.idle_timeout)
        sink = observer if observer is not None else self.observer
        seen = bytearray()

        while True:
            byte = self._read(1, budget, repr(terminator))[0]
            window.push(byte)
            seen.append(byte)
            if echo and sink is not None:
                sink(bytes([byte]))
            if window.matches(terminator):
                logger.debug("Matched %r after %d bytes", terminator, len(seen))
                return bytes(seen)

    def read_exact(self, n: int) -> bytes:
        """
        Read exactly `n` bytes.

        Raises:
            TimeoutError: If the idle budget is exceeded.
            ConnectionError: If the stream is closed.
        """
        budget = IdleBudget(self.idle_timeout)
        buf = bytearray()
        while len(buf) < n:
            buf.extend(self._read(n - len(buf), budget, f"{n} bytes"))
        logger.debug("RX %d bytes: %s", n, buf.hex())
        return bytes(buf)

    def drain(self) -> int:
        """
        Read and discard until a read times out.

        Returns:
            Number of bytes discarded.

        Raises:
            ConnectionError: If the stream is closed.
        """
        discarded = 0
        while True:
            data = self.transport.read(DRAIN_CHUNK_SIZE)
            if data is None:
                break
            if not data:
                raise ConnectionError("Stream closed while flushing input")
            discarded += len(data)
        logger.debug("Discarded %d stale bytes", discarded)
        return discarded
