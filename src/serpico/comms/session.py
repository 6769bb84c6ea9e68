"""
Script Execution Session
========================

Runs one script on a MicroPython board:

1. Open the serial port (115200 baud, 10 ms read timeout)
2. Handshake into raw REPL with raw-paste negotiated
3. Stream the script under flow control
4. Wait for the device to acknowledge end of input (0x04)
5. Capture standard output up to the next 0x04
6. Capture error output up to the final 0x04

The script's output is forwarded byte by byte to the `stdout` and
`stderr` observers as it arrives, including the terminating 0x04, and is
also returned (without the terminator) in an ExecutionResult.

A session either completes all steps or raises the first error met. The
serial port is closed on every exit path.
"""

import logging
from contextlib import closing
from dataclasses import dataclass, replace
from typing import Optional, Union

from serpico.comms.paste import END_OF_TRANSMISSION, PasteTransfer, ProgressCallback
from serpico.comms.raw_repl import ReplHandshake
from serpico.comms.reader import OutputCallback, PatternReader
from serpico.comms.transport import SerialTransport, Transport
from serpico.config import DEFAULT_POLL_INTERVAL, SessionConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    """
    Outcome of a successful execution.

    Attributes:
        stdout: Captured standard output (end marker removed)
        stderr: Captured error output (end marker removed)
        bytes_sent: Script bytes transferred
        window_size: Negotiated raw-paste window size
    """

    stdout: bytes
    stderr: bytes
    bytes_sent: int
    window_size: int

    @property
    def failed(self) -> bool:
        """True if the script raised (it printed a traceback to stderr)."""
        return bool(self.stderr)


def _strip_marker(data: bytes) -> bytes:
    if data.endswith(END_OF_TRANSMISSION):
        return data[:-len(END_OF_TRANSMISSION)]
    return data


def _as_bytes(script: Union[str, bytes]) -> bytes:
    if isinstance(script, str):
        return script.encode("utf-8")
    return bytes(script)


def run_session(
    transport: Transport,
    script: Union[str, bytes],
    idle_timeout: Optional[int] = None,
    stdout: Optional[OutputCallback] = None,
    stderr: Optional[OutputCallback] = None,
    progress: Optional[ProgressCallback] = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> ExecutionResult:
    """
    Execute a script over an already-open transport.

    Args:
        transport: Open transport to the device.
        script: Script source (str is encoded as UTF-8).
        idle_timeout: Idle budget per wait, in poll intervals (None = forever).
        stdout: Observer for standard output bytes.
        stderr: Observer for error output bytes.
        progress: Transfer progress callback.
        poll_interval: Sleep between timed-out reads, in seconds.

    Returns:
        ExecutionResult with the captured output.
    """
    payload = _as_bytes(script)
    reader = PatternReader(transport, idle_timeout=idle_timeout, poll_interval=poll_interval)

    window_size = ReplHandshake(transport, reader).run()

    transfer = PasteTransfer(transport, reader, window_size)
    bytes_sent = transfer.send(payload, progress=progress)

    # device acknowledges end of input
    reader.read_until(END_OF_TRANSMISSION)

    out = reader.read_until(END_OF_TRANSMISSION, echo=True, observer=stdout)
    err = reader.read_until(END_OF_TRANSMISSION, echo=True, observer=stderr)

    logger.info("Execution finished (stdout=%d bytes, stderr=%d bytes)", len(out) - 1, len(err) - 1)

    return ExecutionResult(
        stdout=_strip_marker(out),
        stderr=_strip_marker(err),
        bytes_sent=bytes_sent,
        window_size=window_size,
    )


def execute(
    device: str,
    script: Union[str, bytes],
    timeout: Optional[float] = None,
    *,
    stdout: Optional[OutputCallback] = None,
    stderr: Optional[OutputCallback] = None,
    progress: Optional[ProgressCallback] = None,
    config: Optional[SessionConfig] = None,
) -> ExecutionResult:
    """
    Execute a script on the MicroPython board at `device`.

    Args:
        device: Serial device path.
        script: Script source.
        timeout: Seconds of silence tolerated per wait (None = forever).
            Overrides config.idle_timeout when given.
        stdout: Observer for standard output bytes.
        stderr: Observer for error output bytes.
        progress: Transfer progress callback.
        config: Session settings (default: SessionConfig()).

    Returns:
        ExecutionResult with the captured output.

    Raises:
        SerpicoError: On the first failure of any step.

    Example:
        result = execute("/dev/ttyACM0", "print(1 + 1)")
        assert result.stdout == b"2\\r\\n"
    """
    config = config or SessionConfig()
    if timeout is not None:
        config = replace(config, idle_timeout=timeout)

    transport = SerialTransport(device, baud_rate=config.baud_rate, timeout=config.read_timeout)
    transport.open()

    with closing(transport):
        return run_session(
            transport,
            script,
            idle_timeout=config.idle_intervals,
            stdout=stdout,
            stderr=stderr,
            progress=progress,
            poll_interval=config.poll_interval,
        )
