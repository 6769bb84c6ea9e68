"""
Raw REPL Handshake
==================

This module brings a MicroPython board from an unknown state into the
raw REPL with the raw-paste submode negotiated.

Handshake Sequence
------------------
```
HOST                                  DEVICE
  | ── \\r CTRL-C CTRL-C ──────────→  |  stop any running program
  | ←── (stale output, discarded) ─   |
  | ── \\r CTRL-A ─────────────────→  |  enter raw REPL
  | ←── "raw REPL; CTRL-B to exit\\r\\n"
  | ── CTRL-D ─────────────────────→  |  soft reset
  | ←── "soft reboot\\r\\n"            |
  | ←── "raw REPL; CTRL-B to exit\\r\\n"
  | ←── ">"                           |  prompt
  | ── CTRL-E 'A' 0x01 ────────────→  |  request raw-paste
  | ←── 'R' 0x01                      |  accepted ('R' 0x00 = unsupported)
  | ←── window size (u16, LE)         |
```

Each step runs once. Any failure aborts the whole handshake; no step is
retried.
"""

import logging
import struct
from enum import IntEnum
from typing import Final

from serpico.comms.reader import PatternReader
from serpico.comms.transport import Transport
from serpico.errors import UnknownResponseError, UnsupportedBulkModeError

logger = logging.getLogger(__name__)


# =============================================================================
# Protocol Constants
# =============================================================================

CTRL_A: Final[bytes] = b"\x01"  # enter raw REPL
CTRL_C: Final[bytes] = b"\x03"  # keyboard interrupt
CTRL_D: Final[bytes] = b"\x04"  # soft reset / end of transmission
CTRL_E: Final[bytes] = b"\x05"  # raw-paste request prefix

# Interrupt any running program
INTERRUPT_SEQUENCE: Final[bytes] = b"\r" + CTRL_C + CTRL_C

# Request raw REPL
ENTER_RAW_SEQUENCE: Final[bytes] = b"\r" + CTRL_A

RAW_REPL_BANNER: Final[bytes] = b"raw REPL; CTRL-B to exit\r\n"
SOFT_REBOOT_BANNER: Final[bytes] = b"soft reboot\r\n"
PROMPT: Final[bytes] = b">"

# CTRL-E, capability flag 'A', CTRL-A
RAW_PASTE_REQUEST: Final[bytes] = CTRL_E + b"A" + CTRL_A

RAW_PASTE_UNSUPPORTED: Final[bytes] = b"R\x00"
RAW_PASTE_SUPPORTED: Final[bytes] = b"R\x01"


class HandshakeState(IntEnum):
    """Handshake progress, in execution order."""

    IDLE = 0
    INTERRUPT = 1
    FLUSH = 2
    ENTER_RAW = 3
    AWAIT_RAW_BANNER = 4
    SOFT_RESET = 5
    AWAIT_PROMPT = 6
    REQUEST_PASTE = 7
    NEGOTIATE = 8
    READ_WINDOW = 9
    READY = 10


class ReplHandshake:
    """
    Raw REPL + raw-paste negotiation state machine.

    The machine only advances; `state` records the step in progress, so
    after a failure it names the step that failed.

    Usage:
        handshake = ReplHandshake(transport, reader)
        window_size = handshake.run()
    """

    def __init__(self, transport: Transport, reader: PatternReader):
        self.transport = transport
        self.reader = reader
        self.state = HandshakeState.IDLE
        self.window_size = 0

    def _enter(self, state: HandshakeState) -> None:
        logger.debug("Handshake: %s", state.name)
        self.state = state

    def run(self) -> int:
        """
        Perform the handshake.

        Returns:
            The negotiated window unit size in bytes.

        Raises:
            UnsupportedBulkModeError: If the device refuses raw-paste.
            UnknownResponseError: If the device's reply is unrecognised
                or grants a zero-byte window.
            TimeoutError: If a banner or reply never arrives in time.
            ConnectionError: If the stream is closed.
        """
        self._enter(HandshakeState.INTERRUPT)
        self.transport.write(INTERRUPT_SEQUENCE)

        self._enter(HandshakeState.FLUSH)
        self.reader.drain()

        self._enter(HandshakeState.ENTER_RAW)
        self.transport.write(ENTER_RAW_SEQUENCE)

        self._enter(HandshakeState.AWAIT_RAW_BANNER)
        self.reader.read_until(RAW_REPL_BANNER)

        self._enter(HandshakeState.SOFT_RESET)
        self.transport.write(CTRL_D)
        self.reader.read_until(SOFT_REBOOT_BANNER)
        self.reader.read_until(RAW_REPL_BANNER)

        self._enter(HandshakeState.AWAIT_PROMPT)
        self.reader.read_until(PROMPT)

        self._enter(HandshakeState.REQUEST_PASTE)
        self.transport.write(RAW_PASTE_REQUEST)

        self._enter(HandshakeState.NEGOTIATE)
        response = self.reader.read_exact(2)
        if response == RAW_PASTE_UNSUPPORTED:
            raise UnsupportedBulkModeError()
        if response != RAW_PASTE_SUPPORTED:
            raise UnknownResponseError(response)

        self._enter(HandshakeState.READ_WINDOW)
        raw_window = self.reader.read_exact(2)
        (self.window_size,) = struct.unpack("<H", raw_window)
        if self.window_size == 0:
            raise UnknownResponseError(response + raw_window)

        self._enter(HandshakeState.READY)
        logger.info("Raw-paste mode negotiated (window=%d bytes)", self.window_size)
        return self.window_size
