"""
Raw-Paste Transfer
==================

Streams a script into the raw REPL under the device's credit-based flow
control.

Flow Control
------------
After negotiation the device grants credit one window at a time. The
host may only send as many bytes as it holds credit for:

```
HOST                                  DEVICE
  | ←── 0x01 ─────────────────────    |  +1 window of credit
  | ── chunk (<= credit) ─────────→   |
  | ←── 0x01 ─────────────────────    |  +1 window
  | ── chunk ─────────────────────→   |
  |      ... until script sent ...    |
  | ── 0x04 ──────────────────────→   |  end of transmission
```

If the device sends 0x04 instead of a grant (e.g. it hit a syntax error
while compiling the partial script), the host answers with a single 0x04
and stops sending.

Control bytes are drained whenever they are pending, not only when the
credit runs out, so grants never pile up unread in the host buffer.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Final, Optional

from serpico.comms.reader import PatternReader
from serpico.comms.transport import Transport
from serpico.errors import AbruptEndError, ProtocolError

logger = logging.getLogger(__name__)


# =============================================================================
# Protocol Constants
# =============================================================================

# Device -> host: one more window of credit
WINDOW_INCREMENT: Final[int] = 0x01

# Device -> host: abort the transfer
ABRUPT_END: Final[int] = 0x04

# Host -> device: end of script
END_OF_TRANSMISSION: Final[bytes] = b"\x04"


# Progress callback: (bytes_sent, total_bytes)
ProgressCallback = Callable[[int, int], None]


# =============================================================================
# Flow Window
# =============================================================================

@dataclass
class FlowWindow:
    """
    Send credit held by the host.

    Attributes:
        unit_size: Bytes granted per WINDOW_INCREMENT (u16)
        remaining: Bytes that may still be sent
    """

    unit_size: int
    remaining: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.unit_size <= 0xFFFF:
            raise ValueError(f"Window size must be 0-65535, got {self.unit_size}")

    def grant(self) -> None:
        self.remaining += self.unit_size

    def consume(self, count: int) -> None:
        if count < 0 or count > self.remaining:
            raise ValueError(
                f"Cannot consume {count} bytes with {self.remaining} bytes of credit"
            )
        self.remaining -= count


# =============================================================================
# Transfer
# =============================================================================

class PasteTransfer:
    """
    Credit-based sender for one script.

    Each call to send() starts from zero credit and zero bytes sent.

    Usage:
        transfer = PasteTransfer(transport, reader, window_size)
        transfer.send(script)
    """

    def __init__(self, transport: Transport, reader: PatternReader, unit_size: int):
        self.transport = transport
        self.reader = reader
        self.window = FlowWindow(unit_size)
        self.bytes_sent = 0

    def _receive_control(self) -> None:
        byte = self.reader.read_exact(1)[0]

        if byte == WINDOW_INCREMENT:
            self.window.grant()
            logger.debug("Window grant, credit now %d", self.window.remaining)
        elif byte == ABRUPT_END:
            self.transport.write(END_OF_TRANSMISSION)
            logger.warning("Device ended transfer after %d bytes", self.bytes_sent)
            raise AbruptEndError(self.bytes_sent)
        else:
            raise ProtocolError(
                f"Unexpected byte during raw paste: 0x{byte:02X}", byte=byte
            )

    def send(self, script: bytes, progress: Optional[ProgressCallback] = None) -> int:
        """
        Send the whole script, then the end-of-transmission byte.

        Args:
            script: Script bytes.
            progress: Optional callback invoked after each chunk.

        Returns:
            Number of payload bytes written (always len(script)).

        Raises:
            AbruptEndError: If the device aborts the transfer.
            ProtocolError: If an unexpected control byte arrives.
            TimeoutError: If credit never arrives within the idle budget.
        """
        self.window = FlowWindow(self.window.unit_size)
        self.bytes_sent = 0
        total = len(script)

        while self.bytes_sent < total:
            while self.window.remaining == 0 or self.transport.bytes_pending() > 0:
                self._receive_control()

            chunk_size = min(self.window.remaining, total - self.bytes_sent)
            chunk = script[self.bytes_sent:self.bytes_sent + chunk_size]
            self.transport.write(chunk)
            self.window.consume(chunk_size)
            self.bytes_sent += chunk_size

            if progress:
                progress(self.bytes_sent, total)

        self.transport.write(END_OF_TRANSMISSION)
        logger.info("Transfer complete: %d bytes sent", self.bytes_sent)
        return self.bytes_sent
