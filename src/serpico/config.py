"""
Serpico Session Configuration
=============================

Session settings with defaults that match the MicroPython raw REPL.
Configuration can come from:
- Default values (defined here)
- Environment variables
- Command-line options (applied by the CLI on top of the above)

Timing values are in seconds. The pattern reader counts idle time in
poll intervals, so the seconds timeout is converted with
`SessionConfig.idle_intervals`.
"""

import logging
import math
import os
from dataclasses import dataclass
from typing import Final, Optional

logger = logging.getLogger(__name__)


# Fixed serial speed of the MicroPython USB REPL
DEFAULT_BAUD_RATE: Final[int] = 115_200

# Per-read timeout of the serial port (10 ms)
DEFAULT_READ_TIMEOUT: Final[float] = 0.01

# Sleep between reads that timed out (10 ms)
DEFAULT_POLL_INTERVAL: Final[float] = 0.01

# Manufacturer string advertised by MicroPython's USB CDC descriptor
MICROPYTHON_MANUFACTURER: Final[str] = "MicroPython"


@dataclass
class SessionConfig:
    """
    Configuration for one script execution session.

    Attributes:
        baud_rate: Serial baud rate (default: 115200)
        read_timeout: Per-read serial timeout in seconds (default: 0.01)
        poll_interval: Sleep after a read timeout in seconds (default: 0.01)
        idle_timeout: Seconds of silence tolerated while waiting for the
            device; None waits forever (default: None)
        manufacturer: USB manufacturer string used by discovery
        device: Serial device path; None means auto-discover
    """

    baud_rate: int = DEFAULT_BAUD_RATE
    read_timeout: float = DEFAULT_READ_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    idle_timeout: Optional[float] = None
    manufacturer: str = MICROPYTHON_MANUFACTURER
    device: Optional[str] = None

    @property
    def idle_intervals(self) -> Optional[int]:
        """Idle timeout expressed as a number of poll intervals."""
        if self.idle_timeout is None:
            return None
        if self.poll_interval <= 0:
            return max(int(self.idle_timeout), 0)
        # round away float noise in the division
        return max(math.ceil(round(self.idle_timeout / self.poll_interval, 6)), 0)

    @classmethod
    def from_env(cls) -> "SessionConfig":
        """
        Create SessionConfig from environment variables.

        Environment variables (all optional):
            SERPICO_DEVICE: Serial device path
            SERPICO_TIMEOUT: Idle timeout in seconds
            SERPICO_BAUD: Baud rate (integer)
            SERPICO_MANUFACTURER: USB manufacturer string for discovery

        Returns:
            SessionConfig with values from environment variables
        """
        config = cls()

        if device := os.environ.get("SERPICO_DEVICE"):
            config.device = device

        if timeout := os.environ.get("SERPICO_TIMEOUT"):
            try:
                seconds = float(timeout)
            except ValueError:
                logger.warning("Ignoring invalid SERPICO_TIMEOUT=%r", timeout)
            else:
                if seconds < 0:
                    logger.warning("Ignoring negative SERPICO_TIMEOUT=%r", timeout)
                else:
                    config.idle_timeout = seconds

        if baud := os.environ.get("SERPICO_BAUD"):
            try:
                config.baud_rate = int(baud)
            except ValueError:
                logger.warning("Ignoring invalid SERPICO_BAUD=%r", baud)

        if manufacturer := os.environ.get("SERPICO_MANUFACTURER"):
            config.manufacturer = manufacturer

        return config
