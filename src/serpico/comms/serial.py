"""
Serial Port Utilities for MicroPython Devices
=============================================

This module provides utilities for finding and opening the serial port
of a board running MicroPython. It handles:

- Port enumeration
- Detection of MicroPython USB devices by manufacturer string
- Selection policy when zero, one, or several devices are found
- Port configuration for the raw REPL

Discovery
---------
MicroPython's USB CDC descriptor advertises the manufacturer string
"MicroPython". Only USB ports carrying exactly that string are treated
as candidates.

On macOS every USB serial device appears twice, as /dev/tty.X and
/dev/cu.X. The /dev/cu.X call-out aliases are skipped so that one
physical board is reported once.

Serial Port Settings
--------------------
- Baud Rate: 115200
- Data Bits: 8
- Parity: None
- Stop Bits: 1
- Flow Control: None (raw-paste handles flow in-band)
"""

import logging
from dataclasses import dataclass
from typing import Final, Optional, Sequence

import serial
import serial.tools.list_ports

from serpico.config import (
    DEFAULT_BAUD_RATE,
    DEFAULT_READ_TIMEOUT,
    MICROPYTHON_MANUFACTURER,
)
from serpico.errors import (
    AmbiguousDeviceError,
    ConnectionError,
    DeviceNotFoundError,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# macOS call-out device prefix; duplicates the /dev/tty. entry
MACOS_CALLOUT_PREFIX: Final[str] = "/dev/cu."


# =============================================================================
# Port Information
# =============================================================================

@dataclass(frozen=True)
class PortInfo:
    """
    Information about an available serial port.

    Attributes:
        device: System device path (e.g., '/dev/ttyACM0', 'COM3')
        description: Human-readable description from the driver
        manufacturer: Device manufacturer (if available)
        product: Product name (if available)
        serial_number: Device serial number (if available)
        vid: USB Vendor ID (None for non-USB ports)
        pid: USB Product ID (None for non-USB ports)
    """

    device: str
    description: str
    manufacturer: Optional[str]
    product: Optional[str]
    serial_number: Optional[str]
    vid: Optional[int]
    pid: Optional[int]

    @property
    def is_usb(self) -> bool:
        """Return True if this is a USB serial device."""
        return self.vid is not None

    @property
    def is_alias(self) -> bool:
        """Return True if this path duplicates another entry for the same device."""
        return self.device.startswith(MACOS_CALLOUT_PREFIX)

    def __str__(self) -> str:
        parts = [self.device]
        if self.description:
            parts.append(f"- {self.description}")
        if self.manufacturer:
            parts.append(f"({self.manufacturer})")
        return " ".join(parts)


# =============================================================================
# Port Enumeration
# =============================================================================

def list_serial_ports() -> list[PortInfo]:
    """
    List all available serial ports on the system.

    Returns:
        List of PortInfo objects describing available ports.

    Example:
        >>> for port in list_serial_ports():
        ...     print(f"{port.device}: {port.manufacturer}")
        /dev/ttyACM0: MicroPython
        /dev/ttyS0: None
    """
    ports = []

    for port in serial.tools.list_ports.comports():
        info = PortInfo(
            device=port.device,
            description=port.description or "",
            manufacturer=port.manufacturer,
            product=port.product,
            serial_number=port.serial_number,
            vid=port.vid,
            pid=port.pid,
        )
        ports.append(info)
        logger.debug(
            "Found port: %s (manufacturer=%s, vid=%s)",
            port.device,
            port.manufacturer,
            f"{port.vid:04X}" if port.vid else "N/A",
        )

    return ports


def find_micropython_devices(
    manufacturer: str = MICROPYTHON_MANUFACTURER,
) -> list[str]:
    """
    Find serial ports that are plausibly MicroPython boards.

    A port qualifies when it is a USB port, is not an alias path, and
    its manufacturer string equals `manufacturer` exactly.

    Args:
        manufacturer: Manufacturer string to match (default "MicroPython").

    Returns:
        Device paths of matching ports, in enumeration order. The caller
        decides what to do with zero or several matches.
    """
    devices = []

    for port in list_serial_ports():
        if port.is_alias:
            continue
        if not port.is_usb or port.manufacturer is None:
            continue
        if port.manufacturer == manufacturer:
            devices.append(port.device)

    logger.debug("MicroPython devices: %s", devices)
    return devices


def select_device(devices: Sequence[str]) -> str:
    """
    Pick the device to use from a discovery result.

    Args:
        devices: Device paths returned by find_micropython_devices().

    Returns:
        The single device path.

    Raises:
        DeviceNotFoundError: If no device was found.
        AmbiguousDeviceError: If more than one device was found.
    """
    if not devices:
        raise DeviceNotFoundError()
    if len(devices) > 1:
        raise AmbiguousDeviceError(devices)

    logger.info("MicroPython device discovered at %s", devices[0])
    return devices[0]


# =============================================================================
# Port Configuration
# =============================================================================

def open_serial_port(
    device: str,
    baud_rate: int = DEFAULT_BAUD_RATE,
    timeout: float = DEFAULT_READ_TIMEOUT,
) -> serial.Serial:
    """
    Open and configure a serial port for the raw REPL.

    Args:
        device: Serial port device path (e.g., '/dev/ttyACM0', 'COM3').
        baud_rate: Baud rate. Default is 115200.
        timeout: Per-read timeout in seconds. Default is 0.01.

    Returns:
        Configured and opened serial.Serial object.

    Raises:
        ConnectionError: If the port cannot be opened or configured.

    Note:
        The caller is responsible for closing the port when done.
    """
    logger.info("Opening serial port: %s at %d baud", device, baud_rate)

    try:
        port = serial.Serial(
            port=device,
            baudrate=baud_rate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=timeout,
            xonxoff=False,
            rtscts=False,
            dsrdtr=False,
        )
    except serial.SerialException as e:
        raise _open_error(device, e) from None

    try:
        port.reset_input_buffer()
        port.reset_output_buffer()
    except serial.SerialException as e:
        close_serial_port(port)
        raise _open_error(device, e) from None

    logger.debug("Port opened: %s (timeout=%.3f)", device, timeout)

    return port


def _open_error(device: str, error: serial.SerialException) -> ConnectionError:
    """Translate a pyserial failure into a ConnectionError with a hint."""
    error_msg = str(error)

    if "Permission denied" in error_msg:
        return ConnectionError(
            f"Permission denied accessing {device}. "
            "You may need to add your user to the 'dialout' group: "
            "sudo usermod -a -G dialout $USER"
        )
    elif "No such file" in error_msg or "not found" in error_msg.lower():
        return ConnectionError(
            f"Serial port not found: {device}. "
            "Use 'serpico --list' to list available ports."
        )
    elif "busy" in error_msg.lower() or "in use" in error_msg.lower():
        return ConnectionError(
            f"Serial port {device} is busy. "
            "Close any other programs using the port."
        )
    else:
        return ConnectionError(f"Cannot open {device}: {error}")


def close_serial_port(port: Optional[serial.Serial]) -> None:
    """
    Safely close a serial port.

    Errors during close are logged and not raised, so that closing on
    an error path never hides the original failure.
    """
    if port is None:
        return

    try:
        if port.is_open:
            port.close()
            logger.debug("Serial port closed")
    except (serial.SerialException, OSError) as e:
        logger.warning("Error closing serial port: %s", e)


def format_port_list(ports: list[PortInfo], verbose: bool = False) -> str:
    """
    Format a list of ports for display to the user.

    Args:
        ports: List of PortInfo objects to format.
        verbose: If True, include additional details.

    Returns:
        Formatted string with one port per line.
    """
    if not ports:
        return "No serial ports found."

    lines = []
    for port in ports:
        if verbose:
            line = f"  {port.device}"
            if port.description:
                line += f"\n    Description: {port.description}"
            if port.manufacturer:
                line += f"\n    Manufacturer: {port.manufacturer}"
            if port.product:
                line += f"\n    Product: {port.product}"
            if port.vid is not None and port.pid is not None:
                line += f"\n    USB VID:PID: {port.vid:04X}:{port.pid:04X}"
            if port.serial_number:
                line += f"\n    Serial: {port.serial_number}"
            lines.append(line)
        else:
            lines.append(f"  {port}")

    return "\n".join(lines)
