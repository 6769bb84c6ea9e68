"""
Serpico Error Hierarchy
=======================

This module defines the exception hierarchy for serpico. All exceptions
inherit from SerpicoError, allowing callers to catch every failure of a
discovery or execution session with a single except clause.

Exception Hierarchy
-------------------
SerpicoError (base)
├── DiscoveryError (device discovery)
│   ├── DeviceNotFoundError - no MicroPython device found
│   └── AmbiguousDeviceError - more than one candidate device
└── CommsError (serial communication)
    ├── ConnectionError - cannot open port, or stream closed
    ├── TransportError - underlying read/write failure
    ├── TimeoutError - idle budget exceeded while waiting
    ├── HandshakeError - raw-paste negotiation failed
    │   ├── UnsupportedBulkModeError - device refuses raw-paste
    │   └── UnknownResponseError - unrecognised negotiation reply
    ├── ProtocolError - unexpected control byte during transfer
    └── TransferError - script transfer failed
        └── AbruptEndError - device aborted the transfer

Design Philosophy
-----------------
A session never reports partial success: the first error raised by any
step aborts the session and propagates unchanged to the caller, even if
part of the script already reached the device.
"""

from typing import Optional, Sequence


# =============================================================================
# Base Exception Class
# =============================================================================

class SerpicoError(Exception):
    """
    Base exception for all serpico errors.

        try:
            execute("/dev/ttyACM0", b"print('hi')")
        except SerpicoError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Discovery Exceptions
# =============================================================================

class DiscoveryError(SerpicoError):
    """Base exception for device discovery errors."""
    pass


class DeviceNotFoundError(DiscoveryError):
    """No serial port advertises the MicroPython manufacturer string."""

    def __init__(self, message: str = "No MicroPython devices found"):
        super().__init__(message)


class AmbiguousDeviceError(DiscoveryError):
    """
    More than one MicroPython device was discovered.

    Automatic selection is refused; the caller must name the device
    explicitly.

    Attributes:
        devices: The candidate device paths
    """

    def __init__(self, devices: Sequence[str]):
        self.devices = list(devices)
        listed = ", ".join(self.devices)
        super().__init__(
            f"Multiple MicroPython devices found ({listed}), "
            "please specify one with the device option"
        )


# =============================================================================
# Communication Exceptions
# =============================================================================

class CommsError(SerpicoError):
    """Base exception for serial communication errors."""
    pass


class ConnectionError(CommsError):
    """
    Cannot talk to the device.

    Raised when:
    - Serial port not found
    - Permission denied
    - The stream was closed while waiting for data
    """
    pass


class TransportError(CommsError):
    """Underlying serial read or write failed."""
    pass


class TimeoutError(CommsError):
    """
    Idle budget exceeded while waiting for the device.

    Note:
        This is a serpico-specific TimeoutError, distinct from the
        Python builtin TimeoutError. It inherits from CommsError
        for consistent error handling in the comms module.
    """
    pass


class HandshakeError(CommsError):
    """Raw-paste negotiation with the device failed."""
    pass


class UnsupportedBulkModeError(HandshakeError):
    """The device answered the raw-paste request with 'R\\x00'."""

    def __init__(self, message: str = "Device doesn't support raw-paste"):
        super().__init__(message)


class UnknownResponseError(HandshakeError):
    """
    The device answered the raw-paste request with unexpected bytes.

    Attributes:
        response: The two bytes received
    """

    def __init__(self, response: bytes):
        self.response = bytes(response)
        super().__init__(f"Unknown raw-paste response: {self.response!r}")


class ProtocolError(CommsError):
    """
    Unexpected flow-control byte received during the transfer.

    Attributes:
        byte: The offending byte value (None when not applicable)
    """

    def __init__(self, message: str, byte: Optional[int] = None):
        self.byte = byte
        super().__init__(message)


class TransferError(CommsError):
    """Error during script transfer."""
    pass


class AbruptEndError(TransferError):
    """
    The device signalled an abrupt end in the middle of the transfer.

    The end-of-transmission byte has already been written back to the
    device when this is raised.

    Attributes:
        bytes_sent: Payload bytes written before the abort
    """

    def __init__(self, bytes_sent: int = 0):
        self.bytes_sent = bytes_sent
        super().__init__(
            f"Device indicated abrupt end after {bytes_sent} bytes"
        )
