"""
serpico - Run Python Scripts on MicroPython Boards
==================================================

serpico uploads a script to a board running MicroPython over its USB
serial port and runs it, streaming the script's output back to the host.

It uses the raw REPL with the raw-paste submode, whose in-band flow
control lets large scripts be sent without overrunning the board's
receive buffer.

Quick Start
-----------
    >>> from serpico import execute, find_micropython_devices
    >>> find_micropython_devices()
    ['/dev/ttyACM0']
    >>> result = execute("/dev/ttyACM0", "print('hi')", timeout=5)
    >>> result.stdout
    b'hi\\r\\n'

Or from the command line:
    $ serpico hello.py
    $ serpico --device /dev/ttyACM0 --timeout 5 hello.py
    $ serpico --print-discovery
"""

__version__ = "0.1.0"

from serpico.errors import (
    SerpicoError,
    DiscoveryError,
    DeviceNotFoundError,
    AmbiguousDeviceError,
    CommsError,
    ConnectionError as SerpicoConnectionError,  # Avoid collision with builtin
    TransportError,
    TimeoutError as SerpicoTimeoutError,  # Avoid collision with builtin
    HandshakeError,
    UnsupportedBulkModeError,
    UnknownResponseError,
    ProtocolError,
    TransferError,
    AbruptEndError,
)
from serpico.config import SessionConfig
from serpico.comms import (
    ExecutionResult,
    PortInfo,
    execute,
    find_micropython_devices,
    list_serial_ports,
    select_device,
)

__all__ = [
    "__version__",
    # Session
    "execute",
    "ExecutionResult",
    "SessionConfig",
    # Discovery
    "find_micropython_devices",
    "list_serial_ports",
    "select_device",
    "PortInfo",
    # Errors
    "SerpicoError",
    "DiscoveryError",
    "DeviceNotFoundError",
    "AmbiguousDeviceError",
    "CommsError",
    "SerpicoConnectionError",
    "TransportError",
    "SerpicoTimeoutError",
    "HandshakeError",
    "UnsupportedBulkModeError",
    "UnknownResponseError",
    "ProtocolError",
    "TransferError",
    "AbruptEndError",
]
