"""
MicroPython Raw REPL Communication
==================================

This module uploads and runs scripts on a MicroPython board through the
raw REPL and its raw-paste submode.

Module Structure
----------------
- **serial**: Port enumeration, MicroPython discovery, port opening
- **transport**: Byte transport abstraction and pyserial implementation
- **reader**: Terminator scanning and exact reads with idle budgets
- **raw_repl**: Handshake into raw REPL + raw-paste mode
- **paste**: Credit-based script transfer
- **session**: One complete execution (`execute`)

Quick Start
-----------
    import sys
    from serpico.comms import execute, find_micropython_devices, select_device

    device = select_device(find_micropython_devices())
    execute(
        device,
        b"print('hello')",
        timeout=5,
        stdout=sys.stdout.buffer.write,
        stderr=sys.stderr.buffer.write,
    )

Error Handling
--------------
All communication errors inherit from `CommsError`, discovery errors
from `DiscoveryError`; both are defined in `serpico.errors`.

Thread Safety
-------------
Sessions are synchronous and not thread-safe. Never run two sessions
against the same device at once.
"""

# Serial port utilities
from serpico.comms.serial import (
    PortInfo,
    close_serial_port,
    find_micropython_devices,
    format_port_list,
    list_serial_ports,
    open_serial_port,
    select_device,
)

# Transport
from serpico.comms.transport import SerialTransport, Transport

# Pattern reader
from serpico.comms.reader import IdleBudget, OutputCallback, PatternReader, SlidingWindow

# Handshake
from serpico.comms.raw_repl import (
    RAW_PASTE_REQUEST,
    RAW_REPL_BANNER,
    SOFT_REBOOT_BANNER,
    HandshakeState,
    ReplHandshake,
)

# Transfer
from serpico.comms.paste import (
    ABRUPT_END,
    END_OF_TRANSMISSION,
    WINDOW_INCREMENT,
    FlowWindow,
    PasteTransfer,
    ProgressCallback,
)

# Session
from serpico.comms.session import ExecutionResult, execute, run_session

__all__ = [
    # Serial
    "PortInfo",
    "list_serial_ports",
    "find_micropython_devices",
    "select_device",
    "open_serial_port",
    "close_serial_port",
    "format_port_list",
    # Transport
    "Transport",
    "SerialTransport",
    # Reader
    "OutputCallback",
    "IdleBudget",
    "SlidingWindow",
    "PatternReader",
    # Handshake
    "RAW_REPL_BANNER",
    "SOFT_REBOOT_BANNER",
    "RAW_PASTE_REQUEST",
    "HandshakeState",
    "ReplHandshake",
    # Transfer
    "WINDOW_INCREMENT",
    "ABRUPT_END",
    "END_OF_TRANSMISSION",
    "FlowWindow",
    "PasteTransfer",
    "ProgressCallback",
    # Session
    "ExecutionResult",
    "execute",
    "run_session",
]
