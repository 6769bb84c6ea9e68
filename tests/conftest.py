"""
Shared fixtures for the serpico test suite.

ScriptedTransport stands in for a serial port. It replays a scripted
sequence of device output and records everything the host writes, so
tests can assert on the exact byte-level trace of a session.

Event list format:
    bytes  - data the device has sent (delivered in read() order)
    None   - one read that times out before more data arrives

When the events run out the stream reads as closed (b""), or as timing
out forever when created with eof=False.
"""

import struct
from collections import deque
from typing import Iterable, Optional

import pytest

from serpico.comms.transport import Transport


Event = Optional[bytes]


class ScriptedTransport(Transport):
    """In-memory duplex stream driven by a list of events."""

    def __init__(self, events: Iterable[Event] = (), eof: bool = True):
        self.events = deque(events)
        self.eof = eof
        self.trace: list[tuple[str, bytes]] = []
        self.closed = False
        self.opened = False

    def open(self) -> "ScriptedTransport":
        self.opened = True
        return self

    def read(self, n: int = 1) -> Optional[bytes]:
        if not self.events:
            return b"" if self.eof else None
        head = self.events[0]
        if head is None:
            self.events.popleft()
            return None
        data = head[:n]
        if len(head) > n:
            self.events[0] = head[n:]
        else:
            self.events.popleft()
        self.trace.append(("rx", data))
        return data

    def write(self, data: bytes) -> int:
        self.trace.append(("tx", bytes(data)))
        return len(data)

    def bytes_pending(self) -> int:
        count = 0
        for event in self.events:
            if event is None:
                break
            count += len(event)
        return count

    def close(self) -> None:
        self.closed = True

    @property
    def writes(self) -> list[bytes]:
        return [data for kind, data in self.trace if kind == "tx"]

    @property
    def unread(self) -> bytes:
        return b"".join(event for event in self.events if event is not None)


def handshake_events(window_size: int = 256, response: bytes = b"R\x01") -> list[Event]:
    """Device output for a successful raw REPL + raw-paste handshake."""
    return [
        b"\r\n>>> stale output\r\n",
        None,
        b"raw REPL; CTRL-B to exit\r\n",
        b"soft reboot\r\n",
        b"raw REPL; CTRL-B to exit\r\n>",
        response + struct.pack("<H", window_size),
    ]


def completion_events(stdout: bytes = b"", stderr: bytes = b"") -> list[Event]:
    """Device output after the script has been sent."""
    return [b"\x04", stdout + b"\x04", stderr + b"\x04"]


@pytest.fixture
def make_transport():
    """Factory fixture: make_transport(events, eof=True) -> ScriptedTransport."""
    def factory(events: Iterable[Event] = (), eof: bool = True) -> ScriptedTransport:
        return ScriptedTransport(events, eof=eof)
    return factory


@pytest.fixture
def handshake():
    return handshake_events


@pytest.fixture
def completion():
    return completion_events


@pytest.fixture
def no_sleep(monkeypatch):
    """Record poll sleeps instead of sleeping."""
    sleeps: list[float] = []
    monkeypatch.setattr("serpico.comms.reader.time.sleep", sleeps.append)
    return sleeps


@pytest.fixture
def fake_serial(monkeypatch, no_sleep):
    """Replace SerialTransport in execute() with a ScriptedTransport.

    Set `fake_serial.events_to_play` before calling execute(); every
    transport created is appended to `fake_serial.instances`.
    """
    class FakeSerialTransport(ScriptedTransport):
        events_to_play: list = []
        instances: list = []

        def __init__(self, device, baud_rate, timeout):
            super().__init__(self.events_to_play)
            self.device = device
            self.baud_rate = baud_rate
            self.timeout = timeout
            FakeSerialTransport.instances.append(self)

    monkeypatch.setattr("serpico.comms.session.SerialTransport", FakeSerialTransport)
    return FakeSerialTransport
