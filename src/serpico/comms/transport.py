"""
Byte Transport Abstraction
==========================

The protocol engine talks to the device through a small capability set
so that tests can substitute a scripted in-memory stream for hardware:

- read(n): up to n bytes; None when the per-read timeout elapsed with
  no data, b"" when the stream is closed
- write(data): write every byte
- bytes_pending(): unread bytes already buffered by the host
- close()

Exact-length reads are built on top of read() by the PatternReader,
which owns the idle-wait policy.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import serial
from serial import SerialException

from serpico.comms.serial import close_serial_port, open_serial_port
from serpico.config import DEFAULT_BAUD_RATE, DEFAULT_READ_TIMEOUT
from serpico.errors import TransportError

logger = logging.getLogger(__name__)


class Transport(ABC):
    """
    Abstract duplex byte stream.

    Contract:
      - read(n) returns 1..n bytes, None on a read timeout, or b"" when
        the stream has been closed by the other end.
      - write(data) writes all of data and returns its length.
      - bytes_pending() returns the number of bytes that can be read
        without waiting.
    """

    @abstractmethod
    def read(self, n: int = 1) -> Optional[bytes]: ...

    @abstractmethod
    def write(self, data: bytes) -> int: ...

    @abstractmethod
    def bytes_pending(self) -> int: ...

    @abstractmethod
    def close(self) -> None: ...

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        self.close()


class SerialTransport(Transport):
    """
    Serial transport implemented via pyserial.

    pyserial reports a read timeout as an empty result, which is mapped
    to None here. A vanished device raises SerialException, which is
    wrapped in TransportError.
    """

    def __init__(
        self,
        device: str,
        baud_rate: int = DEFAULT_BAUD_RATE,
        timeout: float = DEFAULT_READ_TIMEOUT,
    ):
        self.device = device
        self.baud_rate = baud_rate
        self.timeout = timeout
        self.ser: Optional[serial.Serial] = None

    def open(self) -> "SerialTransport":
        self.ser = open_serial_port(self.device, baud_rate=self.baud_rate, timeout=self.timeout)
        return self

    def close(self) -> None:
        if self.ser is not None:
            try:
                close_serial_port(self.ser)
            finally:
                self.ser = None

    def _port(self) -> serial.Serial:
        if self.ser is None:
            raise TransportError("transport not open")
        return self.ser

    def read(self, n: int = 1) -> Optional[bytes]:
        port = self._port()
        try:
            data = port.read(n)
        except SerialException as e:
            raise TransportError(f"Serial read failed: {e}") from None
        return data or None

    def write(self, data: bytes) -> int:
        port = self._port()
        try:
            port.write(data)
            port.flush()
        except SerialException as e:
            raise TransportError(f"Serial write failed: {e}") from None
        logger.debug("TX %d bytes: %s", len(data), data[:32].hex())
        return len(data)

    def bytes_pending(self) -> int:
        port = self._port()
        try:
            return port.in_waiting
        except SerialException as e:
            raise TransportError(f"Serial status query failed: {e}") from None
