"""Serial link to the flight computer.

The flight computer dumps its flash over a UART after it is sent a text
command (``read``).  SerialTransport wraps the port so that the dump can be
captured to a file or handed to a RecordStream directly.

A RecordStream treats an empty read() as the end of the data, so read()
here only returns b"" once the line has been idle for ``idle_timeout``
seconds.  Short gaps between bursts are waited out.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 115200
POLL_INTERVAL = 0.1


class ByteSource(Protocol):
    """Anything a RecordStream can read from.

    read(n) returns at most n bytes, and b"" only at the end of the data.
    """

    def read(self, n: int) -> bytes: ...


class SerialTransport:
    """Flight computer UART link (requires pyserial for open())."""

    def __init__(self, ser: Any, idle_timeout: float | None = None):
        self._ser = ser
        self.idle_timeout = idle_timeout
        self.bytes_read = 0

    @classmethod
    def open(cls, port: str, baudrate: int = DEFAULT_BAUDRATE,
             idle_timeout: float | None = None) -> SerialTransport:
        """Open a port.  With idle_timeout None, read() waits forever."""
        import serial
        ser = serial.Serial(port, baudrate, timeout=POLL_INTERVAL)
        logger.info("opened %s at %d baud", port, baudrate)
        return cls(ser, idle_timeout=idle_timeout)

    def send_command(self, command: str) -> None:
        """Send a text command line, e.g. ``read`` to start a flash dump."""
        logger.debug("sending command %r", command)
        self._ser.write(command.encode("ascii") + b"\r\n")
        self._ser.flush()

    def read(self, n: int) -> bytes:
        """Block until at least one byte arrives or the line goes idle."""
        deadline = None
        if self.idle_timeout is not None:
            deadline = time.monotonic() + self.idle_timeout
        while True:
            data = self._ser.read(n)
            if data:
                self.bytes_read += len(data)
                return data
            if deadline is not None and time.monotonic() >= deadline:
                logger.info("line idle for %.1fs after %d bytes",
                            self.idle_timeout, self.bytes_read)
                return b""

    def close(self) -> None:
        self._ser.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
