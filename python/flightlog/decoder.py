"""Stateful record stream over the packet data of a flight computer log."""

from __future__ import annotations

import enum
import io
import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, Union

from .errors import DecodeError, TruncatedPayload
from .packet import (
    HEADER_SIZE, PacketFlag, PacketHeader, Vector3,
    decode_header, extract_payload,
)
from .transport import ByteSource

logger = logging.getLogger(__name__)

Source = Union[bytes, bytearray, memoryview, BinaryIO, ByteSource]


class StreamState(enum.Enum):
    READY = "ready"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Measurement:
    """One decoded packet.  Absent fields are None."""
    timestamp_abs: int
    timestamp_delta: int
    header: int
    events: int = 0
    acc: Vector3 | None = None
    gyro: Vector3 | None = None
    pressure: int | None = None
    temperature: int | None = None
    altitude: float | None = None

    @property
    def flags(self) -> PacketFlag:
        return PacketHeader(self.header).flags


@dataclass
class DecodeStats:
    records: int = 0
    bytes_read: int = 0
    long_records: int = 0
    short_records: int = 0
    events_seen: int = 0

    def update(self, header: PacketHeader, size: int) -> None:
        self.records += 1
        self.bytes_read += size
        if header.value & PacketFlag.TEMP:
            self.long_records += 1
        else:
            self.short_records += 1
        self.events_seen |= header.events


class TimestampAccumulator:
    """Running absolute time built from the 12-bit packet deltas."""

    def __init__(self) -> None:
        self.previous = 0

    def advance(self, delta: int) -> int:
        self.previous += delta
        return self.previous


class ByteCursor:
    """Forward-only reader over bytes or anything with read(n)."""

    def __init__(self, source: Source):
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = io.BytesIO(source)
        if not hasattr(source, "read"):
            raise TypeError(
                f"expected bytes or a readable object, got {type(source).__name__}")
        self._source = source
        self.position = 0

    def read(self, n: int) -> bytes:
        """Read up to n bytes; fewer only at the end of the source.

        An empty read() from the source is the end of the data.  Live
        sources such as SerialTransport block until bytes arrive.
        """
        buf = bytearray()
        while len(buf) < n:
            chunk = self._source.read(n - len(buf))
            if not chunk:
                break
            buf.extend(chunk)
        self.position += len(buf)
        return bytes(buf)


class RecordStream:
    """Lazy iterator of Measurements decoded from a byte source.

    Iteration stops on a clean end of data (state DONE) or on the first
    decode error (state FAILED, error kept in ``error``).  Decode errors
    are never raised out of the iterator; use raise_for_error() for that.
    """

    def __init__(self, source: Source):
        self._cursor = ByteCursor(source)
        self._clock = TimestampAccumulator()
        self.state = StreamState.READY
        self.error: DecodeError | None = None
        self.stats = DecodeStats()

    def __iter__(self) -> Iterator[Measurement]:
        return self

    def __next__(self) -> Measurement:
        if self.state is not StreamState.READY:
            raise StopIteration

        try:
            measurement = self._decode_next()
        except DecodeError as e:
            logger.warning("stopping after %d records at byte %d: %s",
                           self.stats.records, e.offset, e)
            self.state = StreamState.FAILED
            self.error = e
            measurement = None

        if measurement is None:
            if self.state is StreamState.READY:
                self.state = StreamState.DONE
            raise StopIteration
        return measurement

    @property
    def position(self) -> int:
        return self._cursor.position

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def _decode_next(self) -> Measurement | None:
        offset = self._cursor.position
        raw = self._cursor.read(HEADER_SIZE)
        if not raw:
            return None

        header = decode_header(raw, offset)
        length = header.payload_length
        logger.debug("packet at %d: header=0x%06x length=%d",
                     offset, header.value, length)

        payload = self._cursor.read(length)
        if len(payload) < length:
            raise TruncatedPayload(
                f"truncated payload: {len(payload)} of {length} bytes",
                length, len(payload), offset)

        fields = extract_payload(header.value, payload, offset)
        timestamp = self._clock.advance(header.delta_time)
        self.stats.update(header, HEADER_SIZE + length)

        return Measurement(
            timestamp_abs=timestamp,
            timestamp_delta=header.delta_time,
            header=header.value,
            events=header.events,
            **fields,
        )


@dataclass
class DecodeResult:
    measurements: list[Measurement]
    state: StreamState
    error: DecodeError | None = None
    stats: DecodeStats = field(default_factory=DecodeStats)

    @property
    def ok(self) -> bool:
        return self.state is StreamState.DONE


def decode_log(source: Source) -> DecodeResult:
    """Decode a whole packet data region eagerly."""
    stream = RecordStream(source)
    measurements = list(stream)
    return DecodeResult(
        measurements=measurements,
        state=stream.state,
        error=stream.error,
        stats=stream.stats,
    )
