"""Test the record stream: timestamps, terminal states and statistics.

Run from the repo root:
    python3 tests/test_decoder.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "python"))

import dataclasses
import io

from flightlog.decoder import (
    Measurement, RecordStream, StreamState, TimestampAccumulator, decode_log,
)
from flightlog.errors import InvalidHeader, TruncatedHeader, TruncatedPayload
from flightlog.packet import PacketFlag, build_packet

SHORT = PacketFlag.ACC | PacketFlag.GYRO
FULL = SHORT | PacketFlag.PRES | PacketFlag.TEMP


def make_full(delta, events=0, **values):
    return build_packet(FULL | events, delta, **values)


def make_short(delta, events=0, **values):
    return build_packet(SHORT | events, delta, **values)


class TrickleSource:
    """Readable that hands out one byte per read() call."""

    def __init__(self, data):
        self._data = data
        self._pos = 0

    def read(self, n):
        chunk = self._data[self._pos:self._pos + min(n, 1)]
        self._pos += len(chunk)
        return chunk


def test_single_record():
    """Header 0xC0 0x00 0x05 plus acc 1,2,3 decodes to one record, then DONE."""
    print("test_single_record...", end="")

    data = bytes([0xC0, 0x00, 0x05,
                  0x00, 0x01, 0x00, 0x02, 0x00, 0x03,
                  0x00, 0x00, 0x00, 0x00, 0x00, 0x00])
    stream = RecordStream(data)
    assert stream.state is StreamState.READY

    m = next(stream)
    assert m.acc == (1, 2, 3)
    assert m.gyro == (0, 0, 0)
    assert m.timestamp_abs == 5
    assert m.timestamp_delta == 5
    assert m.pressure is None
    assert m.temperature is None
    assert m.altitude is None
    assert m.events == 0

    assert list(stream) == []
    assert stream.state is StreamState.DONE
    assert stream.error is None

    print(" OK")


def test_acc_gyro_needs_twelve_bytes():
    """Type nibble 0xC is ACC|GYRO, so six payload bytes are not enough."""
    print("test_acc_gyro_needs_twelve_bytes...", end="")

    data = bytes([0xC0, 0x00, 0x05, 0x00, 0x01, 0x00, 0x02, 0x00, 0x03])
    result = decode_log(data)
    assert result.measurements == []
    assert result.state is StreamState.FAILED
    assert isinstance(result.error, TruncatedPayload)
    assert result.error.expected == 12
    assert result.error.available == 6
    assert result.error.offset == 0

    print(" OK")


def test_timestamp_accumulation():
    print("test_timestamp_accumulation...", end="")

    deltas = [5, 4095, 0, 100, 4095]
    data = b"".join(make_short(d) for d in deltas)

    stamps = [m.timestamp_abs for m in RecordStream(data)]
    assert stamps == [5, 4100, 4100, 4200, 8295]

    # A new stream starts its clock from zero again
    stamps = [m.timestamp_abs for m in RecordStream(data)]
    assert stamps[0] == 5

    clock = TimestampAccumulator()
    assert clock.advance(4095) == 4095
    assert clock.advance(1) == 4096
    assert clock.previous == 4096

    print(" OK")


def test_clean_end():
    print("test_clean_end...", end="")

    stream = RecordStream(b"")
    assert list(stream) == []
    assert stream.state is StreamState.DONE
    stream.raise_for_error()

    # Terminal states stay terminal
    try:
        next(stream)
    except StopIteration:
        pass
    else:
        raise AssertionError("record after DONE")

    print(" OK")


def test_truncated_header():
    print("test_truncated_header...", end="")

    good = make_short(10) + make_full(20)
    for tail in (b"\xc0", b"\xc0\x00"):
        stream = RecordStream(good + tail)
        records = list(stream)
        assert len(records) == 2
        assert stream.state is StreamState.FAILED
        assert isinstance(stream.error, TruncatedHeader)
        assert stream.error.offset == len(good)

    print(" OK")


def test_truncated_payload():
    """A short final packet is dropped; the records before it survive."""
    print("test_truncated_payload...", end="")

    good = make_short(10, acc=(1, 1, 1))
    bad = make_full(20)[:-1]
    stream = RecordStream(good + bad)
    records = list(stream)
    assert [m.acc for m in records] == [(1, 1, 1)]
    assert stream.state is StreamState.FAILED
    assert isinstance(stream.error, TruncatedPayload)
    assert stream.error.expected == 22
    assert stream.error.available == 21
    assert stream.stats.records == 1

    try:
        stream.raise_for_error()
    except TruncatedPayload:
        pass
    else:
        raise AssertionError("raise_for_error did not raise")

    print(" OK")


def test_invalid_header():
    print("test_invalid_header...", end="")

    # Zero type nibble on the very first packet
    stream = RecordStream(b"\x00\x00\x00" + make_short(1))
    assert list(stream) == []
    assert stream.state is StreamState.FAILED
    assert isinstance(stream.error, InvalidHeader)
    assert stream.error.header_byte == 0x00

    # Desynchronised after one good packet: nothing after it is decoded
    data = make_short(1) + b"\xa0\x00\x01" + bytes(12) + make_short(2)
    stream = RecordStream(data)
    records = list(stream)
    assert len(records) == 1
    assert isinstance(stream.error, InvalidHeader)
    assert stream.error.header_byte == 0xA0
    assert stream.error.offset == 15
    assert list(stream) == []

    print(" OK")


def test_absent_vs_zero():
    """A present zero is not the same as an absent field."""
    print("test_absent_vs_zero...", end="")

    data = make_full(1, pressure=0, temperature=0, altitude=0.0) + make_short(1)
    full, short = decode_log(data).measurements

    assert full.pressure == 0 and full.pressure is not None
    assert full.temperature == 0 and full.temperature is not None
    assert full.altitude == 0.0 and full.altitude is not None
    assert short.pressure is None
    assert short.temperature is None
    assert short.altitude is None

    print(" OK")


def test_full_record():
    print("test_full_record...", end="")

    data = make_full(7, acc=(100, -100, 981), gyro=(-5, 0, 5),
                     pressure=101325, temperature=-1234, altitude=152.5)
    (m,) = decode_log(data).measurements
    assert m.acc.z == 981
    assert m.gyro == (-5, 0, 5)
    assert m.pressure == 101325
    assert m.temperature == -1234
    assert m.altitude == 152.5
    assert m.flags == FULL
    assert m.header == 0xF00007

    print(" OK")


def test_events_per_packet():
    """Each record carries only its own packet's event flags."""
    print("test_events_per_packet...", end="")

    data = (make_short(1, PacketFlag.LAUNCH_DETECT)
            + make_short(1)
            + make_full(1, PacketFlag.DROGUE_DETECT | PacketFlag.LAND_DETECT))
    result = decode_log(data)
    assert [m.events for m in result.measurements] == [0x08, 0x00, 0x84]
    assert result.stats.events_seen == 0x8C

    print(" OK")


def test_stats():
    print("test_stats...", end="")

    data = make_full(1) + make_short(1) + make_full(1)
    result = decode_log(data)
    assert result.ok
    assert result.stats.records == 3
    assert result.stats.bytes_read == len(data) == 25 + 15 + 25
    assert result.stats.long_records == 2
    assert result.stats.short_records == 1

    print(" OK")


def test_sources():
    """bytes, bytearray, memoryview, file objects and trickling readers."""
    print("test_sources...", end="")

    data = make_short(3, acc=(1, 2, 3)) + make_full(4, pressure=9)

    for source in (data, bytearray(data), memoryview(data),
                   io.BytesIO(data), TrickleSource(data)):
        stream = RecordStream(source)
        records = list(stream)
        assert [m.timestamp_abs for m in records] == [3, 7]
        assert records[1].pressure == 9
        assert stream.state is StreamState.DONE
        assert stream.position == len(data)

    try:
        RecordStream(42)
    except TypeError:
        pass
    else:
        raise AssertionError("int accepted as a source")

    print(" OK")


def test_measurement_frozen():
    print("test_measurement_frozen...", end="")

    (m,) = decode_log(make_short(1)).measurements
    assert isinstance(m, Measurement)
    try:
        m.timestamp_abs = 99
    except dataclasses.FrozenInstanceError:
        pass
    else:
        raise AssertionError("Measurement is mutable")

    print(" OK")


if __name__ == "__main__":
    print("flightlog decoder tests")
    print("=======================\n")

    test_single_record()
    test_acc_gyro_needs_twelve_bytes()
    test_timestamp_accumulation()
    test_clean_end()
    test_truncated_header()
    test_truncated_payload()
    test_invalid_header()
    test_absent_vs_zero()
    test_full_record()
    test_events_per_packet()
    test_stats()
    test_sources()
    test_measurement_frozen()

    print("\nAll tests passed.")
