"""Flight computer packet layout: header bits, field table and codecs.

Packet format:
  [header: 3 bytes, big-endian]
  [payload: 0..22 bytes, fields in table order]

Header bits (24-bit value):
  23..20  data type nibble  ACC | GYRO | PRES | TEMP
  19..12  event flags       DROGUE_DETECT .. OVERCURRENT
  11..0   delta time since the previous packet

Payload offsets come from the running sum of widths in FIELD_TABLE, which
assumes the earlier groups are present.  The flight computer only ever
writes type nibbles 0xC (ACC|GYRO) and 0xF (all four), so that holds for
every valid packet.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, replace
from enum import IntFlag
from typing import Any, Callable, NamedTuple

from .errors import InvalidHeader, LayoutError, TruncatedHeader, TruncatedPayload


class PacketFlag(IntFlag):
    ACC = 0x800000
    GYRO = 0x400000
    PRES = 0x200000
    TEMP = 0x100000

    DROGUE_DETECT = 0x080000
    DROGUE_DEPLOY = 0x040000
    MAIN_DETECT = 0x020000
    MAIN_DEPLOY = 0x010000
    LAUNCH_DETECT = 0x008000
    LAND_DETECT = 0x004000
    POWER_FAIL = 0x002000
    OVERCURRENT = 0x001000


DATA_FLAGS = (PacketFlag.ACC, PacketFlag.GYRO, PacketFlag.PRES, PacketFlag.TEMP)
EVENT_FLAGS = (
    PacketFlag.DROGUE_DETECT,
    PacketFlag.DROGUE_DEPLOY,
    PacketFlag.MAIN_DETECT,
    PacketFlag.MAIN_DEPLOY,
    PacketFlag.LAUNCH_DETECT,
    PacketFlag.LAND_DETECT,
    PacketFlag.POWER_FAIL,
    PacketFlag.OVERCURRENT,
)

HEADER_SIZE = 3
FLAG_MASK = 0xFFF000
DELTA_TIME_MASK = 0x000FFF
EVENT_SHIFT = 12

# Type nibbles the flight computer writes: ACC|GYRO and ACC|GYRO|PRES|TEMP
VALID_TYPE_NIBBLES = frozenset({0xC, 0xF})


class Vector3(NamedTuple):
    x: int
    y: int
    z: int


# ---------------------------------------------------------------------------
# Field codecs (all big-endian)
# ---------------------------------------------------------------------------

def _decode_vec3(raw: bytes) -> Vector3:
    return Vector3(*struct.unpack(">hhh", raw))


def _encode_vec3(value: tuple[int, int, int]) -> bytes:
    return struct.pack(">hhh", *value)


def _decode_u24(raw: bytes) -> int:
    return int.from_bytes(raw, "big")


def _encode_u24(value: int) -> bytes:
    return value.to_bytes(3, "big")


def _decode_i24(raw: bytes) -> int:
    return int.from_bytes(raw, "big", signed=True)


def _encode_i24(value: int) -> bytes:
    return value.to_bytes(3, "big", signed=True)


def _decode_f32(raw: bytes) -> float:
    """Reinterpret 4 big-endian bytes as an IEEE-754 binary32 value."""
    return struct.unpack(">f", raw)[0]


def _encode_f32(value: float) -> bytes:
    return struct.pack(">f", value)


# ---------------------------------------------------------------------------
# Field table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldDef:
    """One payload field.

    present_if is the header bit that makes the field readable; counted_by
    is the header bit whose presence adds the field's width to the payload
    length.  They differ only for altitude.
    """
    name: str
    width: int
    present_if: PacketFlag
    counted_by: PacketFlag
    decode: Callable[[bytes], Any]
    encode: Callable[[Any], bytes]
    offset: int = 0


def _layout(*fields: FieldDef) -> tuple[FieldDef, ...]:
    """Assign each field its offset from the widths of the fields before it."""
    laid_out: list[FieldDef] = []
    offset = 0
    for f in fields:
        laid_out.append(replace(f, offset=offset))
        offset += f.width
    return tuple(laid_out)


# Altitude is counted with PRES but only read when TEMP is set.  A PRES
# packet without TEMP therefore carries 4 altitude bytes nobody reads.
FIELD_TABLE = _layout(
    FieldDef("acc", 6, PacketFlag.ACC, PacketFlag.ACC, _decode_vec3, _encode_vec3),
    FieldDef("gyro", 6, PacketFlag.GYRO, PacketFlag.GYRO, _decode_vec3, _encode_vec3),
    FieldDef("pressure", 3, PacketFlag.PRES, PacketFlag.PRES, _decode_u24, _encode_u24),
    FieldDef("temperature", 3, PacketFlag.TEMP, PacketFlag.TEMP, _decode_i24, _encode_i24),
    FieldDef("altitude", 4, PacketFlag.TEMP, PacketFlag.PRES, _decode_f32, _encode_f32),
)

FIELDS_BY_NAME = {f.name: f for f in FIELD_TABLE}
MAX_PAYLOAD_SIZE = sum(f.width for f in FIELD_TABLE)  # 22


def resolve_fields(value: int) -> list[FieldDef]:
    """Fields to extract for a header value, in table order."""
    return [f for f in FIELD_TABLE if value & f.present_if]


def payload_length(value: int) -> int:
    """Number of payload bytes that follow a header."""
    return sum(f.width for f in FIELD_TABLE if value & f.counted_by)


def event_byte(value: int) -> int:
    """Pack the eight event flags of a header value into one byte."""
    events = 0
    for flag in EVENT_FLAGS:
        if value & flag:
            events += flag >> EVENT_SHIFT
    return events & 0xFF


def event_names(events: int) -> list[str]:
    """Names of the event flags set in an event byte."""
    return [flag.name for flag in EVENT_FLAGS if events & (flag >> EVENT_SHIFT)]


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PacketHeader:
    value: int

    @property
    def type_mask(self) -> int:
        return (self.value >> 20) & 0xF

    @property
    def delta_time(self) -> int:
        return self.value & DELTA_TIME_MASK

    @property
    def flags(self) -> PacketFlag:
        return PacketFlag(self.value & FLAG_MASK)

    @property
    def events(self) -> int:
        return event_byte(self.value)

    @property
    def payload_length(self) -> int:
        return payload_length(self.value)


def decode_header(raw: bytes, offset: int | None = None) -> PacketHeader:
    """Validate and decode a 3-byte packet header.

    offset is only used to annotate errors with the packet position.
    """
    if len(raw) < HEADER_SIZE:
        raise TruncatedHeader(
            f"truncated header: {len(raw)} of {HEADER_SIZE} bytes", offset)

    nibble = raw[0] >> 4
    if nibble not in VALID_TYPE_NIBBLES:
        raise InvalidHeader(
            f"bad header byte 0x{raw[0]:02x} (type nibble 0x{nibble:x})",
            raw[0], offset)

    return PacketHeader((raw[0] << 16) | (raw[1] << 8) | raw[2])


def extract_payload(value: int, payload: bytes,
                    offset: int | None = None) -> dict[str, Any]:
    """Decode the fields present in a payload into a dict of name -> value."""
    expected = payload_length(value)
    if len(payload) < expected:
        raise TruncatedPayload(
            f"truncated payload: {len(payload)} of {expected} bytes",
            expected, len(payload), offset)

    result: dict[str, Any] = {}
    for f in resolve_fields(value):
        end = f.offset + f.width
        if end > len(payload):
            raise LayoutError(
                f"{f.name} at bytes {f.offset}..{end} lies outside "
                f"a {len(payload)} byte payload",
                f.name, end, len(payload), offset)
        result[f.name] = f.decode(payload[f.offset:end])
    return result


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def encode_header(flags: int, delta_time: int) -> bytes:
    """Encode a header.  The type nibble is not validated."""
    if not 0 <= delta_time <= DELTA_TIME_MASK:
        raise ValueError(f"delta_time {delta_time} does not fit in 12 bits")
    value = (int(flags) & FLAG_MASK) | delta_time
    return value.to_bytes(HEADER_SIZE, "big")


def build_packet(flags: int, delta_time: int, **values: Any) -> bytes:
    """Build a packet from header flags and field values.

    Counted fields without a value are zero-filled.
    """
    value = int(flags) & FLAG_MASK
    payload = bytearray(payload_length(value))

    for name, v in values.items():
        f = FIELDS_BY_NAME.get(name)
        if f is None:
            raise ValueError(f"unknown field: {name}")
        if v is None:
            continue
        if not value & f.present_if:
            raise ValueError(f"{name} needs the {f.present_if.name} flag")
        if f.offset + f.width > len(payload):
            raise ValueError(f"{name} lies outside a {len(payload)} byte payload")
        payload[f.offset:f.offset + f.width] = f.encode(v)

    return encode_header(value, delta_time) + bytes(payload)
