"""flightlog - Flight computer telemetry log decoder and tooling."""

from .errors import (
    FlightLogError, DecodeError, TruncatedHeader, InvalidHeader,
    TruncatedPayload, LayoutError, PreambleError,
)
from .packet import (
    PacketFlag, PacketHeader, FieldDef, Vector3, FIELD_TABLE,
    decode_header, resolve_fields, payload_length, extract_payload,
    event_byte, event_names, encode_header, build_packet,
)
from .decoder import (
    Measurement, DecodeStats, DecodeResult, RecordStream, StreamState,
    TimestampAccumulator, decode_log,
)
from .storage import LogReader, CsvWriter, find_data_start, write_log
from .capture import Capture

__all__ = [
    "FlightLogError", "DecodeError", "TruncatedHeader", "InvalidHeader",
    "TruncatedPayload", "LayoutError", "PreambleError",
    "PacketFlag", "PacketHeader", "FieldDef", "Vector3", "FIELD_TABLE",
    "decode_header", "resolve_fields", "payload_length", "extract_payload",
    "event_byte", "event_names", "encode_header", "build_packet",
    "Measurement", "DecodeStats", "DecodeResult", "RecordStream",
    "StreamState", "TimestampAccumulator", "decode_log",
    "LogReader", "CsvWriter", "find_data_start", "write_log",
    "Capture",
]
