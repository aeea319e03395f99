"""Exceptions raised by flightlog."""

from __future__ import annotations


class FlightLogError(Exception):
    """Base class for everything flightlog raises."""


class PreambleError(FlightLogError):
    """The log file has no recognisable data region."""


class DecodeError(FlightLogError):
    """A packet could not be decoded.  Terminal for the whole stream."""

    def __init__(self, message: str, offset: int | None = None):
        super().__init__(message)
        self.offset = offset


class TruncatedHeader(DecodeError):
    """One or two header bytes left at the end of the data."""


class InvalidHeader(DecodeError):
    """Header type nibble is not one the flight computer writes."""

    def __init__(self, message: str, header_byte: int, offset: int | None = None):
        super().__init__(message, offset)
        self.header_byte = header_byte


class TruncatedPayload(DecodeError):
    """Fewer payload bytes left than the header asks for."""

    def __init__(self, message: str, expected: int, available: int,
                 offset: int | None = None):
        super().__init__(message, offset)
        self.expected = expected
        self.available = available


class LayoutError(DecodeError):
    """A field the header marks present lies outside the payload.

    The payload holds every byte the header asks for, but the fixed field
    offsets do not fit it, e.g. TEMP without PRES puts altitude past the end.
    """

    def __init__(self, message: str, field: str, end: int, available: int,
                 offset: int | None = None):
        super().__init__(message, offset)
        self.field = field
        self.end = end
        self.available = available
