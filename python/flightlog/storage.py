"""Flight computer log file reading and CSV output.

Log file layout (as saved from the flight computer's serial port):
  [text line: the "read" command echoed back]
  [text line: the flight computer's reply]
  [NUL padding, any length]
  [packet 0]
  [packet 1]
  ...

Packet data never starts with a NUL byte, so the data region begins at the
first non-NUL byte after the preamble lines.  When that search is wrong for
a given capture, pass the start offset explicitly.
"""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator

from .decoder import Measurement, RecordStream
from .errors import PreambleError

logger = logging.getLogger(__name__)

DEFAULT_LOG_NAME = "UMSATS_ROCKET.log"
DEFAULT_CSV_NAME = "flightComputer.csv"
DEFAULT_SKIP_LINES = 2

COLUMNS = (
    "timestamp_abs",
    "acc_x", "acc_y", "acc_z",
    "gyro_x", "gyro_y", "gyro_z",
    "pressure", "temperature", "altitude",
    "events",
)


# ---------------------------------------------------------------------------
# Preamble
# ---------------------------------------------------------------------------

def find_data_start(f: BinaryIO, skip_lines: int = DEFAULT_SKIP_LINES,
                    skip_nulls: bool = True) -> int:
    """Advance *f* past the text preamble and NUL padding.

    Returns the file offset of the first packet byte; *f* is left there.
    """
    start = f.tell()
    for i in range(skip_lines):
        line = f.readline()
        if not line.endswith(b"\n"):
            raise PreambleError(
                f"expected {skip_lines} preamble lines, found {i}")
        logger.debug("skipped preamble line: %r", line)

    if skip_nulls:
        while True:
            b = f.read(1)
            if b != b"\x00":
                break
        if b:
            f.seek(-1, io.SEEK_CUR)

    pos = f.tell()
    logger.info("data starts at byte %d (%d preamble bytes skipped)",
                pos, pos - start)
    return pos


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------

class LogReader:
    """Reads measurements from a raw flight computer log file."""

    def __init__(self, path: str | Path, skip_lines: int = DEFAULT_SKIP_LINES,
                 data_offset: int | None = None, skip_nulls: bool = True):
        self._path = Path(path)
        self._skip_lines = skip_lines
        self._data_offset = data_offset
        self._skip_nulls = skip_nulls
        self._f: BinaryIO | None = None
        self._data_start: int = 0
        self._stream: RecordStream | None = None

    def open(self) -> int:
        """Open the file and locate the data region.  Returns its offset."""
        self._f = open(self._path, "rb")
        try:
            if self._data_offset is not None:
                self._data_start = self._data_offset
            else:
                self._data_start = find_data_start(
                    self._f, self._skip_lines, self._skip_nulls)
        except Exception:
            self.close()
            raise
        return self._data_start

    @property
    def path(self) -> Path:
        return self._path

    @property
    def data_start(self) -> int:
        return self._data_start

    @property
    def stream(self) -> RecordStream | None:
        """The stream behind the last records() call, for state and stats."""
        return self._stream

    def records(self) -> Iterator[Measurement]:
        """Iterate over the measurements in the data region.

        Each call restarts from the beginning of the data with a fresh
        stream (and so a fresh clock) on its own file handle, so several
        iterators can be live at once.
        """
        if self._f is None:
            self.open()

        with open(self._path, "rb") as f:
            f.seek(self._data_start)
            self._stream = RecordStream(f)
            yield from self._stream

    def close(self) -> None:
        if self._f:
            self._f.close()
            self._f = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()


# ---------------------------------------------------------------------------
# CSV writer
# ---------------------------------------------------------------------------

_HELD_DEFAULTS = {
    "acc": (0, 0, 0),
    "gyro": (0, 0, 0),
    "pressure": 0,
    "temperature": 0,
    "altitude": 0.0,
}


class CsvWriter:
    """Writes measurements as CSV rows in COLUMNS order.

    With hold_last, a field a packet does not carry repeats the last value
    written for it (0 before the first one).  Otherwise its cells are empty.
    """

    def __init__(self, path: str | Path, header: bool = False,
                 hold_last: bool = True):
        self._f = open(path, "w", newline="")
        self._writer = csv.writer(self._f, lineterminator="\n")
        self._hold_last = hold_last
        self._last = dict(_HELD_DEFAULTS)
        self.rows = 0
        if header:
            self._writer.writerow(COLUMNS)

    def write(self, m: Measurement) -> None:
        self._writer.writerow(self.row(m))
        self.rows += 1

    def write_all(self, measurements: Iterable[Measurement]) -> int:
        """Write every measurement; returns the number of rows written."""
        start = self.rows
        for m in measurements:
            self.write(m)
        return self.rows - start

    def row(self, m: Measurement) -> list[str]:
        values = {}
        for name in _HELD_DEFAULTS:
            v = getattr(m, name)
            if v is None and self._hold_last:
                v = self._last[name]
            elif v is not None:
                self._last[name] = v
            values[name] = v

        row = [str(m.timestamp_abs)]
        for name in ("acc", "gyro"):
            vec = values[name]
            row.extend(("", "", "") if vec is None else (str(c) for c in vec))
        row.append(_fmt(values["pressure"]))
        row.append(_fmt(values["temperature"]))
        alt = values["altitude"]
        row.append("" if alt is None else f"{alt:f}")
        row.append(str(m.events))
        return row

    def flush(self) -> None:
        self._f.flush()

    def close(self) -> None:
        self._f.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def _fmt(v: int | None) -> str:
    return "" if v is None else str(v)


def write_log(path: str | Path, measurements: Iterable[Measurement],
              header: bool = False, hold_last: bool = True) -> int:
    """Write measurements to a CSV file.  Returns the number of rows."""
    with CsvWriter(path, header=header, hold_last=hold_last) as writer:
        return writer.write_all(measurements)
