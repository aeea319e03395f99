"""flightlog command-line tool."""

from __future__ import annotations

import argparse
import logging
import os
import sys

from .decoder import Measurement, RecordStream, StreamState
from .errors import FlightLogError
from .packet import event_names
from .storage import (
    DEFAULT_CSV_NAME, DEFAULT_LOG_NAME, DEFAULT_SKIP_LINES,
    CsvWriter, LogReader,
)

EXIT_BAD_INPUT = 1
EXIT_DECODE_ERROR = 2


def _format_measurement(m: Measurement) -> str:
    parts = []
    if m.acc is not None:
        parts.append(f"acc=({m.acc.x}, {m.acc.y}, {m.acc.z})")
    if m.gyro is not None:
        parts.append(f"gyro=({m.gyro.x}, {m.gyro.y}, {m.gyro.z})")
    if m.pressure is not None:
        parts.append(f"pressure={m.pressure}")
    if m.temperature is not None:
        parts.append(f"temperature={m.temperature}")
    if m.altitude is not None:
        parts.append(f"altitude={m.altitude:.3f}")
    if m.events:
        parts.append(f"events={'|'.join(event_names(m.events))}")
    return f"[{m.timestamp_abs:10d} +{m.timestamp_delta:4d}] {', '.join(parts)}"


def _open_reader(args: argparse.Namespace) -> LogReader:
    return LogReader(args.file, skip_lines=args.skip_lines,
                     data_offset=args.offset)


def _report(stream: RecordStream | None) -> int:
    """Print the terminal stream state to stderr; return the exit status."""
    if stream is not None and stream.state is StreamState.FAILED:
        print(f"Decoding stopped after {stream.stats.records} records: "
              f"{stream.error}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    return 0


def cmd_convert(args: argparse.Namespace) -> int:
    """Convert a log file to CSV."""
    with _open_reader(args) as reader, \
            CsvWriter(args.output, header=args.header,
                      hold_last=not args.no_hold) as writer:
        rows = writer.write_all(reader.records())
        stream = reader.stream

    print(f"Wrote {rows} records to {args.output}")
    return _report(stream)


def cmd_dump(args: argparse.Namespace) -> int:
    """Dump a log file to stdout."""
    with _open_reader(args) as reader:
        for m in reader.records():
            print(_format_measurement(m))
        return _report(reader.stream)


def cmd_info(args: argparse.Namespace) -> int:
    """Print summary info about a log file."""
    file_size = os.path.getsize(args.file)

    with _open_reader(args) as reader:
        first: Measurement | None = None
        last: Measurement | None = None
        for m in reader.records():
            if first is None:
                first = m
            last = m
        stream = reader.stream
        data_start = reader.data_start

    assert stream is not None
    stats = stream.stats

    print(f"File:       {args.file}")
    print(f"Size:       {file_size:,} bytes")
    print(f"Data start: {data_start}")
    print(f"Records:    {stats.records:,}")
    print(f"Bytes read: {stats.bytes_read:,}")
    print(f"Long/short: {stats.long_records:,} / {stats.short_records:,}")
    if first is not None and last is not None:
        print(f"Time range: {first.timestamp_abs} - {last.timestamp_abs}")
    else:
        print("Time range: (empty)")
    events = event_names(stats.events_seen)
    print(f"Events:     {', '.join(events) if events else '(none)'}")
    print(f"Status:     {stream.state.value}")
    return _report(stream)


def cmd_record(args: argparse.Namespace) -> int:
    """Capture a raw log from the flight computer's serial port."""
    from .transport import SerialTransport

    total = 0
    with SerialTransport.open(args.serial, baudrate=args.baud,
                              idle_timeout=args.idle) as transport, \
            open(args.output, "wb") as out:
        if args.send:
            transport.send_command(args.send)
        try:
            while True:
                data = transport.read(4096)
                if not data:
                    break
                out.write(data)
                total += len(data)
        except KeyboardInterrupt:
            pass

    print(f"Wrote {total:,} bytes to {args.output}")
    return 0


def _add_input_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("file", nargs="?", default=DEFAULT_LOG_NAME,
                   help=f"Path to the raw log file (default {DEFAULT_LOG_NAME})")
    p.add_argument("--skip-lines", type=int, default=DEFAULT_SKIP_LINES,
                   help="Text lines before the packet data")
    p.add_argument("--offset", type=int, default=None,
                   help="Byte offset of the packet data (skips the preamble search)")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="flightlog",
                                     description="Flight computer log tool")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # convert
    p_convert = sub.add_parser("convert", help="Convert a log file to CSV")
    _add_input_args(p_convert)
    p_convert.add_argument("-o", "--output", default=DEFAULT_CSV_NAME,
                           help=f"CSV output path (default {DEFAULT_CSV_NAME})")
    p_convert.add_argument("--header", action="store_true",
                           help="Write a column header row")
    p_convert.add_argument("--no-hold", action="store_true",
                           help="Leave absent fields empty instead of repeating "
                                "the last value")

    # dump
    p_dump = sub.add_parser("dump", help="Print decoded records")
    _add_input_args(p_dump)

    # info
    p_info = sub.add_parser("info", help="Show summary info about a log file")
    _add_input_args(p_info)

    # record
    p_record = sub.add_parser("record", help="Capture a raw log over serial")
    p_record.add_argument("--serial", required=True,
                          help="Serial port (e.g. /dev/ttyUSB0)")
    p_record.add_argument("--baud", type=int, default=115200, help="Baud rate")
    p_record.add_argument("--send", default=None,
                          help="Command to send before capturing (e.g. read)")
    p_record.add_argument("--idle", type=float, default=None,
                          help="Stop after this many seconds without data "
                               "(default: run until interrupted)")
    p_record.add_argument("output", help="Raw log output path")

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(name)s: %(message)s")

    commands = {
        "convert": cmd_convert,
        "dump": cmd_dump,
        "info": cmd_info,
        "record": cmd_record,
    }
    if args.command not in commands:
        parser.print_help()
        return 0

    try:
        return commands[args.command](args)
    except (OSError, FlightLogError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT


if __name__ == "__main__":
    sys.exit(main())
