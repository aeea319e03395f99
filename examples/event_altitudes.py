#!/usr/bin/env python3
"""Decode a flight log and print the altitude trace around each event.

Usage:
    python examples/event_altitudes.py UMSATS_ROCKET.log
"""

import sys

from flightlog.capture import Capture
from flightlog.packet import EVENT_FLAGS

path = sys.argv[1] if len(sys.argv) > 1 else "UMSATS_ROCKET.log"
cap = Capture(path)

ts, alt = cap.series("altitude")
print(f"{len(cap)} records, {len(alt)} with altitude")
if cap.stream is not None and cap.stream.error is not None:
    print(f"stopped early: {cap.stream.error}")

for flag in EVENT_FLAGS:
    for t in cap.event_times(flag):
        near = (ts >= t) & (ts <= t + 1000)
        if near.any():
            print(f"{flag.name:14s} t={t:8d} altitude={alt[near][0]:10.2f}")
        else:
            print(f"{flag.name:14s} t={t:8d}")
