"""Columnar numpy view of a decoded flight log.

Capture collects measurements per channel so they can be pulled out as
(timestamps, values) arrays for plotting and analysis.  A channel only
holds samples from packets that carried it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import numpy as np

from .decoder import Measurement, RecordStream
from .packet import EVENT_FLAGS, EVENT_SHIFT, PacketFlag
from .storage import LogReader

# channel -> (dtype, components)
CHANNELS: dict[str, tuple[type, int]] = {
    "acc": (np.int16, 3),
    "gyro": (np.int16, 3),
    "pressure": (np.uint32, 1),
    "temperature": (np.int32, 1),
    "altitude": (np.float32, 1),
    "events": (np.uint8, 1),
}

AXES = {"x": 0, "y": 1, "z": 2}


class Capture:
    """Per-channel time series of a flight log.

    Capture(path) decodes a log file; Capture() starts empty and is filled
    with append()/extend().
    """

    def __init__(self, path: str | Path | None = None, **reader_kwargs):
        self._times: dict[str, list[int]] = {name: [] for name in CHANNELS}
        self._values: dict[str, list] = {name: [] for name in CHANNELS}
        self.stream: RecordStream | None = None

        if path is not None:
            with LogReader(path, **reader_kwargs) as reader:
                self.extend(reader.records())
                self.stream = reader.stream

    @classmethod
    def from_measurements(cls, measurements: Iterable[Measurement]) -> Capture:
        cap = cls()
        cap.extend(measurements)
        return cap

    def append(self, m: Measurement) -> None:
        for name in CHANNELS:
            v = getattr(m, name)
            if v is None:
                continue
            self._times[name].append(m.timestamp_abs)
            self._values[name].append(v)

    def extend(self, measurements: Iterable[Measurement]) -> None:
        for m in measurements:
            self.append(m)

    def __len__(self) -> int:
        # Every measurement carries an event byte.
        return len(self._times["events"])

    def count(self, channel: str) -> int:
        return len(self._times[_check_channel(channel)])

    def series(self, channel: str, axis: str | None = None,
               t0: int | None = None, t1: int | None = None,
               ) -> tuple[np.ndarray, np.ndarray]:
        """Return (timestamps, values) for one channel.

        Vector channels (acc, gyro) give an (N, 3) array unless an axis
        ("x", "y" or "z") is selected.  t0/t1 bound the timestamps
        inclusively.
        """
        dtype, components = CHANNELS[_check_channel(channel)]
        ts = np.asarray(self._times[channel], dtype=np.uint64)
        values = np.asarray(self._values[channel], dtype=dtype)

        if components > 1:
            values = values.reshape(-1, components)
            if axis is not None:
                if axis not in AXES:
                    raise ValueError(f"unknown axis: {axis!r}")
                values = values[:, AXES[axis]]
        elif axis is not None:
            raise ValueError(f"{channel} has no axes")

        if t0 is not None or t1 is not None:
            mask = np.ones(len(ts), dtype=bool)
            if t0 is not None:
                mask &= ts >= t0
            if t1 is not None:
                mask &= ts <= t1
            ts = ts[mask]
            values = values[mask]

        return ts, values

    def event_times(self, flag: PacketFlag) -> np.ndarray:
        """Timestamps of every packet that carried an event flag."""
        if flag not in EVENT_FLAGS:
            raise ValueError(f"{flag!r} is not an event flag")
        ts, events = self.series("events")
        return ts[(events & (int(flag) >> EVENT_SHIFT)) != 0]

    def time_range(self) -> tuple[int, int] | None:
        times = self._times["events"]
        if not times:
            return None
        return times[0], times[-1]


def _check_channel(channel: str) -> str:
    if channel not in CHANNELS:
        raise KeyError(f"unknown channel: {channel!r}")
    return channel
