"""CSV flight-log loader and BBL header readers for StepScope.

Two ingestion paths:
1. ``parse_csv_log`` -- parse a blackbox_decode CSV into BlackboxFlightData
2. ``parse_headers`` -- extract H-line key:value pairs from raw BBL/BFL files

The header dict feeds ``extract_flight_pids`` (gains active during the
logged flight) and ``filters_from_headers`` (filter configuration).
"""
from __future__ import annotations

import csv
import logging
from typing import Dict, Optional

import numpy as np

from stepscope.models import (
    BlackboxFlightData,
    FilterSettings,
    PIDConfiguration,
    PIDTerm,
    TimeSeries,
)

logger = logging.getLogger(__name__)

_DEFAULT_SAMPLE_RATE = 1000

# ---------------------------------------------------------------------------
# CSV parsing (from blackbox_decode output)
# ---------------------------------------------------------------------------

def parse_csv_log(csv_path: str) -> BlackboxFlightData:
    """Parse a blackbox_decode CSV into :class:`BlackboxFlightData`.

    Expected columns include ``time (us)``, ``axisP[0..2]``,
    ``axisI[0..2]``, ``axisD[0..2]``, ``axisF[0..2]``, ``setpoint[0..3]``,
    ``gyroADC[0..2]`` and ``motor[0..3]``.  Missing columns read as zeros.

    Sample rate is estimated from the median time delta.
    """
    with open(csv_path, "r", newline="") as fh:
        reader = csv.DictReader(fh)
        fieldnames = [name.strip() for name in (reader.fieldnames or [])]
        reader.fieldnames = fieldnames
        rows = list(reader)

    n = len(rows)
    if n == 0:
        raise ValueError(f"CSV file is empty: {csv_path}")

    def _col(name: str) -> np.ndarray:
        try:
            return np.array([float(r[name]) for r in rows], dtype=np.float64)
        except (KeyError, TypeError, ValueError):
            return np.zeros(n, dtype=np.float64)

    # Time array (microseconds -> seconds)
    time_us = _col("time (us)")
    time_s = time_us - time_us[0]
    time_s = time_s / 1_000_000.0

    if n > 1:
        dts = np.diff(time_us)
        dts = dts[dts > 0]
        median_dt = float(np.median(dts)) if len(dts) > 0 else 0.0
        sample_rate = int(round(1_000_000.0 / median_dt)) if median_dt > 0 else _DEFAULT_SAMPLE_RATE
    else:
        sample_rate = _DEFAULT_SAMPLE_RATE

    duration_s = float(time_s[-1]) if n > 1 else 0.0

    def _series(name: str) -> TimeSeries:
        return TimeSeries(time=time_s, values=_col(name))

    motor_count = sum(1 for name in fieldnames if name.startswith("motor["))
    logger.debug("%s: %d rows at %d Hz, %d motor(s)", csv_path, n, sample_rate, motor_count)

    return BlackboxFlightData(
        gyro=[_series(f"gyroADC[{i}]") for i in range(3)],
        setpoint=[_series(f"setpoint[{i}]") for i in range(4)],
        pid_p=[_series(f"axisP[{i}]") for i in range(3)],
        pid_i=[_series(f"axisI[{i}]") for i in range(3)],
        pid_d=[_series(f"axisD[{i}]") for i in range(3)],
        pid_f=[_series(f"axisF[{i}]") for i in range(3)],
        motor=[_series(f"motor[{m}]") for m in range(max(motor_count, 4))],
        sample_rate_hz=float(sample_rate),
        duration_seconds=duration_s,
        frame_count=n,
    )


# ---------------------------------------------------------------------------
# BBL header parsing
# ---------------------------------------------------------------------------

def parse_headers(bbl_path: str) -> Dict[str, str]:
    """Parse BBL file header lines (``H key:value`` format) into a dict.

    Parsing stops at the first line that does not start with ``H ``
    (i.e. the binary frame data).
    """
    headers: Dict[str, str] = {}
    with open(bbl_path, "r", errors="replace") as fh:
        for line in fh:
            line = line.rstrip("\n\r")
            if not line.startswith("H "):
                break
            key, sep, value = line[2:].partition(":")
            if not sep:
                continue
            headers[key.strip()] = value.strip()
    return headers


# ---------------------------------------------------------------------------
# PID / filter extraction from headers
# ---------------------------------------------------------------------------

def extract_flight_pids(headers: Dict[str, str]) -> Optional[PIDConfiguration]:
    """Gains active during the logged flight, from ``rollPID`` etc.

    Betaflight writes each axis as ``"P,I,D"``.  Returns None when any of
    the three axes is missing.  Unparseable parts read as 0.
    """
    raw = [headers.get(f"{axis}PID") for axis in ("roll", "pitch", "yaw")]
    if not all(raw):
        return None

    def _term(value: str) -> PIDTerm:
        parts = []
        for part in value.split(",")[:3]:
            try:
                parts.append(float(part))
            except ValueError:
                parts.append(0.0)
        parts += [0.0] * (3 - len(parts))
        return PIDTerm(p=parts[0], i=parts[1], d=parts[2])

    roll, pitch, yaw = (_term(v) for v in raw)
    return PIDConfiguration(roll=roll, pitch=pitch, yaw=yaw)


def filters_from_headers(headers: Dict[str, str]) -> FilterSettings:
    """Extract :class:`FilterSettings` from parsed BBL headers.

    Missing keys fall back to the :class:`FilterSettings` defaults.
    """
    defaults = FilterSettings()

    def _float(key: str, default: float) -> float:
        try:
            return float(headers[key])
        except (KeyError, ValueError):
            return default

    def _int(key: str, default: int) -> int:
        try:
            return int(headers[key])
        except (KeyError, ValueError):
            return default

    return FilterSettings(
        gyro_lpf1_static_hz=_float("gyro_lpf1_static_hz", defaults.gyro_lpf1_static_hz),
        gyro_lpf2_static_hz=_float("gyro_lpf2_static_hz", defaults.gyro_lpf2_static_hz),
        dterm_lpf1_static_hz=_float("dterm_lpf1_static_hz", defaults.dterm_lpf1_static_hz),
        dterm_lpf2_static_hz=_float("dterm_lpf2_static_hz", defaults.dterm_lpf2_static_hz),
        dyn_notch_min_hz=_float("dyn_notch_min_hz", defaults.dyn_notch_min_hz),
        dyn_notch_max_hz=_float("dyn_notch_max_hz", defaults.dyn_notch_max_hz),
        dyn_notch_count=_int("dyn_notch_count", defaults.dyn_notch_count),
        dyn_notch_q=_int("dyn_notch_q", defaults.dyn_notch_q),
    )
