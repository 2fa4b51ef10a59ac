"""Synthetic flight data with a known (bad) tune.

Simulates a 5" freestyle quad:
- Roll: P too high  -> ~28% overshoot on every step
- Pitch: D too low  -> ~18% overshoot with slow, ringing settle
- Yaw: sluggish     -> first-order response, ~140ms rise time

Strategy: gyro = setpoint convolved with the impulse response of a designed
step response, so the analyzers see exactly the shape we design.  PID terms
and motor outputs are derived from setpoint/gyro with realistic magnitudes.
"""
import csv
import logging
from dataclasses import dataclass

import numpy as np
from scipy.signal import butter, sosfilt

from stepscope.models import BlackboxFlightData, TimeSeries

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────
# Response design
# ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AxisResponse:
    """Designed closed-loop response of one axis."""
    overshoot_pct: float
    rise_ms: float
    first_order: bool = False


DEFAULT_RESPONSES = (
    AxisResponse(overshoot_pct=28.0, rise_ms=12.0),
    AxisResponse(overshoot_pct=18.0, rise_ms=50.0),
    AxisResponse(overshoot_pct=0.0, rise_ms=140.0, first_order=True),
)

# (start_s, end_s, axis, deg/s); holds are long enough for both edges to count
DEFAULT_STICK_EVENTS = (
    (0.5, 1.1, 0, 300.0),
    (1.8, 2.4, 0, -250.0),
    (3.0, 3.6, 0, 350.0),
    (4.2, 4.8, 1, 250.0),
    (5.5, 6.1, 1, -300.0),
    (6.8, 7.4, 1, 280.0),
    (8.0, 8.8, 2, 200.0),
    (9.4, 10.2, 2, -220.0),
    (10.8, 11.6, 2, 180.0),
)


def make_impulse_response(sample_rate, response: AxisResponse, length_ms=500.0) -> np.ndarray:
    """Impulse response whose cumulative sum is the designed step response.

    Second-order model:
      step(t) = 1 - e^{-sigma*t} * (cos(wd*t) + (sigma/wd)*sin(wd*t))
    First-order model:
      step(t) = 1 - e^{-t/tau}, tau chosen so 90% is reached at rise_ms
    """
    n = int(length_ms / 1000.0 * sample_rate)
    t = np.arange(n) / sample_rate
    rise_s = response.rise_ms / 1000.0

    if response.first_order:
        tau = rise_s / np.log(10.0)
        step = 1.0 - np.exp(-t / tau)
    else:
        # Damping ratio from overshoot
        if response.overshoot_pct > 0.5:
            log_os = np.log(response.overshoot_pct / 100.0)
            zeta = -log_os / np.sqrt(np.pi ** 2 + log_os ** 2)
        else:
            zeta = 1.0
        zeta = np.clip(zeta, 0.05, 0.999)

        omega_n = 1.8 / rise_s
        sigma = zeta * omega_n
        omega_d = omega_n * np.sqrt(max(1.0 - zeta ** 2, 1e-10))
        step = 1.0 - np.exp(-sigma * t) * (
            np.cos(omega_d * t) + (sigma / omega_d) * np.sin(omega_d * t)
        )

    return np.diff(step, prepend=0.0)


def generate_setpoints(n, sample_rate, events) -> list:
    """Square stick steps per axis plus a flat-ish throttle channel."""
    setpoints = [np.zeros(n) for _ in range(3)]
    for start_s, end_s, axis, amp in events:
        s_idx = int(start_s * sample_rate)
        e_idx = min(int(end_s * sample_rate), n)
        setpoints[axis][s_idx:e_idx] += amp

    t = np.arange(n) / sample_rate
    throttle = np.clip(1400.0 + 150.0 * np.sin(2 * np.pi * 0.2 * t), 1000, 2000)
    return setpoints + [throttle]


# ──────────────────────────────────────────────────────────────────────
# PID term reconstruction
# ──────────────────────────────────────────────────────────────────────

def compute_pid_terms(setpoint, gyro, kp, ki, kd, kf, sample_rate, rng=None, d_noise_amp=0.0):
    """PID term arrays with Betaflight-like magnitudes.

    - P-term: error scaled to roughly +/-100
    - I-term: slow clipped accumulator
    - D-term: derivative of gyro (D on measurement), lowpassed like BF does
    - F-term: derivative of setpoint, spikes at stick transitions
    """
    n = len(setpoint)
    error = setpoint - gyro
    dt = 1.0 / sample_rate

    p_term = kp * error * 0.004

    i_term = np.clip(np.cumsum(ki * error * dt * 0.00002), -50.0, 50.0)

    d_term = np.zeros(n)
    if kd > 0:
        d_term[1:] = -kd * np.diff(gyro) * 0.02
        nyq = sample_rate / 2.0
        sos = butter(2, min(150.0, nyq * 0.9) / nyq, btype="low", output="sos")
        d_term = sosfilt(sos, d_term)
    if rng is not None and d_noise_amp > 0:
        d_term = d_term + d_noise_amp * rng.normal(0, 1, size=n)

    f_term = np.zeros(n)
    f_term[1:] = kf * np.diff(setpoint) * 0.002

    return p_term, i_term, d_term, f_term


def mix_motors(throttle, roll_pid, pitch_pid, yaw_pid) -> list:
    """Quad-X mixer, clipped to the 1000-2000 output range."""
    mix = 0.5
    motors = [
        throttle + (+roll_pid - pitch_pid - yaw_pid) * mix,
        throttle + (+roll_pid + pitch_pid + yaw_pid) * mix,
        throttle + (-roll_pid - pitch_pid + yaw_pid) * mix,
        throttle + (-roll_pid + pitch_pid - yaw_pid) * mix,
    ]
    return [np.clip(m, 1000, 2000) for m in motors]


# ──────────────────────────────────────────────────────────────────────
# Public API
# ──────────────────────────────────────────────────────────────────────

def generate_demo_flight(
    sample_rate: int = 2000,
    duration_s: float = 12.0,
    responses=DEFAULT_RESPONSES,
    events=DEFAULT_STICK_EVENTS,
    noise_dps: float = 1.0,
    seed: int = 42,
) -> BlackboxFlightData:
    """Build a complete synthetic log.

    Parameters
    ----------
    sample_rate : int
        Log rate in Hz.
    duration_s : float
        Log length in seconds.
    responses : sequence of 3 AxisResponse
        Designed response for roll, pitch, yaw.
    events : sequence of (start_s, end_s, axis, deg_s)
        Square stick inputs.
    noise_dps : float
        Gaussian gyro noise (deg/s, 1 sigma).
    seed : int
        RNG seed, for reproducible logs.
    """
    rng = np.random.default_rng(seed)
    n = int(duration_s * sample_rate)
    time_s = np.arange(n) / sample_rate

    setpoints = generate_setpoints(n, sample_rate, events)

    gyro = []
    for axis in range(3):
        impulse = make_impulse_response(sample_rate, responses[axis])
        clean = np.convolve(setpoints[axis], impulse, mode="full")[:n]
        gyro.append(clean + rng.normal(0, noise_dps, size=n))

    gains = ((85, 65, 30, 150), (62, 60, 12, 140), (55, 25, 0, 80))
    terms = [
        compute_pid_terms(setpoints[axis], gyro[axis], *gains[axis], sample_rate, rng=rng)
        for axis in range(3)
    ]

    totals = [sum(axis_terms) for axis_terms in terms]
    motors = mix_motors(setpoints[3], *totals)

    def _series(values) -> TimeSeries:
        return TimeSeries(time=time_s, values=np.asarray(values, dtype=np.float64))

    logger.debug("demo flight: %d samples at %d Hz, %d stick events", n, sample_rate, len(events))
    return BlackboxFlightData(
        gyro=[_series(g) for g in gyro],
        setpoint=[_series(s) for s in setpoints],
        pid_p=[_series(terms[a][0]) for a in range(3)],
        pid_i=[_series(terms[a][1]) for a in range(3)],
        pid_d=[_series(terms[a][2]) for a in range(3)],
        pid_f=[_series(terms[a][3]) for a in range(3)],
        motor=[_series(m) for m in motors],
        sample_rate_hz=float(sample_rate),
        duration_seconds=(n - 1) / sample_rate if n > 1 else 0.0,
        frame_count=n,
    )


CSV_HEADER = [
    "loopIteration", "time (us)",
    "axisP[0]", "axisP[1]", "axisP[2]",
    "axisI[0]", "axisI[1]", "axisI[2]",
    "axisD[0]", "axisD[1]", "axisD[2]",
    "axisF[0]", "axisF[1]", "axisF[2]",
    "setpoint[0]", "setpoint[1]", "setpoint[2]", "setpoint[3]",
    "gyroADC[0]", "gyroADC[1]", "gyroADC[2]",
    "motor[0]", "motor[1]", "motor[2]", "motor[3]",
]


def write_demo_csv(data: BlackboxFlightData, path: str) -> None:
    """Write flight data in blackbox_decode CSV layout."""
    channels = (
        data.pid_p + data.pid_i + data.pid_d + data.pid_f
        + data.setpoint + data.gyro + data.motor[:4]
    )
    columns = [np.asarray(c.values) for c in channels]

    with open(path, "w", newline="") as fh:
        writer = csv.writer(fh)
        writer.writerow(CSV_HEADER)
        for i in range(data.frame_count):
            time_us = int(round(i * 1_000_000 / data.sample_rate_hz))
            writer.writerow([i, time_us] + [f"{col[i]:.2f}" for col in columns])
