"""Tuning thresholds, safety bounds and Betaflight defaults.

All analysis heuristics read their numbers from here so that a threshold
only ever changes in one place.
"""
from dataclasses import dataclass

from stepscope.models import FilterSettings, FlightStyle, PIDConfiguration, PIDTerm


# ── Step detection ───────────────────────────────────────────────────────────

STEP_DERIVATIVE_THRESHOLD = 500.0     # deg/s per second
STEP_EDGE_CONTINUATION = 0.3          # fraction of the threshold that extends an edge
STEP_MIN_MAGNITUDE_DEG_S = 100.0
STEP_RESPONSE_WINDOW_MS = 300.0
STEP_COOLDOWN_MS = 100.0
STEP_MIN_HOLD_MS = 50.0
STEP_HOLD_TOLERANCE = 0.5             # fraction of |magnitude|

# ── Step response metrics ────────────────────────────────────────────────────

SETTLING_TOLERANCE = 0.02             # +/-2% band around the reference
RISE_TIME_FRACTION = 0.9
LATENCY_THRESHOLD = 0.05              # fraction of |magnitude|
STEADY_STATE_TAIL_START = 0.8         # last 20% of the window
NEAR_ZERO_GUARD = 1.0                 # deg/s

# rise == 0 with overshoot above this is a detection artifact
DEGENERATE_OVERSHOOT_PERCENT = 500.0

FF_OVERSHOOT_THRESHOLD_PERCENT = 10.0

# ── Cross-axis coupling ──────────────────────────────────────────────────────

COUPLING_NONE_THRESHOLD = 0.15
COUPLING_SIGNIFICANT_THRESHOLD = 0.4
COUPLING_MIN_SAMPLES = 4

# ── PID rules ────────────────────────────────────────────────────────────────

PID_STEP = 5
P_GAIN_RANGE = (20, 120)
I_GAIN_RANGE = (30, 120)
D_GAIN_RANGE = (15, 80)
D_HIGH_FRACTION = 0.6                 # D at/above 60% of max also allows a P cut
YAW_SEVERE_SCALE = 1.5
YAW_SLUGGISH_SCALE = 1.5


@dataclass(frozen=True)
class PIDStyleThresholds:
    overshoot_ideal: float
    overshoot_max: float
    settling_max_ms: float
    ringing_max: int
    moderate_overshoot: float
    sluggish_rise_ms: float


PID_STYLE_THRESHOLDS = {
    FlightStyle.SMOOTH: PIDStyleThresholds(
        overshoot_ideal=3, overshoot_max=12, settling_max_ms=250,
        ringing_max=1, moderate_overshoot=8, sluggish_rise_ms=120,
    ),
    FlightStyle.BALANCED: PIDStyleThresholds(
        overshoot_ideal=10, overshoot_max=25, settling_max_ms=200,
        ringing_max=2, moderate_overshoot=15, sluggish_rise_ms=80,
    ),
    FlightStyle.AGGRESSIVE: PIDStyleThresholds(
        overshoot_ideal=18, overshoot_max=35, settling_max_ms=150,
        ringing_max=3, moderate_overshoot=25, sluggish_rise_ms=50,
    ),
}

# ── Filter rules ─────────────────────────────────────────────────────────────

GYRO_LPF1_RANGE = (75, 300)
DTERM_LPF1_RANGE = (70, 200)
HIGH_NOISE_GYRO_REDUCTION_HZ = 50
HIGH_NOISE_DTERM_REDUCTION_HZ = 20
LOW_NOISE_GYRO_INCREASE_HZ = 50
LOW_NOISE_DTERM_INCREASE_HZ = 20
RESONANCE_ACTION_THRESHOLD_DB = 12.0
RESONANCE_CUTOFF_MARGIN_HZ = 20
DYN_NOTCH_MARGIN_HZ = 20
DYN_NOTCH_RANGE = (50, 1000)

# ── Betaflight 4.4 defaults ──────────────────────────────────────────────────

DEFAULT_FILTER_SETTINGS = FilterSettings()

DEFAULT_PIDS = PIDConfiguration(
    roll=PIDTerm(p=45, i=80, d=30),
    pitch=PIDTerm(p=47, i=84, d=32),
    yaw=PIDTerm(p=45, i=80, d=0),
)
