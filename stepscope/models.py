"""Data models for StepScope."""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional
import numpy as np


AXIS_NAMES = ("roll", "pitch", "yaw")


class StepDirection(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class Impact(str, Enum):
    """What a recommended change mainly affects."""
    RESPONSE = "response"
    STABILITY = "stability"
    LATENCY = "latency"
    NOISE = "noise"
    BOTH = "both"


class Confidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CouplingRating(str, Enum):
    NONE = "none"
    MILD = "mild"
    SIGNIFICANT = "significant"


class NoiseLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NoisePeakType(str, Enum):
    FRAME_RESONANCE = "frame_resonance"
    MOTOR_HARMONIC = "motor_harmonic"
    ELECTRICAL = "electrical"
    UNKNOWN = "unknown"


class FlightStyle(str, Enum):
    """Pilot preference that selects the PID threshold table."""
    SMOOTH = "smooth"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"


# ── Flight data ──────────────────────────────────────────────────────────────

@dataclass(frozen=True, eq=False)
class TimeSeries:
    """Fixed-rate samples of one channel. ``time`` is in seconds."""
    time: np.ndarray
    values: np.ndarray

    def __post_init__(self):
        if len(self.time) != len(self.values):
            raise ValueError(
                f"time and values differ in length ({len(self.time)} != {len(self.values)})"
            )

    def __len__(self) -> int:
        return len(self.values)

    @classmethod
    def from_values(cls, values, sample_rate_hz: float) -> "TimeSeries":
        values = np.asarray(values, dtype=np.float64)
        return cls(time=np.arange(len(values)) / sample_rate_hz, values=values)


@dataclass(eq=False)
class BlackboxFlightData:
    """Complete decoded flight log.

    Axis order is roll (0), pitch (1), yaw (2).  ``setpoint`` carries a
    fourth entry for throttle.  All series share sample count and rate.
    """
    gyro: list                  # 3 x TimeSeries, filtered gyro (deg/s)
    setpoint: list              # 4 x TimeSeries, commanded rate (deg/s) + throttle
    pid_p: list                 # 3 x TimeSeries
    pid_i: list                 # 3 x TimeSeries
    pid_d: list                 # 3 x TimeSeries
    pid_f: list                 # 3 x TimeSeries, feedforward
    motor: list                 # one TimeSeries per motor
    sample_rate_hz: float
    duration_seconds: float
    frame_count: int

    @property
    def num_samples(self) -> int:
        return len(self.gyro[0]) if self.gyro else 0


# ── Step analysis ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StepEvent:
    """A detected stick step and the window its response is measured in."""
    axis: int                   # 0 roll, 1 pitch, 2 yaw
    start_index: int
    end_index: int              # exclusive, clamped to data length
    magnitude: float            # signed deg/s
    direction: StepDirection

    @property
    def axis_name(self) -> str:
        return AXIS_NAMES[self.axis]


@dataclass(eq=False)
class StepResponseTrace:
    """Window slice kept for plotting."""
    time_ms: np.ndarray
    setpoint: np.ndarray
    gyro: np.ndarray


@dataclass
class StepResponse:
    """Measured tracking quality for one StepEvent."""
    step: StepEvent
    rise_time_ms: float
    overshoot_percent: float
    settling_time_ms: float
    latency_ms: float
    ringing_count: int
    peak_value: float
    steady_state_value: float
    tracking_error_rms: Optional[float] = None
    steady_state_error_percent: Optional[float] = None
    ff_contribution: Optional[float] = None     # set by classify_ff_contribution
    trace: Optional[StepResponseTrace] = None


@dataclass
class AxisStepProfile:
    """Per-axis aggregate of step responses."""
    responses: list = field(default_factory=list)
    mean_overshoot: float = 0.0
    mean_rise_time_ms: float = 0.0
    mean_settling_time_ms: float = 0.0
    mean_latency_ms: float = 0.0
    mean_tracking_error_rms: float = 0.0
    mean_steady_state_error: float = 0.0


@dataclass(frozen=True)
class CouplingPair:
    source_axis: str
    affected_axis: str
    correlation: float          # 0-1, rounded to 3 decimals
    rating: CouplingRating


@dataclass
class CrossAxisCouplingResult:
    pairs: list                 # list of CouplingPair
    has_significant_coupling: bool
    summary: str


# ── Configuration ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PIDTerm:
    p: float
    i: float
    d: float


@dataclass(frozen=True)
class PIDConfiguration:
    """P/I/D gains for the three axes, in Betaflight CLI units."""
    roll: PIDTerm
    pitch: PIDTerm
    yaw: PIDTerm

    def for_axis(self, axis_name: str) -> PIDTerm:
        return getattr(self, axis_name)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class FilterSettings:
    """Betaflight filter configuration.  0 Hz disables a lowpass.

    Field names match the CLI variable names, so a recommendation's
    ``setting`` can be looked up with ``getattr``.
    """
    gyro_lpf1_static_hz: float = 250
    gyro_lpf2_static_hz: float = 500
    dterm_lpf1_static_hz: float = 150
    dterm_lpf2_static_hz: float = 150
    dyn_notch_min_hz: float = 150
    dyn_notch_max_hz: float = 600
    dyn_notch_count: int = 3
    dyn_notch_q: int = 300

    def as_dict(self) -> dict:
        return asdict(self)


# ── Noise input (produced by an external spectral analyzer) ──────────────────

@dataclass(frozen=True)
class NoisePeak:
    frequency: float            # Hz
    amplitude: float            # dB above the noise floor
    type: NoisePeakType = NoisePeakType.UNKNOWN


@dataclass
class AxisNoiseProfile:
    noise_floor_db: float = 0.0
    peaks: list = field(default_factory=list)   # list of NoisePeak


@dataclass
class NoiseProfile:
    roll: AxisNoiseProfile
    pitch: AxisNoiseProfile
    yaw: AxisNoiseProfile
    overall_level: NoiseLevel = NoiseLevel.MEDIUM


# ── Recommendations and results ──────────────────────────────────────────────

@dataclass(frozen=True)
class Recommendation:
    """One proposed setting change.  ``recommended_value`` is always clamped."""
    setting: str
    current_value: float
    recommended_value: float
    reason: str
    impact: Impact
    confidence: Confidence


@dataclass(frozen=True)
class PIDRecommendation(Recommendation):
    pass


@dataclass(frozen=True)
class FilterRecommendation(Recommendation):
    pass


@dataclass
class PIDAnalysisResult:
    """Output of the PID analysis pipeline."""
    roll: AxisStepProfile
    pitch: AxisStepProfile
    yaw: AxisStepProfile
    recommendations: list       # list of PIDRecommendation
    summary: str
    steps_detected: int
    current_pids: PIDConfiguration
    cross_axis: Optional[CrossAxisCouplingResult] = None
    analysis_time_ms: float = 0.0


@dataclass
class FilterAnalysisResult:
    noise: NoiseProfile
    recommendations: list       # list of FilterRecommendation
    summary: str
    analysis_time_ms: float = 0.0
