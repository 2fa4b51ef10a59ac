"""Per-step response metrics, feedforward attribution and per-axis aggregation.

For each detected step the gyro is measured inside the step's response
window against a reference level: the mean gyro over the last 20% of the
window.  Overshoot means P too high or D too low, a slow rise means P too
low, ringing means poor P/D balance.
"""
import logging

import numpy as np

from stepscope.constants import (
    DEGENERATE_OVERSHOOT_PERCENT,
    FF_OVERSHOOT_THRESHOLD_PERCENT,
    LATENCY_THRESHOLD,
    NEAR_ZERO_GUARD,
    RISE_TIME_FRACTION,
    SETTLING_TOLERANCE,
    STEADY_STATE_TAIL_START,
)
from stepscope.models import AxisStepProfile, StepEvent, StepResponse, StepResponseTrace

logger = logging.getLogger(__name__)


def compute_step_response(setpoint, gyro, step: StepEvent, sample_rate_hz: float) -> StepResponse:
    """Measure how the gyro tracked one commanded step.

    Parameters
    ----------
    setpoint, gyro : TimeSeries or 1-D array
        Same-axis commanded rate and filtered gyro (deg/s).
    step : StepEvent
        Step on that axis; its window is ``[start_index, end_index)``.
    sample_rate_hz : float
        Sampling frequency.

    Returns
    -------
    StepResponse
        rise_time_ms : step start until 90% of the net change is reached
        overshoot_percent : peak beyond the reference, % of |magnitude|
        settling_time_ms : until gyro stays inside the +/-2% band
        latency_ms : until gyro leaves the baseline by 5% of |magnitude|
        ringing_count : oscillation cycles after the peak
        tracking_error_rms : RMS of (gyro - setpoint) / |magnitude|
        steady_state_error_percent : tail mean of that error, in %

    Timings that are never reached are reported as the full window.
    """
    sp = _as_array(setpoint)
    gy = _as_array(gyro)
    ms_per_sample = 1000.0 / sample_rate_hz

    start = step.start_index
    end = min(step.end_index, len(sp), len(gy))
    window_len = max(end - start, 0)
    full_ms = window_len * ms_per_sample

    if window_len == 0:
        baseline = float(gy[start - 1]) if 0 < start <= len(gy) else 0.0
        return StepResponse(
            step=step, rise_time_ms=0.0, overshoot_percent=0.0,
            settling_time_ms=0.0, latency_ms=0.0, ringing_count=0,
            peak_value=baseline, steady_state_value=baseline,
            tracking_error_rms=1.0, steady_state_error_percent=100.0,
        )

    g = gy[start:end]
    s = sp[start:end]
    baseline = float(gy[start - 1]) if start > 0 else float(gy[start])
    tail_start = int(window_len * STEADY_STATE_TAIL_START)
    steady_state = float(np.mean(g[tail_start:]))
    magnitude = abs(step.magnitude)

    trace = StepResponseTrace(
        time_ms=np.arange(window_len) * ms_per_sample,
        setpoint=s.copy(),
        gyro=g.copy(),
    )
    tracking_rms, ss_error = _tracking_errors(g, s, tail_start, magnitude)

    # Gyro never moved toward the command: measure against the command instead
    reference = steady_state
    change = steady_state - baseline
    if abs(change) < NEAR_ZERO_GUARD:
        reference = baseline + step.magnitude
        change = step.magnitude

    if abs(change) < NEAR_ZERO_GUARD:
        return StepResponse(
            step=step, rise_time_ms=full_ms, overshoot_percent=0.0,
            settling_time_ms=full_ms, latency_ms=full_ms, ringing_count=0,
            peak_value=baseline, steady_state_value=steady_state,
            tracking_error_rms=tracking_rms, steady_state_error_percent=ss_error,
            trace=trace,
        )

    direction = 1.0 if change > 0 else -1.0
    progress = (g - baseline) * direction

    # --- Latency: first clear departure from baseline ---
    idx = _first_index(np.abs(g - baseline) > LATENCY_THRESHOLD * magnitude)
    latency_ms = idx * ms_per_sample if idx is not None else full_ms

    # --- Rise time: step start to 90% of the net change ---
    idx = _first_index(progress >= RISE_TIME_FRACTION * abs(change))
    rise_time_ms = idx * ms_per_sample if idx is not None else full_ms

    # --- Peak / overshoot in the step direction ---
    peak_idx = int(np.argmax(progress))
    peak_value = baseline + direction * max(float(progress[peak_idx]), 0.0)
    scale = magnitude if magnitude >= NEAR_ZERO_GUARD else abs(change)
    overshoot_percent = max(0.0, (peak_value - reference) * direction / scale * 100.0)

    # --- Settling: last sample outside the band ---
    outside = np.abs(g - reference) > SETTLING_TOLERANCE * abs(change)
    if np.any(outside):
        settling_time_ms = (int(np.flatnonzero(outside)[-1]) + 1) * ms_per_sample
    else:
        settling_time_ms = 0.0

    # --- Ringing: crossings of the reference after the peak, as cycles ---
    signs = np.sign(g[peak_idx:] - reference)
    signs = signs[signs != 0]
    crossings = int(np.count_nonzero(signs[1:] != signs[:-1])) if len(signs) > 1 else 0

    return StepResponse(
        step=step,
        rise_time_ms=rise_time_ms,
        overshoot_percent=overshoot_percent,
        settling_time_ms=settling_time_ms,
        latency_ms=latency_ms,
        ringing_count=crossings // 2,
        peak_value=peak_value,
        steady_state_value=steady_state,
        tracking_error_rms=tracking_rms,
        steady_state_error_percent=ss_error,
        trace=trace,
    )


def classify_ff_contribution(response: StepResponse, pid_p, pid_f, gyro):
    """Attribute an overshooting step to feedforward or to the P-term.

    Only steps with more than ``FF_OVERSHOOT_THRESHOLD_PERCENT`` overshoot are
    classified; below that ``None`` is returned and ``ff_contribution`` is
    left unset.  Otherwise ``response.ff_contribution`` is set to the F share
    of the F + P signal energy over the step window.

    Returns
    -------
    bool or None
        True when feedforward dominates (share strictly above 0.5).
    """
    if response.overshoot_percent <= FF_OVERSHOOT_THRESHOLD_PERCENT:
        return None

    p = _as_array(pid_p)
    f = _as_array(pid_f)
    g = _as_array(gyro)
    end = min(response.step.end_index, len(p), len(f), len(g))
    start = min(response.step.start_index, end)

    energy_p = float(np.sum(p[start:end] ** 2))
    energy_f = float(np.sum(f[start:end] ** 2))
    total = energy_p + energy_f
    # plain energy ratio, see DESIGN.md "FF contribution formula"
    share = round(energy_f / total, 3) if total > 0 else 0.0

    response.ff_contribution = share
    return share > 0.5


def aggregate_axis_metrics(responses) -> AxisStepProfile:
    """Average step responses for one axis.

    Degenerate responses (zero rise time with absurd overshoot) are left out
    of the means unless every response is degenerate, in which case all of
    them are averaged.  ``responses`` always keeps every entry.
    """
    responses = list(responses)
    if not responses:
        return AxisStepProfile(responses=responses)

    usable = [r for r in responses if not _is_degenerate(r)]
    if len(usable) < len(responses):
        logger.debug("%d degenerate response(s) excluded", len(responses) - len(usable))
    src = usable or responses

    return AxisStepProfile(
        responses=responses,
        mean_overshoot=_mean(r.overshoot_percent for r in src),
        mean_rise_time_ms=_mean(r.rise_time_ms for r in src),
        mean_settling_time_ms=_mean(r.settling_time_ms for r in src),
        mean_latency_ms=_mean(r.latency_ms for r in src),
        mean_tracking_error_rms=_mean(r.tracking_error_rms or 0.0 for r in src),
        mean_steady_state_error=_mean(r.steady_state_error_percent or 0.0 for r in src),
    )


def _is_degenerate(response: StepResponse) -> bool:
    return response.rise_time_ms == 0 and response.overshoot_percent > DEGENERATE_OVERSHOOT_PERCENT


def _tracking_errors(g: np.ndarray, s: np.ndarray, tail_start: int, magnitude: float):
    """(RMS, steady-state %) of the magnitude-normalized tracking error."""
    if magnitude < NEAR_ZERO_GUARD:
        return 1.0, 100.0
    err = (g - s) / magnitude
    rms = float(np.sqrt(np.mean(err ** 2)))
    ss_error = abs(float(np.mean(err[tail_start:]))) * 100.0
    return rms, ss_error


def _mean(values) -> float:
    values = list(values)
    return float(sum(values) / len(values)) if values else 0.0


def _as_array(series) -> np.ndarray:
    return np.asarray(getattr(series, "values", series), dtype=np.float64)


def _first_index(mask: np.ndarray) -> int | None:
    """Index of the first True in mask, or None."""
    indices = np.flatnonzero(mask)
    if len(indices) == 0:
        return None
    return int(indices[0])
