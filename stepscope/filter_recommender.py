"""Filter recommendations from a precomputed noise profile.

Three independent passes feed one list, then duplicates are resolved:

1. Noise floor: high noise lowers the gyro/D-term lowpass cutoffs, low
   noise raises them (less latency), medium leaves them alone.
2. Resonance: a strong roll/pitch peak below a lowpass cutoff pulls that
   cutoff below the peak, or enables a disabled gyro lowpass.
3. Dynamic notch: strong peaks outside the notch range widen the range.

When two passes touch the same setting the more aggressive value wins:
lower for lowpass and ``*_min_hz`` settings, higher for ``*_max_hz``.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from stepscope.constants import (
    DEFAULT_FILTER_SETTINGS,
    DTERM_LPF1_RANGE,
    DYN_NOTCH_MARGIN_HZ,
    DYN_NOTCH_RANGE,
    GYRO_LPF1_RANGE,
    HIGH_NOISE_DTERM_REDUCTION_HZ,
    HIGH_NOISE_GYRO_REDUCTION_HZ,
    LOW_NOISE_DTERM_INCREASE_HZ,
    LOW_NOISE_GYRO_INCREASE_HZ,
    RESONANCE_ACTION_THRESHOLD_DB,
    RESONANCE_CUTOFF_MARGIN_HZ,
)
from stepscope.models import (
    Confidence,
    FilterRecommendation,
    FilterSettings,
    Impact,
    NoiseLevel,
    NoisePeakType,
    NoiseProfile,
)

logger = logging.getLogger(__name__)

_PEAK_LABELS = {
    NoisePeakType.FRAME_RESONANCE: "frame resonance",
    NoisePeakType.MOTOR_HARMONIC: "motor harmonic",
    NoisePeakType.ELECTRICAL: "electrical noise",
    NoisePeakType.UNKNOWN: "noise spike",
}


# ── Helpers ──────────────────────────────────────────────────────────────────

def _clamp(value: float, lo: float, hi: float) -> float:
    """Clamp value to [lo, hi]."""
    return max(lo, min(hi, value))


def _significant_peaks(axes) -> list:
    return [
        peak
        for axis in axes
        for peak in axis.peaks
        if peak.amplitude >= RESONANCE_ACTION_THRESHOLD_DB
    ]


def _rec(setting, current, target, reason, impact, confidence) -> FilterRecommendation:
    return FilterRecommendation(
        setting=setting,
        current_value=current,
        recommended_value=target,
        reason=reason,
        impact=impact,
        confidence=confidence,
    )


# ── Rule passes ──────────────────────────────────────────────────────────────

def _noise_floor_pass(noise: NoiseProfile, current: FilterSettings, out: list) -> None:
    level = NoiseLevel(noise.overall_level)
    if level is NoiseLevel.MEDIUM:
        return

    # 0 Hz = gyro lowpass off (common with RPM filtering); nothing to nudge
    gyro_enabled = current.gyro_lpf1_static_hz != 0
    gyro_now = current.gyro_lpf1_static_hz
    dterm_now = current.dterm_lpf1_static_hz

    if level is NoiseLevel.HIGH:
        gyro_target = _clamp(gyro_now - HIGH_NOISE_GYRO_REDUCTION_HZ, *GYRO_LPF1_RANGE)
        dterm_target = _clamp(dterm_now - HIGH_NOISE_DTERM_REDUCTION_HZ, *DTERM_LPF1_RANGE)
        if gyro_enabled and gyro_target != gyro_now:
            out.append(_rec(
                "gyro_lpf1_static_hz", gyro_now, gyro_target,
                "Your gyro data has a lot of noise. Lowering the gyro lowpass filter cleans "
                "up the signal so the flight controller reacts to real movement instead of "
                "vibration.",
                Impact.BOTH, Confidence.HIGH,
            ))
        if dterm_target != dterm_now:
            out.append(_rec(
                "dterm_lpf1_static_hz", dterm_now, dterm_target,
                "High noise is reaching the D-term. Lowering its filter reduces motor heat "
                "and oscillation caused by noisy D-term output.",
                Impact.BOTH, Confidence.HIGH,
            ))
    else:
        gyro_target = _clamp(gyro_now + LOW_NOISE_GYRO_INCREASE_HZ, *GYRO_LPF1_RANGE)
        dterm_target = _clamp(dterm_now + LOW_NOISE_DTERM_INCREASE_HZ, *DTERM_LPF1_RANGE)
        if gyro_enabled and gyro_target != gyro_now:
            out.append(_rec(
                "gyro_lpf1_static_hz", gyro_now, gyro_target,
                "Your quad is very clean. Raising the gyro filter cutoff gives faster, "
                "sharper control with almost no downside.",
                Impact.LATENCY, Confidence.MEDIUM,
            ))
        if dterm_target != dterm_now:
            out.append(_rec(
                "dterm_lpf1_static_hz", dterm_now, dterm_target,
                "Low noise means the D-term filter can be relaxed for sharper stick response.",
                Impact.LATENCY, Confidence.MEDIUM,
            ))


def _resonance_pass(noise: NoiseProfile, current: FilterSettings, out: list) -> None:
    peaks = _significant_peaks((noise.roll, noise.pitch))
    if not peaks:
        return

    lowest = min(peaks, key=lambda p: p.frequency)
    freq = lowest.frequency
    gyro_now = current.gyro_lpf1_static_hz
    gyro_disabled = gyro_now == 0

    if gyro_disabled or freq < gyro_now:
        target = _clamp(freq - RESONANCE_CUTOFF_MARGIN_HZ, *GYRO_LPF1_RANGE)
        if gyro_disabled or target < gyro_now:
            label = _PEAK_LABELS[NoisePeakType(lowest.type)]
            if gyro_disabled:
                reason = (
                    f"A strong {label} was detected at {freq:.0f} Hz, but your gyro lowpass "
                    f"filter is disabled. Enabling it at {target:.0f} Hz will block this vibration."
                )
            else:
                reason = (
                    f"A strong {label} was detected at {freq:.0f} Hz, below your gyro filter "
                    f"cutoff of {gyro_now:.0f} Hz. Lowering the filter will block this vibration."
                )
            out.append(_rec("gyro_lpf1_static_hz", gyro_now, target, reason,
                            Impact.BOTH, Confidence.HIGH))

    dterm_now = current.dterm_lpf1_static_hz
    if freq < dterm_now:
        target = _clamp(freq - RESONANCE_CUTOFF_MARGIN_HZ, *DTERM_LPF1_RANGE)
        if target < dterm_now:
            out.append(_rec(
                "dterm_lpf1_static_hz", dterm_now, target,
                f"A strong resonance peak at {freq:.0f} Hz is getting through to the D-term. "
                "Lowering the D-term filter reduces motor heat and smooths the flight.",
                Impact.BOTH, Confidence.HIGH,
            ))


def _dynamic_notch_pass(noise: NoiseProfile, current: FilterSettings, out: list) -> None:
    peaks = _significant_peaks((noise.roll, noise.pitch, noise.yaw))
    if not peaks:
        return

    below = [p.frequency for p in peaks if p.frequency < current.dyn_notch_min_hz]
    above = [p.frequency for p in peaks if p.frequency > current.dyn_notch_max_hz]

    if below:
        lowest = min(below)
        new_min = max(DYN_NOTCH_RANGE[0], round(lowest - DYN_NOTCH_MARGIN_HZ))
        if new_min < current.dyn_notch_min_hz:
            out.append(_rec(
                "dyn_notch_min_hz", current.dyn_notch_min_hz, new_min,
                f"A noise peak at {lowest:.0f} Hz sits below the dynamic notch minimum of "
                f"{current.dyn_notch_min_hz:.0f} Hz. Lowering the minimum lets the notch track it.",
                Impact.NOISE, Confidence.MEDIUM,
            ))

    if above:
        highest = max(above)
        new_max = min(DYN_NOTCH_RANGE[1], round(highest + DYN_NOTCH_MARGIN_HZ))
        if new_max > current.dyn_notch_max_hz:
            out.append(_rec(
                "dyn_notch_max_hz", current.dyn_notch_max_hz, new_max,
                f"A noise peak at {highest:.0f} Hz is above the dynamic notch maximum of "
                f"{current.dyn_notch_max_hz:.0f} Hz. Raising the maximum lets the notch catch it.",
                Impact.NOISE, Confidence.MEDIUM,
            ))


def _deduplicate(recs: list) -> list:
    """Keep one recommendation per setting, preferring the more aggressive one."""
    by_setting: dict = {}
    for rec in recs:
        existing = by_setting.get(rec.setting)
        if existing is None:
            by_setting[rec.setting] = rec
            continue

        prefer_lower = "lpf" in rec.setting or "min" in rec.setting
        if prefer_lower:
            more_aggressive = rec.recommended_value < existing.recommended_value
        else:
            more_aggressive = rec.recommended_value > existing.recommended_value
        if not more_aggressive:
            continue

        confidence = rec.confidence
        if Confidence.HIGH in (rec.confidence, existing.confidence):
            confidence = Confidence.HIGH
        logger.debug(
            "%s: %s replaces %s", rec.setting, rec.recommended_value, existing.recommended_value
        )
        by_setting[rec.setting] = replace(rec, confidence=confidence)

    return list(by_setting.values())


# ── Public API ───────────────────────────────────────────────────────────────

def recommend(noise: NoiseProfile, current: Optional[FilterSettings] = None) -> list:
    """Generate filter recommendations.

    Parameters
    ----------
    noise : NoiseProfile
        Per-axis noise floor and peaks plus the overall noise level.
    current : FilterSettings, optional
        Settings on the flight controller.  Betaflight 4.4 defaults when None.

    Returns
    -------
    list of FilterRecommendation
        At most one entry per setting.
    """
    current = current or DEFAULT_FILTER_SETTINGS
    recs: list = []
    _noise_floor_pass(noise, current, recs)
    _resonance_pass(noise, current, recs)
    _dynamic_notch_pass(noise, current, recs)
    return _deduplicate(recs)


def generate_summary(noise: NoiseProfile, recommendations: list) -> str:
    """One-paragraph, pilot-friendly summary of the filter analysis."""
    level = NoiseLevel(noise.overall_level)
    if level is NoiseLevel.HIGH:
        parts = ["Your quad has significant vibration or noise."]
    elif level is NoiseLevel.LOW:
        parts = ["Your quad is running very clean!"]
    else:
        parts = ["Your noise levels are moderate."]

    peaks = list(noise.roll.peaks) + list(noise.pitch.peaks)
    frame = next((p for p in peaks if p.type == NoisePeakType.FRAME_RESONANCE), None)
    motor = next((p for p in peaks if p.type == NoisePeakType.MOTOR_HARMONIC), None)
    if frame is not None:
        parts.append(f"Frame resonance detected around {frame.frequency:.0f} Hz.")
    if motor is not None:
        parts.append(f"Motor harmonic noise detected around {motor.frequency:.0f} Hz.")

    count = len(recommendations)
    if count == 0:
        parts.append("Current filter settings look good, no changes needed.")
    else:
        parts.append(f"{count} filter change{'s' if count > 1 else ''} recommended.")
    return " ".join(parts)
