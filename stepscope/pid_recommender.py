"""Rule-based PID recommendations from per-axis step response profiles.

Every rule moves one gain by a fixed step (``PID_STEP``) and explains why.
Targets are anchored to the PIDs that were flying when the log was
recorded when those are known (BBL header), so applying a recommendation
and re-analyzing the same log converges: target equals current and the
rule stays quiet.  Without flight PIDs the current FC values are used.

Rules per axis (yaw gets relaxed thresholds):

1. Severe overshoot  -> D up; also P down when D is already >= 60% of max
2. Moderate overshoot -> D up
3. Low overshoot and slow rise -> P up
4. Ringing -> D up, unless a D change is already queued
5. Slow settling without overshoot -> D up (low confidence), same guard
"""
from __future__ import annotations

import logging
from typing import Optional

from stepscope.constants import (
    D_GAIN_RANGE,
    D_HIGH_FRACTION,
    P_GAIN_RANGE,
    PID_STEP,
    PID_STYLE_THRESHOLDS,
    YAW_SEVERE_SCALE,
    YAW_SLUGGISH_SCALE,
)
from stepscope.models import (
    AXIS_NAMES,
    AxisStepProfile,
    Confidence,
    FlightStyle,
    Impact,
    PIDConfiguration,
    PIDRecommendation,
)

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────────────────

def _clamp(value: float, lo: float, hi: float) -> float:
    """Clamp value to [lo, hi]."""
    return max(lo, min(hi, value))


def _axis_limits(style: FlightStyle, axis_name: str) -> tuple[float, float, float]:
    """(severe overshoot, moderate overshoot, sluggish rise ms) for an axis."""
    t = PID_STYLE_THRESHOLDS[style]
    if axis_name == "yaw":
        return (
            t.overshoot_max * YAW_SEVERE_SCALE,
            t.overshoot_max,
            t.sluggish_rise_ms * YAW_SLUGGISH_SCALE,
        )
    return t.overshoot_max, t.moderate_overshoot, t.sluggish_rise_ms


def _propose(recs: dict, setting: str, current: float, target: float,
             reason: str, impact: Impact, confidence: Confidence) -> None:
    if target == current or setting in recs:
        return
    recs[setting] = PIDRecommendation(
        setting=setting,
        current_value=current,
        recommended_value=target,
        reason=reason,
        impact=impact,
        confidence=confidence,
    )


# ── Public API ───────────────────────────────────────────────────────────────

def recommend_pid(
    roll: AxisStepProfile,
    pitch: AxisStepProfile,
    yaw: AxisStepProfile,
    current_pids: PIDConfiguration,
    flight_pids: Optional[PIDConfiguration] = None,
    style: FlightStyle = FlightStyle.BALANCED,
) -> list:
    """Generate PID recommendations for the three axes.

    Parameters
    ----------
    roll, pitch, yaw : AxisStepProfile
        Aggregated step responses.  Axes without responses are skipped.
    current_pids : PIDConfiguration
        Gains currently on the flight controller.
    flight_pids : PIDConfiguration, optional
        Gains active during the logged flight.  Targets are computed from
        these when given.
    style : FlightStyle
        Selects the threshold table.

    Returns
    -------
    list of PIDRecommendation
        At most one entry per setting, in rule order per axis.
    """
    style = FlightStyle(style)
    thresholds = PID_STYLE_THRESHOLDS[style]
    anchor = flight_pids if flight_pids is not None else current_pids
    recs: dict = {}

    for axis_name, profile in zip(AXIS_NAMES, (roll, pitch, yaw)):
        if not profile.responses:
            continue

        pids = current_pids.for_axis(axis_name)
        base = anchor.for_axis(axis_name)
        severe, moderate, sluggish_ms = _axis_limits(style, axis_name)
        d_setting = f"pid_{axis_name}_d"
        p_setting = f"pid_{axis_name}_p"
        d_up = _clamp(round(base.d + PID_STEP), *D_GAIN_RANGE)
        overshoot = profile.mean_overshoot

        # Rule 1/2: overshoot, D first
        if overshoot > severe:
            _propose(
                recs, d_setting, pids.d, d_up,
                f"Significant overshoot on {axis_name} ({overshoot:.0f}%). More D-term "
                "damps the bounce-back for a smoother, more controlled feel.",
                Impact.BOTH, Confidence.HIGH,
            )
            if base.d >= D_GAIN_RANGE[1] * D_HIGH_FRACTION:
                _propose(
                    recs, p_setting, pids.p, _clamp(round(base.p - PID_STEP), *P_GAIN_RANGE),
                    f"Significant overshoot on {axis_name} ({overshoot:.0f}%) while D is "
                    "already high. Less P-term keeps the quad from overshooting its target.",
                    Impact.BOTH, Confidence.HIGH,
                )
        elif overshoot > moderate:
            _propose(
                recs, d_setting, pids.d, d_up,
                f"Your quad overshoots on {axis_name} stick inputs ({overshoot:.0f}%). "
                "More D-term will dampen the response.",
                Impact.STABILITY, Confidence.MEDIUM,
            )

        # Rule 3: well damped but slow
        if overshoot < thresholds.overshoot_ideal and profile.mean_rise_time_ms > sluggish_ms:
            _propose(
                recs, p_setting, pids.p, _clamp(round(base.p + PID_STEP), *P_GAIN_RANGE),
                f"Response is sluggish on {axis_name} ({profile.mean_rise_time_ms:.0f}ms "
                "rise time). More P-term will make the quad feel more locked in.",
                Impact.RESPONSE, Confidence.MEDIUM,
            )

        # Rule 4: ringing
        max_ringing = max(r.ringing_count for r in profile.responses)
        if max_ringing > thresholds.ringing_max:
            _propose(
                recs, d_setting, pids.d, d_up,
                f"Oscillation on {axis_name} after stick moves ({max_ringing} cycles). "
                "More D-term will calm the wobble.",
                Impact.STABILITY, Confidence.MEDIUM,
            )

        # Rule 5: slow settling that overshoot does not explain
        if profile.mean_settling_time_ms > thresholds.settling_max_ms and overshoot < moderate:
            _propose(
                recs, d_setting, pids.d, d_up,
                f"{axis_name.capitalize()} takes {profile.mean_settling_time_ms:.0f}ms to "
                "settle. A slight D increase will help it lock in faster.",
                Impact.STABILITY, Confidence.LOW,
            )

    logger.debug("%d PID recommendation(s) for %s style", len(recs), style.value)
    return list(recs.values())


def generate_pid_summary(
    roll: AxisStepProfile,
    pitch: AxisStepProfile,
    yaw: AxisStepProfile,
    recommendations: list,
    style: FlightStyle = FlightStyle.BALANCED,
) -> str:
    """One-paragraph, pilot-friendly summary of the PID analysis."""
    total_steps = len(roll.responses) + len(pitch.responses) + len(yaw.responses)
    if total_steps == 0:
        return (
            "No step inputs detected in this flight. Fly quick, decisive stick "
            "movements on each axis for a better PID analysis."
        )

    style = FlightStyle(style)
    style_note = "" if style is FlightStyle.BALANCED else f" Thresholds are set for a {style.value} flying style."

    if not recommendations:
        return (
            f"Analyzed {total_steps} stick inputs. Your PID tune looks good: response "
            f"is quick with minimal overshoot. No changes recommended.{style_note}"
        )

    reasons = [r.reason.lower() for r in recommendations]
    issues = []
    if any("overshoot" in r for r in reasons):
        issues.append("overshoot")
    if any("sluggish" in r for r in reasons):
        issues.append("sluggish response")
    if any("oscillation" in r or "wobble" in r for r in reasons):
        issues.append("oscillation")
    issue_text = " and ".join(issues) if issues else "room for improvement"

    count = len(recommendations)
    plural = "" if count == 1 else "s"
    return (
        f"Analyzed {total_steps} stick inputs and found {issue_text}. "
        f"{count} adjustment{plural} recommended for a tighter, more locked-in feel.{style_note}"
    )
