"""Full analysis pipeline, wiring all analyzers together.

This is the main entry point for StepScope.  Callers hand in a decoded
flight log and get back per-axis step profiles, cross-axis coupling and
PID recommendations from ``analyze_pid()``, or filter recommendations for
a precomputed noise profile from ``analyze_filters()``.
"""
from __future__ import annotations

import logging
import time
from typing import Optional

from .models import (
    AXIS_NAMES,
    BlackboxFlightData,
    FilterAnalysisResult,
    FilterSettings,
    FlightStyle,
    NoiseProfile,
    PIDAnalysisResult,
    PIDConfiguration,
)
from .constants import DEFAULT_PIDS
from .analyzers.step_detector import detect_steps
from .analyzers.step_metrics import (
    aggregate_axis_metrics,
    classify_ff_contribution,
    compute_step_response,
)
from .analyzers.cross_axis import analyze_cross_axis_coupling
from .pid_recommender import generate_pid_summary, recommend_pid
from .filter_recommender import generate_summary, recommend

logger = logging.getLogger(__name__)


def analyze_pid(
    flight_data: BlackboxFlightData,
    current_pids: PIDConfiguration = DEFAULT_PIDS,
    flight_pids: Optional[PIDConfiguration] = None,
    style: FlightStyle = FlightStyle.BALANCED,
) -> PIDAnalysisResult:
    """Run the step response pipeline on a flight log.

    1. Detect steps on roll, pitch, yaw
    2. Measure the response to each step
    3. Attribute overshooting steps to feedforward or P
    4. Aggregate responses per axis
    5. Recommend PID changes and summarize
    6. Rate cross-axis coupling

    Returns PIDAnalysisResult with all results.
    """
    started = time.perf_counter()

    # 1. Steps
    steps = detect_steps(flight_data)

    # 2-3. Per-step responses, grouped per axis
    responses = {axis: [] for axis in range(3)}
    for step in steps:
        axis = step.axis
        response = compute_step_response(
            setpoint=flight_data.setpoint[axis],
            gyro=flight_data.gyro[axis],
            step=step,
            sample_rate_hz=flight_data.sample_rate_hz,
        )
        classify_ff_contribution(
            response,
            flight_data.pid_p[axis],
            flight_data.pid_f[axis],
            flight_data.gyro[axis],
        )
        responses[axis].append(response)

    # 4. Per-axis profiles
    roll, pitch, yaw = (aggregate_axis_metrics(responses[axis]) for axis in range(3))

    # 5. Recommendations
    recommendations = recommend_pid(roll, pitch, yaw, current_pids, flight_pids, style)
    summary = generate_pid_summary(roll, pitch, yaw, recommendations, style)

    # 6. Cross-axis coupling
    cross_axis = analyze_cross_axis_coupling(steps, flight_data)

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    logger.info(
        "PID analysis: %d step(s) (%s), %d recommendation(s) in %.1f ms",
        len(steps),
        ", ".join(f"{AXIS_NAMES[a]}={len(responses[a])}" for a in range(3)),
        len(recommendations),
        elapsed_ms,
    )

    return PIDAnalysisResult(
        roll=roll,
        pitch=pitch,
        yaw=yaw,
        recommendations=recommendations,
        summary=summary,
        steps_detected=len(steps),
        current_pids=current_pids,
        cross_axis=cross_axis,
        analysis_time_ms=elapsed_ms,
    )


def analyze_filters(
    noise: NoiseProfile,
    current: Optional[FilterSettings] = None,
) -> FilterAnalysisResult:
    """Generate filter recommendations and a summary for a noise profile."""
    started = time.perf_counter()
    recommendations = recommend(noise, current)
    summary = generate_summary(noise, recommendations)
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    logger.info("Filter analysis: %d recommendation(s)", len(recommendations))

    return FilterAnalysisResult(
        noise=noise,
        recommendations=recommendations,
        summary=summary,
        analysis_time_ms=elapsed_ms,
    )
