"""Step input detection on commanded-rate (setpoint) traces.

A step is a fast, sustained stick move: the setpoint jumps by at least
``STEP_MIN_MAGNITUDE_DEG_S`` and then holds near its new value.  Every
accepted step gets a fixed response window in which the gyro is measured.
Slow ramps never reach the derivative threshold, which is what separates
a step from a gradual stick sweep.
"""
import logging
import math

import numpy as np

from stepscope.constants import (
    STEP_COOLDOWN_MS,
    STEP_DERIVATIVE_THRESHOLD,
    STEP_EDGE_CONTINUATION,
    STEP_HOLD_TOLERANCE,
    STEP_MIN_HOLD_MS,
    STEP_MIN_MAGNITUDE_DEG_S,
    STEP_RESPONSE_WINDOW_MS,
)
from stepscope.models import AXIS_NAMES, BlackboxFlightData, StepDirection, StepEvent

logger = logging.getLogger(__name__)


def detect_steps(flight_data: BlackboxFlightData) -> list:
    """Find stick steps on roll, pitch and yaw.

    Parameters
    ----------
    flight_data : BlackboxFlightData
        Decoded log.  Only ``setpoint[0..2]`` and ``sample_rate_hz`` are read.

    Returns
    -------
    list of StepEvent
        All axes together, largest ``|magnitude|`` first.  Equal magnitudes
        keep axis and time order.
    """
    sample_rate = flight_data.sample_rate_hz
    cooldown = _ms_to_samples(STEP_COOLDOWN_MS, sample_rate)
    hold = _ms_to_samples(STEP_MIN_HOLD_MS, sample_rate)
    window = _ms_to_samples(STEP_RESPONSE_WINDOW_MS, sample_rate)

    steps = []
    for axis in range(3):
        setpoint = np.asarray(flight_data.setpoint[axis].values, dtype=np.float64)
        axis_steps = _detect_axis_steps(setpoint, sample_rate, axis, cooldown, hold, window)
        logger.debug("%s: %d step(s) detected", AXIS_NAMES[axis], len(axis_steps))
        steps.extend(axis_steps)

    return sorted(steps, key=lambda s: abs(s.magnitude), reverse=True)


def _ms_to_samples(ms: float, sample_rate: float) -> int:
    return math.ceil(ms / 1000.0 * sample_rate)


def _detect_axis_steps(
    setpoint: np.ndarray,
    sample_rate: float,
    axis: int,
    cooldown: int,
    hold: int,
    window: int,
) -> list:
    n = len(setpoint)
    if n < 2:
        return []

    # derivative[i] describes the move from sample i to i+1
    derivative = np.diff(setpoint) * sample_rate
    continuation = STEP_DERIVATIVE_THRESHOLD * STEP_EDGE_CONTINUATION

    steps = []
    last_window_end = -cooldown
    i = 0
    while i < n - 1:
        if abs(derivative[i]) < STEP_DERIVATIVE_THRESHOLD:
            i += 1
            continue

        # Group a multi-sample transition into one edge
        edge_start = i
        sign = 1.0 if derivative[i] > 0 else -1.0
        edge_end = i
        while edge_end < n - 1 and sign * derivative[edge_end] >= continuation:
            edge_end += 1

        new_value = setpoint[min(edge_end + 1, n - 1)]
        magnitude = float(new_value - setpoint[edge_start])
        i = edge_end + 1

        if abs(magnitude) < STEP_MIN_MAGNITUDE_DEG_S:
            continue
        if edge_start - last_window_end < cooldown:
            logger.debug("%s: step at %d inside cooldown, skipped", AXIS_NAMES[axis], edge_start)
            continue
        if not _holds(setpoint, edge_end + 1, new_value, hold, magnitude):
            continue

        window_end = min(edge_start + window, n)
        steps.append(StepEvent(
            axis=axis,
            start_index=edge_start,
            end_index=window_end,
            magnitude=magnitude,
            direction=StepDirection.POSITIVE if magnitude > 0 else StepDirection.NEGATIVE,
        ))
        last_window_end = window_end

    return steps


def _holds(
    setpoint: np.ndarray,
    start: int,
    target: float,
    hold: int,
    magnitude: float,
) -> bool:
    """True if the setpoint stays near ``target`` for ``hold`` samples.

    Near the end of the log there may not be enough samples to judge; with
    less than half the hold period available the step is accepted.
    """
    end = min(start + hold, len(setpoint))
    if end - start < hold * 0.5:
        return True
    deviation = np.abs(setpoint[start:end] - target)
    return bool(np.all(deviation <= abs(magnitude) * STEP_HOLD_TOLERANCE))
