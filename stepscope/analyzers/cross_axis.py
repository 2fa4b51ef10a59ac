"""Cross-axis coupling detection.

A roll command should not move pitch or yaw.  For every step, the gyro of
the commanded axis is correlated with the gyro of the other two axes over
the step window.  A strong correlation, in either sign, points at
mechanical problems (bent prop, loose motor mount, asymmetric frame) or at
PID cross-talk.
"""
import logging

import numpy as np

from stepscope.constants import (
    COUPLING_MIN_SAMPLES,
    COUPLING_NONE_THRESHOLD,
    COUPLING_SIGNIFICANT_THRESHOLD,
)
from stepscope.models import (
    AXIS_NAMES,
    BlackboxFlightData,
    CouplingPair,
    CouplingRating,
    CrossAxisCouplingResult,
)

logger = logging.getLogger(__name__)


def normalized_correlation(a, b) -> float:
    """Absolute zero-lag Pearson correlation of two series.

    Both series are truncated to the shorter length.  Series shorter than
    ``COUPLING_MIN_SAMPLES`` or with zero variance correlate as 0.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    n = min(len(a), len(b))
    if n < COUPLING_MIN_SAMPLES:
        return 0.0

    da = a[:n] - np.mean(a[:n])
    db = b[:n] - np.mean(b[:n])
    var_a = float(np.dot(da, da))
    var_b = float(np.dot(db, db))
    if var_a == 0.0 or var_b == 0.0:
        return 0.0
    r = float(np.dot(da, db)) / np.sqrt(var_a * var_b)
    return float(min(abs(r), 1.0))


def rate_coupling(correlation: float) -> CouplingRating:
    if correlation >= COUPLING_SIGNIFICANT_THRESHOLD:
        return CouplingRating.SIGNIFICANT
    if correlation < COUPLING_NONE_THRESHOLD:
        return CouplingRating.NONE
    return CouplingRating.MILD


def analyze_cross_axis_coupling(steps, flight_data: BlackboxFlightData):
    """Rate coupling for every ordered (source, affected) axis pair.

    Parameters
    ----------
    steps : list of StepEvent
        Steps on any axis.  Steps whose window falls outside the data or is
        empty are skipped.
    flight_data : BlackboxFlightData
        Log providing ``gyro[0..2]``.

    Returns
    -------
    CrossAxisCouplingResult or None
        None when fewer than two usable steps exist.  Each pair's
        correlation is the maximum over that source axis' steps, since a
        single strongly coupled step is already diagnostic.
    """
    n = len(flight_data.gyro[0])
    valid = [s for s in steps if s.start_index >= 0 and s.start_index < s.end_index <= n]
    if len(valid) < 2:
        logger.debug("cross-axis: %d usable step(s), need 2", len(valid))
        return None

    gyro = [np.asarray(flight_data.gyro[axis].values, dtype=np.float64) for axis in range(3)]
    best: dict = {}
    for step in valid:
        window = slice(step.start_index, step.end_index)
        source = gyro[step.axis][window]
        for affected in range(3):
            if affected == step.axis:
                continue
            corr = normalized_correlation(source, gyro[affected][window])
            key = (step.axis, affected)
            best[key] = max(best.get(key, 0.0), corr)

    pairs = []
    for src in range(3):
        for aff in range(3):
            if (src, aff) not in best:
                continue
            corr = round(best[(src, aff)], 3)
            pairs.append(CouplingPair(
                source_axis=AXIS_NAMES[src],
                affected_axis=AXIS_NAMES[aff],
                correlation=corr,
                rating=rate_coupling(corr),
            ))

    if not pairs:
        return None

    significant = any(p.rating is CouplingRating.SIGNIFICANT for p in pairs)
    return CrossAxisCouplingResult(
        pairs=pairs,
        has_significant_coupling=significant,
        summary=_summarize(pairs),
    )


def _summarize(pairs) -> str:
    significant = sorted(
        (p for p in pairs if p.rating is CouplingRating.SIGNIFICANT),
        key=lambda p: p.correlation,
        reverse=True,
    )
    if significant:
        described = ", ".join(
            f"{p.source_axis}→{p.affected_axis} ({p.correlation * 100:.0f}%)"
            for p in significant
        )
        return (
            f"Significant cross-axis coupling: {described}. This may indicate "
            "mechanical issues (bent prop, loose motor mount) or a need for PID retuning."
        )

    mild = [p for p in pairs if p.rating is CouplingRating.MILD]
    if mild:
        plural = "" if len(mild) == 1 else "s"
        return f"Mild cross-axis coupling detected on {len(mild)} pair{plural}, within normal range."
    return "No cross-axis coupling detected. Axes are well isolated."
