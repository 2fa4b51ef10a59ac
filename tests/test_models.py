# tests/test_models.py
import numpy as np
import pytest
from dataclasses import FrozenInstanceError, replace

from stepscope.constants import DEFAULT_FILTER_SETTINGS, DEFAULT_PIDS, PID_STYLE_THRESHOLDS
from stepscope.models import (
    AxisStepProfile, Confidence, FilterRecommendation, FilterSettings,
    FlightStyle, Impact, NoisePeak, NoisePeakType, PIDConfiguration,
    PIDRecommendation, PIDTerm, StepDirection, StepEvent, TimeSeries,
)


def test_time_series_from_values():
    ts = TimeSeries.from_values([1, 2, 3, 4], sample_rate_hz=4)
    assert len(ts) == 4
    assert ts.values.dtype == np.float64
    np.testing.assert_allclose(ts.time, [0.0, 0.25, 0.5, 0.75])


def test_time_series_length_mismatch_rejected():
    with pytest.raises(ValueError):
        TimeSeries(time=np.arange(3), values=np.arange(4))


def test_step_event_is_immutable():
    step = StepEvent(axis=1, start_index=10, end_index=50, magnitude=-200.0,
                     direction=StepDirection.NEGATIVE)
    assert step.axis_name == "pitch"
    with pytest.raises(FrozenInstanceError):
        step.start_index = 0


def test_axis_step_profile_defaults():
    profile = AxisStepProfile()
    assert profile.responses == []
    assert profile.mean_overshoot == 0.0
    assert profile.mean_tracking_error_rms == 0.0


def test_pid_configuration_lookup_and_as_dict():
    pids = PIDConfiguration(
        roll=PIDTerm(45, 80, 30), pitch=PIDTerm(47, 84, 32), yaw=PIDTerm(45, 80, 0),
    )
    assert pids.for_axis("pitch").d == 32
    d = pids.as_dict()
    assert d["roll"] == {"p": 45, "i": 80, "d": 30}
    assert d["yaw"]["d"] == 0


def test_default_pids_match_betaflight():
    assert DEFAULT_PIDS.roll == PIDTerm(p=45, i=80, d=30)
    assert DEFAULT_PIDS.pitch == PIDTerm(p=47, i=84, d=32)
    assert DEFAULT_PIDS.yaw.d == 0


def test_filter_settings_defaults():
    fs = FilterSettings()
    assert fs.gyro_lpf1_static_hz == 250
    assert fs.gyro_lpf2_static_hz == 500
    assert fs.dterm_lpf1_static_hz == 150
    assert fs.dyn_notch_min_hz == 150
    assert fs.dyn_notch_max_hz == 600
    assert isinstance(fs.dyn_notch_q, int)
    assert DEFAULT_FILTER_SETTINGS == fs


def test_recommendation_replace_keeps_type():
    rec = FilterRecommendation(
        setting="gyro_lpf1_static_hz", current_value=250, recommended_value=200,
        reason="noisy", impact=Impact.BOTH, confidence=Confidence.MEDIUM,
    )
    upgraded = replace(rec, confidence=Confidence.HIGH)
    assert isinstance(upgraded, FilterRecommendation)
    assert upgraded.confidence is Confidence.HIGH
    assert rec.confidence is Confidence.MEDIUM


def test_enums_compare_to_strings():
    assert Impact.BOTH == "both"
    assert Confidence("high") is Confidence.HIGH
    assert NoisePeak(frequency=120, amplitude=15).type is NoisePeakType.UNKNOWN
    assert isinstance(PIDRecommendation("pid_roll_d", 30, 35, "r", Impact.STABILITY,
                                        Confidence.LOW), PIDRecommendation)


def test_style_table_covers_every_style():
    assert set(PID_STYLE_THRESHOLDS) == set(FlightStyle)
    balanced = PID_STYLE_THRESHOLDS[FlightStyle.BALANCED]
    assert balanced.overshoot_max == 25
    assert balanced.sluggish_rise_ms == 80
    assert PID_STYLE_THRESHOLDS[FlightStyle.SMOOTH].overshoot_max < balanced.overshoot_max


def test_default_pids_are_immutable():
    with pytest.raises(FrozenInstanceError):
        DEFAULT_PIDS.roll.d = 0
    with pytest.raises(FrozenInstanceError):
        DEFAULT_PIDS.yaw = PIDTerm(1, 2, 3)
