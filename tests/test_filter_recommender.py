"""Tests for stepscope.filter_recommender -- noise-driven filter suggestions."""
import pytest

from stepscope.filter_recommender import _deduplicate, generate_summary, recommend
from stepscope.models import (
    AxisNoiseProfile,
    Confidence,
    FilterRecommendation,
    FilterSettings,
    Impact,
    NoiseLevel,
    NoisePeak,
    NoisePeakType,
    NoiseProfile,
)


# ── helpers ──────────────────────────────────────────────────────────────────

def _make_noise(level=NoiseLevel.MEDIUM, roll_peaks=(), pitch_peaks=(), yaw_peaks=()):
    return NoiseProfile(
        roll=AxisNoiseProfile(noise_floor_db=-40.0, peaks=list(roll_peaks)),
        pitch=AxisNoiseProfile(noise_floor_db=-40.0, peaks=list(pitch_peaks)),
        yaw=AxisNoiseProfile(noise_floor_db=-40.0, peaks=list(yaw_peaks)),
        overall_level=level,
    )


def _peak(freq, db=20.0, kind=NoisePeakType.FRAME_RESONANCE):
    return NoisePeak(frequency=freq, amplitude=db, type=kind)


def _by_setting(recs):
    return {r.setting: r for r in recs}


# ── recommend: noise floor ───────────────────────────────────────────────────

class TestNoiseFloorRules:
    """Noise level nudges the lowpass cutoffs."""

    def test_medium_clean_profile_no_changes(self):
        assert recommend(_make_noise()) == []

    def test_high_noise_lowers_cutoffs(self):
        recs = _by_setting(recommend(_make_noise(NoiseLevel.HIGH)))
        assert recs["gyro_lpf1_static_hz"].current_value == 250
        assert recs["gyro_lpf1_static_hz"].recommended_value == 200
        assert recs["dterm_lpf1_static_hz"].recommended_value == 130
        assert all(r.confidence is Confidence.HIGH for r in recs.values())
        assert all(isinstance(r, FilterRecommendation) for r in recs.values())

    def test_low_noise_raises_cutoffs(self):
        recs = _by_setting(recommend(_make_noise(NoiseLevel.LOW)))
        assert recs["gyro_lpf1_static_hz"].recommended_value == 300
        assert recs["dterm_lpf1_static_hz"].recommended_value == 170
        assert recs["gyro_lpf1_static_hz"].impact is Impact.LATENCY
        assert recs["gyro_lpf1_static_hz"].confidence is Confidence.MEDIUM

    def test_low_noise_already_at_ceiling(self):
        current = FilterSettings(gyro_lpf1_static_hz=300, dterm_lpf1_static_hz=200)
        assert recommend(_make_noise(NoiseLevel.LOW), current) == []

    def test_high_noise_clamped_to_floor(self):
        current = FilterSettings(gyro_lpf1_static_hz=100, dterm_lpf1_static_hz=80)
        recs = _by_setting(recommend(_make_noise(NoiseLevel.HIGH), current))
        assert recs["gyro_lpf1_static_hz"].recommended_value == 75
        assert recs["dterm_lpf1_static_hz"].recommended_value == 70

    def test_disabled_gyro_lowpass_left_alone(self):
        current = FilterSettings(gyro_lpf1_static_hz=0)
        recs = _by_setting(recommend(_make_noise(NoiseLevel.HIGH), current))
        assert "gyro_lpf1_static_hz" not in recs
        assert "dterm_lpf1_static_hz" in recs

    def test_level_given_as_string(self):
        recs = recommend(_make_noise("high"))
        assert len(recs) == 2


# ── recommend: resonance / dynamic notch ─────────────────────────────────────

class TestPeakRules:
    """Strong peaks move lowpass cutoffs and the dynamic notch range."""

    def test_resonance_below_cutoffs(self):
        recs = _by_setting(recommend(_make_noise(roll_peaks=[_peak(120.0)])))
        assert recs["gyro_lpf1_static_hz"].recommended_value == 100
        assert recs["dterm_lpf1_static_hz"].recommended_value == 100
        assert recs["dyn_notch_min_hz"].recommended_value == 100
        assert recs["dyn_notch_min_hz"].impact is Impact.NOISE
        assert "frame resonance" in recs["gyro_lpf1_static_hz"].reason

    def test_lowest_strong_peak_drives_lowpass(self):
        noise = _make_noise(roll_peaks=[_peak(220.0)], pitch_peaks=[_peak(180.0)])
        recs = _by_setting(recommend(noise))
        assert recs["gyro_lpf1_static_hz"].recommended_value == 160

    def test_weak_peak_ignored(self):
        assert recommend(_make_noise(roll_peaks=[_peak(120.0, db=10.0)])) == []

    def test_peak_above_cutoff_and_inside_notch_range(self):
        assert recommend(_make_noise(roll_peaks=[_peak(280.0)])) == []

    def test_yaw_peak_only_widens_notch(self):
        recs = _by_setting(recommend(_make_noise(yaw_peaks=[_peak(700.0)])))
        assert set(recs) == {"dyn_notch_max_hz"}
        assert recs["dyn_notch_max_hz"].current_value == 600
        assert recs["dyn_notch_max_hz"].recommended_value == 720

    def test_notch_bounds_clamped(self):
        noise = _make_noise(yaw_peaks=[_peak(60.0), _peak(995.0)])
        recs = _by_setting(recommend(noise))
        assert recs["dyn_notch_min_hz"].recommended_value == 50
        assert recs["dyn_notch_max_hz"].recommended_value == 1000

    def test_disabled_gyro_lowpass_enabled_for_resonance(self):
        current = FilterSettings(gyro_lpf1_static_hz=0)
        recs = _by_setting(recommend(_make_noise(roll_peaks=[_peak(150.0)]), current))
        rec = recs["gyro_lpf1_static_hz"]
        assert rec.current_value == 0
        assert rec.recommended_value == 130
        assert "disabled" in rec.reason

    def test_high_noise_and_resonance_keep_lowest(self):
        noise = _make_noise(NoiseLevel.HIGH, roll_peaks=[_peak(120.0)])
        recs = recommend(noise)
        settings = [r.setting for r in recs]
        assert len(settings) == len(set(settings))
        by = _by_setting(recs)
        assert by["gyro_lpf1_static_hz"].recommended_value == 100
        assert by["dterm_lpf1_static_hz"].recommended_value == 100
        assert by["gyro_lpf1_static_hz"].confidence is Confidence.HIGH


# ── _deduplicate ─────────────────────────────────────────────────────────────

class TestDeduplicate:
    """One recommendation per setting, more aggressive value wins."""

    def _rec(self, setting, value, confidence):
        return FilterRecommendation(setting, 250, value, "r", Impact.BOTH, confidence)

    def test_lower_lowpass_wins_and_keeps_high_confidence(self):
        recs = _deduplicate([
            self._rec("gyro_lpf1_static_hz", 200, Confidence.HIGH),
            self._rec("gyro_lpf1_static_hz", 180, Confidence.MEDIUM),
        ])
        assert len(recs) == 1
        assert recs[0].recommended_value == 180
        assert recs[0].confidence is Confidence.HIGH

    def test_higher_lowpass_loses(self):
        recs = _deduplicate([
            self._rec("dterm_lpf1_static_hz", 130, Confidence.HIGH),
            self._rec("dterm_lpf1_static_hz", 170, Confidence.MEDIUM),
        ])
        assert recs[0].recommended_value == 130

    def test_notch_max_prefers_higher(self):
        recs = _deduplicate([
            self._rec("dyn_notch_max_hz", 650, Confidence.MEDIUM),
            self._rec("dyn_notch_max_hz", 720, Confidence.LOW),
        ])
        assert recs[0].recommended_value == 720
        assert recs[0].confidence is Confidence.LOW

    def test_notch_min_prefers_lower(self):
        recs = _deduplicate([
            self._rec("dyn_notch_min_hz", 120, Confidence.MEDIUM),
            self._rec("dyn_notch_min_hz", 90, Confidence.MEDIUM),
        ])
        assert recs[0].recommended_value == 90


# ── generate_summary ─────────────────────────────────────────────────────────

class TestGenerateSummary:
    """Tests for generate_summary()."""

    @pytest.mark.parametrize("level,opening", [
        (NoiseLevel.HIGH, "Your quad has significant vibration or noise."),
        (NoiseLevel.LOW, "Your quad is running very clean!"),
        (NoiseLevel.MEDIUM, "Your noise levels are moderate."),
    ])
    def test_opening_sentence(self, level, opening):
        assert generate_summary(_make_noise(level), []).startswith(opening)

    def test_no_changes(self):
        summary = generate_summary(_make_noise(), [])
        assert summary.endswith("Current filter settings look good, no changes needed.")

    def test_mentions_peaks_and_count(self):
        noise = _make_noise(
            roll_peaks=[_peak(120.0)],
            pitch_peaks=[_peak(410.0, kind=NoisePeakType.MOTOR_HARMONIC)],
        )
        recs = recommend(noise)
        summary = generate_summary(noise, recs)
        assert "Frame resonance detected around 120 Hz." in summary
        assert "Motor harmonic noise detected around 410 Hz." in summary
        assert summary.endswith(f"{len(recs)} filter changes recommended.")

    def test_single_change_wording(self):
        noise = _make_noise(yaw_peaks=[_peak(700.0)])
        assert generate_summary(noise, recommend(noise)).endswith("1 filter change recommended.")
