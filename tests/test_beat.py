"""Tests for beat detection and BPM estimation."""

import numpy as np
import pytest

from moodscope.config import BeatConfig
from moodscope.core.beat import BeatDetector, BeatPhase, round_half_up

from conftest import bass_pulse_frame, constant_frame


def feed_pulses(detector, interval_ms, count, start_ms=0.0):
    """Alternate a pulse with a quiet frame; returns the fired flags."""
    pulse = bass_pulse_frame()
    quiet = constant_frame(0)
    fired = []
    for i in range(count):
        t = start_ms + i * interval_ms
        fired.append(detector.update(pulse, t))
        detector.update(quiet, t + interval_ms / 2)
    return fired


class TestRoundHalfUp:
    @pytest.mark.parametrize("value,expected", [
        (119.5, 120), (120.5, 121), (120.49, 120), (0.5, 1), (2.5, 3),
    ])
    def test_rounds_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestBeatDetection:
    @pytest.fixture
    def detector(self):
        return BeatDetector()

    def test_threshold_has_floor(self, detector):
        assert detector.threshold(0.0) == 50.0
        assert detector.threshold(100.0) == 150.0

    def test_pulse_fires_beat(self, detector):
        assert detector.update(bass_pulse_frame(), 0.0) is True
        assert detector.last_beat_ms == 0.0

    def test_silence_never_fires(self, detector):
        for t in range(0, 5000, 16):
            assert detector.update(constant_frame(0), float(t)) is False
        assert detector.phase is BeatPhase.IDLE

    def test_flat_loud_frame_is_not_a_beat(self, detector):
        # bass equals the overall mean, so it cannot clear 1.5x of it
        assert detector.update(constant_frame(255), 0.0) is False

    def test_first_beat_is_not_suppressed(self, detector):
        assert detector.update(bass_pulse_frame(), 10.0) is True

    def test_debounce_merges_close_pulses(self, detector):
        pulse = bass_pulse_frame()
        assert detector.update(pulse, 0.0) is True
        assert detector.update(pulse, 100.0) is False
        assert len(detector.beat_times) == 1

    def test_debounce_boundary(self, detector):
        pulse = bass_pulse_frame()
        detector.update(pulse, 0.0)
        assert detector.update(pulse, 299.0) is False
        assert detector.update(pulse, 300.0) is True

    def test_phases(self, detector):
        assert detector.phase is BeatPhase.IDLE
        feed_pulses(detector, 500, 1)
        assert detector.phase is BeatPhase.TRACKING
        feed_pulses(detector, 500, 2, start_ms=500)
        assert detector.phase is BeatPhase.ESTIMATING

    def test_beat_times_are_bounded(self, detector):
        feed_pulses(detector, 500, 20)
        assert len(detector.beat_times) == 6


class TestBpmEstimation:
    @pytest.fixture
    def detector(self):
        return BeatDetector()

    def test_steady_120_bpm(self, detector):
        feed_pulses(detector, 500, 7)
        assert abs(detector.smoothed_bpm - 120) <= 5
        assert detector.smoothed_bpm == 120

    def test_three_beats_give_no_estimate(self, detector):
        feed_pulses(detector, 500, 3)
        assert detector.smoothed_bpm == 0
        assert detector.history == []

    def test_fourth_beat_gives_first_estimate(self, detector):
        feed_pulses(detector, 500, 4)
        assert detector.smoothed_bpm == 120
        assert detector.history == [120]

    def test_out_of_range_tempo_is_ignored(self, detector):
        feed_pulses(detector, 3000, 6)  # 20 BPM
        assert detector.smoothed_bpm == 0
        assert detector.history == []

    def test_tempo_change_drifts_toward_new_rate(self, detector):
        feed_pulses(detector, 500, 8)
        assert detector.smoothed_bpm == 120
        feed_pulses(detector, 600, 20, start_ms=8 * 500)
        assert abs(detector.smoothed_bpm - 100) <= 5

        steps = np.diff(detector.history)
        assert (steps <= 0).all()

    def test_estimate_stays_in_range(self, detector):
        rng = np.random.default_rng(7)
        t = 0.0
        for _ in range(60):
            t += float(rng.uniform(300, 1500))
            detector.update(bass_pulse_frame(), t)
            if detector.smoothed_bpm:
                assert 30 <= detector.smoothed_bpm <= 300

    def test_history_is_bounded(self):
        detector = BeatDetector(BeatConfig(history_len=5))
        feed_pulses(detector, 500, 20)
        assert len(detector.history) == 5

    def test_history_is_a_copy(self, detector):
        feed_pulses(detector, 500, 5)
        detector.history.append(999)
        assert 999 not in detector.bpm_history
