"""Tests for emotion classification and debounce."""

import numpy as np
import pytest

from moodscope.config import EmotionConfig
from moodscope.core.emotion import Emotion, EmotionClassifier, classify, dominant_label
from moodscope.core.stats import BandEnergyProfiler

from conftest import calm_frame, constant_frame, tense_frame


def romantic_frame(n=64):
    frame = np.full(n, 160, dtype=np.uint8)
    frame[:9] = 100
    frame[48:] = 60
    return frame


def erratic_excited_frame(n=64):
    """Loud, bright and spiky: matches the tense and excited rules alike."""
    frame = np.full(n, 120, dtype=np.uint8)
    frame[:9] = 255
    frame[48:] = 255
    return frame


def label_of(frame):
    return classify(BandEnergyProfiler().profile(frame))


class TestClassify:
    def test_near_silence_is_sad(self):
        assert label_of(constant_frame(5)) is Emotion.SAD

    def test_bright_erratic_is_tense(self):
        assert label_of(tense_frame()) is Emotion.TENSE

    def test_loud_bass_is_excited(self):
        assert label_of(constant_frame(200)) is Emotion.EXCITED

    def test_quiet_bass_leaning_is_calm(self):
        assert label_of(calm_frame()) is Emotion.CALM

    def test_mid_heavy_is_romantic(self):
        assert label_of(romantic_frame()) is Emotion.ROMANTIC

    def test_middling_flat_is_neutral(self):
        assert label_of(constant_frame(100)) is Emotion.NEUTRAL

    def test_rule_order_prefers_tense(self):
        assert label_of(erratic_excited_frame()) is Emotion.TENSE

    def test_variance_threshold_is_configurable(self):
        profile = BandEnergyProfiler().profile(erratic_excited_frame())
        assert classify(profile, erratic_variance=1e9) is Emotion.EXCITED

    def test_labels_are_strings(self):
        assert Emotion.CALM == "calm"
        assert {e.value for e in Emotion} == {
            "excited", "calm", "sad", "romantic", "tense", "neutral",
        }


class TestDominantLabel:
    def test_most_frequent(self):
        assert dominant_label(["a", "b", "b"]) == ("b", 2)

    def test_tie_goes_to_earliest_first_occurrence(self):
        assert dominant_label(["sad", "calm", "calm", "sad"]) == ("sad", 2)


class TestEmotionClassifier:
    @pytest.fixture
    def classifier(self):
        return EmotionClassifier()

    def publish(self, classifier, frame, start_ms=0.0, count=5, step=10.0):
        for i in range(count):
            classifier.update(frame, start_ms + i * step)

    def test_starts_neutral(self, classifier):
        assert classifier.current is Emotion.NEUTRAL
        assert classifier.last_change_ms is None

    def test_needs_min_history(self, classifier):
        for i in range(4):
            classifier.update(calm_frame(), i * 10.0)
        assert classifier.current is Emotion.NEUTRAL
        classifier.update(calm_frame(), 40.0)
        assert classifier.current is Emotion.CALM
        assert classifier.last_change_ms == 40.0

    def test_returns_raw_label(self, classifier):
        assert classifier.update(tense_frame(), 0.0) is Emotion.TENSE
        assert classifier.current is Emotion.NEUTRAL

    def test_single_outlier_does_not_change_published(self, classifier):
        self.publish(classifier, calm_frame())
        assert classifier.current is Emotion.CALM

        t = 2000.0
        for i in range(9):
            classifier.update(calm_frame(), t + i * 10.0)
        classifier.update(tense_frame(), t + 100.0)
        assert classifier.current is Emotion.CALM
        for i in range(5):
            classifier.update(calm_frame(), t + 110.0 + i * 10.0)
            assert classifier.current is Emotion.CALM

    def test_dwell_blocks_quick_change(self, classifier):
        self.publish(classifier, calm_frame())  # published at t=40
        t = 50.0
        while t < 1040.0:
            classifier.update(constant_frame(5), t)
            assert classifier.current is Emotion.CALM
            t += 10.0
        classifier.update(constant_frame(5), 1040.0)
        assert classifier.current is Emotion.SAD
        assert classifier.last_change_ms == 1040.0

    def test_history_is_bounded(self, classifier):
        for i in range(25):
            classifier.update(calm_frame(), i * 10.0)
        assert len(classifier.history) == 10

    def _mixed_sequence(self, classifier):
        sad, neutral, calm = constant_frame(5), constant_frame(100), calm_frame()
        for i, frame in enumerate([sad, neutral, calm, sad, neutral,
                                   calm, calm, sad, neutral, calm]):
            classifier.update(frame, i * 10.0)

    def test_plurality_without_majority_is_not_published(self, classifier):
        self._mixed_sequence(classifier)
        assert classifier.current is Emotion.NEUTRAL

    def test_plurality_publishes_when_majority_not_required(self):
        classifier = EmotionClassifier(EmotionConfig(require_majority=False))
        self._mixed_sequence(classifier)
        # sad leads the first full vote (2/5, ties broken by first occurrence)
        assert classifier.current is Emotion.SAD
        assert classifier.last_change_ms == 40.0
