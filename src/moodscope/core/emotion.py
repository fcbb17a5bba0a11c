"""
Coarse emotion classification with temporal debounce.

Each frame is classified by an ordered rule list (first match wins, so the
order encodes priority). The raw labels then go through a short rolling
vote before the published emotion is allowed to change, which keeps the
visuals from flickering on single-frame misclassifications.
"""

import logging
from collections import Counter, deque
from enum import Enum
from typing import Deque, Optional

import numpy as np

from moodscope.config import EmotionConfig
from moodscope.core.stats import BandEnergyProfiler, BandProfile

logger = logging.getLogger(__name__)


class Emotion(str, Enum):
    EXCITED = "excited"
    CALM = "calm"
    SAD = "sad"
    ROMANTIC = "romantic"
    TENSE = "tense"
    NEUTRAL = "neutral"


def classify(profile: BandProfile, erratic_variance: float = 2000.0) -> Emotion:
    """
    Map a band profile to a raw emotion label.

    The checks run top to bottom and the first hit wins.
    """
    low, mid, high, total = profile.low, profile.mid, profile.high, profile.total

    if profile.variance > erratic_variance and high > 0.6:
        return Emotion.TENSE
    if low > 0.6 and total > 0.5:
        return Emotion.EXCITED
    if total > 0.7 and high > 0.6:
        return Emotion.EXCITED
    if low > 0.5 and total > 0.3:
        return Emotion.EXCITED
    if total < 0.3 and low > high and low < 0.4:
        return Emotion.CALM
    if mid > 0.5 and 0.4 < total < 0.7 and low < 0.5:
        return Emotion.ROMANTIC
    if total < 0.2:
        return Emotion.SAD
    return Emotion.NEUTRAL


def dominant_label(labels) -> tuple:
    """
    Return ``(label, count)`` for the most frequent label.

    Ties go to the label that first appears earliest in *labels*;
    ``Counter`` keeps insertion order and ``most_common`` is stable.
    """
    (label, count), = Counter(labels).most_common(1)
    return label, count


class EmotionClassifier:
    """Per-tick classifier that publishes a debounced emotion."""

    def __init__(self, config: Optional[EmotionConfig] = None):
        self.config = config or EmotionConfig()
        cfg = self.config
        self.profiler = BandEnergyProfiler(cfg.low_cut, cfg.high_cut)

        self.history: Deque[Emotion] = deque(maxlen=cfg.history_len)
        self.current: Emotion = Emotion.NEUTRAL
        self.last_change_ms: Optional[float] = None

    def update(self, frame: np.ndarray, now_ms: float) -> Emotion:
        """
        Classify *frame*, record it, and maybe publish a new emotion.

        Returns:
            The raw (undebounced) label for this frame.
        """
        cfg = self.config
        raw = classify(self.profiler.profile(frame), cfg.erratic_variance)
        self.history.append(raw)

        if len(self.history) < cfg.min_history:
            return raw
        if self.last_change_ms is not None and now_ms - self.last_change_ms < cfg.dwell_ms:
            return raw

        label, count = dominant_label(self.history)
        if label == self.current:
            return raw
        if cfg.require_majority and count * 2 <= len(self.history):
            return raw

        logger.debug("emotion %s -> %s (%d/%d)", self.current.value, label.value,
                     count, len(self.history))
        self.current = label
        self.last_change_ms = now_ms
        return raw
