"""
Online beat detection and tempo estimation.

A beat is a bass-band spike above an adaptive threshold, debounced so a
single transient cannot fire twice. Tempo comes from the spacing of the
last few beats: the intervals are trimmed of their extremes, converted to
BPM, run through a linearly weighted moving average, and finally blended
into a persisted estimate so the reported tempo drifts rather than jumps.

Everything is rounded half-up to whole BPM, which is what renderers and
the exported contract expect.
"""

import logging
import math
from collections import deque
from enum import Enum
from typing import Deque, List, Optional

import numpy as np

from moodscope.config import BeatConfig
from moodscope.core.stats import band_mean

logger = logging.getLogger(__name__)


class BeatPhase(Enum):
    """How far the detector has progressed in the current session."""

    IDLE = "idle"              # no beats yet
    TRACKING = "tracking"      # at least one beat
    ESTIMATING = "estimating"  # enough beats retained to estimate tempo


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class BeatDetector:
    """
    Stateful bass-onset beat detector with a smoothed BPM estimate.

    Feed it one frame per tick via :meth:`update`. Ticks without a beat,
    or with an implausible tempo, leave the estimate untouched.
    """

    def __init__(self, config: Optional[BeatConfig] = None):
        self.config = config or BeatConfig()
        cfg = self.config

        self.last_beat_ms: Optional[float] = None
        self.beat_times: Deque[float] = deque(maxlen=cfg.max_beats)
        self.bpm_buffer: Deque[int] = deque(maxlen=cfg.smoothing_slots)
        self.smoothed_bpm: int = 0
        self.bpm_history: Deque[int] = deque(maxlen=cfg.history_len)

    @property
    def phase(self) -> BeatPhase:
        if not self.beat_times:
            return BeatPhase.IDLE
        if len(self.beat_times) < 3:
            return BeatPhase.TRACKING
        return BeatPhase.ESTIMATING

    @property
    def history(self) -> List[int]:
        """Copy of the smoothed BPM history, oldest first."""
        return list(self.bpm_history)

    def threshold(self, overall_energy: float) -> float:
        cfg = self.config
        return max(overall_energy * cfg.threshold_ratio, cfg.threshold_floor)

    def bass_energy(self, frame: np.ndarray) -> float:
        bass_bins = int(np.floor(frame.size * self.config.bass_fraction))
        return band_mean(np.asarray(frame[:bass_bins], dtype=np.float64))

    def update(self, frame: np.ndarray, now_ms: float) -> bool:
        """
        Process one frame.

        Args:
            frame: Frequency magnitudes for this tick.
            now_ms: Tick timestamp in milliseconds.

        Returns:
            True if a beat fired on this tick.
        """
        bass = self.bass_energy(frame)
        overall = band_mean(np.asarray(frame, dtype=np.float64))

        if bass <= self.threshold(overall):
            return False
        if (
            self.last_beat_ms is not None
            and now_ms - self.last_beat_ms < self.config.debounce_ms
        ):
            return False

        self.beat_times.append(now_ms)
        self.last_beat_ms = now_ms
        self._estimate()
        return True

    def _estimate(self) -> None:
        cfg = self.config
        if len(self.beat_times) < 3:
            return

        intervals = sorted(np.diff(np.asarray(self.beat_times, dtype=np.float64)))
        # Drop the shortest and longest interval (missed or doubled beats).
        trimmed = intervals[1:-1]
        if not trimmed:
            return

        avg_interval = float(np.mean(trimmed))
        if avg_interval <= 0:
            return
        raw_bpm = round_half_up(60000.0 / avg_interval)
        if not cfg.min_bpm <= raw_bpm <= cfg.max_bpm:
            return

        self.bpm_buffer.append(raw_bpm)
        weights = np.arange(1, len(self.bpm_buffer) + 1, dtype=np.float64)
        weighted = round_half_up(
            float(np.dot(np.asarray(self.bpm_buffer, dtype=np.float64), weights) / weights.sum())
        )

        if self.smoothed_bpm == 0:
            self.smoothed_bpm = weighted
        else:
            self.smoothed_bpm = round_half_up(
                self.smoothed_bpm * cfg.persist_weight
                + weighted * (1.0 - cfg.persist_weight)
            )

        self.bpm_history.append(self.smoothed_bpm)
        logger.debug("raw bpm %d -> smoothed %d", raw_bpm, self.smoothed_bpm)
