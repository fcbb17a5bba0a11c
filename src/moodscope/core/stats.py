"""
Frame-local summary statistics.

Two independent band partitions live here and are deliberately kept apart:

* :class:`StatsExtractor` splits the frame into three equal thirds for the
  bass/mid/treble meters shown to renderers.
* :class:`BandEnergyProfiler` uses proportional 15% / 60% / 25% cut points
  tuned for emotion classification.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from moodscope.core.frame import BYTE_MAX
from moodscope.errors import FrameShapeError


@dataclass(frozen=True)
class AudioStats:
    """Loudness summary of one frame, every field in [0.0, 1.0]."""

    volume: float = 0.0
    bass: float = 0.0
    mid: float = 0.0
    treble: float = 0.0
    peak: float = 0.0
    rms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "volume": self.volume,
            "bass": self.bass,
            "mid": self.mid,
            "treble": self.treble,
            "peak": self.peak,
            "rms": self.rms,
        }


@dataclass(frozen=True)
class BandProfile:
    """Normalized low/mid/high/total energy plus whole-frame variance."""

    low: float
    mid: float
    high: float
    total: float
    variance: float  # raw byte units, not normalized


def band_mean(values: np.ndarray) -> float:
    """Mean of a band in raw units; an empty band has no energy."""
    if values.size == 0:
        return 0.0
    return float(values.mean(dtype=np.float64))


class StatsExtractor:
    """
    Derives :class:`AudioStats` from a single frame.

    Stateless apart from the optional length check.
    """

    def __init__(self, expected_length: Optional[int] = None):
        """
        Args:
            expected_length: When set, frames of any other length are rejected.
        """
        self.expected_length = expected_length

    def _check(self, frame: np.ndarray) -> np.ndarray:
        if frame.ndim != 1:
            raise FrameShapeError(f"frame must be 1-D, got shape {frame.shape}")
        if frame.size == 0:
            raise FrameShapeError("cannot extract stats from an empty frame")
        if self.expected_length is not None and frame.size != self.expected_length:
            raise FrameShapeError(
                f"frame length {frame.size} != expected {self.expected_length}"
            )
        return frame.astype(np.float64)

    def extract(self, frame: np.ndarray) -> AudioStats:
        """
        Compute volume, band levels, peak and RMS for *frame*.

        Raises:
            FrameShapeError: If the frame is empty or the wrong length.
        """
        data = self._check(np.asarray(frame))
        n = data.size
        third = n // 3

        volume = data.mean() / BYTE_MAX
        peak = data.max() / BYTE_MAX
        rms = np.sqrt(np.mean(data ** 2)) / BYTE_MAX

        bass = band_mean(data[:third]) / BYTE_MAX
        mid = band_mean(data[third:third * 2]) / BYTE_MAX
        treble = band_mean(data[third * 2:]) / BYTE_MAX

        return AudioStats(
            volume=float(np.clip(volume, 0.0, 1.0)),
            bass=float(np.clip(bass, 0.0, 1.0)),
            mid=float(np.clip(mid, 0.0, 1.0)),
            treble=float(np.clip(treble, 0.0, 1.0)),
            peak=float(np.clip(peak, 0.0, 1.0)),
            rms=float(np.clip(rms, 0.0, 1.0)),
        )


class BandEnergyProfiler:
    """Proportional low/mid/high profile used by the emotion classifier."""

    def __init__(self, low_cut: float = 0.15, high_cut: float = 0.75):
        if not 0.0 <= low_cut <= high_cut <= 1.0:
            raise ValueError(
                f"cut points must satisfy 0 <= low <= high <= 1, got {low_cut}, {high_cut}"
            )
        self.low_cut = low_cut
        self.high_cut = high_cut

    def cut_points(self, n: int) -> tuple:
        """Return the (mid_start, high_start) bin indices for an *n*-bin frame."""
        return int(np.floor(n * self.low_cut)), int(np.floor(n * self.high_cut))

    def profile(self, frame: np.ndarray) -> BandProfile:
        """
        Profile one frame.

        Cut points are floor-rounded, so very short frames leave the low and
        mid bands empty; empty bands read as zero energy.
        """
        data = np.asarray(frame, dtype=np.float64)
        if data.size == 0:
            raise FrameShapeError("cannot profile an empty frame")
        mid_start, high_start = self.cut_points(data.size)

        total = data.mean()
        return BandProfile(
            low=band_mean(data[:mid_start]) / BYTE_MAX,
            mid=band_mean(data[mid_start:high_start]) / BYTE_MAX,
            high=band_mean(data[high_start:]) / BYTE_MAX,
            total=float(total / BYTE_MAX),
            variance=float(np.mean((data - total) ** 2)),
        )
