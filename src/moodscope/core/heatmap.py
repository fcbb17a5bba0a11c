"""
Rolling band-energy heatmap.

Only every ``stride``-th tick is sampled. A sampled frame is squeezed into
``bins`` averages and written into a preallocated ring, so the per-tick cost
stays constant no matter how long a session runs.
"""

from typing import Optional

import numpy as np

from moodscope.config import HeatmapConfig


def downsample(frame: np.ndarray, bins: int = 16) -> np.ndarray:
    """
    Average *frame* into *bins* equal contiguous groups.

    The group size is ``len(frame) // bins`` and the trailing remainder is
    ignored. Frames shorter than *bins* take the nearest sample per bin.
    """
    data = np.asarray(frame, dtype=np.float64)
    n = data.size
    size = n // bins
    if size == 0:
        return data[(np.arange(bins) * n) // bins]
    return data[: size * bins].reshape(bins, size).mean(axis=1)


class HeatmapAccumulator:
    """Fixed-capacity FIFO of downsampled frames."""

    def __init__(self, config: Optional[HeatmapConfig] = None):
        self.config = config or HeatmapConfig()
        cfg = self.config
        self.tick_count = 0
        self._rows = np.zeros((cfg.capacity, cfg.bins), dtype=np.float64)
        self._write = 0
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def update(self, frame: np.ndarray) -> bool:
        """
        Count a tick and sample *frame* if this tick is on the stride.

        Returns:
            True if a row was appended.
        """
        cfg = self.config
        self.tick_count += 1
        if self.tick_count % cfg.stride != 0:
            return False

        self._rows[self._write] = downsample(frame, cfg.bins)
        self._write = (self._write + 1) % cfg.capacity
        self._count = min(self._count + 1, cfg.capacity)
        return True

    def snapshot(self) -> np.ndarray:
        """Rows oldest-first as a new read-only ``(len, bins)`` array."""
        if self._count < self.config.capacity:
            rows = self._rows[: self._count].copy()
        else:
            rows = np.roll(self._rows, -self._write, axis=0)
        rows.flags.writeable = False
        return rows
