"""Shared fixtures: deterministic clock and synthetic frequency frames."""

import numpy as np
import pytest

N_BINS = 64


class FakeClock:
    """Millisecond clock advanced explicitly by the test."""

    def __init__(self, start: float = 0.0, step: float = 1000.0 / 60.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float = None) -> float:
        self.now += self.step if ms is None else ms
        return self.now


def constant_frame(value: int, n: int = N_BINS) -> np.ndarray:
    return np.full(n, value, dtype=np.uint8)


def bass_pulse_frame(n: int = N_BINS) -> np.ndarray:
    """Loud lowest 10% of bins, silence elsewhere: always clears the beat threshold."""
    frame = np.zeros(n, dtype=np.uint8)
    frame[: max(1, int(n * 0.1))] = 255
    return frame


def calm_frame(n: int = N_BINS) -> np.ndarray:
    """Quiet frame with a little more low end than top end."""
    frame = np.full(n, 60, dtype=np.uint8)
    frame[: int(n * 0.15)] = 90
    return frame


def tense_frame(n: int = N_BINS) -> np.ndarray:
    """Silent except for a saturated top quarter: erratic and bright."""
    frame = np.zeros(n, dtype=np.uint8)
    frame[int(n * 0.75):] = 255
    return frame


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def silent_frame():
    return constant_frame(0)


@pytest.fixture
def loud_frame():
    return constant_frame(255)


@pytest.fixture
def noisy_frames():
    """Reproducible non-trivial frames."""
    rng = np.random.default_rng(1234)
    return [rng.integers(0, 256, N_BINS, dtype=np.uint8) for _ in range(120)]
