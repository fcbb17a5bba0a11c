"""
Frame sources.

A frame source hands the analysis loop one byte-scaled magnitude spectrum
per tick, or None when no audio is flowing. Live capture lives outside this
package; these sources replay in-memory data or decode an audio file.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Union

import librosa
import numpy as np
from scipy import signal as scipy_signal

from moodscope.core.frame import as_frame


class ArrayFrameSource:
    """
    Replays a fixed sequence of frames.

    ``None`` entries stand for ticks with no audio.
    """

    def __init__(
        self,
        frames: Iterable[Optional[Iterable[int]]],
        frame_length: Optional[int] = None,
        fps: int = 60,
    ):
        self._frames: List[Optional[np.ndarray]] = [
            None if f is None else as_frame(f) for f in frames
        ]
        if frame_length is None:
            lengths = {f.size for f in self._frames if f is not None}
            if len(lengths) != 1:
                raise ValueError(
                    "frame_length is required when frames are absent or of mixed length"
                )
            frame_length = lengths.pop()
        self.frame_length = frame_length
        self.fps = fps
        self._index = 0

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def exhausted(self) -> bool:
        return self._index >= len(self._frames)

    @property
    def position_ms(self) -> float:
        """Timestamp of the most recently read frame."""
        return max(self._index - 1, 0) * 1000.0 / self.fps

    def read(self) -> Optional[np.ndarray]:
        if self.exhausted:
            return None
        frame = self._frames[self._index]
        self._index += 1
        return frame


class AudioFileFrameSource:
    """
    Decodes an audio file into per-tick byte spectra.

    Mimics a browser analyser node so frames match what a live capture
    would deliver: Blackman window, magnitude scaled by the FFT size,
    exponential time smoothing, decibel conversion, and a linear map of
    ``[min_db, max_db]`` onto 0..255. Only the lowest ``usable_fraction`` of
    the bins is kept; the top of a 256-point analyser is mostly empty for
    music.

    Args:
        audio_path: Path to an audio file (wav, mp3, flac).
        fps: Ticks per second; one hop of ``sr / fps`` samples per tick.
        fft_size: Analyser FFT size; yields ``fft_size // 2`` raw bins.
        smoothing: Time smoothing constant in [0, 1).
        min_db: Level mapped to 0.
        max_db: Level mapped to 255.
        usable_fraction: Share of the low bins handed out per frame.
        sr: Decode sample rate (None keeps the file's rate).
        max_duration: Optional cap in seconds.
    """

    def __init__(
        self,
        audio_path: Union[str, Path],
        fps: int = 60,
        fft_size: int = 256,
        smoothing: float = 0.8,
        min_db: float = -100.0,
        max_db: float = -30.0,
        usable_fraction: float = 0.66,
        sr: Optional[int] = 22050,
        max_duration: Optional[float] = None,
    ):
        if not 0.0 <= smoothing < 1.0:
            raise ValueError(f"smoothing must be in [0, 1), got {smoothing}")
        if max_db <= min_db:
            raise ValueError("max_db must be greater than min_db")

        self.audio_path = Path(audio_path)
        self.fps = fps
        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_db = min_db
        self.max_db = max_db

        y, self.sample_rate = librosa.load(
            self.audio_path, sr=sr, mono=True, duration=max_duration
        )
        self._samples = y.astype(np.float32)
        self.duration = librosa.get_duration(y=y, sr=self.sample_rate)
        self.hop_length = max(1, int(self.sample_rate / fps))
        self.n_ticks = int(np.ceil(len(self._samples) / self.hop_length))

        self.frame_length = max(1, int(np.floor((fft_size // 2) * usable_fraction)))
        self._window = scipy_signal.get_window("blackman", fft_size)
        self._smoothed = np.zeros(fft_size // 2, dtype=np.float64)
        self._index = 0

    def __len__(self) -> int:
        return self.n_ticks

    @property
    def exhausted(self) -> bool:
        return self._index >= self.n_ticks

    @property
    def position_ms(self) -> float:
        return max(self._index - 1, 0) * 1000.0 / self.fps

    def _block(self, index: int) -> np.ndarray:
        """The ``fft_size`` samples ending at the end of hop *index*."""
        end = min((index + 1) * self.hop_length, len(self._samples))
        start = end - self.fft_size
        if start >= 0:
            return self._samples[start:end]
        block = np.zeros(self.fft_size, dtype=np.float32)
        block[-end:] = self._samples[:end] if end > 0 else 0.0
        return block

    def spectrum(self, block: np.ndarray) -> np.ndarray:
        """Byte-scale one block, updating the time-smoothing state."""
        mag = np.abs(np.fft.rfft(block * self._window))[: self.fft_size // 2]
        mag /= self.fft_size
        self._smoothed = self.smoothing * self._smoothed + (1.0 - self.smoothing) * mag
        db = 20.0 * np.log10(np.maximum(self._smoothed, 1e-12))
        scaled = (db - self.min_db) * (255.0 / (self.max_db - self.min_db))
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def read(self) -> Optional[np.ndarray]:
        if self.exhausted:
            return None
        frame = self.spectrum(self._block(self._index))
        self._index += 1
        return frame[: self.frame_length]
