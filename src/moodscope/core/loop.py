"""
Per-tick analysis loop.

:class:`AnalysisLoop` is the only place that owns analyzer state. Each
session (``start`` to ``stop``) gets brand new component instances, so a new
audio source never inherits tempo or emotion history from the last one.

Tick order::

    frame (or zero placeholder)
        │
        ├─► StatsExtractor      → AudioStats
        ├─► BeatDetector        → BPM estimate
        ├─► EmotionClassifier   → published emotion
        ├─► ColorMapper         → eased HSL color
        ├─► HeatmapAccumulator  → decimated band history
        │
        └─► FeatureBundle ─► every renderer (failures isolated per renderer)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

import numpy as np

from moodscope.config import AnalysisConfig
from moodscope.core.beat import BeatDetector
from moodscope.core.color import ColorMapper, HSLColor
from moodscope.core.emotion import Emotion, EmotionClassifier
from moodscope.core.frame import FrameLike, as_frame, zero_frame
from moodscope.core.heatmap import HeatmapAccumulator
from moodscope.core.stats import AudioStats, StatsExtractor

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    """Default clock: monotonic time in milliseconds."""
    return time.monotonic() * 1000.0


@dataclass(frozen=True, eq=False)
class FeatureBundle:
    """
    Everything a renderer gets for one tick.

    All members are copies or immutable values; nothing here aliases
    analyzer state.
    """

    tick: int
    time_ms: float
    frame: np.ndarray            # read-only uint8 copy
    is_placeholder: bool         # True when no audio was available
    stats: AudioStats
    is_beat: bool
    bpm: int
    bpm_history: Tuple[int, ...]
    raw_emotion: Emotion
    emotion: Emotion
    color: HSLColor
    heatmap: np.ndarray          # (rows, bins) copy

    def to_dict(self) -> Dict[str, Any]:
        """Plain-Python view following the renderer output contract."""
        return {
            "frame": self.frame.tolist(),
            "stats": self.stats.to_dict(),
            "bpm": {"current": int(self.bpm), "history": list(self.bpm_history)},
            "emotion": {"label": self.emotion.value, "color": self.color.to_dict()},
            "heatmap": self.heatmap.tolist(),
        }


class Renderer(Protocol):
    def render(self, bundle: FeatureBundle) -> None:
        ...


class FrameSource(Protocol):
    frame_length: int

    @property
    def exhausted(self) -> bool:
        ...

    def read(self) -> Optional[np.ndarray]:
        ...


class AnalysisLoop:
    """
    Orchestrates the analyzers once per tick.

    Parameters
    ----------
    frame_length:
        Number of bins in every frame of the session.
    config:
        Component tuning; defaults to :class:`AnalysisConfig`.
    clock:
        Callable returning the current time in milliseconds. Tests inject a
        fake clock to make debounce timing deterministic.
    renderers:
        Objects with a ``render(bundle)`` method, called in order each tick.
    """

    def __init__(
        self,
        frame_length: int,
        config: Optional[AnalysisConfig] = None,
        clock: Optional[Clock] = None,
        renderers: Iterable[Renderer] = (),
    ):
        if frame_length <= 0:
            raise ValueError(f"frame_length must be positive, got {frame_length}")
        self.frame_length = frame_length
        self.config = config or AnalysisConfig()
        self.clock = clock or monotonic_ms
        self.renderers: List[Renderer] = list(renderers)

        self._running = False
        self._tick = 0
        self._placeholder = zero_frame(frame_length)
        self.stats_extractor = StatsExtractor(expected_length=frame_length)
        self.beat: Optional[BeatDetector] = None
        self.emotion: Optional[EmotionClassifier] = None
        self.color: Optional[ColorMapper] = None
        self.heatmap: Optional[HeatmapAccumulator] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        return self._tick

    def start(self) -> None:
        """Begin a session with fresh analyzer state."""
        cfg = self.config
        self.beat = BeatDetector(cfg.beat)
        self.emotion = EmotionClassifier(cfg.emotion)
        self.color = ColorMapper(cfg.color)
        self.heatmap = HeatmapAccumulator(cfg.heatmap)
        self._tick = 0
        self._running = True
        logger.info("analysis session started (%d bins)", self.frame_length)

    def stop(self) -> None:
        """End the session and drop all analyzer state."""
        if self._running:
            logger.info("analysis session stopped after %d ticks", self._tick)
        self._running = False
        self.beat = None
        self.emotion = None
        self.color = None
        self.heatmap = None

    def add_renderer(self, renderer: Renderer) -> None:
        self.renderers.append(renderer)

    def tick(
        self,
        frame: Optional[FrameLike] = None,
        now_ms: Optional[float] = None,
    ) -> FeatureBundle:
        """
        Run one analysis step and hand the result to the renderers.

        Args:
            frame: This tick's magnitudes, or None when no audio is flowing.
            now_ms: Timestamp override; defaults to the loop's clock.

        Returns:
            The tick's :class:`FeatureBundle`.

        Raises:
            RuntimeError: If the loop has not been started.
            FrameShapeError: If *frame* is malformed or the wrong length.
        """
        if not self._running:
            raise RuntimeError("AnalysisLoop.tick() called before start()")

        if frame is None:
            data = self._placeholder
            placeholder = True
        else:
            data = as_frame(frame, expected_length=self.frame_length)
            placeholder = False
        now = self.clock() if now_ms is None else float(now_ms)
        self._tick += 1

        stats = self.stats_extractor.extract(data)
        is_beat = self.beat.update(data, now)
        raw = self.emotion.update(data, now)
        color = self.color.update(self.emotion.current, self.config.intensity)
        self.heatmap.update(data)

        bundle = FeatureBundle(
            tick=self._tick,
            time_ms=now,
            frame=data,
            is_placeholder=placeholder,
            stats=stats,
            is_beat=is_beat,
            bpm=self.beat.smoothed_bpm,
            bpm_history=tuple(self.beat.bpm_history),
            raw_emotion=raw,
            emotion=self.emotion.current,
            color=color,
            heatmap=self.heatmap.snapshot(),
        )
        self._dispatch(bundle)
        return bundle

    def _dispatch(self, bundle: FeatureBundle) -> None:
        for renderer in self.renderers:
            try:
                renderer.render(bundle)
            except Exception:
                logger.exception(
                    "renderer %s failed on tick %d; skipping",
                    type(renderer).__name__,
                    bundle.tick,
                )

    def run(self, source: FrameSource, max_ticks: Optional[int] = None) -> int:
        """
        Drive the loop from *source* until it runs dry.

        Starts a session if none is running. Returns the number of ticks
        processed.
        """
        if source.frame_length != self.frame_length:
            raise ValueError(
                f"source frame length {source.frame_length} != loop frame length "
                f"{self.frame_length}"
            )
        if not self._running:
            self.start()

        processed = 0
        while not source.exhausted:
            if max_ticks is not None and processed >= max_ticks:
                break
            self.tick(source.read())
            processed += 1
        return processed
