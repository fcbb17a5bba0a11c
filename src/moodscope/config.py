"""
Tuning parameters for the per-frame analysis pipeline.

Each stateful component takes its own small dataclass so it can be built
and tested in isolation; :class:`AnalysisConfig` groups them for the
analysis loop and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict


@dataclass
class BeatConfig:
    """Bass-onset beat detection and tempo smoothing."""

    bass_fraction: float = 0.10     # lowest share of bins treated as bass
    threshold_ratio: float = 1.5    # bass must beat ratio * overall mean ...
    threshold_floor: float = 50.0   # ... and never less than this
    debounce_ms: float = 300.0
    max_beats: int = 6
    smoothing_slots: int = 8
    min_bpm: int = 30
    max_bpm: int = 300
    persist_weight: float = 0.7     # weight of the previous smoothed BPM
    history_len: int = 50


@dataclass
class EmotionConfig:
    """Band partition and debounce for emotion classification."""

    low_cut: float = 0.15
    high_cut: float = 0.75
    erratic_variance: float = 2000.0
    history_len: int = 10
    min_history: int = 5
    dwell_ms: float = 1000.0
    require_majority: bool = True


@dataclass
class ColorConfig:
    """Emotion color interpolation."""

    smoothing: float = 0.05
    initial_hue: float = 200.0
    initial_saturation: float = 70.0
    initial_lightness: float = 50.0


@dataclass
class HeatmapConfig:
    """Decimated band-energy history."""

    bins: int = 16
    stride: int = 3
    capacity: int = 40


@dataclass
class AnalysisConfig:
    """Complete configuration for one analysis session."""

    beat: BeatConfig = field(default_factory=BeatConfig)
    emotion: EmotionConfig = field(default_factory=EmotionConfig)
    color: ColorConfig = field(default_factory=ColorConfig)
    heatmap: HeatmapConfig = field(default_factory=HeatmapConfig)
    # Multiplier applied to palette saturation/lightness each tick.
    intensity: float = 1.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisConfig":
        """
        Build a config from nested plain dictionaries (e.g. parsed JSON).

        Missing sections and keys keep their defaults.

        Raises:
            ValueError: If a section or key is not recognised.
        """
        sections = {
            "beat": BeatConfig,
            "emotion": EmotionConfig,
            "color": ColorConfig,
            "heatmap": HeatmapConfig,
        }
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key == "intensity":
                kwargs[key] = float(value)
                continue
            section_cls = sections.get(key)
            if section_cls is None:
                raise ValueError(f"Unknown config section: {key!r}")
            known = {f.name for f in fields(section_cls)}
            unknown = set(value) - known
            if unknown:
                raise ValueError(
                    f"Unknown keys for {key!r}: {', '.join(sorted(unknown))}"
                )
            kwargs[key] = section_cls(**value)
        return cls(**kwargs)
