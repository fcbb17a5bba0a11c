"""
Emotion-to-color mapping.

The palette is loaded from a packaged JSON file so the Python renderers and
any external front end share one table.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from typing import Dict, Optional, Union

from moodscope.config import ColorConfig
from moodscope.core.emotion import Emotion


@dataclass(frozen=True)
class HSLColor:
    hue: float
    saturation: float
    lightness: float

    def to_dict(self) -> Dict[str, float]:
        return {"hue": self.hue, "sat": self.saturation, "light": self.lightness}


@lru_cache(maxsize=1)
def load_palettes() -> Dict[str, HSLColor]:
    """Load the emotion palette table from the packaged JSON file."""
    with resources.files("moodscope.core").joinpath("palettes.json").open(
        "r", encoding="utf-8"
    ) as f:
        raw = json.load(f)
    return {
        name: HSLColor(float(v["hue"]), float(v["saturation"]), float(v["lightness"]))
        for name, v in raw.items()
    }


def palette_for(emotion: Union[Emotion, str]) -> HSLColor:
    """Base color for *emotion*; unknown labels get the neutral palette."""
    palettes = load_palettes()
    key = emotion.value if isinstance(emotion, Emotion) else str(emotion)
    return palettes.get(key, palettes[Emotion.NEUTRAL.value])


def _lerp(start: float, end: float, factor: float) -> float:
    return start + (end - start) * factor


class ColorMapper:
    """
    Eases the displayed color toward the palette of the published emotion.

    The update runs every tick whether or not the emotion changed, so the
    color keeps moving smoothly even though classification is discrete.
    """

    def __init__(self, config: Optional[ColorConfig] = None):
        self.config = config or ColorConfig()
        self.current = HSLColor(
            self.config.initial_hue,
            self.config.initial_saturation,
            self.config.initial_lightness,
        )

    def target(self, emotion: Union[Emotion, str], intensity: float = 1.0) -> HSLColor:
        base = palette_for(emotion)
        return HSLColor(
            base.hue,
            min(max(base.saturation * intensity, 0.0), 100.0),
            min(max(base.lightness * intensity, 0.0), 100.0),
        )

    def update(self, emotion: Union[Emotion, str], intensity: float = 1.0) -> HSLColor:
        """Step the current color toward *emotion*'s target and return it."""
        goal = self.target(emotion, intensity)
        k = self.config.smoothing
        self.current = HSLColor(
            _lerp(self.current.hue, goal.hue, k),
            _lerp(self.current.saturation, goal.saturation, k),
            _lerp(self.current.lightness, goal.lightness, k),
        )
        return self.current
