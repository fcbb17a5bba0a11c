"""
Built-in Pillow renderers for the analysis dashboard.

Each panel draws one view of a :class:`~moodscope.core.loop.FeatureBundle`
into a region of a shared image. They exist to exercise the renderer
contract; the numbers they receive are the interesting part.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from PIL import Image, ImageColor, ImageDraw

from moodscope.core.color import HSLColor
from moodscope.core.emotion import Emotion
from moodscope.core.loop import FeatureBundle

Size = Tuple[int, int]

# Ten magnitude buckets, coolest to hottest.
HEATMAP_LEVELS = (
    "#111827",  # gray-900
    "#1e3a8a",  # blue-900
    "#1d4ed8",  # blue-700
    "#3b82f6",  # blue-500
    "#06b6d4",  # cyan-500
    "#22c55e",  # green-500
    "#eab308",  # yellow-500
    "#f97316",  # orange-500
    "#ef4444",  # red-500
    "#fca5a5",  # red-300
)


def hsl_to_rgb(hue: float, saturation: float, lightness: float) -> Tuple[int, int, int]:
    """Convert HSL (degrees, percent, percent) to an RGB tuple."""
    h = hue % 360.0
    s = min(max(saturation, 0.0), 100.0)
    l = min(max(lightness, 0.0), 100.0)
    return ImageColor.getrgb(f"hsl({h:.2f}, {s:.2f}%, {l:.2f}%)")


def bar_hue(color: HSLColor, index: int, total: int) -> float:
    """Spread bar hues ±30° around the emotion hue."""
    variation = (index / total) * 60.0 - 30.0
    return (color.hue + variation + 360.0) % 360.0


def heatmap_level(magnitude: float) -> int:
    """Bucket a 0..255 magnitude into one of ten heat levels."""
    normalized = magnitude / 255.0
    return int(min(max(math.floor(normalized * 10.0), 0), len(HEATMAP_LEVELS) - 1))


def fallback_orb(ctx: ImageDraw.ImageDraw, frame: np.ndarray, size: Size,
                 elapsed_ms: float) -> None:
    """
    Deterministic pulsing orb with eight orbiting dots.

    Has the generated-routine signature so it can stand in for one.
    """
    width, height = size
    if width <= 0 or height <= 0:
        return
    ctx.rectangle((0, 0, width, height), fill=(0, 0, 0))

    cx, cy = width / 2.0, height / 2.0
    level = float(np.mean(frame)) / 255.0 if len(frame) else 0.0
    level = max(level, 0.3 + math.sin(elapsed_ms * 0.002) * 0.2)

    radius = 30 + level * 40
    ctx.ellipse((cx - radius, cy - radius, cx + radius, cy + radius),
                fill=(0, 160, 160), outline=(0, 255, 255))

    orbit = 50 + level * 25
    for i in range(8):
        angle = (elapsed_ms * 0.001 + i * math.pi / 4) % (math.pi * 2)
        x = cx + math.cos(angle) * orbit
        y = cy + math.sin(angle) * orbit
        ctx.ellipse((x - 3, y - 3, x + 3, y + 3), fill=(0, 255, 255))


class SpectrumPanel:
    """Bar spectrum tinted by the current emotion color."""

    def __init__(self, n_bars: int = 64):
        self.n_bars = n_bars

    def draw(self, ctx: ImageDraw.ImageDraw, bundle: FeatureBundle, box: Tuple[int, int, int, int]) -> None:
        x0, y0, x1, y1 = box
        width, height = x1 - x0, y1 - y0
        if width <= 0 or height <= 0:
            return
        color = bundle.color
        ctx.rectangle(box, fill=hsl_to_rgb(color.hue, color.saturation,
                                           max(color.lightness - 40.0, 5.0)))

        frame = bundle.frame
        bar_w = width / self.n_bars
        for i in range(self.n_bars):
            value = int(frame[int(i / self.n_bars * len(frame))])
            bar_h = value / 255.0 * height * 0.8
            bar_h = max(bar_h, height * 0.05 + math.sin(bundle.time_ms * 0.001 + i) * height * 0.02)
            light = color.lightness
            if bundle.emotion is Emotion.TENSE and math.sin(bundle.time_ms * 0.01) > 0.5:
                light = min(light * 1.3, 90.0)
            fill = hsl_to_rgb(bar_hue(color, i, self.n_bars), color.saturation, light)
            left = x0 + i * bar_w
            ctx.rectangle((left, y1 - bar_h, left + max(bar_w - 1, 1), y1), fill=fill)


class BpmPanel:
    """Smoothed BPM history on a 60–180 BPM grid."""

    low_bpm = 60
    high_bpm = 180

    def _y(self, bpm: float, y1: int, height: int) -> float:
        return y1 - (bpm - self.low_bpm) / (self.high_bpm - self.low_bpm) * height * 0.8

    def draw(self, ctx: ImageDraw.ImageDraw, bundle: FeatureBundle, box: Tuple[int, int, int, int]) -> None:
        x0, y0, x1, y1 = box
        width, height = x1 - x0, y1 - y0
        if width <= 0 or height <= 0:
            return
        ctx.rectangle(box, fill=(20, 0, 0))
        for bpm in range(self.low_bpm, self.high_bpm + 1, 20):
            y = self._y(bpm, y1, height)
            ctx.line((x0, y, x1, y), fill=(80, 30, 30))
            ctx.text((x0 + 5, y - 12), str(bpm), fill=(255, 100, 100))

        history = bundle.bpm_history
        if len(history) > 1:
            points = [
                (x0 + i / (len(history) - 1) * width, self._y(b, y1, height))
                for i, b in enumerate(history)
            ]
            ctx.line(points, fill=(255, 68, 68), width=2)
        ctx.text((x1 - 60, y0 + 5), f"{bundle.bpm} BPM", fill=(255, 255, 255))


class HeatmapPanel:
    """Scrolling band-energy heatmap, newest row at the right."""

    def __init__(self, capacity: int = 40):
        self.capacity = capacity

    def draw(self, ctx: ImageDraw.ImageDraw, bundle: FeatureBundle, box: Tuple[int, int, int, int]) -> None:
        x0, y0, x1, y1 = box
        width, height = x1 - x0, y1 - y0
        rows = bundle.heatmap
        ctx.rectangle(box, fill=HEATMAP_LEVELS[0])
        if width <= 0 or height <= 0 or len(rows) == 0:
            return
        n_bins = rows.shape[1]
        col_w = width / self.capacity
        cell_h = height / n_bins
        offset = self.capacity - len(rows)
        for c, row in enumerate(rows):
            left = x0 + (offset + c) * col_w
            for b, magnitude in enumerate(row):
                # Low bands at the bottom.
                top = y1 - (b + 1) * cell_h
                ctx.rectangle((left, top, left + col_w, top + cell_h),
                              fill=HEATMAP_LEVELS[heatmap_level(magnitude)])


@dataclass
class DashboardConfig:
    """Canvas size for the composed dashboard."""

    width: int = 1280
    height: int = 720
    background: str = "#000000"


class Dashboard:
    """
    Renderer composing the panels into one image per tick.

    Layout is a 2×2 grid: spectrum, BPM, heatmap, and the routine area
    driven by a :class:`~moodscope.visualizers.routine.RoutineHost`.
    The latest image is available as :attr:`image`.
    """

    def __init__(self, config: Optional[DashboardConfig] = None, routine_host=None):
        self.config = config or DashboardConfig()
        self.routine_host = routine_host
        self.spectrum = SpectrumPanel()
        self.bpm = BpmPanel()
        self.heatmap = HeatmapPanel()
        self.image: Optional[Image.Image] = None

    def boxes(self) -> dict:
        w, h = self.config.width, self.config.height
        hw, hh = w // 2, h // 2
        return {
            "spectrum": (0, 0, hw - 1, hh - 1),
            "bpm": (hw, 0, w - 1, hh - 1),
            "heatmap": (0, hh, hw - 1, h - 1),
            "routine": (hw, hh, w - 1, h - 1),
        }

    def blank(self) -> Image.Image:
        """Background-only frame, used when a tick could not be drawn."""
        cfg = self.config
        return Image.new("RGB", (cfg.width, cfg.height), cfg.background)

    def render(self, bundle: FeatureBundle) -> None:
        """Compose the tick. :attr:`image` stays None if drawing fails."""
        cfg = self.config
        self.image = None
        image = self.blank()
        ctx = ImageDraw.Draw(image)
        boxes = self.boxes()

        self.spectrum.draw(ctx, bundle, boxes["spectrum"])
        self.bpm.draw(ctx, bundle, boxes["bpm"])
        self.heatmap.draw(ctx, bundle, boxes["heatmap"])

        x0, y0, x1, y1 = boxes["routine"]
        tile = Image.new("RGB", (x1 - x0 + 1, y1 - y0 + 1), cfg.background)
        tile_ctx = ImageDraw.Draw(tile)
        if self.routine_host is not None:
            self.routine_host.draw(tile_ctx, bundle.frame, tile.size, bundle.time_ms,
                                   live=not bundle.is_placeholder)
        else:
            fallback_orb(tile_ctx, bundle.frame, tile.size, bundle.time_ms)
        image.paste(tile, (x0, y0))

        self.image = image

    def to_array(self) -> np.ndarray:
        """Latest image as an ``(H, W, 3)`` uint8 array."""
        if self.image is None:
            return np.zeros((self.config.height, self.config.width, 3), dtype=np.uint8)
        return np.asarray(self.image)
