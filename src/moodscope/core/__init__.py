"""Core per-tick analyzers."""

from moodscope.core.beat import BeatDetector
from moodscope.core.color import ColorMapper
from moodscope.core.emotion import EmotionClassifier
from moodscope.core.heatmap import HeatmapAccumulator
from moodscope.core.loop import AnalysisLoop
from moodscope.core.stats import BandEnergyProfiler, StatsExtractor

__all__ = [
    "AnalysisLoop",
    "BandEnergyProfiler",
    "BeatDetector",
    "ColorMapper",
    "EmotionClassifier",
    "HeatmapAccumulator",
    "StatsExtractor",
]
