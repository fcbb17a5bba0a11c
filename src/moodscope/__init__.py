"""Per-frame audio feature analysis for real-time visuals."""

from moodscope.config import AnalysisConfig
from moodscope.core.beat import BeatDetector
from moodscope.core.color import ColorMapper
from moodscope.core.emotion import Emotion, EmotionClassifier
from moodscope.core.heatmap import HeatmapAccumulator
from moodscope.core.loop import AnalysisLoop, FeatureBundle
from moodscope.core.stats import BandEnergyProfiler, StatsExtractor

__version__ = "0.1.0"
__all__ = [
    "AnalysisConfig",
    "AnalysisLoop",
    "BandEnergyProfiler",
    "BeatDetector",
    "ColorMapper",
    "Emotion",
    "EmotionClassifier",
    "FeatureBundle",
    "HeatmapAccumulator",
    "StatsExtractor",
]
