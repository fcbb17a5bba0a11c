"""Built-in renderers and the generated-routine host."""

from moodscope.visualizers.panels import Dashboard
from moodscope.visualizers.routine import RoutineHost

__all__ = ["Dashboard", "RoutineHost"]
