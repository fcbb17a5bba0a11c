"""Exception types raised by the analysis core and the rendering host."""


class MoodscopeError(Exception):
    """Base class for all moodscope errors."""


class FrameShapeError(MoodscopeError, ValueError):
    """A frequency frame is empty, mis-sized or out of the byte range.

    A wrong-shaped frame means the frame source is broken, so this is raised
    immediately instead of being smoothed over like noisy audio.
    """


class RoutineRejectedError(MoodscopeError):
    """A generated drawing routine failed screening, compilation or dry run."""
