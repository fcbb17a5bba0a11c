"""
Frequency frame helpers.

A frame is a 1-D ``uint8`` array of spectrum magnitudes for one tick. The
frame source owns the buffer it reads into; the core works on a read-only
copy so nothing downstream can mutate a frame after capture.
"""

from typing import Optional, Sequence, Union

import numpy as np

from moodscope.errors import FrameShapeError

FrameLike = Union[np.ndarray, Sequence[int], bytes]

BYTE_MAX = 255


def zero_frame(length: int) -> np.ndarray:
    """Return a silent placeholder frame of *length* bins."""
    if length <= 0:
        raise FrameShapeError(f"frame length must be positive, got {length}")
    frame = np.zeros(length, dtype=np.uint8)
    frame.flags.writeable = False
    return frame


def as_frame(values: FrameLike, expected_length: Optional[int] = None) -> np.ndarray:
    """
    Validate *values* and return them as a read-only ``uint8`` frame.

    Args:
        values: Magnitudes in [0, 255] (array, sequence or bytes).
        expected_length: If given, the frame must have exactly this many bins.

    Returns:
        A read-only copy of the frame.

    Raises:
        FrameShapeError: For empty, multi-dimensional, mis-sized or
            out-of-range input.
    """
    if isinstance(values, (bytes, bytearray)):
        arr = np.frombuffer(values, dtype=np.uint8)
    else:
        arr = np.asarray(values)

    if arr.ndim != 1:
        raise FrameShapeError(f"frame must be 1-D, got shape {arr.shape}")
    if arr.size == 0:
        raise FrameShapeError("frame is empty")
    if expected_length is not None and arr.size != expected_length:
        raise FrameShapeError(
            f"frame length {arr.size} != expected {expected_length}"
        )

    if arr.dtype != np.uint8:
        if not np.issubdtype(arr.dtype, np.number):
            raise FrameShapeError(f"frame dtype {arr.dtype} is not numeric")
        if not np.all(np.isfinite(arr)):
            raise FrameShapeError("frame contains non-finite values")
        lo, hi = float(arr.min()), float(arr.max())
        if lo < 0 or hi > BYTE_MAX:
            raise FrameShapeError(
                f"frame values must lie in [0, {BYTE_MAX}], got [{lo}, {hi}]"
            )

    frame = np.array(arr, dtype=np.uint8, copy=True)
    frame.flags.writeable = False
    return frame
