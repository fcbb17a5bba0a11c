"""
Host for externally generated drawing routines.

A routine is source text for the body of::

    def draw(ctx, frame, size, elapsed_ms): ...

where ``ctx`` is a Pillow ``ImageDraw`` context, ``frame`` the tick's
read-only magnitudes, ``size`` the ``(width, height)`` of the canvas and
``elapsed_ms`` the tick timestamp. The text comes from an outside service,
so it is screened for obviously dangerous constructs, compiled against a
stripped-down namespace, and dry-run on a throwaway canvas before it is
allowed into rotation. Once accepted, each call is still guarded: if it
raises, the built-in fallback draws that tick instead.

The host runs routines synchronously and cannot stop one that never
returns; isolate the host in its own process when that matters.
"""

import logging
import math
import re
import textwrap
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw

from moodscope.errors import RoutineRejectedError
from moodscope.visualizers.panels import fallback_orb

logger = logging.getLogger(__name__)

DrawRoutine = Callable[[ImageDraw.ImageDraw, np.ndarray, Tuple[int, int], float], None]

DANGEROUS_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"\beval\s*\(",
        r"\bexec\s*\(",
        r"\bcompile\s*\(",
        r"__import__",
        r"\bimport\s",
        r"\bopen\s*\(",
        r"\bglobals\s*\(",
        r"\blocals\s*\(",
        r"\bgetattr\s*\(",
        r"\bsetattr\s*\(",
        r"\bdelattr\s*\(",
        r"\bvars\s*\(",
        r"\bos\.",
        r"\bsys\.",
        r"\bsubprocess\b",
        r"\bsocket\b",
        r"\.__\w+__",
    )
)

SAFE_BUILTINS = {
    "abs": abs,
    "all": all,
    "any": any,
    "bool": bool,
    "enumerate": enumerate,
    "float": float,
    "int": int,
    "len": len,
    "list": list,
    "max": max,
    "min": min,
    "range": range,
    "reversed": reversed,
    "round": round,
    "sum": sum,
    "tuple": tuple,
    "zip": zip,
}

DRY_RUN_SIZE = (200, 150)
DRY_RUN_BINS = 128


def screen_source(code: str) -> None:
    """Raise :class:`RoutineRejectedError` if *code* matches a banned pattern."""
    for pattern in DANGEROUS_PATTERNS:
        if pattern.search(code):
            raise RoutineRejectedError(
                f"routine contains a disallowed construct: {pattern.pattern}"
            )


def compile_routine(code: str) -> DrawRoutine:
    """Compile *code* as the body of a ``draw`` function."""
    body = textwrap.indent(textwrap.dedent(code).strip() or "pass", "    ")
    source = f"def draw(ctx, frame, size, elapsed_ms):\n{body}\n"
    namespace = {"__builtins__": dict(SAFE_BUILTINS), "math": math}
    try:
        exec(compile(source, "<generated-routine>", "exec"), namespace)
    except SyntaxError as exc:
        raise RoutineRejectedError(f"routine does not compile: {exc}") from exc
    return namespace["draw"]


def dry_run(routine: DrawRoutine) -> None:
    """Call *routine* once against a scratch canvas."""
    canvas = Image.new("RGB", DRY_RUN_SIZE)
    frame = np.full(DRY_RUN_BINS, 100, dtype=np.uint8)
    frame.flags.writeable = False
    try:
        routine(ImageDraw.Draw(canvas), frame, DRY_RUN_SIZE, 0.0)
    except Exception as exc:
        raise RoutineRejectedError(f"routine failed its dry run: {exc!r}") from exc


@dataclass
class GeneratedRoutine:
    """An accepted routine and the prompt it was generated from."""

    prompt: str
    code: str
    draw: DrawRoutine
    failures: int = 0


@dataclass
class RoutineHost:
    """
    Rotation of accepted routines with a deterministic fallback.

    ``fallback`` must never raise; the default is the built-in orb.
    """

    fallback: DrawRoutine = fallback_orb
    routines: List[GeneratedRoutine] = field(default_factory=list)
    index: int = -1

    def accept(self, code: str, prompt: str = "") -> GeneratedRoutine:
        """
        Screen, compile and dry-run *code*; on success add it and make it current.

        Raises:
            RoutineRejectedError: If any check fails. Rotation is unchanged.
        """
        try:
            screen_source(code)
            draw = compile_routine(code)
            dry_run(draw)
        except RoutineRejectedError as exc:
            logger.warning("rejected generated routine: %s", exc)
            raise
        routine = GeneratedRoutine(prompt=prompt, code=code, draw=draw)
        self.routines.append(routine)
        self.index = len(self.routines) - 1
        return routine

    @property
    def current(self) -> Optional[GeneratedRoutine]:
        if 0 <= self.index < len(self.routines):
            return self.routines[self.index]
        return None

    def next(self) -> Optional[GeneratedRoutine]:
        if self.routines:
            self.index = (self.index + 1) % len(self.routines)
        return self.current

    def previous(self) -> Optional[GeneratedRoutine]:
        if self.routines:
            self.index = len(self.routines) - 1 if self.index <= 0 else self.index - 1
        return self.current

    def draw(
        self,
        ctx: ImageDraw.ImageDraw,
        frame: np.ndarray,
        size: Tuple[int, int],
        elapsed_ms: float,
        live: bool = True,
    ) -> bool:
        """
        Draw one tick with the current routine, or the fallback.

        The generated routine only runs while real audio is flowing.

        Returns:
            True if the fallback drew this tick.
        """
        routine = self.current
        if routine is None or not live:
            self.fallback(ctx, frame, size, elapsed_ms)
            return True
        try:
            routine.draw(ctx, frame, size, elapsed_ms)
        except Exception:
            routine.failures += 1
            logger.warning("generated routine failed; drawing fallback", exc_info=True)
            self.fallback(ctx, frame, size, elapsed_ms)
            return True
        return False
