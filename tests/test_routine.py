"""Tests for generated routine screening and hosting."""

import logging

import numpy as np
import pytest
from PIL import Image, ImageDraw

from moodscope.errors import RoutineRejectedError
from moodscope.visualizers.routine import (
    RoutineHost,
    compile_routine,
    dry_run,
    screen_source,
)

GOOD = """
level = max(frame) / 255.0
r = 10 + level * min(size) / 2
cx, cy = size[0] / 2, size[1] / 2
ctx.ellipse((cx - r, cy - r, cx + r, cy + r), fill=(200, 50, int(math.sin(elapsed_ms) * 50 + 100)))
"""

# Passes the dry run at t=0 and fails on any later tick.
FLAKY = """
if elapsed_ms > 0:
    1 / 0
ctx.rectangle((0, 0, 10, 10), fill=(255, 0, 0))
"""


@pytest.fixture
def canvas():
    image = Image.new("RGB", (120, 80))
    return image, ImageDraw.Draw(image)


@pytest.fixture
def frame():
    data = np.full(64, 100, dtype=np.uint8)
    data.flags.writeable = False
    return data


class TestScreening:
    @pytest.mark.parametrize("code", [
        "import os",
        "x = __import__('os')",
        "open('/etc/passwd')",
        "eval('1')",
        "exec('x = 1')",
        "os.system('ls')",
        "f = ctx.__class__",
        "getattr(ctx, 'line')",
        "globals()",
    ])
    def test_dangerous_source_rejected(self, code):
        with pytest.raises(RoutineRejectedError):
            screen_source(code)

    def test_plain_drawing_passes(self):
        screen_source(GOOD)

    def test_syntax_error_rejected(self):
        with pytest.raises(RoutineRejectedError, match="compile"):
            compile_routine("ctx.line((0, 0, 1, 1)")

    def test_restricted_builtins(self):
        routine = compile_routine("print('hi')")
        with pytest.raises(RoutineRejectedError):
            dry_run(routine)

    def test_dry_run_catches_errors(self):
        with pytest.raises(RoutineRejectedError, match="dry run"):
            dry_run(compile_routine("1 / 0"))

    def test_empty_body_compiles(self):
        dry_run(compile_routine(""))


class TestRoutineHost:
    def test_fallback_without_routines(self, canvas, frame):
        image, ctx = canvas
        host = RoutineHost()
        assert host.current is None
        assert host.draw(ctx, frame, image.size, 100.0) is True
        assert np.asarray(image).any()

    def test_accept_makes_current(self, canvas, frame):
        image, ctx = canvas
        host = RoutineHost()
        routine = host.accept(GOOD, prompt="pulsing circle")
        assert host.current is routine
        assert routine.prompt == "pulsing circle"
        assert host.draw(ctx, frame, image.size, 100.0) is False

    def test_rejection_keeps_rotation(self, caplog):
        host = RoutineHost()
        host.accept(GOOD)
        with caplog.at_level(logging.WARNING, logger="moodscope.visualizers.routine"):
            with pytest.raises(RoutineRejectedError):
                host.accept("import socket")
        assert len(host.routines) == 1
        assert host.index == 0
        assert "rejected" in caplog.text

    def test_runtime_failure_falls_back(self, canvas, frame):
        image, ctx = canvas
        host = RoutineHost()
        routine = host.accept(FLAKY)
        assert host.draw(ctx, frame, image.size, 0.0) is False
        assert host.draw(ctx, frame, image.size, 16.0) is True
        assert host.draw(ctx, frame, image.size, 32.0) is True
        assert routine.failures == 2

    def test_not_live_uses_fallback(self, canvas, frame):
        image, ctx = canvas
        host = RoutineHost()
        host.accept(GOOD)
        assert host.draw(ctx, frame, image.size, 0.0, live=False) is True

    def test_rotation(self):
        host = RoutineHost()
        assert host.next() is None
        first = host.accept(GOOD, prompt="one")
        second = host.accept(GOOD, prompt="two")
        assert host.current is second
        assert host.next() is first
        assert host.next() is second
        assert host.previous() is first
        assert host.previous() is second
