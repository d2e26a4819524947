"""Unit tests for the abuse-control time sources."""

import pytest

from src.abuse_control import clock as clock_module
from src.abuse_control.clock import Clock, FakeClock

pytestmark = pytest.mark.unit


def test_wall_projection_ignores_wall_clock_steps(monkeypatch):
    clock = Clock()
    ts = clock.monotonic() + 60
    before = clock.to_wall(ts)

    real_time = clock_module.time.time
    monkeypatch.setattr(clock_module.time, "time", lambda: real_time() + 3_600)

    assert clock.to_wall(ts) == before
    assert clock.to_wall(ts) == clock.to_wall(ts)


def test_projection_preserves_monotonic_distance():
    clock = Clock()
    assert clock.to_wall(200.0) - clock.to_wall(100.0) == pytest.approx(100.0)


def test_fake_clock_projection():
    clock = FakeClock()
    assert clock.to_wall(1_000.0) == 1_767_225_600.0
    clock.advance(30)
    assert clock.wall() == 1_767_225_630.0
    assert clock.to_wall(clock.monotonic() + 3_600) == 1_767_229_230.0
    with pytest.raises(ValueError):
        clock.advance(-1)
