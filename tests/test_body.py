from __future__ import annotations

import logging
import math

import numpy as np
import pytest

from vortexsim2d import Body


def test_constant_body_is_at_rest() -> None:
    b = Body(1.0, -2.0, name="fixed")
    assert np.allclose(b.get_pos(3.0), [1.0, -2.0])
    assert np.allclose(b.get_vel(3.0), [0.0, 0.0])
    assert b.get_rotvel(3.0) == 0.0
    assert b.expressions == (None, None)


def test_expression_position_and_velocity() -> None:
    b = Body(name="oscillator")
    assert b.set_pos(0, "0.5*sin(2*pi*t)")
    assert b.set_pos(1, "2*t")
    t = 0.3
    pos = b.get_pos(t)
    assert pos[0] == pytest.approx(0.5 * math.sin(2.0 * math.pi * t))
    assert pos[1] == pytest.approx(0.6)
    vel = b.get_vel(t)
    assert vel[0] == pytest.approx(math.pi * math.cos(2.0 * math.pi * t), rel=1e-6)
    assert vel[1] == pytest.approx(2.0, rel=1e-6)
    assert b.is_expression(0) and b.is_expression(1)
    assert b.time == pytest.approx(t)


def test_bad_expression_is_non_fatal(caplog: pytest.LogCaptureFixture) -> None:
    b = Body(0.25, 0.0, name="broken")
    assert b.set_pos(0, "3*t")
    with caplog.at_level(logging.WARNING, logger="vortexsim2d.body"):
        ok = b.set_pos(0, "3*t +")
    assert not ok
    assert "Error parsing expression" in caplog.text
    assert b.last_error is not None and b.last_error.position == 6
    assert not b.is_expression(0)
    # the stored constant is kept
    b2 = Body(0.25, 0.0)
    assert not b2.set_pos(0, "sin(")
    assert b2.get_pos(10.0)[0] == pytest.approx(0.25)
    assert b2.get_vel(10.0)[0] == 0.0


def test_constant_replaces_expression() -> None:
    b = Body()
    b.set_pos(1, "t")
    assert b.set_pos(1, 4.0)
    assert not b.is_expression(1)
    assert b.get_pos(2.0)[1] == 4.0


def test_index_out_of_range() -> None:
    b = Body()
    with pytest.raises(ValueError):
        b.set_pos(2, 1.0)
    with pytest.raises(ValueError):
        b.is_expression(-1)


def test_rigid_motion_of_points() -> None:
    b = Body(1.0, 0.0, orient=0.5 * math.pi, rotvel=2.0)
    x_ref = np.array([[1.0, 0.0]])
    world = b.to_world(x_ref, 0.0)
    assert np.allclose(world, [[1.0, 1.0]])
    vel = b.velocity_at(world, 0.0)
    # omega x r with r = (0, 1)
    assert np.allclose(vel, [[-2.0, 0.0]])


def test_names() -> None:
    b = Body(name="wing")
    b.parent_name = "ground"
    b.name = "flap"
    assert (b.name, b.parent_name) == ("flap", "ground")


def test_velocity_of_quadratic_motion() -> None:
    b = Body()
    b.set_pos(1, "t*t")
    for t in (0.0, 0.7, 3.0):
        assert b.get_vel(t)[1] == pytest.approx(2.0 * t, abs=1e-8)
        assert b.get_vel(t)[0] == 0.0
