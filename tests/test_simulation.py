from __future__ import annotations

import logging
import math

import numpy as np
import pytest

from vortexsim2d import Body, DiffusionConfig, ElementPacket, MoveType, Simulation, SolidCircle, SolidSquare
from vortexsim2d.simulation import MSG_NO_DIFFUSION, MSG_NO_FREESTREAM, MSG_NOTHING


def test_derived_parameters() -> None:
    sim = Simulation(re=100.0, dt=0.01)
    assert sim.get_hnu() == pytest.approx(0.01)
    assert sim.get_ips() == pytest.approx(math.sqrt(8.0) * 0.01)
    assert sim.get_vdelta() == pytest.approx(1.5 * math.sqrt(8.0) * 0.01)


def test_set_re_for_ips_turns_diffusion_off() -> None:
    sim = Simulation(dt=0.02)
    assert sim.get_diffuse()
    sim.set_re_for_ips(0.05)
    assert sim.get_ips() == pytest.approx(0.05)
    assert sim.re == pytest.approx(8.0 * 0.02 / 0.05**2)
    assert not sim.get_diffuse()


def test_parameter_validation() -> None:
    with pytest.raises(ValueError):
        Simulation(re=0.0)
    with pytest.raises(ValueError):
        Simulation(dt=-1.0)
    with pytest.raises(ValueError):
        Simulation(fs=(1.0, 2.0, 3.0))
    with pytest.raises(ValueError):
        Simulation(order=4)  # type: ignore[arg-type]


def test_add_particles_overwrites_radius_and_merges() -> None:
    sim = Simulation()
    sim.add_particles([0.0, 0.0, 1.0, 123.0])
    sim.add_particles(np.array([1.0, 0.0, -1.0, 0.0, 2.0, 0.0, 0.5, 9.0]))
    assert sim.get_nparts() == 3
    assert len(sim.free_elements) == 1
    assert np.allclose(sim.free_elements[0].r, sim.get_vdelta())
    with pytest.raises(ValueError):
        sim.add_particles([0.0, 0.0, 1.0])


def test_add_fldpts() -> None:
    sim = Simulation()
    sim.add_fldpts([0.0, 0.0, 1.0, 1.0])
    sim.add_fldpts([2.0, 2.0], moves=False)
    assert sim.get_nfldpts() == 3
    # merged into the last collection whatever its motion kind
    assert len(sim.field_elements) == 1
    assert sim.field_elements[0].move is MoveType.LAGRANGIAN
    with pytest.raises(ValueError):
        sim.add_fldpts([0.0, 0.0, 1.0])


def test_boundary_merge_rules() -> None:
    sim = Simulation()
    a = Body(name="a")
    b = Body(name="a")
    circle = SolidCircle(0.0, 0.0, 1.0).init_elements(0.1)
    square = SolidSquare(3.0, 0.0, 1.0).init_elements(0.1)

    s1 = sim.add_boundary(a, circle)
    s2 = sim.add_boundary(a, square)
    assert s1 is s2
    s3 = sim.add_boundary(b, circle)
    assert s3 is not s1
    s4 = sim.add_boundary(None, square)
    s5 = sim.add_boundary(None, circle)
    assert s4 is s5 and s4.move is MoveType.FIXED
    assert len(sim.boundary_elements) == 3
    assert sim.get_npanels() == 2 * circle.nelem + 2 * square.nelem


def test_add_boundary_places_body_bound_geometry() -> None:
    sim = Simulation()
    body = Body(2.0, 1.0, name="offset")
    sim.add_body(body)
    ps = sim.add_boundary(body, ElementPacket([0.0, 0.0, 0.0, 1.0], [0, 1], [0.0]))
    assert np.allclose(ps.x, [[2.0, 1.0], [2.0, 2.0]])


def test_body_registry() -> None:
    sim = Simulation()
    ground = sim.get_last_body()
    assert ground.name == "ground" and len(sim.bodies) == 1
    wing = Body(name="wing")
    sim.add_body(wing)
    assert sim.get_last_body() is wing
    assert sim.get_pointer_to_body("wing") is wing
    other = sim.get_pointer_to_body("missing")
    assert other.name == "ground" and other is not ground
    assert len(sim.bodies) == 3
    sim.clear_bodies()
    assert sim.bodies == ()


def test_snapshots_are_read_only_views() -> None:
    sim = Simulation()
    sim.add_particles([0.0, 0.0, 1.0, 0.0])
    snap = sim.free_elements
    assert isinstance(snap, tuple)
    pos = snap[0].positions
    pos[:] = 7.0
    assert np.allclose(sim.free_elements[0].positions, 0.0)


def test_check_simulation_messages(caplog: pytest.LogCaptureFixture) -> None:
    sim = Simulation()
    with caplog.at_level(logging.WARNING, logger="vortexsim2d.simulation"):
        assert sim.check_simulation() == [MSG_NOTHING]
    assert MSG_NOTHING in caplog.text

    sim.add_boundary(None, SolidCircle().init_elements(sim.get_ips()))
    assert sim.check_simulation() == [MSG_NO_FREESTREAM]

    sim.fs = (1.0, 0.0)
    assert sim.check_simulation() == []
    sim.set_diffuse(False)
    assert sim.check_simulation() == [MSG_NO_DIFFUSION]

    sim.add_particles([2.0, 0.0, 1.0, 0.0])
    assert sim.check_simulation() == []


def test_moving_body_counts_as_a_flow_source() -> None:
    sim = Simulation()
    body = Body(name="mover")
    body.set_pos(0, "t")
    sim.add_body(body)
    sim.add_boundary(body, SolidCircle().init_elements(sim.get_ips()))
    assert sim.do_any_bodies_move()
    assert sim.check_simulation() == []


def test_static_bodies_do_not_move() -> None:
    sim = Simulation()
    sim.add_body(Body(1.0, 2.0))
    assert not sim.do_any_bodies_move()
    sim.add_body(Body(rotvel=0.1))
    assert sim.do_any_bodies_move()


def test_step_advances_clock_and_moves_particles() -> None:
    sim = Simulation(fs=(1.0, 0.0), dt=0.01, diffusion=DiffusionConfig(enabled=False))
    sim.add_particles([0.0, 0.0, 0.0, 0.0])
    sim.add_fldpts([0.0, 1.0])
    for _ in range(5):
        sim.step()
    assert sim.nstep == 5
    assert sim.time == pytest.approx(0.05)
    assert np.allclose(sim.free_elements[0].x, [[0.05, 0.0]])
    assert np.allclose(sim.field_elements[0].x, [[0.05, 1.0]])


def test_impulsively_started_cylinder_sheds() -> None:
    sim = Simulation(re=100.0, dt=0.01, fs=(1.0, 0.0))
    sim.add_boundary(None, SolidCircle(0.0, 0.0, 1.0).init_elements(sim.get_ips()))
    sim.first_step()
    sim.step()
    assert sim.get_nparts() > 0
    # shed vorticity plus bound vorticity stays (nearly) zero overall
    assert abs(sim.total_circulation) < 1e-6
    # drag points downstream
    assert sim.calculate_simple_forces()[0] > 0.0
    diag = sim.diagnostics()
    assert diag["nstep"] == 1 and diag["npanels"] == sim.get_npanels()


def test_stop_conditions() -> None:
    sim = Simulation(dt=0.1, diffusion=DiffusionConfig(enabled=False))
    assert not sim.test_vs_stop()
    sim.set_max_steps(2)
    sim.step()
    assert not sim.test_vs_stop()
    sim.step()
    assert sim.test_vs_stop()
    sim.unset_max_steps()
    assert not sim.test_vs_stop()
    sim.set_end_time(0.2)
    assert sim.test_vs_stop()


def test_velocity_grid_includes_freestream() -> None:
    sim = Simulation(fs=(0.5, -0.25))
    X, Y, U, V = sim.sample_velocity_grid(-1.0, 1.0, -1.0, 1.0, 5, 4)
    assert X.shape == Y.shape == U.shape == V.shape == (4, 5)
    assert np.allclose(U, 0.5) and np.allclose(V, -0.25)


def test_missing_freestream_reported_alone() -> None:
    sim = Simulation()
    sim.add_boundary(None, SolidCircle().init_elements(sim.get_ips()))
    sim.set_diffuse(False)
    assert sim.check_simulation() == [MSG_NO_FREESTREAM]
