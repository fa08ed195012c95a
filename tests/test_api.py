from __future__ import annotations

import pytest

from vortexsim2d import BodyConfig, DiffusionConfig, KernelConfig, SimulationConfig, build_simulation


def test_defaults_build_a_quiet_simulation() -> None:
    sim = build_simulation()
    assert (sim.re, sim.dt) == (100.0, 0.01)
    assert sim.fs.tolist() == [0.0, 0.0]
    assert sim.bodies == ()
    assert sim.end_time is None and sim.max_steps is None


def test_from_mapping_with_nested_sections() -> None:
    cfg = SimulationConfig.from_mapping({
        "description": "cylinder",
        "re": 550.0,
        "dt": 0.005,
        "fs": [1.0, 0.0],
        "order": 1,
        "end_time": 2.0,
        "max_steps": 400,
        "diffusion": {"enabled": False, "particle_overlap": 1.2},
        "kernel": {"query_batch": 512},
        "bodies": [{"name": "cyl", "x": "0.1*sin(t)", "rotvel": 0.5}],
        "renderer": {"colormap": "viridis"},
    })
    assert isinstance(cfg.diffusion, DiffusionConfig) and not cfg.diffusion.enabled
    assert isinstance(cfg.kernel, KernelConfig) and cfg.kernel.query_batch == 512
    assert cfg.fs == (1.0, 0.0)

    sim = build_simulation(cfg)
    assert sim.description == "cylinder"
    assert sim.order == 1
    assert sim.end_time == 2.0 and sim.max_steps == 400
    assert not sim.get_diffuse()
    assert sim.get_vdelta() == pytest.approx(1.2 * sim.get_ips())
    body = sim.get_pointer_to_body("cyl")
    assert body.expressions == ("0.1*sin(t)", None)
    assert body.get_rotvel(0.0) == 0.5


def test_bad_body_expression_does_not_fail_the_build() -> None:
    body = BodyConfig(name="bad", x="sin(")
    built = body.build()
    assert built.expressions == (None, None)
    assert built.last_error is not None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"re": 0.0},
        {"dt": -0.1},
        {"fs": (1.0,)},
        {"order": 3},
        {"max_steps": -1},
        {"bodies": [BodyConfig(name="a"), BodyConfig(name="a")]},
    ],
)
def test_validation(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        SimulationConfig(**kwargs)


def test_body_name_required() -> None:
    with pytest.raises(ValueError):
        BodyConfig(name="")
