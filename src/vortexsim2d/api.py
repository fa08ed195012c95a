from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Literal, Mapping

import logging
import math

from .body import Body
from .diffusion import DiffusionConfig
from .kernels import KernelConfig
from .simulation import Simulation

logger = logging.getLogger(__name__)


# ----------------------
# Configuration objects
# ----------------------

@dataclass(slots=True)
class BodyConfig:
    """A rigid body: each coordinate is a constant or an expression of t."""
    name: str = "ground"
    x: float | str = 0.0
    y: float | str = 0.0
    orient: float = 0.0
    rotvel: float = 0.0
    parent: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("body name must be non-empty.")
        for name in ("orient", "rotvel"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite.")

    def build(self) -> Body:
        """New Body; a bad coordinate expression is logged and left constant."""
        body = Body(name=self.name, orient=self.orient, rotvel=self.rotvel)
        body.parent_name = self.parent
        body.set_pos(0, self.x)
        body.set_pos(1, self.y)
        return body


@dataclass(slots=True)
class SimulationConfig:
    """Run controls: flow parameters, stop conditions and collaborator options."""
    re: float = 100.0
    dt: float = 0.01
    fs: tuple[float, float] = (0.0, 0.0)
    order: Literal[1, 2] = 2
    description: str = ""
    end_time: float | None = None
    max_steps: int | None = None
    output_dt: float = 0.0
    diffusion: DiffusionConfig = field(default_factory=DiffusionConfig)
    kernel: KernelConfig = field(default_factory=KernelConfig)
    bodies: list[BodyConfig] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not (math.isfinite(self.re) and self.re > 0.0):
            raise ValueError("re must be positive.")
        if not (math.isfinite(self.dt) and self.dt > 0.0):
            raise ValueError("dt must be positive.")
        if len(self.fs) != 2:
            raise ValueError("fs must have two components.")
        self.fs = (float(self.fs[0]), float(self.fs[1]))
        if self.order not in (1, 2):
            raise ValueError(f"Unknown order: {self.order}")
        if self.max_steps is not None and self.max_steps < 0:
            raise ValueError("max_steps must be non-negative.")
        if self.output_dt < 0.0:
            raise ValueError("output_dt must be non-negative.")
        names = [b.name for b in self.bodies]
        if len(set(names)) != len(names):
            raise ValueError("body names must be unique.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SimulationConfig:
        """Build from plain dict input (e.g. a parsed JSON/TOML document).

        Nested "diffusion", "kernel" and "bodies" entries may be mappings.
        Unknown keys are ignored.
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.debug("ignoring unknown configuration key (%s)", key)
                continue
            kwargs[key] = value

        if isinstance(kwargs.get("diffusion"), Mapping):
            kwargs["diffusion"] = DiffusionConfig(**kwargs["diffusion"])
        if isinstance(kwargs.get("kernel"), Mapping):
            kwargs["kernel"] = KernelConfig(**kwargs["kernel"])
        if "bodies" in kwargs:
            kwargs["bodies"] = [b if isinstance(b, BodyConfig) else BodyConfig(**b) for b in kwargs["bodies"]]
        if "fs" in kwargs:
            kwargs["fs"] = tuple(kwargs["fs"])
        return cls(**kwargs)


def build_simulation(config: SimulationConfig | None = None) -> Simulation:
    """Create a Simulation with the configured parameters and bodies."""
    cfg = config or SimulationConfig()
    sim = Simulation(
        re=cfg.re,
        dt=cfg.dt,
        fs=cfg.fs,
        order=cfg.order,
        diffusion=cfg.diffusion,
        kernel=cfg.kernel,
    )
    sim.description = cfg.description
    sim.output_dt = cfg.output_dt
    if cfg.end_time is not None:
        sim.set_end_time(cfg.end_time)
    if cfg.max_steps is not None:
        sim.set_max_steps(cfg.max_steps)
    for bcfg in cfg.bodies:
        sim.add_body(bcfg.build())
    return sim
