from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Literal

import logging
import math

import numpy as np

from .bem import BEM
from .body import Body
from .convection import Convection
from .diffusion import Diffusion, DiffusionConfig
from .elements import (
    Collection,
    ElementPacket,
    ElemType,
    MoveType,
    PanelSet,
    append_points,
    count_elements,
    count_panels,
)
from .influence import SourceSet, induced_velocity
from .kernels import FloatArray, KernelConfig

logger = logging.getLogger(__name__)

_EPS = float(np.finfo(np.float32).eps)

MSG_NOTHING = "No flow features and no bodies. Add one or both, reset, and run."
MSG_NO_FREESTREAM = "No flow features and zero freestream speed - try adding one or both."
MSG_NO_DIFFUSION = (
    "You have a solid body, but no diffusion. It will not shed vorticity. "
    "Turn on viscosity or add a flow feature, reset, and run."
)


class Simulation:
    """2D vortex particle method: diffusion and convection by operator splitting.

    Owns the bodies and three ordered lists of element collections: free
    (vortex particles), boundary (reactive panels) and field points (tracers).
    A step can run in the caller's thread (`step`) or on a single background
    worker (`async_step` then poll `test_for_new_results`); at most one step is
    ever in flight, and collections must not be touched while one is.
    """

    def __init__(
        self,
        *,
        re: float = 100.0,
        dt: float = 0.01,
        fs: Sequence[float] = (0.0, 0.0),
        order: Literal[1, 2] = 2,
        diffusion: DiffusionConfig | None = None,
        kernel: KernelConfig | None = None,
    ) -> None:
        self._re = 0.0
        self._dt = 0.0
        self.re = re
        self.dt = dt
        self.fs = fs
        if order not in (1, 2):
            raise ValueError("order must be 1 or 2.")
        self._order: Literal[1, 2] = order

        self._bodies: list[Body] = []
        self._vort: list[Collection] = []
        self._bdry: list[Collection] = []
        self._fldpt: list[Collection] = []

        kcfg = kernel or KernelConfig()
        self._bem = BEM(kcfg)
        self._diff = Diffusion(diffusion)
        self._conv = Convection(kcfg)
        self._kernel = kcfg

        self.description = ""
        self._time = 0.0
        self._nstep = 0
        self.output_dt = 0.0
        self._end_time: float | None = None
        self._max_steps: int | None = None
        self.auto_start = False
        self.quit_on_stop = False

        self._initialized = False
        self._step_has_started = False
        self._step_is_finished = False
        self._executor: ThreadPoolExecutor | None = None
        self._step_future: Future[None] | None = None

        self._force: FloatArray = np.zeros(2, dtype=np.float64)

    def __enter__(self) -> Simulation:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -------- primary parameters --------
    @property
    def re(self) -> float: return self._re

    @re.setter
    def re(self, value: float) -> None:
        if not (np.isfinite(value) and value > 0.0):
            raise ValueError("re must be positive.")
        self._re = float(value)

    @property
    def dt(self) -> float: return self._dt

    @dt.setter
    def dt(self, value: float) -> None:
        if not (np.isfinite(value) and value > 0.0):
            raise ValueError("dt must be positive.")
        self._dt = float(value)

    @property
    def fs(self) -> FloatArray: return self._fs.copy()

    @fs.setter
    def fs(self, value: Sequence[float]) -> None:
        arr = np.asarray(value, dtype=np.float64)
        if arr.shape != (2,) or not np.isfinite(arr).all():
            raise ValueError("fs must be two finite numbers.")
        self._fs = arr.copy()

    @property
    def order(self) -> int: return self._order

    # -------- derived parameters --------
    def get_hnu(self) -> float: return math.sqrt(self._dt / self._re)

    def get_ips(self) -> float: return self._diff.get_nom_sep_scaled() * self.get_hnu()

    def get_vdelta(self) -> float: return self._diff.get_particle_overlap() * self.get_ips()

    def set_re_for_ips(self, ips: float) -> None:
        """Choose re so the nominal separation equals `ips`; turns diffusion off."""
        if not ips > 0.0:
            raise ValueError("ips must be positive.")
        self.re = self._diff.get_nom_sep_scaled() ** 2 * self._dt / ips ** 2
        self._diff.set_diffuse(False)

    def get_diffuse(self) -> bool: return self._diff.get_diffuse()

    def set_diffuse(self, do_diffuse: bool) -> None: self._diff.set_diffuse(do_diffuse)

    # -------- clock and stop conditions --------
    @property
    def time(self) -> float: return self._time

    @property
    def nstep(self) -> int: return self._nstep

    @property
    def end_time(self) -> float | None: return self._end_time

    def set_end_time(self, end_time: float) -> None: self._end_time = float(end_time)

    def unset_end_time(self) -> None: self._end_time = None

    @property
    def max_steps(self) -> int | None: return self._max_steps

    def set_max_steps(self, nsteps: int) -> None:
        if nsteps < 0:
            raise ValueError("max_steps must be non-negative.")
        self._max_steps = int(nsteps)

    def unset_max_steps(self) -> None: self._max_steps = None

    def test_vs_stop(self) -> bool:
        """True once the end time or the step limit has been reached."""
        if self._end_time is not None and self._time >= self._end_time - 0.001 * self._dt:
            return True
        if self._max_steps is not None and self._nstep >= self._max_steps:
            return True
        return False

    def test_vs_stop_async(self) -> bool:
        return not self._step_has_started and self.test_vs_stop()

    # -------- status --------
    def get_npanels(self) -> int: return count_panels(self._bdry)

    def get_nparts(self) -> int: return count_elements(self._vort)

    def get_nfldpts(self) -> int: return count_elements(self._fldpt)

    def is_initialized(self) -> bool: return self._initialized

    def set_initialized(self) -> None: self._initialized = True

    @property
    def step_is_finished(self) -> bool:
        """True once at least one background step has been consumed."""
        return self._step_is_finished

    @property
    def is_stepping(self) -> bool: return self._step_has_started

    @property
    def bodies(self) -> tuple[Body, ...]: return tuple(self._bodies)

    @property
    def free_elements(self) -> tuple[Collection, ...]: return tuple(self._vort)

    @property
    def boundary_elements(self) -> tuple[Collection, ...]: return tuple(self._bdry)

    @property
    def field_elements(self) -> tuple[Collection, ...]: return tuple(self._fldpt)

    @property
    def total_circulation(self) -> float:
        """Free plus bound circulation."""
        total = SourceSet.from_collections(self._vort).total_circulation
        return total + sum(c.total_circulation for c in self._bdry if isinstance(c, PanelSet))

    # -------- bodies --------
    def add_body(self, body: Body) -> None:
        self._bodies.append(body)
        logger.info("added new body (%s), now have %d", body.name, len(self._bodies))

    def get_last_body(self) -> Body:
        """Last body added, or a new "ground" body if there are none."""
        if not self._bodies:
            logger.info("no last body found, creating (ground)")
            body = Body(name="ground")
            self.add_body(body)
            return body
        return self._bodies[-1]

    def get_pointer_to_body(self, name: str) -> Body:
        """Body with the given name, or a new "ground" body if none matches."""
        for body in self._bodies:
            if body.name == name:
                logger.debug("found body matching name (%s)", name)
                return body
        logger.info("no body matching (%s) found, creating (ground)", name)
        body = Body(name="ground")
        self.add_body(body)
        return body

    def clear_bodies(self) -> None:
        self._bodies.clear()

    # -------- elements --------
    def add_particles(self, values: Sequence[float] | np.ndarray) -> None:
        """Add vortex particles given flat (x, y, strength, radius) rows.

        The radius is replaced by the current core size. New particles go to
        the last free collection.
        """
        arr = np.array(values, dtype=np.float64).ravel()
        if arr.size == 0:
            return
        if arr.size % 4 != 0:
            raise ValueError(f"particles need 4 values each, got {arr.size} values.")
        arr[3::4] = self.get_vdelta()
        append_points(self._vort, arr, ElemType.ACTIVE, MoveType.LAGRANGIAN)

    def add_fldpts(self, values: Sequence[float] | np.ndarray, moves: bool = True) -> None:
        """Add tracer/field points given flat (x, y) rows."""
        arr = np.array(values, dtype=np.float64).ravel()
        if arr.size == 0:
            return
        if arr.size % 2 != 0:
            raise ValueError(f"field points need 2 values each, got {arr.size} values.")
        move = MoveType.LAGRANGIAN if moves else MoveType.FIXED
        append_points(self._fldpt, arr, ElemType.INERT, move)

    def add_boundary(self, body: Body | None, geom: ElementPacket) -> PanelSet:
        """Add reactive panels, merging into the first compatible collection.

        Compatible means the same element and motion kinds and, for
        body-bound panels, the same Body object.
        """
        elem = ElemType.REACTIVE
        move = MoveType.BODYBOUND if body is not None else MoveType.FIXED

        for coll in self._bdry:
            if isinstance(coll, PanelSet) and coll.matches(elem, move, body):
                coll.add_new(geom)
                coll.transform(self._time)
                return coll

        surf = PanelSet(geom, elem, move, body)
        surf.transform(self._time)
        self._bdry.append(surf)
        return surf

    def add_boundary_feature(self, feature: Any, body: Body | None = None) -> PanelSet:
        """Discretize a boundary feature (`init_elements(ips)`) at the current ips."""
        logger.info("adding boundary feature: %s", feature.to_string())
        return self.add_boundary(body, feature.init_elements(self.get_ips()))

    def add_flow_feature(self, feature: Any) -> None:
        """Seed particles from a flow feature (`init_particles(ips)`)."""
        self.add_particles(feature.init_particles(self.get_ips()))

    def add_measure_feature(self, feature: Any, moves: bool = True) -> None:
        self.add_fldpts(feature.init_particles(self.get_ips()), moves)

    # -------- diagnostics --------
    def do_any_bodies_move(self) -> bool:
        for body in self._bodies:
            thisvel = body.get_vel(self._time)
            nextvel = body.get_vel(self._time + self._dt)
            thisrot = body.get_rotvel(self._time)
            nextrot = body.get_rotvel(self._time + self._dt)
            total = (np.abs(thisvel).sum() + abs(thisrot) + np.abs(nextvel).sum() + abs(nextrot))
            if total > _EPS:
                return True
        return False

    def check_simulation(self) -> list[str]:
        """Advisories for set-ups that will visibly do nothing; never raises."""
        msgs: list[str] = []
        nbdry = self.get_npanels()
        nparts = self.get_nparts()

        if nbdry == 0 and nparts == 0:
            msgs.append(MSG_NOTHING)

        if nbdry > 0 and nparts == 0:
            zero_freestream = float(self._fs @ self._fs) < _EPS
            if zero_freestream and not self.do_any_bodies_move():
                msgs.append(MSG_NO_FREESTREAM)
            elif not self._diff.get_diffuse():
                msgs.append(MSG_NO_DIFFUSION)

        for msg in msgs:
            logger.warning(msg)
        return msgs

    # -------- stepping --------
    def first_step(self) -> None:
        """Solve bound strengths for the current state without advancing time."""
        self._check_not_stepping()
        self._first_step()

    def _first_step(self) -> None:
        self._conv.solve_bound(self._time, self._fs, self._vort, self._bdry, self._fldpt, self._bem)

    def step(self) -> None:
        """Diffuse for a full step, then convect, then advance the clock.

        Raises RuntimeError while a background step is in flight.
        """
        self._check_not_stepping()
        self._step()

    def _step(self) -> None:
        logger.info("Taking step at t=%g with n=%d", self._time, self.get_nparts())
        thisfs = (float(self._fs[0]), float(self._fs[1]))

        before = self._linear_impulse()

        self._diff.step(self._time, self._dt, self._re, self.get_vdelta(), thisfs,
                        self._vort, self._bdry, self._bem)
        self._conv.advect(self._order, self._time, self._dt, thisfs,
                          self._vort, self._bdry, self._fldpt, self._bem)

        self._time += self._dt
        self._nstep += 1

        self._force = -(self._linear_impulse() - before) / self._dt

    def async_step(self) -> bool:
        """Run `step` on the background worker; refused while one is in flight."""
        if self._step_has_started:
            logger.debug("step still in flight, not starting another")
            return False
        self._step_has_started = True
        self._step_future = self._get_executor().submit(self._step)
        return True

    def async_first_step(self) -> bool:
        if self._step_has_started:
            return False
        self._step_has_started = True
        self._step_future = self._get_executor().submit(self._first_step)
        return True

    def test_for_new_results(self) -> bool:
        """Non-blocking poll: True when no step is in flight.

        A finished step is consumed here, re-raising anything it raised.
        """
        if not self._step_has_started:
            return True
        fut = self._step_future
        if fut is not None and fut.done():
            self._step_future = None
            self._step_has_started = False
            fut.result()
            self._step_is_finished = True
            return True
        return False

    def reset(self) -> None:
        """Wait for any in-flight step, then clear time and all elements.

        Bodies are kept; use `clear_bodies` to drop them.
        """
        fut = self._step_future
        self._step_future = None
        try:
            if fut is not None:
                fut.result()
        finally:
            self._time = 0.0
            self._nstep = 0
            self._vort.clear()
            self._bdry.clear()
            self._fldpt.clear()
            self._bem.reset()
            self._force = np.zeros(2, dtype=np.float64)
            self._initialized = False
            self._step_has_started = False
            self._step_is_finished = False

    def close(self) -> None:
        """Wait for the in-flight step (if any) and stop the worker."""
        fut = self._step_future
        self._step_future = None
        self._step_has_started = False
        try:
            if fut is not None:
                fut.result()
        finally:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="vortexsim2d-step")
        return self._executor

    def _check_not_stepping(self) -> None:
        if self._step_has_started:
            raise RuntimeError("a step is already in flight; poll test_for_new_results first.")

    # -------- derived quantities --------
    def calculate_simple_forces(self) -> FloatArray:
        """Force per unit density on all bodies from the impulse change over the last step."""
        return self._force.copy()

    def _linear_impulse(self) -> FloatArray:
        # I = sum of gamma * (y, -x) over free and bound vorticity
        src = SourceSet.from_collections(self._vort)
        xs = [src.x]
        gs = [src.gamma]
        for c in self._bdry:
            if isinstance(c, PanelSet) and c.n:
                xs.append(c.centers())
                gs.append(c.circulations())
        x = np.vstack(xs)
        g = np.concatenate(gs)
        return np.array([g @ x[:, 1], -(g @ x[:, 0])], dtype=np.float64)

    def diagnostics(self) -> dict[str, Any]:
        src = SourceSet.from_collections(self._vort)
        u = self.velocities(src.x)
        speed = np.linalg.norm(u, axis=1)
        return {
            "time": self._time,
            "nstep": self._nstep,
            "nparts": self.get_nparts(),
            "npanels": self.get_npanels(),
            "nfldpts": self.get_nfldpts(),
            "vdelta": self.get_vdelta(),
            "total_circulation": self.total_circulation,
            "bem_residual": self._bem.residual,
            "force": self._force.copy(),
            "max_speed_at_particles": float(speed.max(initial=0.0)),
        }

    def velocities(self, xq: np.ndarray) -> FloatArray:
        """Velocity at arbitrary points from the current (already solved) state."""
        src = SourceSet.from_collections(self._vort)
        return induced_velocity(np.asarray(xq, dtype=np.float64), src, self._bdry, self._fs, self._kernel)

    def sample_velocity_grid(
        self, xmin: float, xmax: float, ymin: float, ymax: float, nx: int, ny: int
    ) -> tuple[FloatArray, FloatArray, FloatArray, FloatArray]:
        xs = np.linspace(xmin, xmax, nx)
        ys = np.linspace(ymin, ymax, ny)
        X, Y = np.meshgrid(xs, ys, indexing="xy")
        pts = np.stack([X.ravel(), Y.ravel()]).T
        UV = self.velocities(pts)
        U = UV[:, 0].reshape(ny, nx)
        V = UV[:, 1].reshape(ny, nx)
        return X, Y, U, V

    def bounds(self, pad: float = 0.1) -> tuple[float, float, float, float]:
        """Padded bounding box of all elements, for plotting."""
        pts = [c.x for c in (*self._vort, *self._bdry, *self._fldpt) if c.x.shape[0]]
        if not pts:
            return (-1.0, 1.0, -1.0, 1.0)
        x = np.vstack(pts)
        lo = x.min(axis=0)
        hi = x.max(axis=0)
        span = float(max(hi[0] - lo[0], hi[1] - lo[1], 1e-6))
        return (float(lo[0]) - pad * span, float(hi[0]) + pad * span,
                float(lo[1]) - pad * span, float(hi[1]) + pad * span)
