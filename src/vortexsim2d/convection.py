from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

import logging

import numpy as np

from .bem import BEM
from .elements import Collection, MoveType
from .influence import SourceSet, induced_velocity
from .kernels import FloatArray, KernelConfig

logger = logging.getLogger(__name__)


class Convection:
    """Advects free, boundary and field elements with explicit Runge-Kutta.

    Bound strengths are re-solved at every stage for the instantaneous body
    and particle configuration, and once more at the end of the step. Element
    counts never change here.
    """

    def __init__(self, kernel: KernelConfig | None = None) -> None:
        self._kernel = kernel or KernelConfig()

    def solve_bound(
        self,
        time: float,
        fs: Sequence[float],
        vort: Sequence[Collection],
        bdry: Sequence[Collection],
        fldpt: Sequence[Collection],
        bem: BEM,
    ) -> SourceSet:
        """Place body-bound geometry at `time` and solve the panel strengths."""
        for c in (*vort, *bdry, *fldpt):
            c.transform(time)
        sources = SourceSet.from_collections(vort)
        bem.solve(time, fs, sources, bdry)
        return sources

    def find_vels(
        self,
        time: float,
        fs: Sequence[float],
        vort: Sequence[Collection],
        bdry: Sequence[Collection],
        fldpt: Sequence[Collection],
        bem: BEM,
    ) -> list[FloatArray]:
        """Velocities of every Lagrangian collection, in the order of `_lagrangian`."""
        sources = self.solve_bound(time, fs, vort, bdry, fldpt, bem)
        return [
            induced_velocity(c.x, sources, bdry, fs, self._kernel)
            for c in _lagrangian(vort, bdry, fldpt)
        ]

    def advect_1st(
        self,
        time: float,
        dt: float,
        fs: Sequence[float],
        vort: Sequence[Collection],
        bdry: Sequence[Collection],
        fldpt: Sequence[Collection],
        bem: BEM,
    ) -> None:
        logger.debug("advecting with 1st order")
        moving = _lagrangian(vort, bdry, fldpt)
        u1 = self.find_vels(time, fs, vort, bdry, fldpt, bem)
        for c, u in zip(moving, u1):
            c.set_positions(c.x + dt * u)
        self.solve_bound(time + dt, fs, vort, bdry, fldpt, bem)

    def advect_2nd(
        self,
        time: float,
        dt: float,
        fs: Sequence[float],
        vort: Sequence[Collection],
        bdry: Sequence[Collection],
        fldpt: Sequence[Collection],
        bem: BEM,
    ) -> None:
        logger.debug("advecting with 2nd order")
        moving = _lagrangian(vort, bdry, fldpt)
        x0 = [c.x.copy() for c in moving]

        u1 = self.find_vels(time, fs, vort, bdry, fldpt, bem)
        for c, x, u in zip(moving, x0, u1):
            c.set_positions(x + dt * u)

        u2 = self.find_vels(time + dt, fs, vort, bdry, fldpt, bem)
        for c, x, a, b in zip(moving, x0, u1, u2):
            c.set_positions(x + 0.5 * dt * (a + b))

        self.solve_bound(time + dt, fs, vort, bdry, fldpt, bem)

    def advect(
        self,
        order: Literal[1, 2],
        time: float,
        dt: float,
        fs: Sequence[float],
        vort: Sequence[Collection],
        bdry: Sequence[Collection],
        fldpt: Sequence[Collection],
        bem: BEM,
    ) -> None:
        if order == 1:
            self.advect_1st(time, dt, fs, vort, bdry, fldpt, bem)
        elif order == 2:
            self.advect_2nd(time, dt, fs, vort, bdry, fldpt, bem)
        else:
            raise ValueError("order must be 1 or 2.")


def _lagrangian(*lists: Sequence[Collection]) -> list[Collection]:
    return [c for colls in lists for c in colls if c.move is MoveType.LAGRANGIAN and c.x.shape[0]]
