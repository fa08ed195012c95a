from __future__ import annotations

from collections.abc import Sequence

import logging
import math

import numpy as np

from .elements import Collection, ElemType, PanelSet
from .influence import SourceSet, induced_velocity
from .kernels import KernelConfig, panel_normal_influence

logger = logging.getLogger(__name__)


class BEM:
    """Boundary-element solve for the sheet strength of every reactive panel.

    Enforces zero normal velocity relative to the wall at each panel center.
    Each closed contour adds one row fixing its own bound circulation
    (2 * area * angular velocity), which removes the null space that every
    closed contour carries. Open walls add no row. The wall condition is met
    in the least-squares sense while the circulation rows hold exactly.
    """

    def __init__(self, kernel: KernelConfig | None = None) -> None:
        self._kernel = kernel or KernelConfig()
        self._nsolves = 0
        self._residual = math.nan

    @property
    def nsolves(self) -> int: return self._nsolves

    @property
    def residual(self) -> float:
        """Max normal-velocity error after the last solve."""
        return self._residual

    def reset(self) -> None:
        self._nsolves = 0
        self._residual = math.nan

    def solve(
        self,
        time: float,
        fs: Sequence[float],
        sources: SourceSet,
        bdry: Sequence[Collection],
    ) -> None:
        panels = [c for c in bdry if isinstance(c, PanelSet) and c.elem is ElemType.REACTIVE and c.n]
        if not panels:
            return

        p0 = np.vstack([p.endpoints()[0] for p in panels])
        p1 = np.vstack([p.endpoints()[1] for p in panels])
        centers = 0.5 * (p0 + p1)
        normals = np.vstack([p.normals() for p in panels])
        n = centers.shape[0]

        A = panel_normal_influence(centers, normals, p0, p1, eps=self._kernel.eps)
        # everything but the unknown sheets: freestream and free vorticity
        u_ext = induced_velocity(centers, sources, (), fs, self._kernel)
        u_wall = np.vstack([p.surface_velocity(time) for p in panels])
        rhs = np.sum((u_wall - u_ext) * normals, axis=1)

        row_list: list[np.ndarray] = []
        target_list: list[float] = []
        k = 0
        for p in panels:
            lengths = p.lengths()
            for ids, gamma in p.circulation_targets(time):
                scale = 1.0 / float(lengths[ids].max())
                row = np.zeros(n, dtype=np.float64)
                row[k + ids] = lengths[ids] * scale
                row_list.append(row)
                target_list.append(gamma * scale)
            k += p.n
        m = len(row_list)
        rows = np.array(row_list, dtype=np.float64).reshape(m, n)
        targets = np.array(target_list, dtype=np.float64)

        # least squares on the wall condition, circulation rows held exactly (KKT)
        kkt = np.zeros((n + m, n + m), dtype=np.float64)
        kkt[:n, :n] = A.T @ A
        kkt[:n, n:] = rows.T
        kkt[n:, :n] = rows
        b = np.concatenate([A.T @ rhs, targets])
        sol, *_ = np.linalg.lstsq(kkt, b, rcond=None)
        sol = sol[:n]

        k = 0
        for p in panels:
            p.s = np.asarray(sol[k:k + p.n], dtype=np.float64)
            k += p.n

        self._residual = float(np.max(np.abs(A @ sol - rhs)))
        self._nsolves += 1
        logger.debug("BEM solve at t=%g with %d panels, residual %.3e", time, n, self._residual)
