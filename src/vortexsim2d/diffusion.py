from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace

import logging
import math

import numpy as np

from .bem import BEM
from .elements import Collection, ElemType, MoveType, PanelSet, PointSet, append_points
from .influence import SourceSet

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DiffusionConfig:
    """Viscous step parameters.

    nom_sep_scaled: nominal particle separation in units of sqrt(dt/re)
    particle_overlap: core radius in units of the nominal separation
    shed_distance: wall offset of newly shed particles, in units of the separation
    shed_threshold: bound circulation below which a panel sheds nothing
    exchange: run particle strength exchange among free particles
    max_exchange: cap on the total exchange fraction of one particle per step
    """
    enabled: bool = True
    nom_sep_scaled: float = math.sqrt(8.0)
    particle_overlap: float = 1.5
    shed_distance: float = 1.0
    shed_threshold: float = 1e-12
    exchange: bool = True
    max_exchange: float = 0.5

    def __post_init__(self) -> None:
        for name in ("nom_sep_scaled", "particle_overlap", "shed_distance", "max_exchange"):
            val = getattr(self, name)
            if not (np.isfinite(val) and val > 0.0):
                raise ValueError(f"{name} must be positive.")
        if self.shed_threshold < 0.0:
            raise ValueError("shed_threshold must be non-negative.")


class Diffusion:
    """One full step of viscous exchange.

    Strength moves among free particles (particle strength exchange with a
    Gaussian kernel, symmetric so total circulation is kept) and from the
    walls into the flow (the bound circulation of each panel is released as a
    new particle just off the wall). Existing positions are never touched.
    """

    def __init__(self, config: DiffusionConfig | None = None) -> None:
        self._cfg = replace(config) if config is not None else DiffusionConfig()

    @property
    def config(self) -> DiffusionConfig: return self._cfg

    def get_diffuse(self) -> bool: return self._cfg.enabled

    def set_diffuse(self, do_diffuse: bool) -> None: self._cfg.enabled = bool(do_diffuse)

    def get_nom_sep_scaled(self) -> float: return self._cfg.nom_sep_scaled

    def get_particle_overlap(self) -> float: return self._cfg.particle_overlap

    def step(
        self,
        time: float,
        dt: float,
        re: float,
        vdelta: float,
        fs: Sequence[float],
        vort: list[Collection],
        bdry: Sequence[Collection],
        bem: BEM,
    ) -> None:
        if not self._cfg.enabled:
            logger.debug("diffusion is off, skipping")
            return
        if not (re > 0.0 and dt > 0.0 and vdelta > 0.0):
            raise ValueError("re, dt and vdelta must be positive to diffuse.")

        nu = 1.0 / re
        ips = vdelta / self._cfg.particle_overlap

        if self._cfg.exchange:
            self._exchange(dt, nu, ips, vdelta, vort)

        if any(isinstance(c, PanelSet) and c.n for c in bdry):
            bem.solve(time, fs, SourceSet.from_collections(vort), bdry)
            self._shed(ips, vdelta, vort, bdry)

    def _exchange(self, dt: float, nu: float, ips: float, eps: float, vort: Sequence[Collection]) -> None:
        pts = [c for c in vort if isinstance(c, PointSet) and c.elem is ElemType.ACTIVE and c.s is not None and c.n]
        if not pts:
            return
        x = np.vstack([p.x for p in pts])
        g = np.concatenate([p.s for p in pts])  # type: ignore[misc]

        eps2 = eps * eps
        r = x[:, None, :] - x[None, :, :]
        r2 = np.sum(r * r, axis=2)
        # second-order Gaussian PSE kernel, particle area ips^2
        coef = nu * dt / eps2 * (4.0 / (np.pi * eps2)) * ips * ips
        W = coef * np.exp(-r2 / eps2)
        np.fill_diagonal(W, 0.0)

        row_max = float(W.sum(axis=1).max(initial=0.0))
        if row_max > self._cfg.max_exchange:
            logger.warning("strength exchange fraction %.3f exceeds %.3f, scaling down", row_max, self._cfg.max_exchange)
            W *= self._cfg.max_exchange / row_max

        # symmetric W -> sum of dg is zero
        dg = W @ g - W.sum(axis=1) * g
        k = 0
        for p in pts:
            p.s = p.s + dg[k:k + p.n]  # type: ignore[operator]
            k += p.n

    def _shed(self, ips: float, vdelta: float, vort: list[Collection], bdry: Sequence[Collection]) -> None:
        offset = self._cfg.shed_distance * ips
        new: list[np.ndarray] = []
        for c in bdry:
            if not (isinstance(c, PanelSet) and c.elem is ElemType.REACTIVE and c.n):
                continue
            circ = c.circulations()
            keep = np.abs(circ) > self._cfg.shed_threshold
            if keep.any():
                where = c.centers()[keep] + offset * c.normals()[keep]
                rows = np.column_stack([where, circ[keep], np.full(int(keep.sum()), vdelta)])
                new.append(rows.ravel())
            # released into the flow; the next solve sets the new bound strengths
            c.s = np.zeros(c.n, dtype=np.float64)

        if new:
            values = np.concatenate(new)
            append_points(vort, values, ElemType.ACTIVE, MoveType.LAGRANGIAN)
            logger.debug("shed %d particles from the walls", values.size // 4)
