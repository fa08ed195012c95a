from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from .elements import Collection, ElemType, PanelSet, PointSet
from .kernels import FloatArray, KernelConfig, blob_velocity, panel_velocity


@dataclass(slots=True)
class SourceSet:
    """Free vorticity gathered from every strength-carrying point collection."""
    x: FloatArray          # (N,2) positions
    gamma: FloatArray      # (N,) circulations
    radius: FloatArray     # (N,) core radii

    @classmethod
    def from_collections(cls, colls: Sequence[Collection]) -> SourceSet:
        xs, gs, rs = [], [], []
        for c in colls:
            if isinstance(c, PointSet) and c.elem is not ElemType.INERT and c.s is not None and c.r is not None:
                xs.append(c.x)
                gs.append(c.s)
                rs.append(c.r)
        if not xs:
            return cls.empty()
        return cls(np.vstack(xs), np.concatenate(gs), np.concatenate(rs))

    @classmethod
    def empty(cls) -> SourceSet:
        return cls(np.zeros((0, 2)), np.zeros(0), np.zeros(0))

    @property
    def n(self) -> int: return int(self.gamma.shape[0])

    @property
    def total_circulation(self) -> float: return float(self.gamma.sum())


def induced_velocity(
    xq: np.ndarray,
    sources: SourceSet,
    bdry: Sequence[Collection],
    fs: Sequence[float],
    kernel: KernelConfig | None = None,
) -> FloatArray:
    """Freestream plus velocity from free particles and the current panel strengths."""
    xq = np.asarray(xq, dtype=np.float64)
    u = np.tile(np.asarray(fs, dtype=np.float64), (xq.shape[0], 1))
    if xq.shape[0] == 0:
        return u
    if sources.n:
        u += blob_velocity(xq, sources.x, sources.gamma, sources.radius, config=kernel)
    for c in bdry:
        if isinstance(c, PanelSet) and c.n:
            p0, p1 = c.endpoints()
            u += panel_velocity(xq, p0, p1, c.s)
    return u
