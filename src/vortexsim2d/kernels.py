from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Sequence

import math
import numpy as np
from numpy.typing import NDArray


# ---------------------------
# Optional Numba (JIT) support
# ---------------------------
try:
    from numba import njit  # type: ignore
    _NUMBA = True
except Exception:  # pragma: no cover
    _NUMBA = False

def _maybe_njit(func):
    # Decorate with njit if available; else return original
    if _NUMBA:  # pragma: no cover
        return njit(cache=True, fastmath=True, nogil=True, parallel=False)(func)  # type: ignore[misc]
    return func

# JIT kernel: blob velocities with per-source Gaussian regularization
@_maybe_njit
def _blob_velocity_jit(xq: np.ndarray, xsrc: np.ndarray, gamma: np.ndarray, rad2: np.ndarray, eps: float) -> np.ndarray:
    M = xq.shape[0]
    N = xsrc.shape[0]
    out = np.zeros((M, 2), dtype=np.float64)
    for i in range(M):
        ui0 = 0.0
        ui1 = 0.0
        xqi0 = xq[i, 0]
        xqi1 = xq[i, 1]
        for j in range(N):
            rx = xqi0 - xsrc[j, 0]
            ry = xqi1 - xsrc[j, 1]
            r2 = rx * rx + ry * ry
            inv_r2 = 1.0 / (r2 + eps)
            f = 1.0 - math.exp(-r2 / (2.0 * rad2[j])) if rad2[j] > 0.0 else 1.0
            coef = gamma[j] * inv_r2 * f / (2.0 * math.pi)
            # k x r = (-ry, rx)
            ui0 += -ry * coef
            ui1 +=  rx * coef
        out[i, 0] = ui0
        out[i, 1] = ui1
    return out

FloatArray = NDArray[np.float64]
ArrayLike2D = np.ndarray | Sequence[Sequence[float]]

# ---------------------------
# Utility
# ---------------------------
def as_float_array2(x: ArrayLike2D, name: str) -> FloatArray:
    """Convert to contiguous float64 (N,2)."""
    arr = np.asarray(x, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"{name} must have shape (N,2).")
    if not np.isfinite(arr).all():
        raise ValueError(f"{name} contains non-finite values.")
    return np.ascontiguousarray(arr)

def as_float_array1(x: np.ndarray | Sequence[float], name: str) -> FloatArray:
    arr = np.asarray(x, dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError(f"{name} must be 1-D.")
    if not np.isfinite(arr).all():
        raise ValueError(f"{name} contains non-finite values.")
    return np.ascontiguousarray(arr)


@dataclass(slots=True)
class KernelConfig:
    """Options for the direct Biot-Savart sums.

    use_numba: use the compiled blob kernel when numba is importable.
    query_batch: number of query points per chunk (None -> no chunking).
    eps: floor added to squared distances.
    """
    use_numba: bool = False
    query_batch: int | None = 20000
    eps: float = 1e-15

    def __post_init__(self) -> None:
        if self.query_batch is not None and self.query_batch <= 0:
            raise ValueError("query_batch must be positive or None.")
        if not (np.isfinite(self.eps) and self.eps > 0.0):
            raise ValueError("eps must be positive.")


# ---------------------------
# Vortex blobs
# ---------------------------
def _blob_velocity_numpy(xq: np.ndarray, xsrc: np.ndarray, gamma: np.ndarray, rad2: np.ndarray, eps: float) -> np.ndarray:
    r = xq[:, None, :] - xsrc[None, :, :]                       # (m,n,2)
    r2 = np.sum(r * r, axis=2)                                  # (m,n)
    inv_r2 = 1.0 / (r2 + eps)
    safe2 = np.where(rad2 > 0.0, rad2, 1.0)[None, :]
    f = np.where(rad2[None, :] > 0.0, 1.0 - np.exp(-r2 / (2.0 * safe2)), 1.0)
    kxr = np.stack((-r[..., 1], r[..., 0]), axis=2)             # (m,n,2)
    coef = (gamma / (2.0 * np.pi))[None, :, None]
    return np.sum(coef * kxr * inv_r2[..., None] * f[..., None], axis=1)


def blob_velocity(
    xq: ArrayLike2D,
    xsrc: ArrayLike2D,
    gamma: np.ndarray | Sequence[float],
    radius: float | np.ndarray | Sequence[float],
    *,
    config: KernelConfig | None = None,
) -> FloatArray:
    """Velocity induced at xq by Gaussian-regularized point vortices.

    radius is the core size of each source (scalar or per source); a zero
    radius gives the singular point-vortex kernel.
    """
    cfg = config or KernelConfig()
    xq = as_float_array2(xq, "xq")
    xsrc = as_float_array2(xsrc, "xsrc")
    g = as_float_array1(gamma, "gamma")
    if g.shape[0] != xsrc.shape[0]:
        raise ValueError("gamma must match xsrc length.")
    rad = np.broadcast_to(np.asarray(radius, dtype=np.float64), g.shape)
    rad2 = np.ascontiguousarray(rad * rad)

    M = xq.shape[0]
    out = np.zeros((M, 2), dtype=np.float64)
    if M == 0 or xsrc.shape[0] == 0:
        return out

    kernel = _blob_velocity_jit if (cfg.use_numba and _NUMBA) else _blob_velocity_numpy
    qb = cfg.query_batch or M
    k = 0
    while k < M:
        ks = slice(k, min(k + qb, M))
        out[ks] = kernel(xq[ks], xsrc, g, rad2, cfg.eps)
        k = ks.stop
    return np.asarray(out, dtype=np.float64)


# ---------------------------
# Constant-strength vortex panels
# ---------------------------
def _panel_unit_velocity(
    xq: np.ndarray, p0: np.ndarray, p1: np.ndarray, eps: float
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Local (tangential, normal) velocity of each panel with unit sheet strength.

    Returns ut, un of shape (m,n) and the panel tangents and left normals (n,2).
    """
    d = p1 - p0
    length = np.hypot(d[:, 0], d[:, 1])
    tan = d / length[:, None]
    nrm = np.stack((-tan[:, 1], tan[:, 0]), axis=1)

    rel = xq[:, None, :] - p0[None, :, :]                       # (m,n,2)
    xi = np.sum(rel * tan[None, :, :], axis=2)
    eta = np.sum(rel * nrm[None, :, :], axis=2)
    xl = xi - length[None, :]

    theta = np.arctan2(eta, xl) - np.arctan2(eta, xi)
    logr = 0.5 * np.log((xi * xi + eta * eta + eps) / (xl * xl + eta * eta + eps))
    ut = -theta / (2.0 * np.pi)
    un = logr / (2.0 * np.pi)
    return ut, un, tan, nrm


def panel_velocity(
    xq: ArrayLike2D,
    p0: ArrayLike2D,
    p1: ArrayLike2D,
    sheet: np.ndarray | Sequence[float],
    *,
    eps: float = 1e-15,
) -> FloatArray:
    """Velocity induced at xq by straight panels p0->p1 carrying vortex-sheet strength."""
    xq = as_float_array2(xq, "xq")
    p0 = as_float_array2(p0, "p0")
    p1 = as_float_array2(p1, "p1")
    s = as_float_array1(sheet, "sheet")
    if not (p0.shape == p1.shape and s.shape[0] == p0.shape[0]):
        raise ValueError("p0, p1 and sheet must describe the same panels.")
    if xq.shape[0] == 0 or s.shape[0] == 0:
        return np.zeros((xq.shape[0], 2), dtype=np.float64)

    ut, un, tan, nrm = _panel_unit_velocity(xq, p0, p1, eps)
    ut = ut * s[None, :]
    un = un * s[None, :]
    u = ut @ tan + un @ nrm
    return np.asarray(u, dtype=np.float64)


def panel_normal_influence(
    xq: ArrayLike2D,
    normals: ArrayLike2D,
    p0: ArrayLike2D,
    p1: ArrayLike2D,
    *,
    eps: float = 1e-15,
) -> FloatArray:
    """Matrix A[i,j]: velocity along normals[i] at xq[i] due to unit strength on panel j."""
    xq = as_float_array2(xq, "xq")
    nq = as_float_array2(normals, "normals")
    p0 = as_float_array2(p0, "p0")
    p1 = as_float_array2(p1, "p1")
    ut, un, tan, nrm = _panel_unit_velocity(xq, p0, p1, eps)
    tdot = nq @ tan.T                                           # (m,n)
    ndot = nq @ nrm.T
    return np.asarray(ut * tdot + un * ndot, dtype=np.float64)
