from __future__ import annotations

from dataclasses import dataclass

import logging
import math

import numpy as np

from .elements import ElementPacket
from .kernels import FloatArray

logger = logging.getLogger(__name__)


def _closed_packet(x: np.ndarray) -> ElementPacket:
    """Packet for a closed polygon; vertex i connects to i+1 and the last back to 0."""
    n = x.shape[0]
    idx = np.empty((n, 2), dtype=np.int64)
    idx[:, 0] = np.arange(n)
    idx[:, 1] = np.arange(1, n + 1)
    idx[-1, 1] = 0
    return ElementPacket(x.ravel(), idx.ravel(), np.zeros(n))


def _rotate(dx: np.ndarray, dy: np.ndarray, theta_deg: float) -> tuple[np.ndarray, np.ndarray]:
    st = math.sin(math.pi * theta_deg / 180.0)
    ct = math.cos(math.pi * theta_deg / 180.0)
    return dx * ct - dy * st, dx * st + dy * ct


def _check_ips(ips: float) -> None:
    if not (math.isfinite(ips) and ips > 0.0):
        raise ValueError("ips must be positive.")


# ---------------------------
# Boundary features
# ---------------------------
@dataclass(frozen=True, slots=True)
class SolidCircle:
    x: float = 0.0
    y: float = 0.0
    diam: float = 1.0

    def __post_init__(self) -> None:
        if not self.diam > 0.0:
            raise ValueError("diam must be positive.")

    def init_elements(self, ips: float) -> ElementPacket:
        # clockwise from +x, so the fluid (outside) is on the left of every edge
        _check_ips(ips)
        n = min(10000, max(5, int(self.diam * math.pi / ips)))
        logger.info("Creating circle with %d panels", n)
        theta = 2.0 * np.pi * np.arange(n) / n
        x = np.stack([self.x + 0.5 * self.diam * np.cos(theta),
                      self.y - 0.5 * self.diam * np.sin(theta)], axis=1)
        return _closed_packet(x)

    def to_string(self) -> str:
        return f"circle at {self.x} {self.y} with diameter {self.diam}"


@dataclass(frozen=True, slots=True)
class SolidOval:
    """Ellipse with major diameter `diam`, minor `dmin`, major axis at `theta` degrees."""
    x: float = 0.0
    y: float = 0.0
    diam: float = 1.0
    dmin: float = 0.5
    theta: float = 0.0

    def __post_init__(self) -> None:
        if not (self.diam > 0.0 and self.dmin > 0.0):
            raise ValueError("diam and dmin must be positive.")

    def init_elements(self, ips: float) -> ElementPacket:
        _check_ips(ips)
        n = min(10000, max(5, int(self.diam * math.pi / ips)))
        logger.info("Creating oval with %d panels", n)
        t = 2.0 * np.pi * np.arange(n) / n
        dx, dy = _rotate(0.5 * self.diam * np.cos(t), -0.5 * self.dmin * np.sin(t), self.theta)
        return _closed_packet(np.stack([self.x + dx, self.y + dy], axis=1))

    def to_string(self) -> str:
        return f"oval at {self.x} {self.y} with diameters {self.diam} {self.dmin} and angle {self.theta}"


@dataclass(frozen=True, slots=True)
class SolidSquare:
    """Square of edge `side` rotated by `theta` degrees about its center."""
    x: float = 0.0
    y: float = 0.0
    side: float = 1.0
    theta: float = 0.0

    def __post_init__(self) -> None:
        if not self.side > 0.0:
            raise ValueError("side must be positive.")

    def init_elements(self, ips: float) -> ElementPacket:
        _check_ips(ips)
        m = min(2500, max(1, int(self.side / ips)))
        logger.info("Creating square with %d panels", 4 * m)
        f = np.arange(m) / m
        h = 0.5 * self.side
        # up the left side, right along the top, down the right, back along the bottom
        px = np.concatenate([np.full(m, -h), self.side * (-0.5 + f), np.full(m, h), self.side * (0.5 - f)])
        py = np.concatenate([self.side * (-0.5 + f), np.full(m, h), self.side * (0.5 - f), np.full(m, -h)])
        dx, dy = _rotate(px, py, self.theta)
        return _closed_packet(np.stack([self.x + dx, self.y + dy], axis=1))

    def to_string(self) -> str:
        return f"square at {self.x} {self.y} with side {self.side} and angle {self.theta}"


@dataclass(frozen=True, slots=True)
class BoundarySegment:
    """Open straight wall from (x, y) to (x1, y1); fluid on the left going start to end."""
    x: float = 0.0
    y: float = 0.0
    x1: float = 1.0
    y1: float = 0.0

    def __post_init__(self) -> None:
        if math.hypot(self.x1 - self.x, self.y1 - self.y) <= 0.0:
            raise ValueError("segment must have non-zero length.")

    def init_elements(self, ips: float) -> ElementPacket:
        _check_ips(ips)
        length = math.hypot(self.x1 - self.x, self.y1 - self.y)
        n = min(10000, max(1, int(length / ips)))
        logger.info("Creating segment with %d panels", n)
        f = np.linspace(0.0, 1.0, n + 1)
        x = np.stack([self.x + f * (self.x1 - self.x), self.y + f * (self.y1 - self.y)], axis=1)
        idx = np.stack([np.arange(n), np.arange(1, n + 1)], axis=1)
        return ElementPacket(x.ravel(), idx.ravel(), np.zeros(n))

    def to_string(self) -> str:
        return f"segment from {self.x} {self.y} to {self.x1} {self.y1}"


# ---------------------------
# Flow features (x, y, strength, radius per particle)
# ---------------------------
@dataclass(frozen=True, slots=True)
class SingleParticle:
    x: float = 0.0
    y: float = 0.0
    strength: float = 1.0

    def init_particles(self, ips: float) -> FloatArray:
        return np.array([self.x, self.y, self.strength, 0.0], dtype=np.float64)

    def to_string(self) -> str:
        return f"single particle at {self.x} {self.y} with strength {self.strength}"


@dataclass(frozen=True, slots=True)
class VortexBlob:
    """Patch of particles on an ips-spaced grid, tapered over `softness` at the rim.

    Total circulation equals `strength`.
    """
    x: float = 0.0
    y: float = 0.0
    strength: float = 1.0
    rad: float = 0.1
    softness: float = 0.05

    def __post_init__(self) -> None:
        if not self.rad > 0.0:
            raise ValueError("rad must be positive.")
        if self.softness < 0.0:
            raise ValueError("softness must be non-negative.")

    def init_particles(self, ips: float) -> FloatArray:
        _check_ips(ips)
        outer = self.rad + self.softness
        nx = int(math.ceil(outer / ips))
        grid = ips * np.arange(-nx, nx + 1, dtype=np.float64)
        gx, gy = np.meshgrid(grid, grid, indexing="xy")
        dist = np.hypot(gx, gy).ravel()

        w = np.where(dist < self.rad - self.softness, 1.0, 0.0)
        if self.softness > 0.0:
            band = np.abs(dist - self.rad) <= self.softness
            w[band] = 0.5 - 0.5 * np.sin(0.5 * np.pi * (dist[band] - self.rad) / self.softness)
        else:
            w[dist <= self.rad] = 1.0
        keep = w > 0.0
        if not keep.any():
            # blob smaller than the grid spacing collapses to one particle
            return SingleParticle(self.x, self.y, self.strength).init_particles(ips)

        g = w[keep] * (self.strength / w[keep].sum())
        out = np.zeros((g.size, 4), dtype=np.float64)
        out[:, 0] = self.x + gx.ravel()[keep]
        out[:, 1] = self.y + gy.ravel()[keep]
        out[:, 2] = g
        logger.info("Creating vortex blob with %d particles", g.size)
        return out.ravel()

    def to_string(self) -> str:
        return f"vortex blob at {self.x} {self.y}, radius {self.rad}, softness {self.softness}, and strength {self.strength}"


@dataclass(frozen=True, slots=True)
class LambOseenVortex:
    """Gaussian vortex of core size `sigma` on polar rings, scaled to total `circulation`."""
    x: float = 0.0
    y: float = 0.0
    circulation: float = 1.0
    sigma: float = 0.05
    n_radial: int = 20
    n_angular: int = 60
    r_max: float | None = None

    def __post_init__(self) -> None:
        if not self.sigma > 0.0:
            raise ValueError("sigma must be positive.")
        if self.n_radial < 1 or self.n_angular < 1:
            raise ValueError("n_radial and n_angular must be >= 1.")

    def init_particles(self, ips: float) -> FloatArray:
        r_max = 4.0 * self.sigma if self.r_max is None else self.r_max
        r = np.linspace(0.15 * self.sigma, r_max, self.n_radial)
        theta = np.linspace(0.0, 2.0 * np.pi, self.n_angular, endpoint=False)
        rr, tt = np.meshgrid(r, theta, indexing="ij")
        dr = r[1] - r[0] if self.n_radial > 1 else r_max
        dtheta = 2.0 * np.pi / self.n_angular
        rr_flat = rr.ravel()
        omega = (self.circulation / (np.pi * self.sigma**2)) * np.exp(-(rr_flat**2) / (self.sigma**2))
        gamma = omega * rr_flat * dr * dtheta
        gamma *= self.circulation / gamma.sum()

        out = np.zeros((rr_flat.size, 4), dtype=np.float64)
        out[:, 0] = self.x + rr_flat * np.cos(tt).ravel()
        out[:, 1] = self.y + rr_flat * np.sin(tt).ravel()
        out[:, 2] = gamma
        return out.ravel()

    def to_string(self) -> str:
        return f"Lamb-Oseen vortex at {self.x} {self.y}, core {self.sigma}, and circulation {self.circulation}"


# ---------------------------
# Measurement features (x, y per point)
# ---------------------------
@dataclass(frozen=True, slots=True)
class SinglePoint:
    x: float = 0.0
    y: float = 0.0

    def init_particles(self, ips: float) -> FloatArray:
        return np.array([self.x, self.y], dtype=np.float64)


@dataclass(frozen=True, slots=True)
class TracerLine:
    """Evenly spaced tracers from (x, y) to (x1, y1), about `ips` apart."""
    x: float = 0.0
    y: float = 0.0
    x1: float = 1.0
    y1: float = 0.0

    def init_particles(self, ips: float) -> FloatArray:
        _check_ips(ips)
        length = math.hypot(self.x1 - self.x, self.y1 - self.y)
        n = max(1, int(length / ips)) + 1
        f = np.linspace(0.0, 1.0, n)
        return np.stack([self.x + f * (self.x1 - self.x), self.y + f * (self.y1 - self.y)], axis=1).ravel()

    def to_string(self) -> str:
        return f"tracer line from {self.x} {self.y} to {self.x1} {self.y1}"
