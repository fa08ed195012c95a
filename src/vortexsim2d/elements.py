from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar, Union

import logging

import numpy as np
from numpy.typing import NDArray

from .body import Body

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.float64]
IntArray = NDArray[np.int64]
T = TypeVar("T")


# ---------------------------
# Tags
# ---------------------------
class ElemType(Enum):
    """What an element carries."""
    INERT = "inert"         # no strength (tracers, field points)
    ACTIVE = "active"       # free vorticity
    REACTIVE = "reactive"   # bound vorticity solved from a boundary condition


class MoveType(Enum):
    """How an element moves."""
    FIXED = "fixed"
    LAGRANGIAN = "lagrangian"
    BODYBOUND = "bodybound"


# ---------------------------
# Geometry packet
# ---------------------------
@dataclass(frozen=True, slots=True)
class ElementPacket:
    """Flat boundary geometry: vertex coordinates, directed edges and per-edge values.

    x:   [x0, y0, x1, y1, ...]      (2 * nverts)
    idx: [a0, b0, a1, b1, ...]      (2 * nelem), fluid lies left of each a->b
    val: [v0, v1, ...]              (nelem)
    """
    x: FloatArray
    idx: IntArray
    val: FloatArray

    def __post_init__(self) -> None:
        x = np.array(self.x, dtype=np.float64).ravel()
        idx = np.array(self.idx, dtype=np.int64).ravel()
        val = np.array(self.val, dtype=np.float64).ravel()
        if x.size % 2 != 0:
            raise ValueError("x must hold an (x, y) pair per vertex.")
        if idx.size % 2 != 0:
            raise ValueError("idx must hold a (start, end) pair per element.")
        if val.size != idx.size // 2:
            raise ValueError("val must hold one value per element.")
        if not np.isfinite(x).all() or not np.isfinite(val).all():
            raise ValueError("packet contains non-finite values.")
        if idx.size and (idx.min() < 0 or idx.max() >= x.size // 2):
            raise ValueError("idx refers to a vertex that does not exist.")
        for arr in (x, idx, val):
            arr.setflags(write=False)
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "idx", idx)
        object.__setattr__(self, "val", val)

    @property
    def nverts(self) -> int: return self.x.size // 2

    @property
    def nelem(self) -> int: return self.val.size


# ---------------------------
# Collections
# ---------------------------
class _ElementBase:
    """Tags, body reference and placement shared by both collection shapes."""

    def __init__(self, elem: ElemType, move: MoveType, body: Body | None) -> None:
        if move is MoveType.BODYBOUND and body is None:
            raise ValueError("a body-bound collection needs a Body.")
        self._elem = elem
        self._move = move
        self._body = body if move is MoveType.BODYBOUND else None
        self.x: FloatArray = np.zeros((0, 2), dtype=np.float64)
        self._x_ref: FloatArray = np.zeros((0, 2), dtype=np.float64)

    @property
    def elem(self) -> ElemType: return self._elem

    @property
    def move(self) -> MoveType: return self._move

    @property
    def body(self) -> Body | None: return self._body

    @property
    def positions(self) -> FloatArray: return np.asarray(self.x.copy(), dtype=np.float64)

    def matches(self, elem: ElemType, move: MoveType, body: Body | None) -> bool:
        """Same tags and, for body-bound collections, the very same Body."""
        if self._elem is not elem or self._move is not move:
            return False
        if move is MoveType.BODYBOUND:
            return self._body is body
        return True

    def transform(self, t: float) -> None:
        """Place body-bound nodes at time t; other motion kinds are left alone."""
        if self._move is MoveType.BODYBOUND and self._body is not None:
            self.x = self._body.to_world(self._x_ref, t)

    def set_positions(self, x: np.ndarray) -> None:
        """Overwrite node positions (used by the convection stages)."""
        x = np.asarray(x, dtype=np.float64)
        if x.shape != self.x.shape:
            raise ValueError(f"positions must have shape {self.x.shape}.")
        self.x = x.copy()
        if self._move is not MoveType.BODYBOUND:
            self._x_ref = self.x.copy()

    def to_string(self) -> str:
        return f"{self._elem.value} {self._move.value}"


class PointSet(_ElementBase):
    """Zero-dimensional elements: vortex particles or tracer/field points.

    Input is flat: (x, y, strength, radius) per element for strength-carrying
    sets, (x, y) per element for inert ones.
    """

    def __init__(
        self,
        values: np.ndarray | Sequence[float],
        elem: ElemType = ElemType.ACTIVE,
        move: MoveType = MoveType.LAGRANGIAN,
        body: Body | None = None,
    ) -> None:
        super().__init__(elem, move, body)
        x, s, r = self._unpack(values)
        self.x = x
        self._x_ref = x.copy()
        self.s: FloatArray | None = s
        self.r: FloatArray | None = r
        logger.debug("new %s collection with %d particles", self.to_string(), self.n)

    @property
    def stride(self) -> int:
        return 2 if self._elem is ElemType.INERT else 4

    @property
    def n(self) -> int: return int(self.x.shape[0])

    @property
    def strengths(self) -> FloatArray | None:
        return None if self.s is None else np.asarray(self.s.copy(), dtype=np.float64)

    @property
    def radii(self) -> FloatArray | None:
        return None if self.r is None else np.asarray(self.r.copy(), dtype=np.float64)

    @property
    def total_circulation(self) -> float:
        return 0.0 if self.s is None else float(self.s.sum())

    def _unpack(self, values: np.ndarray | Sequence[float]) -> tuple[FloatArray, FloatArray | None, FloatArray | None]:
        arr = np.asarray(values, dtype=np.float64).ravel()
        k = self.stride
        if arr.size % k != 0:
            raise ValueError(f"expected {k} values per element, got {arr.size} values.")
        if not np.isfinite(arr).all():
            raise ValueError("values contain non-finite entries.")
        rows = arr.reshape(-1, k)
        x = np.ascontiguousarray(rows[:, 0:2])
        if k == 2:
            return x, None, None
        return x, rows[:, 2].copy(), rows[:, 3].copy()

    def add_new(self, values: np.ndarray | Sequence[float]) -> None:
        x, s, r = self._unpack(values)
        logger.debug("adding %d particles to collection", x.shape[0])
        if self._move is MoveType.BODYBOUND and self._body is not None:
            # incoming points are body-frame, like the ones already stored
            self._x_ref = np.vstack([self._x_ref, x])
            self.x = np.vstack([self.x, self._body.to_world(x, self._body.time)])
        else:
            self.x = np.vstack([self.x, x])
            self._x_ref = self.x.copy()
        if self.s is not None and s is not None and self.r is not None and r is not None:
            self.s = np.concatenate([self.s, s])
            self.r = np.concatenate([self.r, r])

    def to_string(self) -> str:
        return super().to_string() + " Points"


class PanelSet(_ElementBase):
    """One-dimensional boundary panels with connectivity and per-panel sheet strength."""

    def __init__(
        self,
        packet: ElementPacket,
        elem: ElemType = ElemType.REACTIVE,
        move: MoveType = MoveType.FIXED,
        body: Body | None = None,
    ) -> None:
        super().__init__(elem, move, body)
        self._x_ref = packet.x.reshape(-1, 2).copy()
        self.x = self._x_ref.copy()
        self.idx: IntArray = packet.idx.reshape(-1, 2).copy()
        self.s: FloatArray = packet.val.copy()
        self._contours: list[tuple[IntArray, bool]] | None = None
        self._check_lengths()
        logger.debug("new %s collection with %d panels", self.to_string(), self.n)

    @property
    def n(self) -> int: return int(self.idx.shape[0])

    @property
    def nverts(self) -> int: return int(self.x.shape[0])

    def get_npanels(self) -> int: return self.n

    @property
    def strengths(self) -> FloatArray: return np.asarray(self.s.copy(), dtype=np.float64)

    @property
    def connectivity(self) -> IntArray: return self.idx.copy()

    def add_new(self, packet: ElementPacket) -> None:
        logger.debug("adding %d panels to collection", packet.nelem)
        offset = self._x_ref.shape[0]
        new_ref = packet.x.reshape(-1, 2)
        self._x_ref = np.vstack([self._x_ref, new_ref])
        if self._move is MoveType.BODYBOUND and self._body is not None:
            self.x = np.vstack([self.x, self._body.to_world(new_ref, self._body.time)])
        else:
            self.x = np.vstack([self.x, new_ref])
        self.idx = np.vstack([self.idx, packet.idx.reshape(-1, 2) + offset])
        self._contours = None
        self.s = np.concatenate([self.s, packet.val])
        self._check_lengths()

    # -------- panel geometry --------
    def endpoints(self) -> tuple[FloatArray, FloatArray]:
        return self.x[self.idx[:, 0]], self.x[self.idx[:, 1]]

    def centers(self) -> FloatArray:
        p0, p1 = self.endpoints()
        return 0.5 * (p0 + p1)

    def lengths(self) -> FloatArray:
        p0, p1 = self.endpoints()
        d = p1 - p0
        return np.hypot(d[:, 0], d[:, 1])

    def tangents(self) -> FloatArray:
        p0, p1 = self.endpoints()
        return (p1 - p0) / self.lengths()[:, None]

    def normals(self) -> FloatArray:
        """Unit normals pointing into the fluid (left of each edge)."""
        tan = self.tangents()
        return np.stack((-tan[:, 1], tan[:, 0]), axis=1)

    def circulations(self) -> FloatArray:
        return np.asarray(self.s * self.lengths(), dtype=np.float64)

    @property
    def total_circulation(self) -> float: return float(self.circulations().sum())

    def contours(self) -> list[tuple[IntArray, bool]]:
        """Panel indices of each connected contour, and whether it closes on itself."""
        if self._contours is None:
            parent = list(range(self.nverts))

            def find(i: int) -> int:
                while parent[i] != i:
                    parent[i] = parent[parent[i]]
                    i = parent[i]
                return i

            for a, b in self.idx.tolist():
                ra, rb = find(a), find(b)
                if ra != rb:
                    parent[rb] = ra
            roots = np.array([find(a) for a in self.idx[:, 0].tolist()], dtype=np.int64)
            found: list[tuple[IntArray, bool]] = []
            for r in dict.fromkeys(roots.tolist()):
                panels = np.flatnonzero(roots == r)
                ends = self.idx[panels]
                # every vertex of a closed loop starts one edge and ends another
                closed = bool(np.array_equal(np.sort(ends[:, 0]), np.sort(ends[:, 1])))
                found.append((panels, closed))
            self._contours = found
        return list(self._contours)

    def contour_area(self, panels: IntArray) -> float:
        p0, p1 = self.endpoints()
        a, b = p0[panels], p1[panels]
        return abs(0.5 * float(np.sum(a[:, 0] * b[:, 1] - b[:, 0] * a[:, 1])))

    def enclosed_area(self) -> float:
        """Area enclosed by the closed contours; open walls enclose nothing."""
        return float(sum(self.contour_area(p) for p, closed in self.contours() if closed))

    def surface_velocity(self, t: float) -> FloatArray:
        """Velocity of the wall at each panel center."""
        if self._move is MoveType.BODYBOUND and self._body is not None:
            return self._body.velocity_at(self.centers(), t)
        return np.zeros((self.n, 2), dtype=np.float64)

    def circulation_targets(self, t: float) -> list[tuple[IntArray, float]]:
        """Bound circulation required by the body's rotation, per closed contour.

        Open contours carry no constraint and do not appear.
        """
        omega = 0.0
        if self._move is MoveType.BODYBOUND and self._body is not None:
            omega = self._body.get_rotvel(t)
        return [(p, 2.0 * self.contour_area(p) * omega) for p, closed in self.contours() if closed]

    def circulation_target(self, t: float) -> float:
        return float(sum(g for _, g in self.circulation_targets(t)))

    def _check_lengths(self) -> None:
        if self.n and not (self.lengths() > 0.0).all():
            raise ValueError("panels must have non-zero length.")

    def to_string(self) -> str:
        return super().to_string() + " Surfaces"


Collection = Union[PointSet, PanelSet]


def visit(
    coll: Collection,
    on_points: Callable[[PointSet], T],
    on_panels: Callable[[PanelSet], T],
) -> T:
    """Dispatch on the collection shape."""
    if isinstance(coll, PointSet):
        return on_points(coll)
    if isinstance(coll, PanelSet):
        return on_panels(coll)
    raise TypeError(f"not an element collection: {type(coll).__name__}")


def count_elements(colls: Sequence[Collection]) -> int:
    return sum(visit(c, lambda p: p.n, lambda s: s.n) for c in colls)


def count_panels(colls: Sequence[Collection]) -> int:
    return sum(visit(c, lambda p: 0, lambda s: s.n) for c in colls)


def append_points(
    colls: list[Collection],
    values: np.ndarray | Sequence[float],
    elem: ElemType,
    move: MoveType,
) -> PointSet:
    """Create a point collection if there is none, else add to the last one.

    The last collection receives the points whatever its motion kind.
    """
    if colls and isinstance(colls[-1], PointSet):
        pts = colls[-1]
        pts.add_new(values)
        return pts
    pts = PointSet(values, elem, move, None)
    colls.append(pts)
    return pts
