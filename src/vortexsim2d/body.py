from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

from .expression import CompiledExpression, ExpressionError, compile_expression

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.float64]

NDIM = 2
FD_STEP = 1.0e-5  # fixed step of the centered difference in get_vel


class Body:
    """A rigid body whose position components are constants or expressions of t.

    Velocity is a centered finite difference of the position expressions with
    a fixed step, so it is only accurate where those expressions are smooth on
    that scale. Orientation and angular velocity are stored constants.
    """

    def __init__(
        self,
        x: float = 0.0,
        y: float = 0.0,
        *,
        name: str = "",
        orient: float = 0.0,
        rotvel: float = 0.0,
    ) -> None:
        self._name = name
        self._parent: str | None = None
        self._time = 0.0
        self._pos: FloatArray = np.array([x, y], dtype=np.float64)
        self._apos = float(orient)
        self._avel = float(rotvel)
        self._pos_func: list[CompiledExpression | None] = [None] * NDIM
        self.last_error: ExpressionError | None = None

    def __repr__(self) -> str:
        return f"Body(name={self._name!r}, pos={self._pos.tolist()}, exprs={self.expressions})"

    # -------- naming --------
    @property
    def name(self) -> str: return self._name

    @name.setter
    def name(self, value: str) -> None: self._name = value

    @property
    def parent_name(self) -> str | None: return self._parent

    @parent_name.setter
    def parent_name(self, value: str | None) -> None: self._parent = value

    @property
    def time(self) -> float:
        """Time of the last position evaluation."""
        return self._time

    @property
    def expressions(self) -> tuple[str | None, ...]:
        return tuple(f.source if f is not None else None for f in self._pos_func)

    def is_expression(self, index: int) -> bool:
        self._check_index(index)
        return self._pos_func[index] is not None

    # -------- setters --------
    def set_pos(self, index: int, value: float | str) -> bool:
        """Set one position component to a constant or a time expression.

        A string is compiled with ``t`` as its only variable. On a compile
        failure the diagnostic is logged and kept in ``last_error``, the
        component drops any previous expression and keeps its stored constant,
        and False is returned.
        """
        self._check_index(index)
        if not isinstance(value, str):
            self._pos[index] = float(value)
            self._pos_func[index] = None
            return True

        try:
            func = compile_expression(value, "t")
        except ExpressionError as err:
            logger.warning("Error parsing expression (%s), near character %d", value, err.position)
            self._pos_func[index] = None
            self.last_error = err
            return False

        self._pos_func[index] = func
        self.last_error = None
        logger.debug("testing parsed expression, with t=0, value is %g", func(0.0))
        return True

    def set_orient(self, angle: float) -> None: self._apos = float(angle)

    def set_rotvel(self, omega: float) -> None: self._avel = float(omega)

    # -------- kinematics --------
    def get_pos(self, t: float) -> FloatArray:
        self._time = float(t)
        for i, func in enumerate(self._pos_func):
            if func is not None:
                self._pos[i] = func(t)
        return self._pos.copy()

    def get_vel(self, t: float) -> FloatArray:
        vel = np.zeros(NDIM, dtype=np.float64)
        for i, func in enumerate(self._pos_func):
            if func is not None:
                vel[i] = (func(t + FD_STEP) - func(t - FD_STEP)) / (2.0 * FD_STEP)
        return vel

    def get_orient(self, t: float) -> float:
        return self._apos

    def get_rotvel(self, t: float) -> float:
        return self._avel

    def to_world(self, x_ref: np.ndarray, t: float) -> FloatArray:
        """Map body-frame points (N,2) to their positions at time t."""
        theta = self.get_orient(t)
        c, s = np.cos(theta), np.sin(theta)
        rot = np.array([[c, -s], [s, c]], dtype=np.float64)
        return np.asarray(self.get_pos(t)[None, :] + x_ref @ rot.T, dtype=np.float64)

    def velocity_at(self, points: np.ndarray, t: float) -> FloatArray:
        """Rigid-body velocity at world points (N,2)."""
        omega = self.get_rotvel(t)
        rel = points - self.get_pos(t)[None, :]
        return np.asarray(
            self.get_vel(t)[None, :] + omega * np.stack((-rel[:, 1], rel[:, 0]), axis=1),
            dtype=np.float64,
        )

    def _check_index(self, index: int) -> None:
        if not 0 <= index < NDIM:
            raise ValueError(f"position index must be in [0, {NDIM}), got {index}.")
