from __future__ import annotations

from typing import Any

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.collections import LineCollection

from .elements import PanelSet, PointSet
from .simulation import Simulation


# ------------------------------
# Plot helpers
# ------------------------------
def plot_snapshot(
    sim: Simulation,
    *,
    domain: tuple[float, float, float, float] | None = None,
    nx: int = 96,
    ny: int = 72,
    quiver_subsample: int = 6,
    show_particles: bool = True,
    show_field_points: bool = True,
    figsize: tuple[float, float] = (8.0, 6.0),
    show: bool = False,
) -> Any:
    """Speed field with particles, panels and field points. Returns the Figure.

    Reads the simulation's snapshot only; call between steps, never while an
    asynchronous step is in flight.
    """
    xmin, xmax, ymin, ymax = domain if domain is not None else sim.bounds()
    X, Y, U, V = sim.sample_velocity_grid(xmin, xmax, ymin, ymax, nx, ny)
    speed = np.sqrt(U * U + V * V)

    fig, ax = plt.subplots(figsize=figsize)
    if quiver_subsample and quiver_subsample > 1:
        k = quiver_subsample
        q = ax.quiver(X[::k, ::k], Y[::k, ::k], U[::k, ::k], V[::k, ::k], speed[::k, ::k], cmap="viridis")
        fig.colorbar(q, ax=ax, fraction=0.046, pad=0.04).set_label("Speed")
    else:
        strm = ax.streamplot(X, Y, U, V, density=1.2, linewidth=1.0, color=speed, cmap="viridis", arrowsize=1.0)
        fig.colorbar(strm.lines, ax=ax, fraction=0.046, pad=0.04).set_label("Speed")

    for coll in sim.boundary_elements:
        if isinstance(coll, PanelSet) and coll.n:
            p0, p1 = coll.endpoints()
            segs = np.stack([p0, p1], axis=1)
            ax.add_collection(LineCollection(segs, colors="k", linewidths=1.5))

    if show_particles:
        for coll in sim.free_elements:
            if not (isinstance(coll, PointSet) and coll.n and coll.s is not None):
                continue
            x = coll.positions
            g = coll.s
            g_abs = np.abs(g)
            s = 30.0 * (g_abs / (g_abs.max() + 1e-15)) + 5.0
            colors = np.where(g >= 0.0, "tab:blue", "tab:red")
            ax.scatter(x[:, 0], x[:, 1], s=s, c=colors, edgecolors="k", linewidths=0.3, alpha=0.85)

    if show_field_points:
        for coll in sim.field_elements:
            if coll.n:
                xt = coll.positions
                ax.scatter(xt[:, 0], xt[:, 1], s=12.0, c="black", alpha=0.9, marker=".")

    ax.set_xlim(xmin, xmax)
    ax.set_ylim(ymin, ymax)
    ax.set_aspect("equal", adjustable="box")
    ax.set_title(f"t = {sim.time:.3f}, step {sim.nstep}, Re = {sim.re:g}")
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    ax.grid(True, alpha=0.2)
    if show:
        plt.show()
    return fig
