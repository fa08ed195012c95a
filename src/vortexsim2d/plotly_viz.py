from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Any

import numpy as np

try:
    import plotly.graph_objects as go
    _PLOTLY = True
except Exception:  # pragma: no cover
    _PLOTLY = False

from .elements import PanelSet, PointSet
from .simulation import Simulation


@dataclass(slots=True)
class PlotlySnapshotConfig:
    domain: tuple[float, float, float, float] | None = None  # None -> fit to the elements
    nx: int = 96
    ny: int = 72
    quiver_subsample: int = 6
    show_particles: bool = True
    show_field_points: bool = True
    colorscale: str = "Viridis"
    norm: Literal["linear", "log"] = "linear"
    cbar_label: str = "Speed"


def _quiver_segments(X: np.ndarray, Y: np.ndarray, U: np.ndarray, V: np.ndarray, skip: int = 6, scale: float = 0.9):
    """Return x, y for a Plotly multi-segment quiver using Scatter with mode='lines'."""
    xs, ys = [], []
    for j in range(0, Y.shape[0], skip):
        for i in range(0, X.shape[1], skip):
            x0, y0 = X[j, i], Y[j, i]
            xs.extend([x0, x0 + scale * U[j, i], None])
            ys.extend([y0, y0 + scale * V[j, i], None])
    return xs, ys


def _panel_segments(sim: Simulation):
    xs, ys = [], []
    for coll in sim.boundary_elements:
        if isinstance(coll, PanelSet) and coll.n:
            p0, p1 = coll.endpoints()
            for a, b in zip(p0, p1):
                xs.extend([a[0], b[0], None])
                ys.extend([a[1], b[1], None])
    return xs, ys


def _apply_norm(speed: np.ndarray, mode: Literal["linear", "log"]) -> tuple[np.ndarray, str]:
    if mode == "linear":
        return speed, "linear"
    eps = max(1e-12, float(speed.max()) * 1e-6)
    return np.log10(speed + eps), "log10"


def _layers(sim: Simulation, cfg: PlotlySnapshotConfig, domain: tuple[float, float, float, float]) -> list[Any]:
    xmin, xmax, ymin, ymax = domain
    X, Y, U, V = sim.sample_velocity_grid(xmin, xmax, ymin, ymax, cfg.nx, cfg.ny)
    speed = np.sqrt(U * U + V * V)
    z, norm_name = _apply_norm(speed, cfg.norm)

    data: list[Any] = [
        go.Heatmap(x=X[0, :], y=Y[:, 0], z=z, colorscale=cfg.colorscale,
                   colorbar=dict(title=f"{cfg.cbar_label} ({norm_name})"), zsmooth="best"),
    ]
    qx, qy = _quiver_segments(X, Y, U, V, skip=max(1, cfg.quiver_subsample))
    data.append(go.Scatter(x=qx, y=qy, mode="lines", line=dict(width=1), name="u-field"))

    bx, by = _panel_segments(sim)
    data.append(go.Scatter(x=bx, y=by, mode="lines", line=dict(width=2, color="black"), name="panels"))

    if cfg.show_particles:
        pts = [c for c in sim.free_elements if isinstance(c, PointSet) and c.n and c.s is not None]
        x = np.vstack([c.positions for c in pts]) if pts else np.zeros((0, 2))
        g = np.concatenate([c.s for c in pts]) if pts else np.zeros(0)
        colors = np.where(g >= 0.0, "blue", "red")
        data.append(go.Scattergl(x=x[:, 0], y=x[:, 1], mode="markers",
                                 marker=dict(size=5, color=colors, line=dict(width=0.5, color="black")),
                                 name="particles"))
    if cfg.show_field_points:
        fld = [c.positions for c in sim.field_elements if c.n]
        xt = np.vstack(fld) if fld else np.zeros((0, 2))
        data.append(go.Scattergl(x=xt[:, 0], y=xt[:, 1], mode="markers",
                                 marker=dict(size=4, color="black"), name="field points"))
    return data


def _layout(fig: Any, sim: Simulation, domain: tuple[float, float, float, float]) -> None:
    xmin, xmax, ymin, ymax = domain
    fig.update_layout(
        title=f"t = {sim.time:.3f}, step {sim.nstep}, Re = {sim.re:g}",
        xaxis_title="x",
        yaxis_title="y",
        xaxis=dict(scaleanchor="y", scaleratio=1, range=[xmin, xmax]),
        yaxis=dict(range=[ymin, ymax]),
        template="plotly_white",
        legend=dict(x=0.01, y=0.99),
    )


def plot_snapshot_interactive(
    sim: Simulation,
    *,
    config: PlotlySnapshotConfig | None = None,
    save_html: str | None = None,
) -> Any:
    """Interactive snapshot with Plotly (pan/zoom, hover). Returns the Figure."""
    if not _PLOTLY:
        raise RuntimeError("plotly is not installed. `pip install plotly`")

    cfg = config or PlotlySnapshotConfig()
    domain = cfg.domain if cfg.domain is not None else sim.bounds()
    fig = go.Figure(data=_layers(sim, cfg, domain))
    _layout(fig, sim, domain)

    if save_html:
        fig.write_html(save_html, include_plotlyjs="cdn")
    return fig


def run_animation_interactive(
    sim: Simulation,
    *,
    steps: int,
    config: PlotlySnapshotConfig | None = None,
    save_html: str | None = None,
) -> Any:
    """Step the simulation synchronously and collect one Plotly frame per step."""
    if not _PLOTLY:
        raise RuntimeError("plotly is not installed. `pip install plotly`")
    if steps < 0:
        raise ValueError("steps must be non-negative.")

    cfg = config or PlotlySnapshotConfig()
    domain = cfg.domain if cfg.domain is not None else sim.bounds(pad=0.5)
    fig = go.Figure(data=_layers(sim, cfg, domain))
    _layout(fig, sim, domain)

    frames = []
    slider_steps = []
    for k in range(steps):
        sim.step()
        frames.append(go.Frame(data=_layers(sim, cfg, domain), name=f"{k}"))
        slider_steps.append(dict(method="animate", label=str(k), args=[[f"{k}"], {"mode": "immediate"}]))

    fig.frames = frames
    fig.update_layout(
        updatemenus=[
            dict(
                type="buttons",
                buttons=[
                    dict(label="Play", method="animate", args=[None, {"fromcurrent": True}]),
                    dict(label="Pause", method="animate", args=[[None], {"mode": "immediate"}]),
                ],
                x=0.02, y=1.07, xanchor="left", yanchor="top",
            )
        ],
        sliders=[dict(active=0, steps=slider_steps, x=0.1, xanchor="left", len=0.8)],
    )

    if save_html:
        fig.write_html(save_html, include_plotlyjs="cdn")
    return fig
