from __future__ import annotations

import numpy as np
import pytest

from vortexsim2d import BEM, KernelConfig, PanelSet, SolidCircle, SourceSet, blob_velocity


@pytest.mark.benchmark(group="blob-velocities")
@pytest.mark.parametrize("N", [1_000, 5_000])
@pytest.mark.parametrize("use_numba", [False, True])
def test_blob_velocity_benchmark(benchmark, N: int, use_numba: bool) -> None:
    rng = np.random.default_rng(0)
    x = rng.uniform(-0.5, 0.5, size=(N, 2))
    g = rng.normal(0.0, 1.0, size=(N,))
    g -= g.mean()
    cfg = KernelConfig(use_numba=use_numba, query_batch=2000)

    def run() -> None:
        u = blob_velocity(x, x, g, 0.03, config=cfg)  # self-query
        assert u.shape == x.shape
    benchmark(run)


@pytest.mark.benchmark(group="bem-solve")
@pytest.mark.parametrize("ips", [0.05, 0.02])
def test_bem_solve_benchmark(benchmark, ips: float) -> None:
    ps = PanelSet(SolidCircle(0.0, 0.0, 1.0).init_elements(ips))
    bem = BEM()

    def run() -> None:
        bem.solve(0.0, (1.0, 0.0), SourceSet.empty(), [ps])
    benchmark(run)
