from __future__ import annotations

import logging

import matplotlib.pyplot as plt

from vortexsim2d import SimulationConfig, SolidCircle, TracerLine, build_simulation, plot_snapshot


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    cfg = SimulationConfig(re=200.0, dt=0.02, fs=(1.0, 0.0), end_time=1.0)
    sim = build_simulation(cfg)
    sim.add_boundary_feature(SolidCircle(0.0, 0.0, 1.0))
    sim.add_measure_feature(TracerLine(-1.0, -0.8, -1.0, 0.8))
    for msg in sim.check_simulation():
        print(msg)

    sim.first_step()
    while not sim.test_vs_stop():
        sim.step()
    print(sim.diagnostics())

    plot_snapshot(sim, domain=(-1.5, 2.5, -1.2, 1.2), nx=96, ny=72, quiver_subsample=8)
    plt.show()

if __name__ == "__main__":
    main()
