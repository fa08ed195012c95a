from __future__ import annotations

import logging
import time

from vortexsim2d import Body, Simulation, SolidSquare


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    with Simulation(re=150.0, dt=0.02) as sim:
        plate = Body(name="plate", rotvel=0.0)
        plate.set_pos(1, "0.2*sin(2*pi*t)")
        sim.add_body(plate)
        sim.add_boundary_feature(SolidSquare(0.0, 0.0, 0.4, 0.0), body=plate)
        sim.set_max_steps(40)

        for msg in sim.check_simulation():
            print(msg)

        # foreground loop: poll, report, launch the next step
        while not sim.test_vs_stop_async():
            if sim.test_for_new_results():
                print(f"step {sim.nstep:3d}  t={sim.time:.2f}  particles={sim.get_nparts()}")
                if sim.test_vs_stop():
                    break
                sim.async_step()
            else:
                time.sleep(0.01)

        print("force on the plate:", sim.calculate_simple_forces())

if __name__ == "__main__":
    main()
