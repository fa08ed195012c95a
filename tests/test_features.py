from __future__ import annotations

import math

import numpy as np
import pytest

from vortexsim2d import (
    Body,
    BoundarySegment,
    ElemType,
    MoveType,
    PanelSet,
    Simulation,
    SingleParticle,
    SinglePoint,
    SolidCircle,
    SolidOval,
    SolidSquare,
    TracerLine,
    VortexBlob,
)


def signed_area(ps: PanelSet) -> float:
    p0, p1 = ps.endpoints()
    return 0.5 * float(np.sum(p0[:, 0] * p1[:, 1] - p1[:, 0] * p0[:, 1]))


@pytest.mark.parametrize(
    "feature",
    [SolidCircle(0.3, -0.2, 1.0), SolidOval(0.0, 0.0, 1.0, 0.4, 30.0), SolidSquare(1.0, 1.0, 0.8, 15.0)],
)
def test_closed_contours_are_clockwise(feature) -> None:
    pkt = feature.init_elements(0.05)
    idx = pkt.idx.reshape(-1, 2)
    assert idx[-1, 1] == 0
    assert np.array_equal(idx[:-1, 1], idx[1:, 0])
    ps = PanelSet(pkt)
    # fluid on the left of each edge means the outside, i.e. clockwise order
    assert signed_area(ps) < 0.0
    assert np.allclose(pkt.val, 0.0)


def test_circle_panel_count_limits() -> None:
    assert SolidCircle(diam=1.0).init_elements(0.1).nelem == int(math.pi / 0.1)
    assert SolidCircle(diam=1.0).init_elements(10.0).nelem == 5
    assert SolidCircle(diam=1.0).init_elements(1e-6).nelem == 10000


def test_circle_geometry() -> None:
    pkt = SolidCircle(1.0, 2.0, 0.5).init_elements(0.01)
    x = pkt.x.reshape(-1, 2)
    assert np.allclose(np.hypot(x[:, 0] - 1.0, x[:, 1] - 2.0), 0.25)
    assert np.allclose(x[0], [1.25, 2.0])


def test_square_geometry() -> None:
    pkt = SolidSquare(0.0, 0.0, 1.0).init_elements(0.25)
    assert pkt.nelem == 16
    x = pkt.x.reshape(-1, 2)
    assert np.allclose(x[0], [-0.5, -0.5])
    assert np.abs(x).max() == pytest.approx(0.5)
    assert PanelSet(pkt).enclosed_area() == pytest.approx(1.0)


def test_oval_axes() -> None:
    pkt = SolidOval(0.0, 0.0, 2.0, 1.0, 90.0).init_elements(0.01)
    x = pkt.x.reshape(-1, 2)
    assert np.abs(x[:, 1]).max() == pytest.approx(1.0)
    assert np.abs(x[:, 0]).max() == pytest.approx(0.5, rel=1e-3)


def test_open_segment() -> None:
    pkt = BoundarySegment(0.0, 0.0, 1.0, 0.0).init_elements(0.1)
    assert pkt.nelem == 10 and pkt.nverts == 11
    ps = PanelSet(pkt)
    assert np.allclose(ps.normals(), [[0.0, 1.0]] * 10)


@pytest.mark.parametrize("x0, y0", [(0.0, 0.0), (0.0, 1.0), (5.0, -3.0)])
def test_open_segment_on_rotating_body_has_no_circulation_target(x0: float, y0: float) -> None:
    body = Body(name="flap", rotvel=1.0)
    pkt = BoundarySegment(x0, y0, x0 + 1.0, y0).init_elements(0.1)
    ps = PanelSet(pkt, ElemType.REACTIVE, MoveType.BODYBOUND, body)
    ps.transform(0.0)
    (contour,) = ps.contours()
    assert not contour[1]
    assert ps.enclosed_area() == 0.0
    assert ps.circulation_targets(0.0) == []
    assert ps.circulation_target(0.0) == 0.0


def test_vortex_blob_circulation_and_extent() -> None:
    blob = VortexBlob(1.0, -1.0, strength=2.5, rad=0.2, softness=0.05)
    rows = blob.init_particles(0.02).reshape(-1, 4)
    assert rows[:, 2].sum() == pytest.approx(2.5)
    r = np.hypot(rows[:, 0] - 1.0, rows[:, 1] + 1.0)
    assert r.max() <= 0.25 + 1e-12
    assert (rows[:, 2] > 0.0).all()


def test_tiny_blob_is_one_particle() -> None:
    rows = VortexBlob(0.0, 0.0, 1.0, rad=1e-4, softness=0.0).init_particles(0.1)
    assert rows.size == 4 and rows[2] == 1.0


def test_tracer_line() -> None:
    pts = TracerLine(0.0, 0.0, 1.0, 0.0).init_particles(0.25).reshape(-1, 2)
    assert pts.shape == (5, 2)
    assert np.allclose(pts[-1], [1.0, 0.0])


def test_features_feed_a_simulation() -> None:
    sim = Simulation()
    sim.add_boundary_feature(SolidCircle(0.0, 0.0, 1.0))
    sim.add_flow_feature(SingleParticle(2.0, 0.0, 1.0))
    sim.add_flow_feature(VortexBlob(-2.0, 0.0, 1.0, 0.1, 0.02))
    sim.add_measure_feature(TracerLine(-1.0, 1.0, 1.0, 1.0))
    sim.add_measure_feature(SinglePoint(3.0, 3.0), moves=False)
    assert sim.get_npanels() == SolidCircle(0.0, 0.0, 1.0).init_elements(sim.get_ips()).nelem
    assert sim.get_nparts() > 1
    assert sim.get_nfldpts() > 2
    assert np.allclose(sim.free_elements[0].r, sim.get_vdelta())


def test_bad_sizes() -> None:
    with pytest.raises(ValueError):
        SolidCircle(diam=0.0)
    with pytest.raises(ValueError):
        SolidCircle().init_elements(0.0)
    with pytest.raises(ValueError):
        BoundarySegment(1.0, 1.0, 1.0, 1.0)
