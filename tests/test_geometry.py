import sys
import math
import numpy as np
import pytest

from sinojax.core.errors import (
    CapabilityMismatchError,
    DimensionMismatchError,
    InvalidGeometryError,
    InvalidParameterError,
)
from sinojax.core.geometry import (
    ImageGrid,
    SinoGeometry,
    SinoKind,
    geometry_from_dict,
    sino_fan,
    sino_fan_arc,
    sino_fan_flat,
    sino_ge1,
    sino_geom,
    sino_moj,
    sino_par,
)


if sys.version_info < (3, 8):
    pytest.skip("Requires Python 3.8+ for package code", allow_module_level=True)


def test_par_defaults_and_sampling():
    sg = sino_par()
    assert sg.kind is SinoKind.PAR
    assert sg.dims == (128, 200)
    assert sg.w == pytest.approx(63.5)
    assert np.allclose(sg.r, np.arange(128) - 63.5)
    assert sg.ds == sg.dr == 1.0
    assert np.allclose(sg.angles_degrees, np.arange(200) * 180.0 / 200)
    assert sg.rfov == pytest.approx(63.5)


def test_offset_and_orbit_start_shift_samples_and_angles():
    sg = sino_par(nb=8, na=4, d=2.0, offset=0.5, orbit=360, orbit_start=10)
    assert np.allclose(sg.s, 2.0 * (np.arange(8) - 4.0))
    assert np.allclose(sg.angles_degrees, [10.0, 100.0, 190.0, 280.0])
    assert np.allclose(sg.angles_radians, np.deg2rad(sg.angles_degrees))


def test_down_keeps_nb_even_and_scales_spacing():
    sg = sino_fan_arc(nb=128, na=200)
    assert sg.down(1) is sg
    d2 = sg.down(2)
    assert (d2.nb, d2.na, d2.d, d2.strip_width) == (64, 100, 2.0, 2.0)
    d3 = sg.down(3)
    assert d3.nb == 42 and d3.nb % 2 == 0
    assert sino_par(nb=6).down(8).nb == 2
    assert sg.down(2).down(2) == sg.down(4)
    assert d2.dsd == sg.dsd and d2.dod == sg.dod
    with pytest.raises(InvalidParameterError):
        sg.down(0)


def test_dfs_must_be_zero_or_inf():
    with pytest.raises(InvalidGeometryError):
        sino_fan(nb=64, dfs=1.0)
    with pytest.raises(InvalidGeometryError):
        sino_fan_arc(nb=64, dfs=math.inf)
    assert sino_fan(nb=64, dfs=math.inf).is_flat
    assert sino_fan(nb=64, dfs=0).is_arc


def test_invalid_counts_and_distances():
    with pytest.raises(InvalidParameterError):
        sino_par(nb=0)
    with pytest.raises(InvalidParameterError):
        sino_par(nb=16, d=-1.0)
    with pytest.raises(InvalidGeometryError):
        sino_fan_arc(nb=16, dsd=10.0, dod=12.0)
    with pytest.raises(InvalidGeometryError):
        SinoGeometry(kind="par", nb=4, na=4, dsd=10.0)
    with pytest.raises(InvalidGeometryError):
        SinoGeometry(kind="bogus", nb=4, na=4)


def test_capability_mismatch_on_wrong_variant():
    par = sino_par(nb=16)
    moj = sino_moj(nb=16)
    with pytest.raises(CapabilityMismatchError):
        par.dso
    with pytest.raises(CapabilityMismatchError):
        par.gamma
    with pytest.raises(CapabilityMismatchError):
        moj.ds
    with pytest.raises(CapabilityMismatchError):
        sino_fan_arc(nb=16).d_moj([0.0])


def test_fan_derived_quantities_arc_and_flat():
    arc = sino_fan_arc(nb=128)
    assert (arc.dsd, arc.dod, arc.dso) == (512.0, 128.0, 384.0)
    assert np.allclose(arc.gamma, arc.s / 512.0)
    assert arc.gamma_max == pytest.approx(63.5 / 512.0)
    assert arc.rfov == pytest.approx(384.0 * math.sin(63.5 / 512.0))
    assert arc.orbit_short == pytest.approx(180.0 + 2.0 * math.degrees(63.5 / 512.0))

    flat = sino_fan_flat(nb=128)
    assert np.allclose(flat.gamma, np.arctan(flat.s / 512.0))
    assert flat.rfov == pytest.approx(384.0 * math.sin(math.atan(63.5 / 512.0)))


def test_short_orbit():
    sg = sino_fan_arc(nb=64, na=100, orbit="short")
    assert sg.orbit == pytest.approx(sg.orbit_short)
    with pytest.raises(InvalidParameterError):
        sino_fan_arc(nb=64, orbit="long")


def test_detector_centres():
    arc = sino_fan_arc(nb=129, source_offset=0.5)
    flat = sino_fan_flat(nb=129)
    # central element lies on the central ray, dod beyond the isocenter
    assert arc.detector_center_x[64] == pytest.approx(0.5)
    assert arc.detector_center_y[64] == pytest.approx(-arc.dod)
    dist = np.hypot(arc.xds - arc.source_offset, arc.yds - arc.dso)
    assert np.allclose(dist, arc.dsd)
    assert np.allclose(flat.yds, -flat.dod)
    assert np.allclose(flat.xds, flat.s)
    par = sino_par(nb=8)
    assert np.allclose(par.xds, par.r) and np.allclose(par.yds, 0.0)


def test_mojette_spacing():
    sg = sino_moj(nb=16, na=4, orbit=180)
    assert np.allclose(sg.d_ang, [1.0, math.sqrt(0.5), 1.0, math.sqrt(0.5)])
    assert sg.rfov == pytest.approx(8.0 * math.sqrt(0.5))
    pos, phi = sg.rays()
    assert pos.shape == phi.shape == (16, 4)


def test_taufun_matches_geometry():
    par = sino_par(nb=16, na=4, d=0.5)
    tau = par.taufun([1.0], [0.0])
    assert np.allclose(tau[0], np.cos(par.angles_radians) / 0.5)
    fan = sino_fan_flat(nb=64, na=8)
    assert np.allclose(fan.taufun([0.0], [0.0]), 0.0)
    with pytest.raises(InvalidParameterError):
        fan.taufun([0.0, 1.0], [0.0])


def test_fan_rays_through_isocenter():
    sg = sino_fan_arc(nb=65, na=6)
    rg, phi = sg.rays()
    assert rg.shape == phi.shape == sg.dims
    assert np.allclose(rg[32], 0.0)
    assert np.allclose(phi[32], sg.angles_radians)


def test_sinogram_helpers():
    sg = sino_par(nb=8, na=4)
    assert sg.zeros().shape == (8, 4) and sg.ones().sum() == 32
    u = sg.unitv()
    assert u[4, 2] == 1.0 and u.sum() == 1.0
    assert sg.shape(np.arange(32)).shape == (8, 4)
    assert sg.shape(np.arange(64)).shape == (8, 4, 2)


def test_to_dict_roundtrip_and_named_construction():
    for sg in (sino_par(nb=16), sino_moj(nb=16), sino_fan_arc(nb=32), sino_fan_flat(nb=32), sino_ge1()):
        assert geometry_from_dict(sg.to_dict()) == sg
    sg = geometry_from_dict({"how": "fan", "nb": 64, "dfs": math.inf})
    assert sg.is_flat and sg.nb == 64
    assert sino_geom("par", nb=8).kind is SinoKind.PAR
    with pytest.raises(InvalidGeometryError):
        sino_geom("cone")
    with pytest.raises(InvalidGeometryError):
        geometry_from_dict({"nb": 8})
    assert "fan_arc" in sino_fan_arc(nb=8).describe()


def test_ge1_preset():
    sg = sino_ge1()
    assert sg.is_arc and sg.units == "mm"
    assert sg.dims == (888, 984)
    assert sg.dso == pytest.approx(541.0)
    assert sg.offset == 1.25
    cm = sino_ge1(units="cm")
    assert cm.units == "cm" and cm.dsd == pytest.approx(94.9075)
    short = sino_ge1(orbit="short")
    assert short.na == 642
    assert short.orbit == pytest.approx(642 / 984 * 360)
    assert sino_geom("ge1").dims == (888, 984)
    with pytest.raises(InvalidParameterError):
        sino_ge1(units="in")


def test_image_grid_coordinates_and_mask():
    grid = ImageGrid(4, 6, dx=2.0, offset_x=0.5)
    assert grid.dy == 2.0
    assert np.allclose(grid.x, 2.0 * (np.arange(4) - 1.5 + 0.5))
    assert np.allclose(grid.y, 2.0 * (np.arange(6) - 2.5))
    xc, yc = grid.coords()
    assert xc.shape == (4, 6)
    assert grid.support().all()
    m = grid.circle_mask(2.5)
    g2 = grid.with_mask(m)
    assert np.array_equal(g2.support(), m)
    with pytest.raises(ValueError):
        g2.mask[0, 0] = True
    with pytest.raises(DimensionMismatchError):
        ImageGrid(4, 4, mask=np.ones((3, 4), dtype=bool))
    with pytest.raises(InvalidParameterError):
        ImageGrid(0, 4)
    assert ImageGrid.from_dict(grid.to_dict()).to_dict() == grid.to_dict()
    assert grid.down(2).shape == (2, 3) and grid.down(2).dx == 4.0


def test_single_bin_defaults_to_one_view():
    sg = sino_par(nb=1)
    assert sg.dims == (1, 1)


def test_direct_construction_strip_width_follows_d():
    sg = SinoGeometry(kind="par", nb=8, na=4, d=0.5)
    assert sg.strip_width == 0.5
    assert sg == sino_par(nb=8, na=4, d=0.5)
    assert SinoGeometry(kind="par", nb=8, na=4, d=0.5, strip_width=0.0).strip_width == 0.0
