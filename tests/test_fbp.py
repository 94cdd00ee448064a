import sys
import logging
import numpy as np
import pytest

from sinojax.core.errors import CapabilityMismatchError, DimensionMismatchError, InvalidParameterError
from sinojax.core.geometry import ImageGrid, sino_fan_arc, sino_fan_flat, sino_par
from sinojax.data.phantoms import disk, ellipse_sinogram
from sinojax.recon.fbp import down_sinogram, fan_weights, fbp, filter_sinogram
from sinojax.recon.filters import fbp_ramp, filter_padding


if sys.version_info < (3, 8):
    pytest.skip("Requires Python 3.8+ for package code", allow_module_level=True)


def make_case(make, nb=128, na=200, n=64, radius=20.0):
    sg = make(nb=nb, na=na)
    grid = ImageGrid(n, n, dx=1.0)
    sino = ellipse_sinogram(sg, disk(radius))
    return sg, grid, sino


@pytest.mark.parametrize("make", [sino_fan_arc, sino_fan_flat])
def test_fbp_recovers_disk(make):
    sg, grid, sino = make_case(make)
    img = np.asarray(fbp(sg, grid, sino))
    centre = img[28:36, 28:36]
    assert abs(float(centre.mean()) - 1.0) < 0.05
    assert float(centre.std()) < 0.05
    # well outside the disk, well inside the FOV
    xc, yc = grid.coords()
    ring = (np.hypot(xc, yc) > 25.0) & (np.hypot(xc, yc) < 30.0)
    assert abs(float(img[ring].mean())) < 0.05


@pytest.mark.parametrize("make", [sino_fan_arc, sino_fan_flat])
def test_filter_is_linear_convolution_with_scaled_kernel(make):
    sg = make(nb=16, na=3, d=0.5)
    rng = np.random.default_rng(1)
    sino = rng.normal(size=sg.dims).astype(np.float32)
    out = np.asarray(filter_sinogram(sg, sino))

    npad = filter_padding(16)
    h, n = fbp_ramp(sg, npad)
    kern = {int(k): sg.d * v for k, v in zip(n, h)}
    expected = np.zeros((16, 3))
    for i in range(16):
        for j in range(16):
            expected[i] += sino[j] * kern[i - j]
    assert np.allclose(out, expected, rtol=1e-4, atol=1e-4)


def test_filter_windows_and_padding():
    sg = sino_fan_arc(nb=16, na=2)
    sino = sg.unitv(8, 0)
    ramp = np.asarray(filter_sinogram(sg, sino))
    hann = np.asarray(filter_sinogram(sg, sino, window="hann"))
    assert not np.allclose(ramp, hann)
    assert np.allclose(ramp[:, 1], 0.0)
    with pytest.raises(InvalidParameterError):
        filter_sinogram(sg, sino, npad=16)
    with pytest.raises(DimensionMismatchError):
        filter_sinogram(sg, sino[:-1])


def test_fan_weights():
    sg = sino_fan_flat(nb=129)
    w = fan_weights(sg)
    assert w.shape == (129,)
    assert w[64] == pytest.approx(sg.dso / sg.dsd)
    assert np.allclose(w, sg.dso / sg.dsd * np.cos(sg.gamma))
    with pytest.raises(CapabilityMismatchError):
        fan_weights(sino_par(nb=16))


def test_fbp_rejects_parallel_and_bad_shape():
    grid = ImageGrid(8, 8)
    par = sino_par(nb=16, na=8)
    with pytest.raises(CapabilityMismatchError):
        fbp(par, grid, par.zeros())
    fan = sino_fan_arc(nb=16, na=8)
    with pytest.raises(DimensionMismatchError):
        fbp(fan, grid, np.zeros((16, 7), dtype=np.float32))


def test_short_orbit_warns(caplog):
    sg = sino_fan_arc(nb=32, na=40, orbit="short")
    grid = ImageGrid(16, 16)
    with caplog.at_level(logging.WARNING, logger="sinojax.recon.fbp"):
        fbp(sg, grid, sg.zeros())
    assert any("short-scan" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize("factor", [2, 3])
def test_down_sinogram_labels_match_kept_data(factor):
    sg = sino_fan_arc(nb=128, na=200, offset=0.25)
    # value of every sample encodes its own bin position and view angle
    sino = (sg.s[:, None] + sg.angles_degrees[None, :]).astype(np.float32)
    coarse, out = down_sinogram(sg, sino, factor)
    assert out.shape == coarse.dims == sg.down(factor).dims
    kept = sg.angles_degrees[: coarse.na * factor : factor]
    assert np.allclose(coarse.angles_degrees, kept, atol=1e-9)
    assert coarse.d == sg.d * factor and coarse.dsd == sg.dsd
    assert np.allclose(out, coarse.s[:, None] + coarse.angles_degrees[None, :], atol=1e-3)


def test_down_sinogram_identity_and_checks():
    sg = sino_fan_flat(nb=16, na=8)
    coarse, out = down_sinogram(sg, sg.ones(), 1)
    assert coarse is sg and out.shape == (16, 8)
    with pytest.raises(DimensionMismatchError):
        down_sinogram(sg, np.zeros((8, 8)), 2)
    with pytest.raises(InvalidParameterError):
        down_sinogram(sg, sg.ones(), 0)
