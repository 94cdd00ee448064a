import sys
import h5py
import numpy as np
import pytest

from sinojax.core.errors import DimensionMismatchError, InvalidParameterError
from sinojax.core.geometry import ImageGrid, sino_fan_flat, sino_ge1
from sinojax.data.io_hdf5 import load_sinogram, save_image, save_sinogram


if sys.version_info < (3, 8):
    pytest.skip("Requires Python 3.8+ for package code", allow_module_level=True)


def test_sinogram_roundtrip_with_truth(tmp_path):
    sg = sino_fan_flat(nb=32, na=10, offset=0.25)
    grid = ImageGrid(8, 8, dx=0.5, mask=np.eye(8, dtype=bool))
    sino = np.arange(320, dtype=np.float32).reshape(32, 10)
    truth = np.ones((8, 8), dtype=np.float32)
    p = tmp_path / "sub" / "scan.h5"
    save_sinogram(str(p), sino, sg, truth=truth, grid=grid)

    out = load_sinogram(str(p))
    assert np.array_equal(out["sinogram"], sino)
    assert out["geometry"] == sg
    assert np.array_equal(out["truth"], truth)
    assert out["grid"].to_dict() == grid.to_dict()
    assert np.array_equal(out["grid"].mask, grid.mask)
    assert "image" not in out
    with h5py.File(str(p), "r") as f:
        assert f["/entry"].attrs["NX_class"] == "NXentry"


def test_save_image_appends_and_replaces(tmp_path):
    sg = sino_ge1().down(8)
    grid = ImageGrid(16, 16)
    p = str(tmp_path / "rec.h5")
    save_sinogram(p, sg.zeros(), sg)
    save_image(p, np.zeros((16, 16)), grid)
    save_image(p, np.full((16, 16), 3.0), grid)
    out = load_sinogram(p)
    assert out["geometry"] == sg and out["geometry"].units == "mm"
    assert np.all(out["image"] == 3.0)
    assert out["grid"].shape == (16, 16)


def test_shape_checks(tmp_path):
    sg = sino_fan_flat(nb=16, na=4)
    p = str(tmp_path / "bad.h5")
    with pytest.raises(DimensionMismatchError):
        save_sinogram(p, np.zeros((4, 16)), sg)
    with pytest.raises(InvalidParameterError):
        save_sinogram(p, sg.zeros(), sg, truth=np.zeros((4, 4)))
    with pytest.raises(DimensionMismatchError):
        save_image(p, np.zeros((4, 5)), ImageGrid(4, 4))


def test_missing_geometry_is_reported(tmp_path):
    p = str(tmp_path / "nogeom.h5")
    with h5py.File(p, "w") as f:
        f.create_dataset("entry/data/sinogram", data=np.zeros((4, 4), dtype=np.float32))
    with pytest.raises(KeyError):
        load_sinogram(p)
