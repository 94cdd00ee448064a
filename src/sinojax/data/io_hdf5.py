"""HDF5 IO for sinograms, their geometry and reconstructed images.

Layout (NeXus-flavoured, one file per scan)::

    /entry                      NXentry, definition="sinojax"
    /entry/geometry             NXcollection, attr geometry_json
    /entry/data/sinogram        (nb, na) float32
    /entry/data/image           optional (nx, ny) float32, attr grid_json
    /entry/data/mask            optional (nx, ny) bool
    /entry/data/truth           optional (nx, ny) float32 ground truth

Geometry and grid round-trip through ``to_dict`` / ``geometry_from_dict``.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

import numpy as np
import h5py

from ..core.errors import DimensionMismatchError, InvalidParameterError
from ..core.geometry import ImageGrid, SinoGeometry, geometry_from_dict


LOG = logging.getLogger(__name__)


def _attr_to_str(v: Any, default: str | None = None) -> str | None:
    """Robustly convert an HDF5 attribute to a Python string.

    Handles h5py special string dtypes, numpy scalars/arrays, bytes, and plain str.
    """
    if v is None:
        return default
    if isinstance(v, bytes):
        return v.decode("utf-8", errors="ignore")
    if isinstance(v, np.ndarray):
        if v.shape == ():
            return _attr_to_str(v.item(), default)
        # 1-D array of length 1 or more: take first element
        if v.size >= 1:
            return _attr_to_str(v.flat[0], default)
        return default
    return str(v)


def _ensure_group(root: h5py.Group, name: str, nx_class: Optional[str] = None) -> h5py.Group:
    g = root.require_group(name)
    if nx_class:
        g.attrs["NX_class"] = nx_class
    return g


def _write_string_attr(obj: h5py.Group | h5py.Dataset, key: str, value: str) -> None:
    obj.attrs[key] = np.array(value, dtype=h5py.string_dtype(encoding="utf-8"))


def _replace_dataset(group: h5py.Group, name: str, data: np.ndarray, compression: str | None) -> h5py.Dataset:
    if name in group:
        del group[name]
    return group.create_dataset(name, data=data, compression=compression)


def _write_image(
    data_grp: h5py.Group,
    image: np.ndarray,
    grid: ImageGrid,
    *,
    name: str,
    compression: str | None,
) -> None:
    img = np.asarray(image, dtype=np.float32)
    if img.shape != grid.shape:
        raise DimensionMismatchError(f"{name} must be (nx, ny)={grid.shape}, got {img.shape}")
    dset = _replace_dataset(data_grp, name, img, compression)
    _write_string_attr(dset, "grid_json", json.dumps(grid.to_dict()))
    if grid.mask is not None:
        _replace_dataset(data_grp, "mask", np.asarray(grid.mask, dtype=bool), compression)


def save_sinogram(
    path: str,
    sino: np.ndarray,
    geometry: SinoGeometry,
    *,
    truth: Optional[np.ndarray] = None,
    grid: Optional[ImageGrid] = None,
    compression: str = "lzf",
    overwrite: bool = True,
) -> None:
    """Write a sinogram ``(nb, na)`` with its geometry (and optional ground truth image)."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    sino = np.asarray(sino, dtype=np.float32)
    if sino.shape != geometry.dims:
        raise DimensionMismatchError(f"sinogram must be (nb, na)={geometry.dims}, got {sino.shape}")
    if truth is not None and grid is None:
        raise InvalidParameterError("truth image needs its grid")

    mode = "w" if overwrite else "x"
    with h5py.File(path, mode) as f:
        entry = _ensure_group(f, "entry", "NXentry")
        _write_string_attr(entry, "definition", "sinojax")
        geom = _ensure_group(entry, "geometry", "NXcollection")
        _write_string_attr(geom, "kind", geometry.kind.value)
        _write_string_attr(geom, "geometry_json", json.dumps(geometry.to_dict()))
        data = _ensure_group(entry, "data", "NXdata")
        dset = data.create_dataset("sinogram", data=sino, compression=compression)
        dset.attrs["long_name"] = "sinogram (nb, na)"
        if truth is not None:
            _write_image(data, truth, grid, name="truth", compression=compression)
    LOG.info("Wrote sinogram %s to %s", sino.shape, path)


def save_image(path: str, image: np.ndarray, grid: ImageGrid, *, compression: str = "lzf") -> None:
    """Add (or replace) the reconstructed image in an existing or new file."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with h5py.File(path, "a") as f:
        entry = _ensure_group(f, "entry", "NXentry")
        data = _ensure_group(entry, "data", "NXdata")
        _write_image(data, image, grid, name="image", compression=compression)
    LOG.info("Wrote image %s to %s", grid.shape, path)


def load_sinogram(path: str) -> Dict[str, Any]:
    """Load a file written by :func:`save_sinogram` / :func:`save_image`.

    Returns a dict with ``sinogram`` and ``geometry`` (a :class:`SinoGeometry`),
    plus ``truth``, ``image`` and ``grid`` (an :class:`ImageGrid`) when present.
    """
    out: Dict[str, Any] = {}
    with h5py.File(path, "r") as f:
        entry = f["/entry"]
        if "data/sinogram" not in entry:
            raise KeyError(f"no /entry/data/sinogram in {path}")
        out["sinogram"] = entry["data/sinogram"][...]
        s = _attr_to_str(entry["geometry"].attrs.get("geometry_json")) if "geometry" in entry else None
        if not s:
            raise KeyError(f"no geometry metadata in {path}")
        out["geometry"] = geometry_from_dict(json.loads(s))

        data = entry["data"]
        mask = data["mask"][...] if "mask" in data else None
        for name in ("truth", "image"):
            if name in data:
                out[name] = data[name][...]
                g = _attr_to_str(data[name].attrs.get("grid_json"))
                if g and "grid" not in out:
                    out["grid"] = ImageGrid.from_dict(json.loads(g), mask=mask)
    return out
