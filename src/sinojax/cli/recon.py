from __future__ import annotations

import argparse
import logging
import os
import time

import numpy as np

from ..core.geometry import ImageGrid
from ..data.io_hdf5 import load_sinogram, save_image, save_sinogram
from ..recon.fbp import down_sinogram, fbp
from ..utils.config import geometry_and_grid_from_config, load_config
from ..utils.fov import fit_grid_to_fov, fov_pixels
from ..utils.logging import format_duration, log_geometry, log_jax_env, setup_logging


def build_grid(meta: dict, geometry, *, nx: int | None, dx: float | None, down: int) -> ImageGrid:
    """Grid from CLI overrides, else the grid stored with the data, else one covering the FOV."""
    grid = meta.get("grid")
    if nx is not None or dx is not None or grid is None:
        dxv = float(dx) if dx is not None else (grid.dx if grid is not None else float(geometry.d))
        n = int(nx) if nx is not None else fov_pixels(geometry, dxv)
        grid = ImageGrid(nx=n, ny=n, dx=dxv)
    return grid.down(down)


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Fan-beam FBP reconstruction of a sinogram file (.h5)")
    p.add_argument("--data", required=True, help="Input .h5 written by sinojax-simulate or save_sinogram")
    p.add_argument("--out", required=True, help="Output .h5 (sinogram, geometry and reconstructed image)")
    p.add_argument("--config", default=None, help="JSON/YAML with optional 'geometry' and 'grid' overrides")
    p.add_argument("--window", default="ramp", help="Filter window: ramp|shepp|hann|cosine")
    p.add_argument("--angle-skip", type=int, default=1, help="Use every k-th view")
    p.add_argument("--down", type=int, default=1, help="Down-sample geometry and grid (quick previews)")
    p.add_argument("--views-per-batch", type=int, default=0, help="Views per jitted batch (0 = all)")
    p.add_argument("--nx", type=int, default=None, help="Square reconstruction size (default: stored grid or FOV)")
    p.add_argument("--dx", type=float, default=None, help="Pixel size (default: stored grid or detector spacing)")
    p.add_argument("--no-fov-mask", action="store_true", help="Reconstruct pixels outside the FOV too")
    p.add_argument("--log-level", default="INFO")
    p.add_argument("--progress", action="store_true", help="Show progress bars if tqdm is available")
    args = p.parse_args(argv)

    setup_logging(args.log_level)
    log_jax_env()
    if args.progress:
        os.environ["SINOJAX_PROGRESS"] = "1"

    meta = load_sinogram(args.data)
    geom = meta["geometry"]
    sino = np.asarray(meta["sinogram"], dtype=np.float32)
    if args.config:
        cfg_geom, cfg_grid = geometry_and_grid_from_config(load_config(args.config))
        if cfg_geom is not None:
            geom = cfg_geom
        if cfg_grid is not None:
            meta["grid"] = cfg_grid

    grid = build_grid(meta, geom, nx=args.nx, dx=args.dx, down=args.down)
    if args.down > 1:
        geom, sino = down_sinogram(geom, sino, args.down)
    if not args.no_fov_mask:
        grid = fit_grid_to_fov(geom, grid)
    log_geometry(geom, grid)

    t0 = time.perf_counter()
    img = fbp(
        geom,
        grid,
        sino,
        window=args.window,
        angle_skip=args.angle_skip,
        restrict_to_fov=not args.no_fov_mask,
        views_per_batch=args.views_per_batch,
    )
    img = np.asarray(img)
    logging.info("FBP done in %s", format_duration(time.perf_counter() - t0))

    if os.path.abspath(args.out) != os.path.abspath(args.data):
        save_sinogram(args.out, sino, geom)
    save_image(args.out, img, grid)
    logging.info("Saved reconstruction to %s", args.out)


if __name__ == "__main__":  # pragma: no cover
    main()
