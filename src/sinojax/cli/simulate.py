from __future__ import annotations

import argparse
import logging
import os
import time

from ..data.simulate import SimConfig, make_geometry, make_grid, simulate_to_file
from ..utils.config import dump_config
from ..utils.logging import format_duration, log_geometry, log_jax_env, setup_logging


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Simulate a fan-beam sinogram of an ellipse phantom and save to .h5")
    p.add_argument("--out", required=True, help="Output .h5 path")
    p.add_argument("--nb", type=int, default=128, help="Detector bins")
    p.add_argument("--na", type=int, default=200, help="Views")
    p.add_argument("--d", type=float, default=1.0, help="Detector sample spacing (arc length for arc detectors)")
    p.add_argument("--detector", choices=["arc", "flat"], default="arc")
    p.add_argument("--dsd", type=float, default=None, help="Source to detector distance (default 4*nb*d)")
    p.add_argument("--dod", type=float, default=None, help="Isocenter to detector distance (default nb*d)")
    p.add_argument("--offset", type=float, default=0.0, help="Detector offset in bins")
    p.add_argument("--source-offset", type=float, default=0.0)
    p.add_argument("--orbit", type=float, default=360.0, help="Orbit in degrees")
    p.add_argument("--orbit-start", type=float, default=0.0)
    p.add_argument("--nx", type=int, default=None, help="Truth image size (default: covers the FOV)")
    p.add_argument("--ny", type=int, default=None)
    p.add_argument("--dx", type=float, default=None, help="Pixel size (default: d)")
    p.add_argument("--phantom", choices=["shepp", "disk"], default="shepp")
    p.add_argument("--radius", type=float, default=None, help="Phantom radius (default 0.8 * FOV radius)")
    p.add_argument("--noise", choices=["none", "gaussian", "poisson"], default="none")
    p.add_argument("--noise-level", type=float, default=0.0)
    p.add_argument("--seed", type=int, default=0)
    p.add_argument("--log-level", default="INFO")
    p.add_argument("--progress", action="store_true", help="Show progress bars if tqdm is available")
    args = p.parse_args(argv)

    setup_logging(args.log_level)
    log_jax_env()
    if args.progress:
        os.environ["SINOJAX_PROGRESS"] = "1"

    cfg = SimConfig(
        nb=args.nb, na=args.na, d=args.d, detector=args.detector,
        dsd=args.dsd, dod=args.dod, offset=args.offset, source_offset=args.source_offset,
        orbit=args.orbit, orbit_start=args.orbit_start,
        nx=args.nx, ny=args.ny, dx=args.dx,
        phantom=args.phantom, radius=args.radius,
        noise=args.noise, noise_level=args.noise_level, seed=args.seed,
    )
    logging.info("SimConfig: %s", dump_config(cfg))
    geom = make_geometry(cfg)
    log_geometry(geom, make_grid(cfg, geom))
    t0 = time.perf_counter()
    out = simulate_to_file(cfg, args.out)
    logging.info("Wrote dataset: %s (%s)", out, format_duration(time.perf_counter() - t0))


if __name__ == "__main__":  # pragma: no cover
    main()
