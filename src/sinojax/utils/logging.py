from __future__ import annotations

import logging
import math
import os
from typing import Iterable, Iterator, Optional


LOG = logging.getLogger("sinojax")

_TRUE = ("1", "true", "yes", "on")


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the CLIs; JAX's own loggers stay at WARNING."""
    lvl = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(level=lvl, format="%(asctime)s | %(levelname)s | %(message)s")
    logging.getLogger("jax").setLevel(max(lvl, logging.WARNING))


def log_jax_env() -> None:
    import jax

    LOG.info("JAX backend: %s", jax.default_backend())
    LOG.info("Devices: %s", jax.devices())
    LOG.info("x64 enabled: %s", bool(jax.config.jax_enable_x64))


def log_geometry(geometry, grid=None) -> None:
    """One INFO block describing the acquisition (and reconstruction grid)."""
    LOG.info("%s", geometry.describe())
    LOG.info("  rfov: %.4g", geometry.field_of_view_radius)
    if grid is not None:
        LOG.info("ImageGrid %dx%d, dx=%g, dy=%g", grid.nx, grid.ny, grid.dx, grid.dy)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "0").lower() in _TRUE


def progress_iter(iterable: Iterable, *, total: Optional[int] = None, desc: str = "") -> Iterator:
    """Yield elements from iterable, showing a progress bar if enabled.

    Enable by setting environment variable `SINOJAX_PROGRESS=1` or calling CLIs with `--progress`.
    Uses tqdm if installed; otherwise logs a step counter at ~10% increments.
    `SINOJAX_PROGRESS_LEAVE=1` keeps finished tqdm bars on screen.
    """
    if not _env_flag("SINOJAX_PROGRESS"):
        yield from iterable
        return
    try:
        from tqdm import tqdm  # type: ignore
    except ImportError:
        tqdm = None
    if tqdm is not None:
        leave = _env_flag("SINOJAX_PROGRESS_LEAVE")
        yield from tqdm(iterable, total=total, desc=desc, dynamic_ncols=True, leave=leave)
        return

    step = max(1, total // 10) if total else 10
    for i, x in enumerate(iterable, 1):
        if i == 1 or i % step == 0 or i == total:
            if total:
                LOG.info("%s %d/%d", desc, i, total)
            else:
                LOG.info("%s step %d", desc, i)
        yield x


def format_duration(seconds: float | None) -> str:
    """Compact wall-clock duration: ``850µs``, ``42ms``, ``0.50s``, ``12.3s``, ``1m30.0s``, ``1h02m05.0s``."""
    try:
        value = float(seconds)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return "-"
    if not math.isfinite(value):
        return "-"
    value = max(value, 0.0)
    if value < 1e-3:
        return f"{value * 1e6:.0f}µs"
    if value < 0.1:
        return f"{value * 1e3:.0f}ms"
    if value < 60.0:
        return f"{value:.2f}s" if value < 1.0 else f"{value:.1f}s"
    hours, rem = divmod(value, 3600.0)
    minutes, secs = divmod(rem, 60.0)
    if hours >= 1.0:
        return f"{int(hours)}h{int(minutes):02d}m{secs:04.1f}s"
    return f"{int(minutes)}m{secs:04.1f}s"
