from __future__ import annotations

"""Field-of-view helpers for 2D reconstruction grids.

The field of view is the disk around the isocenter that every projection
sees in full: radius ``max|s|`` for parallel beam and ``dso * sin(gamma_max)``
for fan beam (see ``SinoGeometry.field_of_view_radius``). The isocenter is
the physical origin; grid offsets move pixels, not the isocenter.
"""

import math

import numpy as np

from ..core.geometry import ImageGrid, SinoGeometry


def fov_radius(geometry: SinoGeometry) -> float:
    return float(geometry.field_of_view_radius)


def fov_mask(geometry: SinoGeometry, grid: ImageGrid) -> np.ndarray:
    """Boolean ``(nx, ny)`` mask of pixel centres strictly inside the FOV."""
    rmax = fov_radius(geometry)
    xc, yc = grid.coords()
    return np.sqrt(xc * xc + yc * yc) < rmax


def support_mask(geometry: SinoGeometry, grid: ImageGrid, *, restrict_to_fov: bool = True) -> np.ndarray:
    """Pixels to reconstruct: the grid mask, optionally intersected with the FOV."""
    mask = grid.support()
    if restrict_to_fov:
        mask = mask & fov_mask(geometry, grid)
    return mask


def fit_grid_to_fov(geometry: SinoGeometry, grid: ImageGrid) -> ImageGrid:
    """Return ``grid`` with a circular mask at the FOV radius (combined with any existing mask)."""
    return grid.with_mask(support_mask(geometry, grid))


def fov_pixels(geometry: SinoGeometry, dx: float) -> int:
    """Smallest even pixel count whose square grid of spacing ``dx`` covers the FOV disk."""
    n = int(math.ceil(2.0 * fov_radius(geometry) / abs(float(dx))))
    return n + (n % 2)
