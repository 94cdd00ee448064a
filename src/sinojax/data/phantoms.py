from __future__ import annotations

"""Analytic 2D ellipse phantoms: pixel images and exact sinograms.

An ellipse is a row ``(cx, cy, rx, ry, angle_deg, value)`` in physical units;
``angle_deg`` rotates the ``rx`` axis counter-clockwise from +x. Sinograms are
exact line integrals along the geometry's rays (no detector blur).
"""

import numpy as np

from ..core.errors import InvalidParameterError
from ..core.geometry import ImageGrid, SinoGeometry


# Modified (higher contrast) Shepp-Logan on [-1, 1]^2
_SHEPP_LOGAN = np.array(
    [
        [0.0, 0.0, 0.69, 0.92, 0.0, 1.0],
        [0.0, -0.0184, 0.6624, 0.874, 0.0, -0.8],
        [0.22, 0.0, 0.11, 0.31, -18.0, -0.2],
        [-0.22, 0.0, 0.16, 0.41, 18.0, -0.2],
        [0.0, 0.35, 0.21, 0.25, 0.0, 0.1],
        [0.0, 0.1, 0.046, 0.046, 0.0, 0.1],
        [0.0, -0.1, 0.046, 0.046, 0.0, 0.1],
        [-0.08, -0.605, 0.046, 0.023, 0.0, 0.1],
        [0.0, -0.606, 0.023, 0.023, 0.0, 0.1],
        [0.06, -0.605, 0.023, 0.046, 0.0, 0.1],
    ],
    dtype=np.float64,
)


def _as_ellipses(ellipses) -> np.ndarray:
    e = np.atleast_2d(np.asarray(ellipses, dtype=np.float64))
    if e.ndim != 2 or e.shape[1] != 6:
        raise InvalidParameterError(f"ellipses must be rows of (cx, cy, rx, ry, angle_deg, value), got shape {e.shape}")
    if np.any(e[:, 2:4] <= 0):
        raise InvalidParameterError("ellipse radii must be > 0")
    return e


def shepp_logan_params(scale: float = 1.0) -> np.ndarray:
    """Shepp-Logan ellipses with centres and radii multiplied by ``scale``."""
    e = _SHEPP_LOGAN.copy()
    e[:, :4] *= float(scale)
    return e


def disk(radius: float, value: float = 1.0, cx: float = 0.0, cy: float = 0.0) -> np.ndarray:
    return np.array([[cx, cy, radius, radius, 0.0, value]], dtype=np.float64)


def ellipse_image(grid: ImageGrid, ellipses, *, oversample: int = 1) -> np.ndarray:
    """Rasterise ellipses onto ``grid`` -> float32 ``(nx, ny)``.

    ``oversample`` > 1 averages an ``oversample x oversample`` sub-pixel grid.
    """
    e = _as_ellipses(ellipses)
    if int(oversample) != oversample or oversample < 1:
        raise InvalidParameterError(f"oversample must be a positive integer, got {oversample}")
    os_ = int(oversample)
    sub = (np.arange(os_) - (os_ - 1) / 2.0) / os_
    xc, yc = grid.coords()
    out = np.zeros(grid.shape, dtype=np.float64)
    for sx in sub:
        for sy in sub:
            x = xc + sx * grid.dx
            y = yc + sy * grid.dy
            for cx, cy, rx, ry, ang, val in e:
                t = np.deg2rad(ang)
                c, s = np.cos(t), np.sin(t)
                xr = (x - cx) * c + (y - cy) * s
                yr = -(x - cx) * s + (y - cy) * c
                out += val * (((xr / rx) ** 2 + (yr / ry) ** 2) <= 1.0)
    return (out / (os_ * os_)).astype(np.float32)


def ellipse_sinogram(geometry: SinoGeometry, ellipses) -> np.ndarray:
    """Exact line integrals of the ellipses for every ray -> float32 ``(nb, na)``."""
    e = _as_ellipses(ellipses)
    rg, phi = geometry.rays()
    out = np.zeros(geometry.dims, dtype=np.float64)
    cos_p = np.cos(phi)
    sin_p = np.sin(phi)
    for cx, cy, rx, ry, ang, val in e:
        t = np.deg2rad(ang)
        tau = rg - (cx * cos_p + cy * sin_p)
        s2 = (rx * np.cos(phi - t)) ** 2 + (ry * np.sin(phi - t)) ** 2
        inside = tau * tau < s2
        chord = np.where(inside, 2.0 * rx * ry * np.sqrt(np.maximum(s2 - tau * tau, 0.0)) / s2, 0.0)
        out += val * chord
    return out.astype(np.float32)
