"""Image grid descriptor and the closed set of sinogram geometry kinds.

The grid is consumed by the backprojector and never mutated. Keep it
lightweight: host-side numpy only, no JAX state.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import numpy as np

from ..errors import DimensionMismatchError, InvalidParameterError


class SinoKind(str, Enum):
    """Sinogram geometry variants. The set is closed."""

    PAR = "par"
    MOJ = "moj"
    FAN_ARC = "fan_arc"
    FAN_FLAT = "fan_flat"

    @property
    def is_fan(self) -> bool:
        return self in (SinoKind.FAN_ARC, SinoKind.FAN_FLAT)

    @property
    def is_parallel(self) -> bool:
        return self in (SinoKind.PAR, SinoKind.MOJ)


@dataclass(frozen=True, eq=False)
class ImageGrid:
    """Pixel grid ``(nx, ny)`` with spacings, centre offsets and ROI mask.

    Pixel centres follow ``x_i = dx * (i - (nx - 1)/2 + offset_x)`` for
    ``i = 0..nx-1`` (likewise for y), so offsets are in pixels and shift the
    image centre away from the isocenter. ``mask`` is a boolean ``(nx, ny)``
    array; ``None`` means every pixel is reconstructed.
    """

    nx: int
    ny: int
    dx: float = 1.0
    dy: float | None = None
    offset_x: float = 0.0
    offset_y: float = 0.0
    mask: np.ndarray | None = None

    def __post_init__(self) -> None:
        if int(self.nx) != self.nx or int(self.ny) != self.ny or self.nx <= 0 or self.ny <= 0:
            raise InvalidParameterError(f"nx, ny must be positive integers, got ({self.nx}, {self.ny})")
        object.__setattr__(self, "nx", int(self.nx))
        object.__setattr__(self, "ny", int(self.ny))
        if self.dy is None:
            object.__setattr__(self, "dy", self.dx)
        for name in ("dx", "dy"):
            v = float(getattr(self, name))
            if not math.isfinite(v) or v == 0.0:
                raise InvalidParameterError(f"{name} must be finite and nonzero, got {v}")
            object.__setattr__(self, name, v)
        if self.mask is not None:
            m = np.asarray(self.mask)
            if m.shape != (self.nx, self.ny):
                raise DimensionMismatchError(
                    f"mask must be (nx, ny)=({self.nx}, {self.ny}), got {m.shape}"
                )
            m = m.astype(bool)
            m.setflags(write=False)
            object.__setattr__(self, "mask", m)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.nx, self.ny)

    @property
    def x(self) -> np.ndarray:
        return self.dx * (np.arange(self.nx) - (self.nx - 1) / 2.0 + self.offset_x)

    @property
    def y(self) -> np.ndarray:
        return self.dy * (np.arange(self.ny) - (self.ny - 1) / 2.0 + self.offset_y)

    def coords(self) -> Tuple[np.ndarray, np.ndarray]:
        """Pixel-centre coordinates ``(xc, yc)``, each ``(nx, ny)``."""
        return np.meshgrid(self.x, self.y, indexing="ij")

    def support(self) -> np.ndarray:
        if self.mask is None:
            return np.ones(self.shape, dtype=bool)
        return np.array(self.mask, dtype=bool)

    def circle_mask(self, radius: float | None = None) -> np.ndarray:
        """Pixels whose centre lies within ``radius`` of the isocenter.

        Default radius is the largest circle inscribed in the grid extent.
        """
        if radius is None:
            radius = 0.5 * min(self.nx * abs(self.dx), self.ny * abs(self.dy))
        xc, yc = self.coords()
        return (xc * xc + yc * yc) <= radius * radius

    def with_mask(self, mask: np.ndarray | None) -> "ImageGrid":
        return ImageGrid(self.nx, self.ny, self.dx, self.dy, self.offset_x, self.offset_y, mask)

    def down(self, factor: int) -> "ImageGrid":
        """Coarser grid covering the same extent; mask is decimated."""
        if int(factor) != factor or factor < 1:
            raise InvalidParameterError(f"down factor must be a positive integer, got {factor}")
        f = int(factor)
        if f == 1:
            return self
        nx = max(self.nx // f, 1)
        ny = max(self.ny // f, 1)
        mask = None
        if self.mask is not None:
            mask = self.mask[: nx * f : f, : ny * f : f]
        return ImageGrid(nx, ny, self.dx * f, self.dy * f, self.offset_x / f, self.offset_y / f, mask)

    def to_dict(self) -> dict:
        return {
            "nx": int(self.nx),
            "ny": int(self.ny),
            "dx": float(self.dx),
            "dy": float(self.dy),
            "offset_x": float(self.offset_x),
            "offset_y": float(self.offset_y),
        }

    @classmethod
    def from_dict(cls, d: dict, mask: np.ndarray | None = None) -> "ImageGrid":
        return cls(
            nx=int(d["nx"]),
            ny=int(d["ny"]),
            dx=float(d.get("dx", 1.0)),
            dy=(float(d["dy"]) if d.get("dy") is not None else None),
            offset_x=float(d.get("offset_x", 0.0)),
            offset_y=float(d.get("offset_y", 0.0)),
            mask=mask,
        )
