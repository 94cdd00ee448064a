from .base import ImageGrid, SinoKind
from .sino import (
    SinoGeometry,
    geometry_from_dict,
    sino_fan,
    sino_fan_arc,
    sino_fan_flat,
    sino_geom,
    sino_moj,
    sino_par,
)
from .presets import sino_ge1

__all__ = [
    "ImageGrid",
    "SinoKind",
    "SinoGeometry",
    "geometry_from_dict",
    "sino_par",
    "sino_moj",
    "sino_fan",
    "sino_fan_arc",
    "sino_fan_flat",
    "sino_geom",
    "sino_ge1",
]
