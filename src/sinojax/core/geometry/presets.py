"""Named parameter sets for commercial scanners."""

from __future__ import annotations

from .sino import SinoGeometry, sino_fan_arc
from ..errors import InvalidParameterError
from ..units import Quantity


def sino_ge1(*, units: str = "mm", orbit=360.0, na: int = 984, nb: int = 888, offset: float = 1.25, **kwargs) -> SinoGeometry:
    """GE LightSpeed fan-beam geometry (arc detector).

    Published in IEEE T-MI Oct. 2006, p.1272-1283. ``orbit="short"`` keeps
    642 of the 984 views. Distances are tagged with ``units`` (mm or cm).
    """
    if orbit == "short":
        na = 642
        orbit = na / 984 * 360
    if units == "mm":
        scale = 1.0
    elif units == "cm":
        scale = 10.0
    else:
        raise InvalidParameterError(f"units must be 'mm' or 'cm', got {units!r}")

    return sino_fan_arc(
        nb=nb,
        na=na,
        offset=offset,
        orbit=orbit,
        d=Quantity(1.0239 / scale, units),
        dsd=Quantity(949.075 / scale, units),
        dod=Quantity(408.075 / scale, units),
        **kwargs,
    )
