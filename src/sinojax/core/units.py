"""Unit tags for geometry parameters.

There is no unit algebra here. Physical quantities are plain floats; a value
may be wrapped in :class:`Quantity` to attach a unit tag such as ``"mm"`` or
``"deg"``. Geometry constructors group related parameters and call
:func:`promote`, which checks that every member of a group carries the same
tag and returns plain floats plus that tag. Untagged numbers carry ``None``;
mixing tagged and untagged values in one group is an error, and so is mixing
``"mm"`` with ``"cm"``.

Angles default to degrees. The only angle tags understood are ``"deg"`` and
``"rad"``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

from .errors import IncompatibleUnitsError, InvalidParameterError


ANGLE_UNITS = (None, "deg", "rad")


@dataclass(frozen=True)
class Quantity:
    value: float
    unit: str | None = None

    def __mul__(self, k: float) -> "Quantity":
        if isinstance(k, Quantity):
            raise IncompatibleUnitsError("products of two quantities are not supported")
        return Quantity(self.value * float(k), self.unit)

    __rmul__ = __mul__

    def __truediv__(self, k: float) -> "Quantity":
        if isinstance(k, Quantity):
            raise IncompatibleUnitsError("ratios of two quantities are not supported")
        return Quantity(self.value / float(k), self.unit)

    def __neg__(self) -> "Quantity":
        return Quantity(-self.value, self.unit)

    def __str__(self) -> str:
        return f"{self.value:g}" if self.unit is None else f"{self.value:g} {self.unit}"


def unit_of(x) -> str | None:
    return x.unit if isinstance(x, Quantity) else None


def magnitude(x) -> float:
    return float(x.value) if isinstance(x, Quantity) else float(x)


def with_unit(value: float, unit: str | None):
    """Return ``value`` tagged with ``unit`` (plain float when unit is None)."""
    return float(value) if unit is None else Quantity(float(value), unit)


def promote(*xs, names: Sequence[str] | None = None) -> Tuple[Tuple[float, ...], str | None]:
    """Check that ``xs`` share one unit tag; return plain floats and the tag.

    ``names`` is only used for error messages.
    """
    if not xs:
        return (), None
    if names is None:
        names = [f"arg{i}" for i in range(len(xs))]
    units = [unit_of(x) for x in xs]
    ref = units[0]
    bad = [f"{n}[{u}]" for n, u in zip(names, units) if u != ref]
    if bad:
        raise IncompatibleUnitsError(
            f"incompatible units: {names[0]}[{ref}] vs " + ", ".join(bad)
        )
    return tuple(magnitude(x) for x in xs), ref


def check_angle_unit(unit: str | None) -> str | None:
    if unit not in ANGLE_UNITS:
        raise IncompatibleUnitsError(f"angle unit must be one of deg/rad (or untagged), got {unit!r}")
    return unit


def to_degrees(value, unit: str | None):
    """Convert a scalar or numpy array of angles in ``unit`` to degrees."""
    if unit == "rad":
        return value * (180.0 / math.pi)
    return value


def require_unitless(x, name: str) -> float:
    if isinstance(x, Quantity):
        raise IncompatibleUnitsError(f"{name} is unitless, got {x}")
    try:
        return float(x)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(f"{name} must be a real number, got {x!r}") from exc
