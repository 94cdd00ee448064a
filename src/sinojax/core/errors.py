"""Error types raised by geometry construction, filtering and backprojection.

Every failure is detected before numerical work starts. Messages name the
offending parameter and the constraint it violates.
"""

from __future__ import annotations


class SinoError(ValueError):
    """Base class for all sinojax errors."""


class InvalidGeometryError(SinoError):
    """Acquisition parameters that do not describe a valid geometry."""


class IncompatibleUnitsError(InvalidGeometryError):
    """Grouped geometry fields carry different unit tags."""


class CapabilityMismatchError(InvalidGeometryError):
    """Quantity or operator requested on a geometry variant that lacks it."""


class InvalidParameterError(SinoError):
    """Bad call-time argument (sizes, counts, spacings, options)."""


class DimensionMismatchError(InvalidParameterError):
    """Array shape does not match the geometry or grid it is used with."""


class UnphysicalGeometryError(SinoError):
    """Requested extent corresponds to a physically impossible arc aperture."""
