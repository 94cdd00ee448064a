"""Sinogram geometry for 2D parallel-beam, mojette and fan-beam tomography.

A :class:`SinoGeometry` stores only the minimal acquisition parameters. Every
other quantity (sample locations, angles, fan angles, FOV radius, detector
element centres, equivalent parallel-beam rays) is computed on access from
those fields, dispatching on :class:`SinoKind`. Instances are frozen;
:meth:`SinoGeometry.down` returns a new instance.

Conventions:
- Sinograms are ``(nb, na)``: radial/detector bin first, angle second.
- Detector sample ``i`` sits at ``s_i = d * (i - w)`` with
  ``w = (nb - 1)/2 + offset``; ``offset`` is in units of bins.
- Source angle ``beta_k = orbit_start + orbit * k / na``.
- Fan beam: the source sits at distance ``dso = dsd - dod`` from the
  isocenter. ``dfs == 0`` selects an arc (equiangular) detector, ``dfs == inf``
  a flat one; nothing else is accepted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Tuple

import numpy as np

from ..errors import CapabilityMismatchError, InvalidGeometryError, InvalidParameterError
from ..units import check_angle_unit, magnitude, promote, require_unitless, to_degrees, unit_of, with_unit
from .base import SinoKind


_FAN_FIELDS = ("source_offset", "dsd", "dod", "dfs")


def _default_na(nb: int) -> int:
    return max(2 * int(math.floor(nb * math.pi / 2 / 2)), 1)


def _check_count(name: str, v) -> int:
    if isinstance(v, bool) or not isinstance(v, (int, np.integer)) or v <= 0:
        raise InvalidParameterError(f"{name} must be a positive integer, got {v!r}")
    return int(v)


@dataclass(frozen=True)
class SinoGeometry:
    """Acquisition geometry of a 2D sinogram.

    Prefer the named constructors (:func:`sino_par`, :func:`sino_moj`,
    :func:`sino_fan_arc`, :func:`sino_fan_flat`, :func:`sino_fan`), which
    resolve defaults and check unit tags. Direct construction takes plain
    floats and is validated the same way.
    """

    kind: SinoKind
    nb: int
    na: int
    d: float = 1.0
    orbit: float = 180.0
    orbit_start: float = 0.0
    offset: float = 0.0
    strip_width: float | None = None
    source_offset: float | None = None
    dsd: float | None = None
    dod: float | None = None
    dfs: float | None = None
    units: str | None = None
    angle_units: str | None = None

    def __post_init__(self) -> None:
        try:
            kind = SinoKind(self.kind)
        except ValueError as exc:
            raise InvalidGeometryError(f"unknown sinogram kind {self.kind!r}") from exc
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "nb", _check_count("nb", self.nb))
        object.__setattr__(self, "na", _check_count("na", self.na))
        if self.strip_width is None:
            object.__setattr__(self, "strip_width", self.d)
        for name in ("d", "orbit", "orbit_start", "offset", "strip_width"):
            object.__setattr__(self, name, require_unitless(getattr(self, name), name))
        check_angle_unit(self.angle_units)

        if not (math.isfinite(self.d) and self.d > 0):
            raise InvalidParameterError(f"d must be finite and > 0, got {self.d}")
        if not (math.isfinite(self.strip_width) and self.strip_width >= 0):
            raise InvalidParameterError(f"strip_width must be finite and >= 0, got {self.strip_width}")
        if not math.isfinite(self.orbit) or not math.isfinite(self.orbit_start):
            raise InvalidParameterError("orbit and orbit_start must be finite")

        if kind.is_fan:
            for name in _FAN_FIELDS:
                v = getattr(self, name)
                if v is None:
                    raise InvalidGeometryError(f"fan geometry requires {name}")
                object.__setattr__(self, name, require_unitless(v, name))
            if self.dfs == 0:
                curvature = SinoKind.FAN_ARC
            elif math.isinf(self.dfs) and self.dfs > 0:
                curvature = SinoKind.FAN_FLAT
            else:
                raise InvalidGeometryError(
                    f"dfs must be 0 (arc detector) or inf (flat detector), got {self.dfs}"
                )
            if curvature is not kind:
                raise InvalidGeometryError(f"dfs={self.dfs} selects {curvature.value}, but kind is {kind.value}")
            if not (math.isfinite(self.dsd) and self.dsd > 0):
                raise InvalidGeometryError(f"dsd must be finite and > 0, got {self.dsd}")
            if not math.isfinite(self.dod) or self.dsd - self.dod <= 0:
                raise InvalidGeometryError(
                    f"source must lie outside the isocenter: dso = dsd - dod = {self.dsd - self.dod}"
                )
            if not math.isfinite(self.source_offset):
                raise InvalidGeometryError("source_offset must be finite")
        else:
            extra = [n for n in _FAN_FIELDS if getattr(self, n) is not None]
            if extra:
                raise InvalidGeometryError(f"{kind.value} geometry does not take {', '.join(extra)}")

    # ------------------------------------------------------------------
    # Variant tests
    # ------------------------------------------------------------------
    @property
    def is_fan(self) -> bool:
        return self.kind.is_fan

    @property
    def is_arc(self) -> bool:
        return self.kind is SinoKind.FAN_ARC

    @property
    def is_flat(self) -> bool:
        return self.kind is SinoKind.FAN_FLAT

    def _require_fan(self, what: str) -> None:
        if not self.kind.is_fan:
            raise CapabilityMismatchError(f"{what} is only defined for fan-beam geometries, not {self.kind.value}")

    def _require(self, kind: SinoKind, what: str) -> None:
        if self.kind is not kind:
            raise CapabilityMismatchError(f"{what} is only defined for {kind.value} geometries, not {self.kind.value}")

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------
    @property
    def dims(self) -> Tuple[int, int]:
        return (self.nb, self.na)

    @property
    def w(self) -> float:
        """Fractional index of the central ray, ``(nb-1)/2 + offset``."""
        return (self.nb - 1) / 2.0 + self.offset

    @property
    def sample_locations(self) -> np.ndarray:
        return self.d * (np.arange(self.nb, dtype=np.float64) - self.w)

    # radial samples are called r (parallel) or s (fan)
    s = sample_locations
    r = sample_locations

    @property
    def ds(self) -> float:
        """Radial sample spacing. Mojette spacing is angle dependent, see :attr:`d_ang`."""
        if self.kind is SinoKind.MOJ:
            raise CapabilityMismatchError("mojette sample spacing depends on angle; use d_ang")
        return self.d

    dr = ds

    @property
    def angles_degrees(self) -> np.ndarray:
        k = np.arange(self.na, dtype=np.float64)
        ad = self.orbit_start + self.orbit * k / self.na
        return to_degrees(ad, self.angle_units)

    @property
    def angles_radians(self) -> np.ndarray:
        return np.deg2rad(self.angles_degrees)

    # ------------------------------------------------------------------
    # Fan-beam quantities
    # ------------------------------------------------------------------
    @property
    def dso(self) -> float:
        self._require_fan("dso")
        return self.dsd - self.dod

    @property
    def gamma(self) -> np.ndarray:
        """Fan angle of each detector element as seen from the source [radians]."""
        self._require_fan("gamma")
        if self.kind is SinoKind.FAN_ARC:
            return self.s / self.dsd
        if self.kind is SinoKind.FAN_FLAT:
            return np.arctan(self.s / self.dsd)
        raise AssertionError(self.kind)

    @property
    def gamma_max(self) -> float:
        return float(np.max(np.abs(self.gamma)))

    @property
    def orbit_short(self) -> float:
        """Short-scan orbit ``180 + 2 * gamma_max`` [degrees]."""
        return 180.0 + 2.0 * math.degrees(self.gamma_max)

    # ------------------------------------------------------------------
    # Mojette quantities
    # ------------------------------------------------------------------
    def d_moj(self, ar) -> np.ndarray:
        """Mojette ray spacing for angle(s) ``ar`` [radians]."""
        self._require(SinoKind.MOJ, "d_moj")
        ar = np.asarray(ar, dtype=np.float64)
        return self.d * np.maximum(np.abs(np.cos(ar)), np.abs(np.sin(ar)))

    @property
    def d_ang(self) -> np.ndarray:
        return self.d_moj(self.angles_radians)

    # ------------------------------------------------------------------
    # Field of view and detector positions
    # ------------------------------------------------------------------
    @property
    def field_of_view_radius(self) -> float:
        if self.kind is SinoKind.PAR:
            return float(np.max(np.abs(self.r)))
        if self.kind is SinoKind.MOJ:
            # ignores offset
            return self.nb / 2.0 * float(np.min(self.d_ang))
        if self.kind.is_fan:
            return self.dso * math.sin(self.gamma_max)
        raise AssertionError(self.kind)

    rfov = field_of_view_radius

    @property
    def detector_center_x(self) -> np.ndarray:
        """x positions of detector element centres at beta = 0."""
        if self.kind.is_parallel:
            return self.s
        if self.kind is SinoKind.FAN_ARC:
            return self.dsd * np.sin(self.gamma) + self.source_offset
        if self.kind is SinoKind.FAN_FLAT:
            return self.s + self.source_offset
        raise AssertionError(self.kind)

    @property
    def detector_center_y(self) -> np.ndarray:
        """y positions of detector element centres at beta = 0."""
        if self.kind.is_parallel:
            return np.zeros(self.nb, dtype=np.float64)
        if self.kind is SinoKind.FAN_ARC:
            return self.dso - self.dsd * np.cos(self.gamma)
        if self.kind is SinoKind.FAN_FLAT:
            return np.full(self.nb, -self.dod, dtype=np.float64)
        raise AssertionError(self.kind)

    xds = detector_center_x
    yds = detector_center_y

    def rays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Equivalent parallel-beam coordinates ``(r, phi)`` of every ray.

        Both arrays are ``(nb, na)``; ``phi`` is in radians. A ray is the set
        of points with ``x cos(phi) + y sin(phi) = r``.
        """
        ar = self.angles_radians
        if self.kind is SinoKind.PAR:
            return np.meshgrid(self.r, ar, indexing="ij")
        if self.kind is SinoKind.MOJ:
            pos = np.outer(np.arange(self.nb) - self.w, self.d_ang)
            return pos, np.broadcast_to(ar, (self.nb, self.na)).copy()
        if self.kind.is_fan:
            gam = self.gamma
            rad = self.dso * np.sin(gam) + self.source_offset * np.cos(gam)
            rg = np.repeat(rad[:, None], self.na, axis=1)
            return rg, gam[:, None] + ar[None, :]
        raise AssertionError(self.kind)

    def taufun(self, x, y) -> np.ndarray:
        """Projected detector position ``s/ds`` of points ``(x, y)``: ``(npoint, na)``.

        Positions are relative to the central ray (add :attr:`w` for a bin index).
        """
        x = np.ravel(np.asarray(x, dtype=np.float64))
        y = np.ravel(np.asarray(y, dtype=np.float64))
        if x.shape != y.shape:
            raise InvalidParameterError(f"x and y must have the same size, got {x.size} and {y.size}")
        ar = self.angles_radians[None, :]
        xb = x[:, None] * np.cos(ar) + y[:, None] * np.sin(ar)
        if self.kind is SinoKind.PAR:
            return xb / self.dr
        if self.kind is SinoKind.MOJ:
            return xb / self.d_ang[None, :]
        yb = -x[:, None] * np.sin(ar) + y[:, None] * np.cos(ar)
        tangam = (xb - self.source_offset) / (self.dso - yb)
        if self.kind is SinoKind.FAN_ARC:
            return self.dsd / self.ds * np.arctan(tangam)
        if self.kind is SinoKind.FAN_FLAT:
            return self.dsd / self.ds * tangam
        raise AssertionError(self.kind)

    # ------------------------------------------------------------------
    # Sinogram-shaped helpers
    # ------------------------------------------------------------------
    def zeros(self) -> np.ndarray:
        return np.zeros(self.dims, dtype=np.float32)

    def ones(self) -> np.ndarray:
        return np.ones(self.dims, dtype=np.float32)

    def unitv(self, ib: int | None = None, ia: int | None = None) -> np.ndarray:
        """Sinogram with a single unit-valued ray (default: central bin, middle view)."""
        ib = self.nb // 2 if ib is None else int(ib)
        ia = self.na // 2 if ia is None else int(ia)
        out = self.zeros()
        out[ib, ia] = 1.0
        return out

    def shape(self, x) -> np.ndarray:
        """Reshape ``x`` to ``(nb, na)`` or ``(nb, na, -1)``."""
        x = np.asarray(x)
        if x.size == self.nb * self.na:
            return x.reshape(self.dims)
        return x.reshape(self.nb, self.na, -1)

    # ------------------------------------------------------------------
    # New geometries
    # ------------------------------------------------------------------
    def down(self, factor: int) -> "SinoGeometry":
        """Down-sampled copy for quick tests with small problems.

        ``nb`` stays even: ``2 * max(nb // (2 * factor), 1)``.
        """
        if isinstance(factor, bool) or int(factor) != factor or factor < 1:
            raise InvalidParameterError(f"down factor must be a positive integer, got {factor!r}")
        f = int(factor)
        if f == 1:
            return self
        return replace(
            self,
            nb=2 * max(self.nb // (2 * f), 1),
            na=max(self.na // f, 1),
            d=self.d * f,
            strip_width=self.strip_width * f,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "kind": self.kind.value,
            "nb": int(self.nb),
            "na": int(self.na),
            "d": float(self.d),
            "orbit": float(self.orbit),
            "orbit_start": float(self.orbit_start),
            "offset": float(self.offset),
            "strip_width": float(self.strip_width),
            "units": self.units,
            "angle_units": self.angle_units,
        }
        if self.is_fan:
            for name in _FAN_FIELDS:
                out[name] = float(getattr(self, name))
        return out

    def describe(self) -> str:
        lines = [f"SinoGeometry[{self.kind.value}]"]
        for k, v in self.to_dict().items():
            if k != "kind":
                lines.append(f"  {k}: {v}")
        return "\n".join(lines)


# ----------------------------------------------------------------------
# Named constructors
# ----------------------------------------------------------------------
def _build(
    kind: SinoKind,
    *,
    nb: int,
    na: int | None,
    d,
    orbit,
    orbit_start,
    offset,
    strip_width,
    down: int,
    fan: Dict[str, Any] | None = None,
) -> SinoGeometry:
    nb = _check_count("nb", nb)
    na = _default_na(nb) if na is None else na
    if orbit_start is None:
        orbit_start = with_unit(0.0, unit_of(orbit))
    if strip_width is None:
        strip_width = d
    (orbit_v, orbit_start_v), angle_units = promote(orbit, orbit_start, names=("orbit", "orbit_start"))
    check_angle_unit(angle_units)
    names = ["d", "strip_width"]
    values = [d, strip_width]
    if fan is not None:
        names += list(_FAN_FIELDS)
        values += [fan[n] for n in _FAN_FIELDS]
    promoted, units = promote(*values, names=names)
    fields = dict(zip(names, promoted))
    sg = SinoGeometry(
        kind=kind,
        nb=nb,
        na=na,
        orbit=orbit_v,
        orbit_start=orbit_start_v,
        offset=require_unitless(offset, "offset"),
        units=units,
        angle_units=angle_units,
        **fields,
    )
    return sg.down(down)


def sino_par(
    *,
    nb: int = 128,
    na: int | None = None,
    d=1.0,
    orbit=180.0,
    orbit_start=None,
    offset: float = 0.0,
    strip_width=None,
    down: int = 1,
) -> SinoGeometry:
    """2D parallel-beam geometry.

    ``orbit``/``orbit_start`` must share one angle tag and ``d``/``strip_width``
    one length tag. ``na`` defaults to ``2 * floor(nb * pi / 4)``.
    """
    return _build(
        SinoKind.PAR, nb=nb, na=na, d=d, orbit=orbit, orbit_start=orbit_start,
        offset=offset, strip_width=strip_width, down=down,
    )


def sino_moj(
    *,
    nb: int = 128,
    na: int | None = None,
    d=1.0,
    orbit=180.0,
    orbit_start=None,
    offset: float = 0.0,
    strip_width=None,
    down: int = 1,
) -> SinoGeometry:
    """2D mojette geometry; ``d`` is the (square) pixel size ``dx``."""
    return _build(
        SinoKind.MOJ, nb=nb, na=na, d=d, orbit=orbit, orbit_start=orbit_start,
        offset=offset, strip_width=strip_width, down=down,
    )


def _fan_kind(dfs) -> SinoKind:
    v = dfs.value if hasattr(dfs, "value") else dfs
    try:
        v = float(v)
    except (TypeError, ValueError) as exc:
        raise InvalidGeometryError(f"dfs must be 0 or inf, got {dfs!r}") from exc
    if v == 0:
        return SinoKind.FAN_ARC
    if math.isinf(v) and v > 0:
        return SinoKind.FAN_FLAT
    raise InvalidGeometryError(f"dfs must be 0 (arc detector) or inf (flat detector), got {dfs}")


def sino_fan(
    *,
    nb: int = 128,
    na: int | None = None,
    d=1.0,
    orbit=360.0,
    orbit_start=None,
    offset: float = 0.0,
    strip_width=None,
    source_offset=None,
    dsd=None,
    dod=None,
    dfs=0.0,
    down: int = 1,
) -> SinoGeometry:
    """2D fan-beam geometry; ``dfs`` selects arc (0) or flat (inf) detector.

    Distances default to ``dsd = 4 * nb * d`` and ``dod = nb * d``.
    ``orbit="short"`` picks the short-scan orbit ``180 + 2 * gamma_max``.
    """
    kind = _fan_kind(dfs)
    nb = _check_count("nb", nb)
    unit = unit_of(d)
    fan = {
        "source_offset": with_unit(0.0, unit) if source_offset is None else source_offset,
        "dsd": 4 * nb * d if dsd is None else dsd,
        "dod": nb * d if dod is None else dod,
        "dfs": with_unit(magnitude(dfs), unit) if unit_of(dfs) is None else dfs,
    }
    short = isinstance(orbit, str)
    if short and orbit != "short":
        raise InvalidParameterError(f"orbit must be a number or 'short', got {orbit!r}")
    if short:
        orbit = with_unit(360.0, unit_of(orbit_start))
    sg = _build(
        kind, nb=nb, na=na, d=d, orbit=orbit, orbit_start=orbit_start,
        offset=offset, strip_width=strip_width, down=1, fan=fan,
    )
    if short:
        orbit_short = sg.orbit_short
        if sg.angle_units == "rad":
            orbit_short = math.radians(orbit_short)
        sg = replace(sg, orbit=orbit_short)
    return sg.down(down)


def sino_fan_arc(*, dfs=None, **kwargs) -> SinoGeometry:
    """Fan-beam geometry with an arc (equiangular, third-generation) detector."""
    if dfs is None:
        dfs = with_unit(0.0, unit_of(kwargs.get("d", 1.0)))
    if _fan_kind(dfs) is not SinoKind.FAN_ARC:
        raise InvalidGeometryError(f"arc detector requires dfs == 0, got {dfs}")
    return sino_fan(dfs=dfs, **kwargs)


def sino_fan_flat(*, dfs=None, **kwargs) -> SinoGeometry:
    """Fan-beam geometry with a flat (equispaced) detector."""
    if dfs is None:
        dfs = with_unit(math.inf, unit_of(kwargs.get("d", 1.0)))
    if _fan_kind(dfs) is not SinoKind.FAN_FLAT:
        raise InvalidGeometryError(f"flat detector requires dfs == inf, got {dfs}")
    return sino_fan(dfs=dfs, **kwargs)


def geometry_from_dict(d: Dict[str, Any]) -> SinoGeometry:
    """Rebuild a geometry from :meth:`SinoGeometry.to_dict` output or a config dict.

    Config dicts may use ``how`` (par|moj|fan|ge1) instead of ``kind``; those are
    routed through :func:`sino_geom` so that defaults apply.
    """
    d = dict(d)
    if "kind" in d:
        fields = {k: d[k] for k in d if k in SinoGeometry.__dataclass_fields__}
        return SinoGeometry(**fields)
    how = d.pop("how", None)
    if how is None:
        raise InvalidGeometryError("geometry config needs 'kind' or 'how'")
    return sino_geom(how, **d)


def sino_geom(how: str, **kwargs) -> SinoGeometry:
    """Construct a geometry by name: ``par``, ``moj``, ``fan`` or ``ge1``."""
    how = str(how).lower()
    if how == "par":
        return sino_par(**kwargs)
    if how == "moj":
        return sino_moj(**kwargs)
    if how == "fan":
        return sino_fan(**kwargs)
    if how == "ge1":
        from .presets import sino_ge1

        return sino_ge1(**kwargs)
    raise InvalidGeometryError(f"unknown sinogram geometry {how!r}")
