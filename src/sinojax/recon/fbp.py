from __future__ import annotations

import logging
from dataclasses import replace

import numpy as np
import jax.numpy as jnp

from ..core.errors import CapabilityMismatchError, DimensionMismatchError, InvalidParameterError
from ..core.geometry import ImageGrid, SinoGeometry
from ..core.units import to_degrees
from .backproject import backproject
from .filters import filter_padding, ramp_response


LOG = logging.getLogger(__name__)


def fan_weights(geometry: SinoGeometry) -> np.ndarray:
    """Per-bin pre-weights ``(dso / dsd) * cos(gamma)`` for fan-beam FBP, shape ``(nb,)``.

    Same form for arc and flat detectors; combined with the band-limited ramp
    and the ``pi / na`` scale of :func:`backproject` this gives the
    equiangular/equispaced fan-beam inversion formula.
    """
    if not geometry.is_fan:
        raise CapabilityMismatchError(f"fan weighting needs a fan geometry, got {geometry.kind.value}")
    return (geometry.dso / geometry.dsd) * np.cos(geometry.gamma)


def filter_sinogram(
    geometry: SinoGeometry,
    sino,
    *,
    window: str = "ramp",
    npad: int | None = None,
) -> jnp.ndarray:
    """Convolve every projection (column of ``sino``) with the geometry's ramp kernel.

    Rows are zero-padded to ``npad`` samples (default: next power of two
    >= 2*nb-1) so that the FFT product is a linear convolution with
    ``d * h``, then cropped back to ``nb``.
    """
    sino = jnp.asarray(sino, dtype=jnp.float32)
    if sino.ndim != 2 or sino.shape[0] != geometry.nb:
        raise DimensionMismatchError(f"sinogram must be (nb, ...) with nb={geometry.nb}, got {tuple(sino.shape)}")
    nb = geometry.nb
    if npad is None:
        npad = filter_padding(nb)
    if npad < 2 * nb - 1:
        raise InvalidParameterError(f"npad={npad} too small for linear filtering of nb={nb} samples")
    H = ramp_response(geometry, int(npad), window)
    F = jnp.fft.fft(sino, n=int(npad), axis=0)
    out = jnp.fft.ifft(F * H[:, None], axis=0)
    return jnp.real(out[:nb]).astype(jnp.float32)


def fbp(
    geometry: SinoGeometry,
    grid: ImageGrid,
    sino,
    *,
    window: str = "ramp",
    angle_skip: int = 1,
    restrict_to_fov: bool = True,
    views_per_batch: int = 0,
) -> jnp.ndarray:
    """Filtered backprojection for fan-beam sinograms ``(nb, na)`` -> image ``(nx, ny)``.

    Pre-weights, ramp-filters (optionally windowed) and backprojects. Orbits
    shorter than 360 degrees are reconstructed without short-scan (Parker)
    weighting and are only approximate.
    """
    if not geometry.is_fan:
        raise CapabilityMismatchError(f"fbp supports fan geometries only, got {geometry.kind.value}")
    sino = jnp.asarray(sino, dtype=jnp.float32)
    if sino.shape != geometry.dims:
        raise DimensionMismatchError(f"sinogram must be (nb, na)={geometry.dims}, got {tuple(sino.shape)}")
    orbit_deg = abs(float(to_degrees(geometry.orbit, geometry.angle_units)))
    if orbit_deg < 360.0 - 1e-6:
        LOG.warning("fbp: orbit %.1f deg < 360 deg; no short-scan weighting applied", orbit_deg)

    w = jnp.asarray(fan_weights(geometry), dtype=jnp.float32)
    filtered = filter_sinogram(geometry, sino * w[:, None], window=window)
    return backproject(
        geometry,
        grid,
        filtered,
        angle_skip=angle_skip,
        restrict_to_fov=restrict_to_fov,
        views_per_batch=views_per_batch,
    )


def down_sinogram(geometry: SinoGeometry, sino, factor: int) -> tuple[SinoGeometry, np.ndarray]:
    """Coarse ``(geometry, sinogram)`` pair for quick previews.

    Keeps every ``factor``-th view and averages blocks of ``factor`` bins
    taken symmetrically about the central ray. The returned geometry starts
    from :meth:`SinoGeometry.down` with ``orbit`` and ``offset`` adjusted to
    the views and bin blocks actually kept, so that ``angles_degrees`` and
    ``s`` of the result are exactly those of the decimated data.
    """
    sino = np.asarray(sino, dtype=np.float32)
    if sino.shape != geometry.dims:
        raise DimensionMismatchError(f"sinogram must be (nb, na)={geometry.dims}, got {sino.shape}")
    coarse = geometry.down(factor)
    f = int(factor)
    if f == 1:
        return geometry, sino
    nb2, na2 = coarse.nb, coarse.na
    span = nb2 * f
    start = int(round(geometry.w - (span - 1) / 2.0))
    start = min(max(start, 0), geometry.nb - span)
    # coarse bin k is centred on fine bin start + k*f + (f-1)/2
    w2 = (geometry.w - start - (f - 1) / 2.0) / f
    coarse = replace(
        coarse,
        orbit=geometry.orbit * na2 * f / geometry.na,
        offset=w2 - (nb2 - 1) / 2.0,
    )
    out = sino[start : start + span, : na2 * f : f].reshape(nb2, f, na2).mean(axis=1)
    return coarse, out.astype(np.float32)
