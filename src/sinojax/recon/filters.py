"""Band-limited ramp filters for parallel-beam and fan-beam FBP.

The kernels are sampled in the detector domain rather than sampling ``|nu|``
in the frequency domain, which avoids the aliasing of a directly sampled
ramp. :func:`ramp_response` turns a kernel into a frequency response for
zero-padded FFT filtering, optionally apodised by a window.
"""

from __future__ import annotations

import math
from collections import OrderedDict
from typing import Tuple

import numpy as np
import jax.numpy as jnp

from ..core.errors import CapabilityMismatchError, InvalidParameterError, UnphysicalGeometryError
from ..core.geometry import SinoGeometry, SinoKind


_RESPONSE_CACHE: "OrderedDict[Tuple, np.ndarray]" = OrderedDict()
_RESPONSE_CACHE_CAP = 8

# Arc kernels beyond this half-aperture [radians] are rejected
_ARC_APERTURE_LIMIT = 0.9 * math.pi / 2


def _check_size(N: int) -> int:
    if isinstance(N, bool) or int(N) != N or N <= 0:
        raise InvalidParameterError(f"filter size N must be a positive integer, got {N!r}")
    N = int(N)
    if N % 2:
        raise InvalidParameterError(f"filter size N must be even, got {N}")
    return N


def _check_spacing(name: str, v: float) -> float:
    v = float(v)
    if not (math.isfinite(v) and v > 0):
        raise InvalidParameterError(f"{name} must be finite and > 0, got {v}")
    return v


def ramp_flat(N: int, ds: float) -> Tuple[np.ndarray, np.ndarray]:
    """Band-limited ramp for equally spaced samples (parallel or flat fan).

    Returns ``(h, n)`` with ``n = -N/2 .. N/2-1``.
    """
    N = _check_size(N)
    ds = _check_spacing("ds", ds)
    n = np.arange(-(N // 2), N // 2)
    h = np.zeros(N, dtype=np.float64)
    h[n == 0] = 0.25 / ds**2
    odd = (n % 2) == 1
    h[odd] = -1.0 / (math.pi * n[odd] * ds) ** 2
    return h, n


def ramp_arc(N: int, ds: float, dsd: float) -> Tuple[np.ndarray, np.ndarray]:
    """Band-limited ramp for an arc (equiangular) detector at distance ``dsd``.

    ``ds`` is the arc length between detector samples. Converges to
    :func:`ramp_flat` as ``dsd`` grows.
    """
    N = _check_size(N)
    ds = _check_spacing("ds", ds)
    dsd = _check_spacing("dsd", dsd)
    half_angle = N / 2 * ds / dsd
    if half_angle > _ARC_APERTURE_LIMIT:
        raise UnphysicalGeometryError(
            f"arc half-angle is {math.degrees(half_angle):.1f} degrees for N={N}, ds={ds}, dsd={dsd}: "
            "too large, physically impossible arc geometry"
        )
    n = np.arange(-(N // 2), N // 2)
    h = np.zeros(N, dtype=np.float64)
    h[n == 0] = 0.25 / ds**2
    odd = (n % 2) == 1
    h[odd] = -1.0 / (math.pi * dsd * np.sin(n[odd] * ds / dsd)) ** 2
    return h, n


def fbp_ramp(geometry: SinoGeometry, N: int) -> Tuple[np.ndarray, np.ndarray]:
    """Ramp kernel matched to the geometry's detector: ``(h, n)``."""
    kind = geometry.kind
    if kind in (SinoKind.PAR, SinoKind.FAN_FLAT):
        return ramp_flat(N, geometry.d)
    if kind is SinoKind.FAN_ARC:
        return ramp_arc(N, geometry.d, geometry.dsd)
    if kind is SinoKind.MOJ:
        raise CapabilityMismatchError("no ramp filter for mojette geometry (angle dependent spacing)")
    raise AssertionError(kind)


def filter_padding(nb: int) -> int:
    """FFT length for linear (non-circular) filtering of ``nb`` samples."""
    return int(2 ** math.ceil(math.log2(max(2 * int(nb) - 1, 2))))


def _window_np(name: str, n: int) -> np.ndarray:
    # Normalised frequency in cycles/sample, |f| <= 0.5
    f = np.abs(np.fft.fftfreq(n))
    fmax = 0.5
    if name in ("ramp", "ram-lak", "ramlak", "none"):
        return np.ones(n)
    if name in ("shepp", "shepp-logan", "shepplogan"):
        x = f / (2.0 * fmax)
        return np.sinc(x)
    if name in ("hann", "hanning"):
        return 0.5 + 0.5 * np.cos(np.pi * f / fmax)
    if name == "cosine":
        return np.cos(0.5 * np.pi * f / fmax)
    raise InvalidParameterError(f"unknown filter window {name!r}")


def ramp_response_np(geometry: SinoGeometry, npad: int, window: str = "ramp") -> np.ndarray:
    """Host-side frequency response ``ds * Re FFT(h) * window`` of length ``npad``.

    Cached (small LRU) per geometry detector parameters.
    """
    window = str(window or "ramp").lower()
    dsd = geometry.dsd if geometry.kind is SinoKind.FAN_ARC else None
    key = (geometry.kind.value, int(npad), float(geometry.d), dsd, window)
    if key in _RESPONSE_CACHE:
        _RESPONSE_CACHE.move_to_end(key)
        return _RESPONSE_CACHE[key]
    h, _ = fbp_ramp(geometry, npad)
    H = geometry.d * np.real(np.fft.fft(np.fft.ifftshift(h)))
    H = (H * _window_np(window, int(npad))).astype(np.float32)
    H.setflags(write=False)
    _RESPONSE_CACHE[key] = H
    if len(_RESPONSE_CACHE) > _RESPONSE_CACHE_CAP:
        _RESPONSE_CACHE.popitem(last=False)
    return H


def ramp_response(geometry: SinoGeometry, npad: int, window: str = "ramp") -> jnp.ndarray:
    """JAX array wrapper for cached, host-computed responses."""
    return jnp.asarray(ramp_response_np(geometry, npad, window), dtype=jnp.float32)
