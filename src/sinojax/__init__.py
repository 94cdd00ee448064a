"""SinoJAX: 2D sinogram geometries and fan-beam FBP on JAX.

Geometry descriptors (parallel, mojette, fan arc/flat), band-limited ramp
filters, and a pixel-driven fan-beam backprojector. Install from the repo
root and use via `sinojax.*` and the `sinojax-simulate` / `sinojax-recon` CLIs.
"""

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
