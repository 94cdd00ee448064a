from __future__ import annotations

import json
import os
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Optional, Tuple

from ..core.errors import InvalidParameterError
from ..core.geometry import ImageGrid, SinoGeometry, geometry_from_dict


def load_config(path: str) -> Dict[str, Any]:
    """Load a JSON or YAML (``.yaml``/``.yml``, needs PyYAML) config file into a dict."""
    ext = os.path.splitext(path)[1].lower()
    with open(path, "r") as f:
        if ext in (".yaml", ".yml"):
            import yaml

            cfg = yaml.safe_load(f) or {}
        else:
            cfg = json.load(f)
    if not isinstance(cfg, dict):
        raise InvalidParameterError(f"config {path} must hold a mapping, got {type(cfg).__name__}")
    return cfg


def dump_config(obj: Any) -> Dict[str, Any]:
    """Plain dict of a geometry, grid, dataclass or mapping for logging/serialization."""
    if isinstance(obj, (SinoGeometry, ImageGrid)):
        return obj.to_dict()
    if is_dataclass(obj):
        return asdict(obj)
    return dict(obj)


def geometry_and_grid_from_config(
    cfg: Dict[str, Any],
) -> Tuple[Optional[SinoGeometry], Optional[ImageGrid]]:
    """Read optional ``geometry`` and ``grid`` sections of a config dict.

    ``geometry`` accepts either a serialized geometry (with ``kind``) or
    constructor arguments with ``how`` = par|moj|fan|ge1.
    """
    geom = geometry_from_dict(cfg["geometry"]) if cfg.get("geometry") else None
    grid = ImageGrid.from_dict(cfg["grid"]) if cfg.get("grid") else None
    return geom, grid
