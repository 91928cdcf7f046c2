"""Tunable tolerances for the assignment engine.

Defaults match the values the engine was calibrated with; deployments with
wider or narrower roads override them through ``settings.ROAD_ASSIGNMENT``.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

GEOMETRY_BACKENDS = {"shapely", "postgis"}


@dataclass(frozen=True)
class EngineSettings:
    min_point_spacing_m: float = 5.0
    max_chunk_points: int = 100
    snap_retry_attempts: int = 3
    snap_retry_delay_seconds: float = 1.0
    snap_timeout_seconds: float = 10.0
    proximity_threshold_m: float = 1.0
    grid_size_degrees: float = 0.00001
    lock_cell_degrees: float = 0.01
    max_lock_cells: int = 64
    geometry_backend: str = "shapely"

    def __post_init__(self):
        if self.max_chunk_points < 2:
            raise ImproperlyConfigured("MAX_CHUNK_POINTS must allow at least two points per chunk.")
        if self.snap_retry_attempts < 1:
            raise ImproperlyConfigured("SNAP_RETRY_ATTEMPTS must be at least 1.")
        if self.geometry_backend not in GEOMETRY_BACKENDS:
            raise ImproperlyConfigured(
                f"Unknown GEOMETRY_BACKEND '{self.geometry_backend}'. "
                f"Expected one of: {', '.join(sorted(GEOMETRY_BACKENDS))}."
            )


def _coerce(raw: Any, default: Any, name: str) -> Any:
    try:
        return type(default)(raw)
    except (TypeError, ValueError) as exc:
        raise ImproperlyConfigured(f"ROAD_ASSIGNMENT['{name}'] has an invalid value: {raw!r}") from exc


def get_engine_settings() -> EngineSettings:
    """Build :class:`EngineSettings` from ``settings.ROAD_ASSIGNMENT``."""

    overrides: Dict[str, Any] = getattr(settings, "ROAD_ASSIGNMENT", None) or {}
    defaults = EngineSettings()
    values: Dict[str, Any] = {}
    for field in fields(EngineSettings):
        key = field.name.upper()
        if key in overrides and overrides[key] is not None:
            values[field.name] = _coerce(overrides[key], getattr(defaults, field.name), key)

    if "geometry_backend" not in values:
        values["geometry_backend"] = "postgis" if getattr(settings, "USE_POSTGIS", False) else "shapely"
    else:
        values["geometry_backend"] = str(values["geometry_backend"]).lower()

    return EngineSettings(**values)
