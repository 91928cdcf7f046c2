"""Pluggable geometry backends for spatial comparisons."""

from __future__ import annotations

from typing import Optional

from django.db import DEFAULT_DB_ALIAS

from .base import GeometryBackend


def get_geometry_backend(name: Optional[str] = None, using: str = DEFAULT_DB_ALIAS) -> GeometryBackend:
    """Return the backend configured for this deployment.

    ``postgis`` runs its SQL on the ``using`` database, which must have
    PostGIS; ``shapely`` runs in process and works on any database.
    """

    if name is None:
        from roadworks.config import get_engine_settings

        name = get_engine_settings().geometry_backend

    if name == "postgis":
        from .postgis import PostGISBackend

        return PostGISBackend(using=using)

    from .shapely_backend import ShapelyBackend

    return ShapelyBackend()


__all__ = ["GeometryBackend", "get_geometry_backend"]
