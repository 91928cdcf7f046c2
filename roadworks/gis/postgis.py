"""Geometry backend that delegates every operation to PostGIS."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from django.db import DEFAULT_DB_ALIAS, connections

from roadworks.geometry import SRID, MultiPath, normalize

from .base import GeometryBackend

DWITHIN_SQL = (
    "SELECT ST_DWithin(ST_GeomFromText(%s, {srid})::geography, "
    "ST_GeomFromText(%s, {srid})::geography, %s)"
).format(srid=SRID)
INTERSECTION_SQL = (
    "SELECT ST_AsText(ST_CollectionExtract(ST_Intersection("
    "ST_GeomFromText(%s, {srid}), ST_GeomFromText(%s, {srid})), 2))"
).format(srid=SRID)
LENGTH_SQL = "SELECT ST_Length(ST_GeomFromText(%s, {srid})::geography)".format(srid=SRID)
SNAP_SQL = "SELECT ST_AsText(ST_SnapToGrid(ST_GeomFromText(%s, {srid}), %s))".format(srid=SRID)


def _from_wkt(text: Optional[str]) -> Optional[MultiPath]:
    if not text or text.strip().upper().endswith("EMPTY"):
        return None
    return normalize(text)


class PostGISBackend(GeometryBackend):
    """Runs on the connection of the current thread so it joins open transactions."""

    name = "postgis"

    def __init__(self, using: str = DEFAULT_DB_ALIAS):
        self.using = using

    def _scalar(self, sql: str, params: Sequence[Any]) -> Any:
        with connections[self.using].cursor() as cursor:
            cursor.execute(sql, params)
            row = cursor.fetchone()
        return row[0] if row else None

    def distance_within(self, a: MultiPath, b: MultiPath, meters: float) -> bool:
        return bool(self._scalar(DWITHIN_SQL, [a.to_wkt(), b.to_wkt(), float(meters)]))

    def intersection(self, a: MultiPath, b: MultiPath) -> Optional[MultiPath]:
        return _from_wkt(self._scalar(INTERSECTION_SQL, [a.to_wkt(), b.to_wkt()]))

    def length(self, geometry: Optional[MultiPath]) -> float:
        if geometry is None:
            return 0.0
        return float(self._scalar(LENGTH_SQL, [geometry.to_wkt()]) or 0.0)

    def snap_to_grid(self, geometry: MultiPath, size: float) -> Optional[MultiPath]:
        return _from_wkt(self._scalar(SNAP_SQL, [geometry.to_wkt(), float(size)]))
