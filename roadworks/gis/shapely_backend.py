"""In-process geometry backend built on shapely and pyproj."""

from __future__ import annotations

from functools import lru_cache
import math
from typing import Iterator, Optional

import shapely
from pyproj import CRS, Transformer
from shapely.geometry import LineString, MultiLineString
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform as shapely_transform

from roadworks.geometry import MultiPath, Path, Point
from roadworks.utils import meters_to_degrees

from .base import GeometryBackend


def to_shape(geometry: MultiPath) -> BaseGeometry:
    if geometry.is_single:
        return LineString(geometry.paths[0].coordinates())
    return MultiLineString([path.coordinates() for path in geometry.paths])


def _iter_lines(geom: Optional[BaseGeometry]) -> Iterator[LineString]:
    if geom is None or geom.is_empty:
        return
    if geom.geom_type == "LineString":
        yield geom
    elif geom.geom_type in ("MultiLineString", "GeometryCollection"):
        for part in geom.geoms:
            yield from _iter_lines(part)


def from_shape(geom: Optional[BaseGeometry]) -> Optional[MultiPath]:
    """Collect the linear parts of ``geom`` into a MultiPath (None when there are none)."""

    paths = []
    for line in _iter_lines(geom):
        coords = list(line.coords)
        if len(coords) < 2:
            continue
        paths.append(Path(tuple(Point(coord[1], coord[0]) for coord in coords)))
    return MultiPath(tuple(paths)) if paths else None


@lru_cache(maxsize=256)
def _local_projection(lat_0: float, lng_0: float) -> Transformer:
    """Azimuthal equidistant projection centred near the geometries being compared."""

    crs = CRS.from_dict({"proj": "aeqd", "lat_0": lat_0, "lon_0": lng_0, "datum": "WGS84", "units": "m"})
    return Transformer.from_crs("EPSG:4326", crs, always_xy=True)


def _bounds_apart(a, b, lat_margin: float, lng_margin: float) -> bool:
    a_min_lng, a_min_lat, a_max_lng, a_max_lat = a
    b_min_lng, b_min_lat, b_max_lng, b_max_lat = b
    return (
        a_min_lat - b_max_lat > lat_margin
        or b_min_lat - a_max_lat > lat_margin
        or a_min_lng - b_max_lng > lng_margin
        or b_min_lng - a_max_lng > lng_margin
    )


class ShapelyBackend(GeometryBackend):
    name = "shapely"

    def distance_within(self, a: MultiPath, b: MultiPath, meters: float) -> bool:
        a_bounds, b_bounds = a.bounds, b.bounds
        max_abs_lat = max(abs(a_bounds[1]), abs(a_bounds[3]), abs(b_bounds[1]), abs(b_bounds[3]))
        lat_margin = 2 * meters_to_degrees(meters)
        lng_margin = lat_margin / max(math.cos(math.radians(max_abs_lat)), 0.01)
        if _bounds_apart(a_bounds, b_bounds, lat_margin, lng_margin):
            return False

        center_lat = (min(a_bounds[1], b_bounds[1]) + max(a_bounds[3], b_bounds[3])) / 2
        center_lng = (min(a_bounds[0], b_bounds[0]) + max(a_bounds[2], b_bounds[2])) / 2
        transformer = _local_projection(round(center_lat, 2), round(center_lng, 2))
        projected_a = shapely_transform(transformer.transform, to_shape(a))
        projected_b = shapely_transform(transformer.transform, to_shape(b))
        return projected_a.distance(projected_b) <= meters

    def intersection(self, a: MultiPath, b: MultiPath) -> Optional[MultiPath]:
        return from_shape(to_shape(a).intersection(to_shape(b)))

    def length(self, geometry: Optional[MultiPath]) -> float:
        if geometry is None:
            return 0.0
        return geometry.length_m

    def snap_to_grid(self, geometry: MultiPath, size: float) -> Optional[MultiPath]:
        return from_shape(shapely.set_precision(to_shape(geometry), size))
