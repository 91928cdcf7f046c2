"""Distance helpers shared by the normalizer, snapper and geometry backends."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

# Mean Earth radius used for all geodesic distances (m)
EARTH_RADIUS_M = 6371000.0

# Rough length of one degree of latitude (m); used only for coarse bounding
# box margins, never for reported distances.
METERS_PER_DEGREE = 111320.0


def haversine_m(start, end) -> float:
    """Return the great-circle distance in metres between two points.

    Points can be anything exposing ``lat`` and ``lng`` attributes.
    """

    lat1 = math.radians(float(start.lat))
    lat2 = math.radians(float(end.lat))
    dlat = lat2 - lat1
    dlng = math.radians(float(end.lng) - float(start.lng))

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def path_length_m(points: Sequence) -> float:
    """Sum the haversine distances between consecutive points."""

    if len(points) < 2:
        return 0.0

    total = 0.0
    for start, end in zip(points[:-1], points[1:]):
        total += haversine_m(start, end)
    return total


def paths_length_m(paths: Iterable[Sequence]) -> float:
    return sum(path_length_m(points) for points in paths)


def meters_to_degrees(meters: float) -> float:
    """Convert a distance to a conservative latitude-degree margin."""

    return float(meters) / METERS_PER_DEGREE
