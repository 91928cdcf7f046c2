"""Canonical road geometry types and the normalizer for raw GPS traces.

Every downstream component (snapper, conflict detector, coordinator) works on
:class:`MultiPath` only. Raw wire formats are accepted here and nowhere else:

* ``[{"lat": .., "lng": ..}, ...]`` - a single path
* ``[[lng, lat], ...]`` - a single path of numeric pairs
* ``[[...], [...]]`` - several paths of either kind
* ``LINESTRING(lng lat, ...)`` / ``MULTILINESTRING((...), (...))`` WKT,
  optionally prefixed with ``SRID=4326;``
* GeoJSON ``LineString`` / ``MultiLineString`` mappings
* a JSON string encoding any of the above

Raw input is first classified into one of the ``RawGeometry`` variants and
then resolved into a MultiPath, preserving point order and path grouping.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
import json
import math
import re
from typing import Any, Dict, Iterator, List, Sequence, Tuple, Union

from .exceptions import GeometryParseError
from .utils import path_length_m

PATH_TOO_SHORT = "path too short"
INVALID_COORDINATE = "invalid coordinate"
UNSUPPORTED_GEOMETRY = "unsupported geometry"

SRID = 4326


def _coordinate(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise GeometryParseError(INVALID_COORDINATE)
    number = float(value)
    if not math.isfinite(number):
        raise GeometryParseError(INVALID_COORDINATE)
    return number


@dataclass(frozen=True)
class Point:
    """A WGS84 coordinate in degrees."""

    lat: float
    lng: float

    def __post_init__(self):
        lat = _coordinate(self.lat)
        lng = _coordinate(self.lng)
        if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
            raise GeometryParseError(INVALID_COORDINATE)
        object.__setattr__(self, "lat", lat)
        object.__setattr__(self, "lng", lng)

    def as_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    def as_lng_lat(self) -> List[float]:
        return [self.lng, self.lat]


@dataclass(frozen=True)
class Path:
    """One continuous stroke of at least two points."""

    points: Tuple[Point, ...]

    def __post_init__(self):
        points = tuple(self.points)
        if len(points) < 2:
            raise GeometryParseError(PATH_TOO_SHORT)
        object.__setattr__(self, "points", points)

    def __iter__(self) -> Iterator[Point]:
        return iter(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def __getitem__(self, index):
        return self.points[index]

    @property
    def start(self) -> Point:
        return self.points[0]

    @property
    def end(self) -> Point:
        return self.points[-1]

    @property
    def length_m(self) -> float:
        return path_length_m(self.points)

    def as_lat_lng(self) -> List[Dict[str, float]]:
        return [point.as_dict() for point in self.points]

    def coordinates(self) -> List[List[float]]:
        return [point.as_lng_lat() for point in self.points]

    def wkt_body(self) -> str:
        return ", ".join(f"{point.lng!r} {point.lat!r}" for point in self.points)


@dataclass(frozen=True)
class MultiPath:
    """One or more paths treated as a single logical piece of road."""

    paths: Tuple[Path, ...]

    def __post_init__(self):
        paths = tuple(self.paths)
        if not paths:
            raise GeometryParseError(PATH_TOO_SHORT)
        object.__setattr__(self, "paths", paths)

    @classmethod
    def from_points(cls, points: Sequence[Point]) -> "MultiPath":
        return cls((Path(tuple(points)),))

    def __iter__(self) -> Iterator[Path]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)

    @property
    def is_single(self) -> bool:
        return len(self.paths) == 1

    @property
    def start_point(self) -> Point:
        return self.paths[0].start

    @property
    def end_point(self) -> Point:
        return self.paths[-1].end

    @property
    def length_m(self) -> float:
        return sum(path.length_m for path in self.paths)

    def points(self) -> Iterator[Point]:
        for path in self.paths:
            yield from path.points

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Return ``(min_lng, min_lat, max_lng, max_lat)``."""

        lngs = [point.lng for point in self.points()]
        lats = [point.lat for point in self.points()]
        return min(lngs), min(lats), max(lngs), max(lats)

    def to_wkt(self) -> str:
        if self.is_single:
            return f"LINESTRING({self.paths[0].wkt_body()})"
        parts = ", ".join(f"({path.wkt_body()})" for path in self.paths)
        return f"MULTILINESTRING({parts})"

    def to_geojson(self) -> Dict[str, Any]:
        if self.is_single:
            return {"type": "LineString", "coordinates": self.paths[0].coordinates()}
        return {"type": "MultiLineString", "coordinates": [path.coordinates() for path in self.paths]}

    def as_lat_lng(self) -> List[List[Dict[str, float]]]:
        return [path.as_lat_lng() for path in self.paths]


# ---------------------------------------------------------------------------
# Raw geometry variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SinglePath:
    points: Sequence[Any]


@dataclass(frozen=True)
class MultiPathRaw:
    paths: Sequence[Any]


@dataclass(frozen=True)
class WktLineString:
    text: str


@dataclass(frozen=True)
class WktMultiLineString:
    text: str


RawGeometry = Union[SinglePath, MultiPathRaw, WktLineString, WktMultiLineString]

_SRID_PREFIX = re.compile(r"^\s*SRID\s*=\s*\d+\s*;", re.IGNORECASE)
_LINESTRING = re.compile(r"^\s*LINESTRING\s*(?:Z\s*)?\((?P<body>[^()]*)\)\s*$", re.IGNORECASE)
_MULTILINESTRING = re.compile(
    r"^\s*MULTILINESTRING\s*(?:Z\s*)?\((?P<body>\s*\([^()]*\)(?:\s*,\s*\([^()]*\))*\s*)\)\s*$",
    re.IGNORECASE,
)
_WKT_PART = re.compile(r"\(([^()]*)\)")


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def classify(raw: Any) -> RawGeometry:
    """Work out which wire format ``raw`` uses without parsing coordinates."""

    if isinstance(raw, str):
        text = _SRID_PREFIX.sub("", raw.strip(), count=1)
        if text.startswith(("[", "{")):
            try:
                decoded = json.loads(text)
            except json.JSONDecodeError as exc:
                raise GeometryParseError(UNSUPPORTED_GEOMETRY) from exc
            return classify(decoded)
        keyword = text.upper()
        if keyword.startswith("MULTILINESTRING"):
            return WktMultiLineString(text)
        if keyword.startswith("LINESTRING"):
            return WktLineString(text)
        raise GeometryParseError(UNSUPPORTED_GEOMETRY)

    if isinstance(raw, Mapping):
        geom_type = raw.get("type")
        if geom_type == "Feature":
            return classify(raw.get("geometry"))
        if geom_type == "LineString":
            return SinglePath(raw.get("coordinates") or [])
        if geom_type == "MultiLineString":
            return MultiPathRaw(raw.get("coordinates") or [])
        raise GeometryParseError(UNSUPPORTED_GEOMETRY)

    if _is_sequence(raw):
        if not raw:
            raise GeometryParseError(PATH_TOO_SHORT)
        first = raw[0]
        if isinstance(first, Mapping):
            return SinglePath(raw)
        if _is_sequence(first):
            if first and (isinstance(first[0], Mapping) or _is_sequence(first[0])):
                return MultiPathRaw(raw)
            return SinglePath(raw)
        raise GeometryParseError(UNSUPPORTED_GEOMETRY)

    raise GeometryParseError(UNSUPPORTED_GEOMETRY)


def _point_from_raw(item: Any) -> Point:
    if isinstance(item, Point):
        return item
    if isinstance(item, Mapping):
        if "lat" not in item or "lng" not in item:
            raise GeometryParseError(INVALID_COORDINATE)
        return Point(item["lat"], item["lng"])
    if _is_sequence(item) and len(item) in (2, 3):
        return Point(item[1], item[0])
    raise GeometryParseError(INVALID_COORDINATE)


def _path_from_raw(items: Any) -> Path:
    if not _is_sequence(items):
        raise GeometryParseError(UNSUPPORTED_GEOMETRY)
    if len(items) < 2:
        raise GeometryParseError(PATH_TOO_SHORT)
    return Path(tuple(_point_from_raw(item) for item in items))


def _wkt_number(token: str) -> float:
    try:
        return float(token)
    except ValueError as exc:
        raise GeometryParseError(INVALID_COORDINATE) from exc


def _path_from_wkt_body(body: str) -> Path:
    if not body.strip():
        raise GeometryParseError(PATH_TOO_SHORT)
    points = []
    for pair in body.split(","):
        tokens = pair.split()
        if len(tokens) not in (2, 3):
            raise GeometryParseError(INVALID_COORDINATE)
        lng, lat = _wkt_number(tokens[0]), _wkt_number(tokens[1])
        points.append(Point(lat, lng))
    return Path(tuple(points))


def resolve(raw: RawGeometry) -> MultiPath:
    """Turn a classified raw geometry into the canonical MultiPath."""

    if isinstance(raw, SinglePath):
        return MultiPath((_path_from_raw(raw.points),))

    if isinstance(raw, MultiPathRaw):
        if not _is_sequence(raw.paths) or not raw.paths:
            raise GeometryParseError(PATH_TOO_SHORT)
        return MultiPath(tuple(_path_from_raw(path) for path in raw.paths))

    if isinstance(raw, WktLineString):
        match = _LINESTRING.match(raw.text)
        if not match:
            raise GeometryParseError(UNSUPPORTED_GEOMETRY)
        return MultiPath((_path_from_wkt_body(match.group("body")),))

    if isinstance(raw, WktMultiLineString):
        match = _MULTILINESTRING.match(raw.text)
        if not match:
            raise GeometryParseError(UNSUPPORTED_GEOMETRY)
        bodies = _WKT_PART.findall(match.group("body"))
        return MultiPath(tuple(_path_from_wkt_body(body) for body in bodies))

    raise GeometryParseError(UNSUPPORTED_GEOMETRY)


def normalize(raw: Any) -> MultiPath:
    """Parse any supported geometry input into a :class:`MultiPath`.

    Already canonical input is returned unchanged, so normalizing twice is a
    no-op.
    """

    if isinstance(raw, MultiPath):
        return raw
    if isinstance(raw, Path):
        return MultiPath((raw,))
    if raw is None:
        raise GeometryParseError(UNSUPPORTED_GEOMETRY)
    return resolve(classify(raw))


def normalize_path(raw: Any) -> Path:
    """Normalize input that must describe exactly one continuous path."""

    multipath = normalize(raw)
    if not multipath.is_single:
        raise GeometryParseError("expected a single path")
    return multipath.paths[0]
