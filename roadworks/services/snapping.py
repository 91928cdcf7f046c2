"""Snap freehand traces onto the road network with the Google Roads API.

The snapper never fails a request because the service is flaky: a chunk that
cannot be snapped keeps its own points and is reported in
``SnappedResult.degraded_chunks``. Only a missing/malformed API key or a
degenerate stitched path raise :class:`ExternalServiceError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Any, Dict, List, Optional, Sequence
from urllib import parse

from django.conf import settings

from roadworks.config import EngineSettings, get_engine_settings
from roadworks.exceptions import (
    ExternalServiceError,
    GeometryParseError,
    SnapConfigurationError,
    TransportError,
)
from roadworks.geometry import Path, Point, normalize_path
from roadworks.utils import haversine_m, path_length_m

from .http import RetryingClient, RetryPolicy, request_json

ROADS_API_URL = "https://roads.googleapis.com/v1/snapToRoads"
API_KEY_PREFIX = "AIza"
DEFAULT_REFERER = "http://localhost:8000"

logger = logging.getLogger(__name__)


@dataclass
class SnappedPoint:
    point: Point
    original_index: Optional[int] = None
    place_id: Optional[str] = None


@dataclass
class SnappedResult:
    snapped_path: Path
    start_point: Point
    end_point: Point
    length_meters: float
    original_path: Path
    degraded_chunks: List[int] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "snapped_path": self.snapped_path.as_lat_lng(),
            "start_point": self.start_point.as_dict(),
            "end_point": self.end_point.as_dict(),
            "length": self.length_meters,
            "original_path": self.original_path.as_lat_lng(),
            "degraded_chunks": list(self.degraded_chunks),
        }


def get_api_key() -> str:
    api_key = getattr(settings, "GOOGLE_MAPS_API_KEY", None)
    if not api_key:
        raise SnapConfigurationError("GOOGLE_MAPS_API_KEY environment variable is not configured.")
    if not str(api_key).startswith(API_KEY_PREFIX):
        raise SnapConfigurationError("GOOGLE_MAPS_API_KEY does not look like a valid Google API key.")
    return str(api_key)


def parse_snapped_points(payload: Any) -> List[SnappedPoint]:
    """Read ``snappedPoints`` from a Roads API response body."""

    if not isinstance(payload, dict):
        raise TransportError("Unexpected snapping service response.")
    if payload.get("error"):
        details = payload["error"]
        message = details.get("message") if isinstance(details, dict) else str(details)
        raise TransportError(message or "Unknown snapping service error")

    items = payload.get("snappedPoints") or []
    if not isinstance(items, list):
        raise TransportError("Snapping service returned malformed snappedPoints.")

    snapped = []
    for item in items:
        location = item.get("location") if isinstance(item, dict) else None
        if not isinstance(location, dict):
            logger.warning("Ignoring malformed snapped point %r", item)
            continue
        try:
            point = Point(location.get("latitude"), location.get("longitude"))
        except GeometryParseError:
            logger.warning("Ignoring snapped point with invalid location %r", location)
            continue
        snapped.append(SnappedPoint(point, item.get("originalIndex"), item.get("placeId")))
    return snapped


class GoogleRoadsClient:
    """One ``snapToRoads`` request per call; retries are the caller's concern."""

    def __init__(
        self,
        api_key: str,
        *,
        referer: str = DEFAULT_REFERER,
        url: str = ROADS_API_URL,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.referer = referer
        self.url = url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, engine: Optional[EngineSettings] = None) -> "GoogleRoadsClient":
        engine = engine or get_engine_settings()
        return cls(
            get_api_key(),
            referer=getattr(settings, "SNAP_REFERER", None) or DEFAULT_REFERER,
            url=getattr(settings, "ROADS_API_URL", None) or ROADS_API_URL,
            timeout=engine.snap_timeout_seconds,
        )

    def snap_points(self, points: Sequence[Point], interpolate: bool = True) -> List[SnappedPoint]:
        query = parse.urlencode(
            {
                "path": "|".join(f"{point.lat},{point.lng}" for point in points),
                "interpolate": "true" if interpolate else "false",
                "key": self.api_key,
            }
        )
        payload = request_json(f"{self.url}?{query}", headers={"Referer": self.referer}, timeout=self.timeout)
        return parse_snapped_points(payload)


def prefilter(points: Sequence[Point], min_spacing_m: float) -> List[Point]:
    """Drop interior points closer than ``min_spacing_m`` to the last kept point."""

    if len(points) <= 2:
        return list(points)

    kept = [points[0]]
    for point in points[1:-1]:
        if haversine_m(kept[-1], point) >= min_spacing_m:
            kept.append(point)
    kept.append(points[-1])
    return kept


def chunk_points(points: Sequence[Point], max_points: int) -> List[List[Point]]:
    """Split into windows of at most ``max_points`` that share one boundary point."""

    if len(points) <= max_points:
        return [list(points)]

    step = max_points - 1
    return [list(points[start : start + max_points]) for start in range(0, len(points) - 1, step)]


def stitch(accumulated: List[Point], chunk: Sequence[Point]) -> None:
    """Append ``chunk`` to ``accumulated``, skipping the shared boundary point."""

    accumulated.extend(chunk[1:] if accumulated else chunk)


class RoadSnapper:
    def __init__(
        self,
        client: Optional[GoogleRoadsClient] = None,
        retrying: Optional[RetryingClient] = None,
        engine: Optional[EngineSettings] = None,
    ):
        self.engine = engine or get_engine_settings()
        self.client = client
        self.retrying = retrying or RetryingClient(
            RetryPolicy(
                attempts=self.engine.snap_retry_attempts,
                delay_seconds=self.engine.snap_retry_delay_seconds,
            )
        )

    def snap(
        self,
        path: Path,
        *,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SnappedResult:
        client = self.client or GoogleRoadsClient.from_settings(self.engine)

        filtered = prefilter(path.points, self.engine.min_point_spacing_m)
        chunks = chunk_points(filtered, self.engine.max_chunk_points)

        stitched: List[Point] = []
        degraded: List[int] = []
        for index, chunk in enumerate(chunks):
            try:
                snapped = self.retrying.call(client.snap_points, chunk, deadline=deadline, cancel_event=cancel_event)
            except TransportError as exc:
                logger.warning(
                    "Snapping chunk %s/%s failed after retries, keeping %s unsnapped points: %s",
                    index + 1,
                    len(chunks),
                    len(chunk),
                    exc,
                )
                snapped = None
            else:
                if not snapped:
                    logger.warning("No snapped points returned for chunk %s/%s", index + 1, len(chunks))

            if snapped:
                stitch(stitched, [item.point for item in snapped])
            else:
                degraded.append(index)
                stitch(stitched, chunk)

        if len(stitched) < 2:
            raise ExternalServiceError("Failed to snap points: fewer than two points survived stitching.")

        snapped_path = Path(tuple(stitched))
        result = SnappedResult(
            snapped_path=snapped_path,
            start_point=snapped_path.start,
            end_point=snapped_path.end,
            length_meters=path_length_m(snapped_path.points),
            original_path=path,
            degraded_chunks=degraded,
        )
        logger.info(
            "Snapped %s input points (%s after filtering, %s chunks) to %s points, %.1f m, %s degraded chunk(s)",
            len(path),
            len(filtered),
            len(chunks),
            len(snapped_path),
            result.length_meters,
            len(degraded),
        )
        return result


def snap_path(raw: Any, **kwargs: Any) -> SnappedResult:
    """Normalize a raw single-path trace and snap it with the configured client."""

    return RoadSnapper().snap(normalize_path(raw), **kwargs)
