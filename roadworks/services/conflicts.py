"""Detect spatio-temporal overlap between a candidate geometry and active assignments.

The check is read-only. It runs once as a pre-check before the user commits
and again inside the assignment transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
from typing import Any, Dict, List, Optional

from django.db import DEFAULT_DB_ALIAS

from roadworks import models
from roadworks.config import EngineSettings, get_engine_settings
from roadworks.geometry import MultiPath
from roadworks.gis import GeometryBackend, get_geometry_backend

MAINTENANCE_WORK = "Maintenance Work"
CONSTRUCTION_PROJECT = "Construction Project"
ROAD_PROJECT = "Road Project"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateRange:
    """Inclusive ``[start, end]`` range of calendar days."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError("Start date must not be after end date.")

    def overlaps(self, other: "DateRange") -> bool:
        return self.start <= other.end and other.start <= self.end


@dataclass
class Conflict:
    assignment_id: int
    start_date: date
    end_date: date
    road_segment_name: str
    contractor_name: str
    geometry: MultiPath
    overlap_length_meters: float
    total_existing_length_meters: float
    new_segment_length_meters: float
    overlap_percentage: int
    project_type: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.assignment_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "road_segment_name": self.road_segment_name,
            "contractor_name": self.contractor_name,
            "geometry": self.geometry.to_geojson(),
            "overlap_length_meters": round(self.overlap_length_meters),
            "total_segment_length_meters": round(self.total_existing_length_meters),
            "new_segment_length_meters": round(self.new_segment_length_meters),
            "overlap_percentage": self.overlap_percentage,
            "project_type": self.project_type,
        }


def classify_project_type(segment_name: str) -> str:
    name = (segment_name or "").lower()
    if "maintenance" in name:
        return MAINTENANCE_WORK
    if "construction" in name:
        return CONSTRUCTION_PROJECT
    return ROAD_PROJECT


def overlap_percentage(overlap_m: float, total_m: float) -> int:
    if total_m <= 0:
        return 0
    return max(0, min(100, round(overlap_m / total_m * 100)))


class ConflictDetector:
    def __init__(
        self,
        backend: Optional[GeometryBackend] = None,
        engine: Optional[EngineSettings] = None,
        using: str = DEFAULT_DB_ALIAS,
    ):
        self.engine = engine or get_engine_settings()
        self.using = using
        self.backend = backend or get_geometry_backend(self.engine.geometry_backend, using=using)

    def candidate_assignments(self, date_range: DateRange, exclude_assignment_id: Optional[int] = None):
        queryset = (
            models.Assignment.objects.db_manager(self.using)
            .active()
            .overlapping(date_range.start, date_range.end)
            .select_related("road_segment", "contractor")
            .order_by("id")
        )
        if exclude_assignment_id is not None:
            queryset = queryset.exclude(pk=exclude_assignment_id)
        return queryset

    def find_conflicts(
        self,
        candidate: MultiPath,
        date_range: DateRange,
        exclude_assignment_id: Optional[int] = None,
    ) -> List[Conflict]:
        backend = self.backend
        threshold = self.engine.proximity_threshold_m
        snapped = backend.snap_to_grid(candidate, self.engine.grid_size_degrees)
        new_length = backend.length(candidate)

        conflicts: List[Conflict] = []
        assignments = list(self.candidate_assignments(date_range, exclude_assignment_id))
        for assignment in assignments:
            if not date_range.overlaps(DateRange(assignment.start_date, assignment.end_date)):
                continue
            existing = assignment.road_segment.multipath
            near = backend.distance_within(existing, candidate, threshold) or (
                snapped is not None and backend.distance_within(existing, snapped, threshold)
            )
            if not near:
                continue

            overlap = backend.length(backend.intersection(existing, candidate))
            if snapped is not None:
                overlap = max(overlap, backend.length(backend.intersection(existing, snapped)))
            total = backend.length(existing)

            conflicts.append(
                Conflict(
                    assignment_id=assignment.id,
                    start_date=assignment.start_date,
                    end_date=assignment.end_date,
                    road_segment_name=assignment.road_segment.name,
                    contractor_name=assignment.contractor.name,
                    geometry=existing,
                    overlap_length_meters=overlap,
                    total_existing_length_meters=total,
                    new_segment_length_meters=new_length,
                    overlap_percentage=overlap_percentage(overlap, total),
                    project_type=classify_project_type(assignment.road_segment.name),
                )
            )

        logger.debug(
            "Checked %s time-overlapping assignment(s) with the %s backend: %s conflict(s)",
            len(assignments),
            backend.name,
            len(conflicts),
        )
        return conflicts


def find_conflicts(
    candidate: MultiPath,
    date_range: DateRange,
    exclude_assignment_id: Optional[int] = None,
) -> List[Conflict]:
    return ConflictDetector().find_conflicts(candidate, date_range, exclude_assignment_id)
