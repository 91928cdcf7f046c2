"""Create a project, its road segment and the contractor assignment as one unit of work.

The conflict check is repeated inside the same transaction as the inserts and
under the spatial bucket locks, so a clean pre-check from an earlier request
is never trusted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
import logging
import time
from typing import Any, Dict, Optional, Tuple
import uuid

from django.db import DEFAULT_DB_ALIAS, DatabaseError, transaction

from roadworks import models
from roadworks.config import EngineSettings, get_engine_settings
from roadworks.exceptions import AssignmentValidationError, ConflictError, TransactionError
from roadworks.geometry import MultiPath, normalize

from .conflicts import ConflictDetector, DateRange
from .locking import acquire_advisory_locks, bucket_keys, hold_local_buckets

PROJECT_FIELDS = ("project_name", "ward_id", "budget", "project_type")
ASSIGNMENT_FIELDS = ("road_segment_name", "geometry", "contractor_id", "start_date", "end_date")

logger = logging.getLogger(__name__)


@dataclass
class AssignmentRequest:
    project_name: Optional[str] = None
    ward_id: Optional[int] = None
    budget: Optional[Decimal] = None
    project_type: Optional[str] = None
    road_segment_name: Optional[str] = None
    geometry: Any = None
    contractor_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    description: str = ""
    expected_completion: Optional[date] = None
    notes: str = ""

    def missing_fields(self) -> Dict[str, bool]:
        missing = {}
        for name in PROJECT_FIELDS + ASSIGNMENT_FIELDS:
            value = getattr(self, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing[name] = True
            elif isinstance(value, (list, tuple, dict)) and not value:
                missing[name] = True
        return missing


@dataclass
class AssignmentResult:
    project_id: int
    segment_id: int
    assignment_id: int

    def as_dict(self) -> Dict[str, int]:
        return {
            "project_id": self.project_id,
            "segment_id": self.segment_id,
            "assignment_id": self.assignment_id,
        }


def _tender_id() -> str:
    return f"TND-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6].upper()}"


def _decimal(value: float, places: int) -> Decimal:
    return Decimal(str(round(float(value), places)))


class AssignmentCoordinator:
    def __init__(
        self,
        detector: Optional[ConflictDetector] = None,
        engine: Optional[EngineSettings] = None,
        using: str = DEFAULT_DB_ALIAS,
    ):
        self.engine = engine or get_engine_settings()
        self.using = using
        self.detector = detector or ConflictDetector(engine=self.engine, using=using)

    def validate(self, request: AssignmentRequest) -> Tuple[MultiPath, DateRange, models.Contractor]:
        missing = request.missing_fields()
        if missing:
            raise AssignmentValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details=missing,
            )

        if request.start_date > request.end_date:
            raise AssignmentValidationError(
                "Start date must not be after end date.",
                details={"end_date": "End date cannot be before the start date."},
            )

        contractor = models.Contractor.objects.using(self.using).filter(pk=request.contractor_id).first()
        if contractor is None or not contractor.is_active:
            raise AssignmentValidationError(
                "Unknown or inactive contractor.",
                details={"contractor_id": "Select an active contractor."},
            )

        geometry = normalize(request.geometry)
        return geometry, DateRange(request.start_date, request.end_date), contractor

    def _resolve_ward(self, ward_id: Optional[int]) -> models.Ward:
        ward = models.Ward.objects.using(self.using).filter(pk=ward_id).first()
        if ward is not None:
            return ward
        ward, created = models.Ward.objects.using(self.using).get_or_create(
            number=models.Ward.DEFAULT_NUMBER,
            defaults={"name": models.Ward.DEFAULT_NAME, "description": "Default ward for new projects"},
        )
        if created:
            logger.info("Ward %s not found; created default ward %s", ward_id, ward.pk)
        return ward

    def create_assignment(self, request: AssignmentRequest) -> AssignmentResult:
        geometry, date_range, contractor = self.validate(request)
        keys = bucket_keys(geometry, self.engine)

        try:
            with hold_local_buckets(keys):
                with transaction.atomic(using=self.using):
                    acquire_advisory_locks(keys, using=self.using)

                    conflicts = self.detector.find_conflicts(geometry, date_range)
                    if conflicts:
                        raise ConflictError(conflicts)

                    ward = self._resolve_ward(request.ward_id)
                    project = models.Project.objects.using(self.using).create(
                        name=request.project_name,
                        tender_id=_tender_id(),
                        type=request.project_type,
                        description=request.description or "",
                        budget=request.budget,
                        ward=ward,
                        start_date=request.start_date,
                        expected_completion=request.expected_completion,
                    )
                    segment = models.RoadSegment.objects.using(self.using).create(
                        project=project,
                        name=request.road_segment_name,
                        geometry=geometry.to_wkt(),
                        start_lat=_decimal(geometry.start_point.lat, 7),
                        start_lng=_decimal(geometry.start_point.lng, 7),
                        end_lat=_decimal(geometry.end_point.lat, 7),
                        end_lng=_decimal(geometry.end_point.lng, 7),
                        length_meters=_decimal(self.detector.backend.length(geometry), 2),
                    )
                    assignment = models.Assignment.objects.using(self.using).create(
                        road_segment=segment,
                        contractor=contractor,
                        project=project,
                        start_date=request.start_date,
                        end_date=request.end_date,
                        notes=request.notes or "",
                        status=models.Assignment.STATUS_ACTIVE,
                    )
        except ConflictError as exc:
            logger.info(
                "Rejected assignment '%s': overlaps %s active assignment(s)",
                request.road_segment_name,
                len(exc.conflicts),
            )
            raise
        except DatabaseError as exc:
            logger.error("Assignment transaction rolled back: %s", exc, exc_info=True)
            raise TransactionError("Failed to create assignment.") from exc

        logger.info(
            "Created project %s, segment %s and assignment %s for contractor %s",
            project.pk,
            segment.pk,
            assignment.pk,
            contractor.pk,
        )
        return AssignmentResult(project.pk, segment.pk, assignment.pk)


def create_assignment(request: AssignmentRequest) -> AssignmentResult:
    return AssignmentCoordinator().create_assignment(request)
