"""Shared fixtures for the road assignment tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from roadworks import models
from roadworks.geometry import normalize

# A short road in Addis Ababa running east along latitude 9.0 (about 440 m).
MAIN_ROAD = [[38.7500, 9.0000], [38.7520, 9.0000], [38.7540, 9.0000]]
# Same bearing, about 2 km further north.
FAR_ROAD = [[38.7500, 9.0180], [38.7520, 9.0180], [38.7540, 9.0180]]
# Overlaps the eastern half of MAIN_ROAD and continues beyond it.
EAST_EXTENSION = [[38.7520, 9.0000], [38.7540, 9.0000], [38.7560, 9.0000]]
# Crosses MAIN_ROAD at a right angle.
CROSS_STREET = [[38.7530, 8.9990], [38.7530, 9.0010]]


class AssignmentDataMixin:
    """Create wards, contractors and committed assignments directly through the ORM."""

    def create_ward(self, number: int = 7, name: str = "Ward 7") -> models.Ward:
        return models.Ward.objects.create(name=name, number=number)

    def create_contractor(self, name: str = "Abebe Construction", is_active: bool = True) -> models.Contractor:
        return models.Contractor.objects.create(name=name, email="info@example.com", is_active=is_active)

    def create_assignment(
        self,
        coordinates=None,
        start: date = date(2025, 1, 10),
        end: date = date(2025, 1, 20),
        segment_name: str = "Bole Road resurfacing",
        contractor: models.Contractor = None,
        status: str = models.Assignment.STATUS_ACTIVE,
    ) -> models.Assignment:
        geometry = normalize(coordinates or MAIN_ROAD)
        ward = models.Ward.objects.first() or self.create_ward()
        contractor = contractor or self.create_contractor()
        project = models.Project.objects.create(
            name=f"{segment_name} project",
            tender_id=f"TND-TEST-{models.Project.objects.count() + 1}",
            type="maintenance",
            budget=Decimal("100000.00"),
            ward=ward,
            start_date=start,
        )
        segment = models.RoadSegment.objects.create(
            project=project,
            name=segment_name,
            geometry=geometry.to_wkt(),
            start_lat=Decimal(str(geometry.start_point.lat)),
            start_lng=Decimal(str(geometry.start_point.lng)),
            end_lat=Decimal(str(geometry.end_point.lat)),
            end_lng=Decimal(str(geometry.end_point.lng)),
            length_meters=Decimal(str(round(geometry.length_m, 2))),
        )
        return models.Assignment.objects.create(
            road_segment=segment,
            contractor=contractor,
            project=project,
            start_date=start,
            end_date=end,
            status=status,
        )
