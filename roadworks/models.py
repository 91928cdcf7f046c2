"""Persistence models for projects, road segments and contractor assignments.

Geometry is stored as canonical WKT text (``LINESTRING``/``MULTILINESTRING``,
longitude first, SRID 4326) so the same schema works on PostGIS and on the
lightweight SQLite setup.
"""

from __future__ import annotations

from datetime import date

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from .geometry import MultiPath, normalize


class Ward(models.Model):
    """Municipal ward a project belongs to."""

    DEFAULT_NUMBER = 1
    DEFAULT_NAME = "Default Ward"

    name = models.CharField(max_length=150)
    number = models.PositiveIntegerField(unique=True)
    description = models.TextField(blank=True)

    class Meta:
        verbose_name = "Ward"
        verbose_name_plural = "Wards"
        ordering = ["number"]

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return f"{self.name} ({self.number})"


class Contractor(models.Model):
    name = models.CharField(max_length=150)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Contractor"
        verbose_name_plural = "Contractors"
        ordering = ["name"]

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return self.name


class Project(models.Model):
    """A tendered road project. Created together with its first segment."""

    STATUS_CHOICES = [
        ("planning", "Planning"),
        ("in_progress", "In progress"),
        ("completed", "Completed"),
        ("on_hold", "On hold"),
    ]

    name = models.CharField(max_length=200)
    tender_id = models.CharField(max_length=40, unique=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="planning")
    type = models.CharField(max_length=50, help_text="Project type, e.g. construction or maintenance")
    description = models.TextField(blank=True)
    budget = models.DecimalField(max_digits=14, decimal_places=2)
    ward = models.ForeignKey(Ward, on_delete=models.PROTECT, related_name="projects")
    start_date = models.DateField(null=True, blank=True)
    expected_completion = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Project"
        verbose_name_plural = "Projects"
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return f"{self.tender_id}: {self.name}"


class RoadSegment(models.Model):
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name="road_segments")
    name = models.CharField(max_length=200)
    geometry = models.TextField(help_text="WKT LINESTRING/MULTILINESTRING, lng lat order, SRID 4326")
    start_lat = models.DecimalField(max_digits=10, decimal_places=7)
    start_lng = models.DecimalField(max_digits=10, decimal_places=7)
    end_lat = models.DecimalField(max_digits=10, decimal_places=7)
    end_lng = models.DecimalField(max_digits=10, decimal_places=7)
    length_meters = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Road segment"
        verbose_name_plural = "Road segments"

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return self.name

    @property
    def multipath(self) -> MultiPath:
        return normalize(self.geometry)

    def clean(self):
        if self.pk is None:
            return
        stored = RoadSegment.objects.filter(pk=self.pk).values_list("geometry", flat=True).first()
        if stored is not None and stored != self.geometry and self.assignments.exists():
            raise ValidationError(
                {"geometry": "Geometry cannot change once the segment is referenced by an assignment."}
            )

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)


class AssignmentQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=Assignment.STATUS_ACTIVE)

    def overlapping(self, start: date, end: date):
        """Assignments whose inclusive date range intersects ``[start, end]``."""

        return self.filter(start_date__lte=end, end_date__gte=start)

    def in_force_on(self, day: date):
        return self.active().filter(start_date__lte=day, end_date__gte=day)


class Assignment(models.Model):
    """Binds a contractor to a road segment for an inclusive date range."""

    STATUS_ACTIVE = "active"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    road_segment = models.ForeignKey(RoadSegment, on_delete=models.PROTECT, related_name="assignments")
    contractor = models.ForeignKey(Contractor, on_delete=models.PROTECT, related_name="assignments")
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name="assignments")
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AssignmentQuerySet.as_manager()

    class Meta:
        verbose_name = "Assignment"
        verbose_name_plural = "Assignments"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_date__gte=F("start_date")),
                name="assignment_end_not_before_start",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return f"{self.contractor} on {self.road_segment} ({self.start_date} to {self.end_date})"

    def clean(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({"end_date": "End date cannot be before the start date."})
