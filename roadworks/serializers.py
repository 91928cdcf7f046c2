"""Serializers for the road assignment REST API."""

from rest_framework import serializers

from . import models
from .exceptions import GeometryParseError
from .geometry import normalize
from .services.assignments import AssignmentRequest


class WardSerializer(serializers.ModelSerializer):
    class Meta:
        model = models.Ward
        fields = ["id", "name", "number", "description"]


class ContractorSerializer(serializers.ModelSerializer):
    class Meta:
        model = models.Contractor
        fields = ["id", "name", "email", "phone", "is_active"]


class AssignmentSerializer(serializers.ModelSerializer):
    road_segment_name = serializers.CharField(source="road_segment.name", read_only=True)
    contractor_name = serializers.CharField(source="contractor.name", read_only=True)
    project_name = serializers.CharField(source="project.name", read_only=True)
    length_meters = serializers.DecimalField(
        source="road_segment.length_meters", max_digits=12, decimal_places=2, read_only=True
    )
    geometry = serializers.SerializerMethodField()

    class Meta:
        model = models.Assignment
        fields = [
            "id",
            "road_segment",
            "road_segment_name",
            "contractor",
            "contractor_name",
            "project",
            "project_name",
            "start_date",
            "end_date",
            "status",
            "notes",
            "length_meters",
            "geometry",
            "created_at",
        ]
        read_only_fields = fields

    def get_geometry(self, obj):
        try:
            return obj.road_segment.multipath.to_geojson()
        except GeometryParseError:
            return None


class SnapRequestSerializer(serializers.Serializer):
    path = serializers.JSONField()


class ConflictCheckSerializer(serializers.Serializer):
    geometry = serializers.JSONField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    exclude_assignment_id = serializers.IntegerField(required=False, allow_null=True)

    def validate_geometry(self, value):
        try:
            return normalize(value)
        except GeometryParseError as exc:
            raise serializers.ValidationError(str(exc))

    def validate(self, attrs):
        if attrs["start_date"] > attrs["end_date"]:
            raise serializers.ValidationError({"end_date": "End date cannot be before the start date."})
        return attrs


class AssignmentCreateSerializer(serializers.Serializer):
    """Type coercion only; presence is checked by the coordinator so it can report every missing field."""

    project_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=200)
    ward_id = serializers.IntegerField(required=False, allow_null=True)
    budget = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
    project_type = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=50)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    expected_completion = serializers.DateField(required=False, allow_null=True)
    road_segment_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=200)
    geometry = serializers.JSONField(required=False, allow_null=True)
    contractor_id = serializers.IntegerField(required=False, allow_null=True)
    start_date = serializers.DateField(required=False, allow_null=True)
    end_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def to_request(self) -> AssignmentRequest:
        data = dict(self.validated_data)
        data["description"] = data.get("description") or ""
        data["notes"] = data.get("notes") or ""
        return AssignmentRequest(**data)
