"""REST API views for road snapping, conflict checks and assignments."""

from __future__ import annotations

import logging

from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view
from rest_framework.request import Request
from rest_framework.response import Response

from . import models, serializers
from .exceptions import (
    AssignmentValidationError,
    ConflictError,
    ExternalServiceError,
    GeometryParseError,
    TransactionError,
)
from .services import assignments, conflicts, snapping

logger = logging.getLogger(__name__)


class WardViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = models.Ward.objects.all()
    serializer_class = serializers.WardSerializer


class ContractorViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = models.Contractor.objects.all()
    serializer_class = serializers.ContractorSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.request.query_params.get("active") in ("1", "true", "yes"):
            queryset = queryset.filter(is_active=True)
        return queryset


class AssignmentViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = models.Assignment.objects.select_related("road_segment", "contractor", "project").order_by(
        "-created_at", "-id"
    )
    serializer_class = serializers.AssignmentSerializer

    def create(self, request: Request, *args, **kwargs) -> Response:
        """Create the project, road segment and assignment in one transaction."""

        serializer = serializers.AssignmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = assignments.create_assignment(serializer.to_request())
        except GeometryParseError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except AssignmentValidationError as exc:
            return Response({"detail": str(exc), "details": exc.details}, status=status.HTTP_400_BAD_REQUEST)
        except ConflictError as exc:
            return Response(
                {"detail": str(exc), "conflicts": [conflict.as_dict() for conflict in exc.conflicts]},
                status=status.HTTP_409_CONFLICT,
            )
        except TransactionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response(result.as_dict(), status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"])
    def active(self, request: Request) -> Response:
        """Assignments in force today."""

        queryset = self.get_queryset().in_force_on(timezone.localdate())
        serializer = self.get_serializer(queryset, many=True)
        return Response(serializer.data)


@api_view(["POST"])
def snap_road(request: Request) -> Response:
    """Snap a freehand trace to the road network."""

    serializer = serializers.SnapRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = snapping.snap_path(serializer.validated_data["path"])
    except GeometryParseError as exc:
        return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
    except ExternalServiceError as exc:
        logger.warning("Road snapping failed: %s", exc)
        return Response({"detail": str(exc)}, status=status.HTTP_502_BAD_GATEWAY)

    return Response(result.as_dict())


@api_view(["POST"])
def check_conflicts(request: Request) -> Response:
    """Report active assignments that overlap the candidate in space and time."""

    serializer = serializers.ConflictCheckSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    found = conflicts.find_conflicts(
        data["geometry"],
        conflicts.DateRange(data["start_date"], data["end_date"]),
        data.get("exclude_assignment_id"),
    )
    return Response(
        {
            "has_conflicts": bool(found),
            "conflicts": [conflict.as_dict() for conflict in found],
        }
    )
