"""Error taxonomy shared by the assignment engine services and API views."""

from __future__ import annotations

from typing import Dict, List, Optional


class RoadworksError(Exception):
    """Base class for every error raised by the assignment engine."""


class GeometryParseError(RoadworksError, ValueError):
    """Raised when raw geometry input cannot be turned into a MultiPath."""


class AssignmentValidationError(RoadworksError):
    """Raised when an assignment request is missing or has invalid fields."""

    def __init__(self, message: str, details: Optional[Dict[str, object]] = None):
        super().__init__(message)
        self.details = details or {}


class ExternalServiceError(RoadworksError, RuntimeError):
    """Raised when the snapping service cannot produce a usable result."""


class TransportError(ExternalServiceError):
    """A single call to an external service failed and may be retried."""


class SnapConfigurationError(ExternalServiceError):
    """The credentials needed to reach the snapping service are missing or malformed."""


class RetryCancelled(ExternalServiceError):
    """The caller's deadline or cancel signal stopped a retry loop."""


class ConflictError(RoadworksError):
    """Raised at commit time when the candidate overlaps active assignments."""

    def __init__(self, conflicts: List, message: str = "Assignment overlaps with existing active assignments"):
        super().__init__(message)
        self.conflicts = list(conflicts)


class TransactionError(RoadworksError):
    """Raised when the atomic project/segment/assignment insert fails."""
