from . import assignments, conflicts, snapping
from .assignments import AssignmentCoordinator, AssignmentRequest, AssignmentResult, create_assignment
from .conflicts import Conflict, ConflictDetector, DateRange, find_conflicts
from .snapping import RoadSnapper, SnappedResult, snap_path

__all__ = [
    "assignments",
    "conflicts",
    "snapping",
    "AssignmentCoordinator",
    "AssignmentRequest",
    "AssignmentResult",
    "create_assignment",
    "Conflict",
    "ConflictDetector",
    "DateRange",
    "find_conflicts",
    "RoadSnapper",
    "SnappedResult",
    "snap_path",
]
