"""Spatial capabilities the conflict detector depends on."""

from __future__ import annotations

import abc
from typing import Optional

from roadworks.geometry import MultiPath


class GeometryBackend(abc.ABC):
    """Spatial operations over canonical MultiPaths.

    Implementations may delegate to a spatial database or compute in process;
    callers only ever see MultiPaths and metres.
    """

    name = ""

    @abc.abstractmethod
    def distance_within(self, a: MultiPath, b: MultiPath, meters: float) -> bool:
        """Return True when the geodesic distance between ``a`` and ``b`` is at most ``meters``."""

    @abc.abstractmethod
    def intersection(self, a: MultiPath, b: MultiPath) -> Optional[MultiPath]:
        """Return the linear part of ``a ∩ b``, or None when they share no line."""

    @abc.abstractmethod
    def length(self, geometry: Optional[MultiPath]) -> float:
        """Return the geodesic length of ``geometry`` in metres (0 for None)."""

    @abc.abstractmethod
    def snap_to_grid(self, geometry: MultiPath, size: float) -> Optional[MultiPath]:
        """Round every vertex to a ``size`` degree grid, dropping collapsed paths."""
