"""Serialize conflicting assignment writers by coarse spatial bucket.

A bucket is a cell of a ``lock_cell_degrees`` grid. The candidate's bounding
box is widened by the proximity threshold and the snapping grid before the
cells are computed, so any two candidates close enough to conflict share at
least one bucket and therefore cannot run their check-and-insert at the same
time.

Geometries spanning more than ``max_lock_cells`` cells take the global bucket
exclusively; every other writer holds it shared, so the two kinds still
exclude each other.
"""

from __future__ import annotations

from contextlib import contextmanager
import math
import threading
from typing import Dict, Iterator, List, Sequence

from django.db import DEFAULT_DB_ALIAS, connections

from roadworks.config import EngineSettings
from roadworks.geometry import MultiPath
from roadworks.utils import meters_to_degrees

GLOBAL_LOCK_KEY = 0x524F4144  # "ROAD"


class SharedExclusiveLock:
    """Many shared holders or one exclusive holder."""

    def __init__(self):
        self._cond = threading.Condition()
        self._shared = 0
        self._exclusive = False

    @contextmanager
    def shared(self) -> Iterator[None]:
        with self._cond:
            while self._exclusive:
                self._cond.wait()
            self._shared += 1
        try:
            yield
        finally:
            with self._cond:
                self._shared -= 1
                self._cond.notify_all()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._cond:
            while self._exclusive or self._shared:
                self._cond.wait()
            self._exclusive = True
        try:
            yield
        finally:
            with self._cond:
                self._exclusive = False
                self._cond.notify_all()


_global_lock = SharedExclusiveLock()
_registry_guard = threading.Lock()
_cell_locks: Dict[int, threading.Lock] = {}


def _signed_64(value: int) -> int:
    value &= 0xFFFFFFFFFFFFFFFF
    return value - (1 << 64) if value >= (1 << 63) else value


def _cell_key(ix: int, iy: int) -> int:
    return _signed_64(((ix & 0xFFFFFFFF) << 32) | (iy & 0xFFFFFFFF))


def bucket_keys(geometry: MultiPath, engine: EngineSettings) -> List[int]:
    """Return the sorted lock keys covering ``geometry``."""

    min_lng, min_lat, max_lng, max_lat = geometry.bounds
    lat_margin = meters_to_degrees(engine.proximity_threshold_m) * 2 + engine.grid_size_degrees
    cos_lat = max(math.cos(math.radians(max(abs(min_lat), abs(max_lat)))), 0.01)
    lng_margin = lat_margin / cos_lat

    cell = engine.lock_cell_degrees
    x0 = math.floor((min_lng - lng_margin) / cell)
    x1 = math.floor((max_lng + lng_margin) / cell)
    y0 = math.floor((min_lat - lat_margin) / cell)
    y1 = math.floor((max_lat + lat_margin) / cell)

    if (x1 - x0 + 1) * (y1 - y0 + 1) > engine.max_lock_cells:
        return [GLOBAL_LOCK_KEY]
    return sorted({_cell_key(ix, iy) for ix in range(x0, x1 + 1) for iy in range(y0, y1 + 1)})


def _is_global(keys: Sequence[int]) -> bool:
    return list(keys) == [GLOBAL_LOCK_KEY]


def _cell_lock(key: int) -> threading.Lock:
    with _registry_guard:
        lock = _cell_locks.get(key)
        if lock is None:
            lock = _cell_locks[key] = threading.Lock()
        return lock


@contextmanager
def hold_local_buckets(keys: Sequence[int]) -> Iterator[None]:
    """Hold in-process locks for ``keys`` (cells in ascending key order)."""

    if _is_global(keys):
        with _global_lock.exclusive():
            yield
        return

    with _global_lock.shared():
        acquired = []
        try:
            for key in sorted(keys):
                lock = _cell_lock(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def acquire_advisory_locks(keys: Sequence[int], using: str = DEFAULT_DB_ALIAS) -> bool:
    """Take transaction-scoped PostgreSQL advisory locks for ``keys``.

    Must be called inside ``transaction.atomic()``; PostgreSQL releases the
    locks at commit or rollback. Returns False on other databases.
    """

    connection = connections[using]
    if connection.vendor != "postgresql":
        return False
    with connection.cursor() as cursor:
        if _is_global(keys):
            cursor.execute("SELECT pg_advisory_xact_lock(%s)", [GLOBAL_LOCK_KEY])
            return True
        cursor.execute("SELECT pg_advisory_xact_lock_shared(%s)", [GLOBAL_LOCK_KEY])
        for key in sorted(keys):
            cursor.execute("SELECT pg_advisory_xact_lock(%s)", [key])
    return True
