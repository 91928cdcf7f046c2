"""Tests for the spatial bucket locks that serialize assignment writers."""

from __future__ import annotations

import threading
from unittest import mock

from django.test import SimpleTestCase

from roadworks.config import EngineSettings
from roadworks.geometry import normalize
from roadworks.services import locking

from .helpers import FAR_ROAD, MAIN_ROAD


class BucketKeyTests(SimpleTestCase):
    def setUp(self):
        self.engine = EngineSettings()

    def test_keys_are_sorted_signed_64_bit(self):
        keys = locking.bucket_keys(normalize(MAIN_ROAD), self.engine)
        self.assertEqual(keys, sorted(keys))
        for key in keys:
            self.assertTrue(-(2**63) <= key < 2**63)

    def test_same_geometry_same_keys(self):
        self.assertEqual(
            locking.bucket_keys(normalize(MAIN_ROAD), self.engine),
            locking.bucket_keys(normalize(list(MAIN_ROAD)), self.engine),
        )

    def test_near_geometries_across_a_cell_edge_share_a_bucket(self):
        # 38.76 is a cell edge for the default 0.01 degree grid.
        west = normalize([[38.7550, 9.0050], [38.7599995, 9.0050]])
        east = normalize([[38.7600005, 9.0050], [38.7650, 9.0050]])

        shared = set(locking.bucket_keys(west, self.engine)) & set(locking.bucket_keys(east, self.engine))

        self.assertTrue(shared)

    def test_distant_geometries_do_not_share_buckets(self):
        near = set(locking.bucket_keys(normalize(MAIN_ROAD), self.engine))
        far = set(locking.bucket_keys(normalize([[39.75, 10.0], [39.76, 10.0]]), self.engine))
        self.assertFalse(near & far)

    def test_large_geometry_uses_global_bucket(self):
        highway = normalize([[38.0, 9.0], [39.0, 9.0]])
        self.assertEqual(locking.bucket_keys(highway, self.engine), [locking.GLOBAL_LOCK_KEY])

    def test_negative_coordinates(self):
        keys = locking.bucket_keys(normalize([[-70.65, -33.45], [-70.64, -33.44]]), self.engine)
        self.assertTrue(keys)
        self.assertNotIn(locking.GLOBAL_LOCK_KEY, keys)


class LocalBucketLockTests(SimpleTestCase):
    engine = EngineSettings()

    def assert_blocks(self, first_keys, second_keys):
        entered = threading.Event()
        release = threading.Event()
        order = []

        def first():
            with locking.hold_local_buckets(first_keys):
                entered.set()
                release.wait(5)
                order.append("first")

        def second():
            with locking.hold_local_buckets(second_keys):
                order.append("second")

        holder = threading.Thread(target=first)
        holder.start()
        self.assertTrue(entered.wait(5))
        waiter = threading.Thread(target=second)
        waiter.start()
        waiter.join(0.2)
        self.assertTrue(waiter.is_alive())

        release.set()
        holder.join(5)
        waiter.join(5)
        self.assertEqual(order, ["first", "second"])

    def test_overlapping_buckets_are_exclusive(self):
        keys = locking.bucket_keys(normalize(MAIN_ROAD), self.engine)
        self.assert_blocks(keys, keys)

    def test_global_bucket_excludes_cell_buckets(self):
        keys = locking.bucket_keys(normalize(MAIN_ROAD), self.engine)
        self.assert_blocks([locking.GLOBAL_LOCK_KEY], keys)
        self.assert_blocks(keys, [locking.GLOBAL_LOCK_KEY])

    def test_disjoint_buckets_run_concurrently(self):
        near = locking.bucket_keys(normalize(MAIN_ROAD), self.engine)
        far = locking.bucket_keys(normalize([[39.75, 10.0], [39.76, 10.0]]), self.engine)
        done = threading.Event()

        def other():
            with locking.hold_local_buckets(far):
                done.set()

        with locking.hold_local_buckets(near):
            thread = threading.Thread(target=other)
            thread.start()
            self.assertTrue(done.wait(5))
        thread.join(5)

    def test_locks_are_released_on_error(self):
        keys = locking.bucket_keys(normalize(FAR_ROAD), self.engine)
        with self.assertRaises(RuntimeError):
            with locking.hold_local_buckets(keys):
                raise RuntimeError("insert failed")

        acquired = threading.Event()

        def again():
            with locking.hold_local_buckets(keys):
                acquired.set()

        thread = threading.Thread(target=again)
        thread.start()
        self.assertTrue(acquired.wait(5))
        thread.join(5)


class AdvisoryLockTests(SimpleTestCase):
    @mock.patch("roadworks.services.locking.connections")
    def test_skipped_outside_postgresql(self, mock_connections):
        mock_connections.__getitem__.return_value.vendor = "sqlite"
        self.assertFalse(locking.acquire_advisory_locks([1, 2]))
        mock_connections.__getitem__.return_value.cursor.assert_not_called()

    @mock.patch("roadworks.services.locking.connections")
    def test_cell_keys_hold_global_key_shared(self, mock_connections):
        connection = mock_connections.__getitem__.return_value
        connection.vendor = "postgresql"
        cursor = connection.cursor.return_value.__enter__.return_value

        self.assertTrue(locking.acquire_advisory_locks([7, 3]))

        self.assertEqual(
            cursor.execute.call_args_list,
            [
                mock.call("SELECT pg_advisory_xact_lock_shared(%s)", [locking.GLOBAL_LOCK_KEY]),
                mock.call("SELECT pg_advisory_xact_lock(%s)", [3]),
                mock.call("SELECT pg_advisory_xact_lock(%s)", [7]),
            ],
        )

    @mock.patch("roadworks.services.locking.connections")
    def test_global_key_is_exclusive(self, mock_connections):
        connection = mock_connections.__getitem__.return_value
        connection.vendor = "postgresql"
        cursor = connection.cursor.return_value.__enter__.return_value

        locking.acquire_advisory_locks([locking.GLOBAL_LOCK_KEY])

        cursor.execute.assert_called_once_with("SELECT pg_advisory_xact_lock(%s)", [locking.GLOBAL_LOCK_KEY])
