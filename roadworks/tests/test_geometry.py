"""Tests for geometry normalization and distance helpers."""

from __future__ import annotations

import json

from django.test import SimpleTestCase

from roadworks.exceptions import GeometryParseError
from roadworks.geometry import (
    INVALID_COORDINATE,
    PATH_TOO_SHORT,
    UNSUPPORTED_GEOMETRY,
    MultiPath,
    MultiPathRaw,
    Path,
    Point,
    SinglePath,
    WktLineString,
    WktMultiLineString,
    classify,
    normalize,
    normalize_path,
)
from roadworks.utils import haversine_m, path_length_m


class ClassifyTests(SimpleTestCase):
    def test_recognises_each_wire_format(self):
        self.assertIsInstance(classify([{"lat": 9.0, "lng": 38.75}, {"lat": 9.0, "lng": 38.76}]), SinglePath)
        self.assertIsInstance(classify([[38.75, 9.0], [38.76, 9.0]]), SinglePath)
        self.assertIsInstance(classify([[[38.75, 9.0], [38.76, 9.0]]]), MultiPathRaw)
        self.assertIsInstance(classify("LINESTRING(38.75 9, 38.76 9)"), WktLineString)
        self.assertIsInstance(classify("MULTILINESTRING((38.75 9, 38.76 9))"), WktMultiLineString)
        self.assertIsInstance(classify({"type": "MultiLineString", "coordinates": []}), MultiPathRaw)


class NormalizeTests(SimpleTestCase):
    def test_lat_lng_objects_become_single_path(self):
        geometry = normalize([{"lat": 9.0, "lng": 38.75}, {"lat": 9.001, "lng": 38.751}])
        self.assertTrue(geometry.is_single)
        self.assertEqual(geometry.start_point, Point(9.0, 38.75))
        self.assertEqual(geometry.end_point, Point(9.001, 38.751))

    def test_numeric_pairs_are_longitude_first(self):
        geometry = normalize([[38.75, 9.0], [38.76, 9.01]])
        self.assertEqual(geometry.start_point.lat, 9.0)
        self.assertEqual(geometry.start_point.lng, 38.75)

    def test_nested_arrays_keep_path_grouping_and_order(self):
        geometry = normalize(
            [
                [{"lat": 9.0, "lng": 38.75}, {"lat": 9.0, "lng": 38.76}],
                [[38.77, 9.0], [38.78, 9.0], [38.79, 9.0]],
            ]
        )
        self.assertEqual(len(geometry), 2)
        self.assertEqual(len(geometry.paths[1]), 3)
        self.assertEqual(geometry.end_point, Point(9.0, 38.79))

    def test_wkt_linestring_with_srid_prefix_and_z(self):
        geometry = normalize("SRID=4326;LINESTRING Z (38.75 9.0 2350, 38.76 9.01 2351)")
        self.assertEqual(geometry, normalize([[38.75, 9.0], [38.76, 9.01]]))

    def test_wkt_multilinestring(self):
        geometry = normalize("MULTILINESTRING((38.75 9, 38.76 9), (38.77 9, 38.78 9.5))")
        self.assertEqual(len(geometry), 2)
        self.assertEqual(geometry.end_point, Point(9.5, 38.78))

    def test_json_encoded_string(self):
        raw = json.dumps([{"lat": 9.0, "lng": 38.75}, {"lat": 9.0, "lng": 38.76}])
        self.assertEqual(normalize(raw), normalize([[38.75, 9.0], [38.76, 9.0]]))

    def test_geojson_feature(self):
        feature = {
            "type": "Feature",
            "properties": {},
            "geometry": {"type": "LineString", "coordinates": [[38.75, 9.0], [38.76, 9.0]]},
        }
        self.assertEqual(normalize(feature).to_wkt(), "LINESTRING(38.75 9.0, 38.76 9.0)")

    def test_normalizing_twice_is_a_no_op(self):
        geometry = normalize([[[38.75, 9.0], [38.76, 9.0]], [[38.77, 9.0], [38.78, 9.0]]])
        self.assertIs(normalize(geometry), geometry)
        self.assertEqual(normalize(geometry.to_wkt()), geometry)
        self.assertEqual(normalize(geometry.to_geojson()), geometry)
        self.assertEqual(normalize(geometry.as_lat_lng()), geometry)

    def test_single_point_is_too_short(self):
        with self.assertRaisesMessage(GeometryParseError, PATH_TOO_SHORT):
            normalize([{"lat": 9.0, "lng": 38.75}])
        with self.assertRaisesMessage(GeometryParseError, PATH_TOO_SHORT):
            normalize("LINESTRING(38.75 9.0)")
        with self.assertRaisesMessage(GeometryParseError, PATH_TOO_SHORT):
            normalize([])

    def test_out_of_range_or_non_numeric_coordinates(self):
        for raw in (
            [{"lat": 95.0, "lng": 38.75}, {"lat": 9.0, "lng": 38.76}],
            [[181.0, 9.0], [38.76, 9.0]],
            [{"lat": "9.0", "lng": 38.75}, {"lat": 9.0, "lng": 38.76}],
            [{"lat": float("nan"), "lng": 38.75}, {"lat": 9.0, "lng": 38.76}],
            [{"lat": True, "lng": 38.75}, {"lat": 9.0, "lng": 38.76}],
            [{"lat": 9.0}, {"lat": 9.0, "lng": 38.76}],
            "LINESTRING(38.75 abc, 38.76 9.0)",
        ):
            with self.subTest(raw=raw):
                with self.assertRaisesMessage(GeometryParseError, INVALID_COORDINATE):
                    normalize(raw)

    def test_unsupported_shapes(self):
        for raw in (None, 42, "POINT(38.75 9.0)", {"type": "Polygon", "coordinates": []}, "[not json", ["a", "b"]):
            with self.subTest(raw=raw):
                with self.assertRaisesMessage(GeometryParseError, UNSUPPORTED_GEOMETRY):
                    normalize(raw)

    def test_parse_error_is_a_value_error(self):
        with self.assertRaises(ValueError):
            normalize("garbage")

    def test_normalize_path_rejects_multiple_paths(self):
        with self.assertRaises(GeometryParseError):
            normalize_path([[[38.75, 9.0], [38.76, 9.0]], [[38.77, 9.0], [38.78, 9.0]]])
        self.assertIsInstance(normalize_path([[38.75, 9.0], [38.76, 9.0]]), Path)


class MultiPathTests(SimpleTestCase):
    def setUp(self):
        self.single = normalize([[38.75, 9.0], [38.76, 9.01]])
        self.multi = normalize([[[38.75, 9.0], [38.76, 9.0]], [[38.70, 8.9], [38.71, 8.95]]])

    def test_wkt_is_longitude_first(self):
        self.assertEqual(self.single.to_wkt(), "LINESTRING(38.75 9.0, 38.76 9.01)")
        self.assertEqual(
            self.multi.to_wkt(),
            "MULTILINESTRING((38.75 9.0, 38.76 9.0), (38.7 8.9, 38.71 8.95))",
        )

    def test_geojson(self):
        self.assertEqual(self.single.to_geojson(), {"type": "LineString", "coordinates": [[38.75, 9.0], [38.76, 9.01]]})
        self.assertEqual(self.multi.to_geojson()["type"], "MultiLineString")

    def test_bounds(self):
        self.assertEqual(self.multi.bounds, (38.70, 8.9, 38.76, 9.0))

    def test_empty_multipath_is_rejected(self):
        with self.assertRaises(GeometryParseError):
            MultiPath(())


class DistanceTests(SimpleTestCase):
    def test_one_degree_of_latitude(self):
        self.assertAlmostEqual(haversine_m(Point(0.0, 0.0), Point(1.0, 0.0)), 111194.93, delta=0.5)

    def test_zero_distance(self):
        self.assertEqual(haversine_m(Point(9.0, 38.75), Point(9.0, 38.75)), 0.0)

    def test_path_length_sums_segments(self):
        points = [Point(0.0, 0.0), Point(0.0, 0.001), Point(0.0, 0.002)]
        self.assertAlmostEqual(path_length_m(points), 2 * haversine_m(points[0], points[1]))
        self.assertEqual(path_length_m(points[:1]), 0.0)

    def test_multipath_length_adds_paths(self):
        geometry = normalize([[[38.75, 9.0], [38.76, 9.0]], [[38.77, 9.0], [38.78, 9.0]]])
        self.assertAlmostEqual(geometry.length_m, sum(path.length_m for path in geometry))
