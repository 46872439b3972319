"""
Unit Tests for Orbit-Ring Generation

Run with:
    python -m pytest tests/test_orbits.py -v
"""

import math
import unittest

import numpy as np

from config import EARTH_RADIUS_KM
from orbit_navigator import orbits
from orbit_navigator.models import LaunchRecord


class TestCalculateOrbitPath(unittest.TestCase):

    def test_circular_equatorial_ring(self):
        points = orbits.calculate_orbit_path(7000.0, 0.0, 0.0, 36)

        self.assertEqual(points.shape, (36, 3))
        np.testing.assert_allclose(np.linalg.norm(points, axis=1), 7.0)
        np.testing.assert_allclose(points[:, 2], 0.0, atol=1e-12)
        np.testing.assert_allclose(points[0], [7.0, 0.0, 0.0])

    def test_inclination_rotates_about_x(self):
        points = orbits.calculate_orbit_path(7000.0, 0.0, 90.0, 4)
        # quarter-turn point lifts onto the z axis
        np.testing.assert_allclose(points[1], [0.0, 0.0, 7.0], atol=1e-12)
        self.assertAlmostEqual(np.max(points[:, 2]), 7.0)

    def test_eccentric_ellipse_semi_minor_axis(self):
        points = orbits.calculate_orbit_path(10000.0, 0.6, 0.0, 4)
        np.testing.assert_allclose(points[0], [10.0, 0.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(points[1], [0.0, 8.0, 0.0], atol=1e-12)

    def test_rejects_bad_arguments(self):
        with self.assertRaises(ValueError):
            orbits.calculate_orbit_path(7000.0, 0.0, 0.0, 2)
        with self.assertRaises(ValueError):
            orbits.calculate_orbit_path(7000.0, 1.0, 0.0, 10)
        with self.assertRaises(ValueError):
            orbits.calculate_orbit_path(7000.0, -0.1, 0.0, 10)


class TestOrbitClasses(unittest.TestCase):

    def test_class_rings_use_band_midpoint(self):
        for code, orbit_type in orbits.ORBIT_TYPES.items():
            points = orbits.orbit_points_for_type(code, num_points=24)
            expected = (EARTH_RADIUS_KM + orbit_type.mean_altitude) / 1000.0
            np.testing.assert_allclose(np.linalg.norm(points, axis=1), expected, err_msg=code)

    def test_default_inclinations(self):
        self.assertEqual(orbits.default_inclination("SSO"), 98.0)
        self.assertEqual(orbits.default_inclination("polar"), 98.0)
        self.assertEqual(orbits.default_inclination("GEO"), 0.0)
        self.assertEqual(orbits.default_inclination("LEO"), 51.6)

        geo = orbits.orbit_points_for_type("GEO", num_points=24)
        np.testing.assert_allclose(geo[:, 2], 0.0, atol=1e-9)

    def test_explicit_inclination(self):
        points = orbits.orbit_points_for_type("LEO", inclination=30.0, num_points=4)
        radius = (EARTH_RADIUS_KM + 1100.0) / 1000.0
        self.assertAlmostEqual(points[1][2], radius * math.sin(math.radians(30.0)))

    def test_unrecognized_code_falls_back_to_low_orbit_ring(self):
        path = orbits.orbit_path_for_type("LUNAR", num_points=24)

        self.assertEqual(path.points.shape, (24, 3))
        np.testing.assert_allclose(np.linalg.norm(path.points, axis=1), (EARTH_RADIUS_KM + 500.0) / 1000.0)
        np.testing.assert_allclose(path.points[:, 2], 0.0, atol=1e-12)
        self.assertEqual(path.inclination, 0.0)
        self.assertEqual(path.color, orbits.DEFAULT_COLOR)
        self.assertEqual(path.name, "LUNAR")

    def test_ring_is_cached_and_read_only(self):
        first = orbits.orbit_points_for_type("MEO", num_points=50)
        second = orbits.orbit_points_for_type("meo", num_points=50)

        self.assertIs(first, second)
        self.assertFalse(first.flags.writeable)
        with self.assertRaises(ValueError):
            first[0, 0] = 1.0

    def test_point_count_is_part_of_the_cache_key(self):
        self.assertEqual(len(orbits.orbit_points_for_type("LEO", num_points=10)), 10)
        self.assertEqual(len(orbits.orbit_points_for_type("LEO", num_points=20)), 20)

    def test_closed_points_repeat_the_first_point(self):
        path = orbits.orbit_path_for_type("LEO", num_points=12)
        closed = path.closed_points()
        self.assertEqual(closed.shape, (13, 3))
        np.testing.assert_array_equal(closed[0], closed[-1])

    def test_colors_and_names(self):
        self.assertEqual(orbits.get_orbit_color("leo"), "#00ff00")
        self.assertEqual(orbits.get_orbit_color(None), "#ffffff")
        self.assertEqual(orbits.get_orbit_name("GEO"), "Geostationary Orbit")
        self.assertEqual(orbits.get_orbit_name(None), "Unknown Orbit")


class TestLaunchGrouping(unittest.TestCase):

    def setUp(self):
        self.launches = [
            LaunchRecord(id=1, name="A", orbit="LEO"),
            LaunchRecord(id=2, name="B", orbit="leo"),
            LaunchRecord(id=3, name="C", orbit="GEO"),
            LaunchRecord(id=4, name="D"),
        ]

    def test_group_by_orbit(self):
        grouped = orbits.group_launches_by_orbit(self.launches)
        self.assertEqual(sorted(grouped), ["GEO", "LEO", "UNKNOWN"])
        self.assertEqual(len(grouped["LEO"]), 2)

    def test_standard_classes_always_present(self):
        paths = orbits.build_orbit_paths(self.launches, num_points=16)

        for code in orbits.ORBIT_TYPES:
            self.assertIn(code, paths)
        self.assertIn("UNKNOWN", paths)
        self.assertEqual(paths["LEO"].launch_count, 2)
        self.assertEqual(paths["MEO"].launch_count, 0)
        self.assertFalse(paths["MEO"].has_launches)

    def test_no_launches_still_yields_every_class(self):
        paths = orbits.build_orbit_paths(num_points=16)
        self.assertEqual(set(paths), set(orbits.ORBIT_TYPES))

    def test_orbit_code_alias(self):
        record = LaunchRecord.model_validate({"id": 9, "orbit_code": "SSO"})
        self.assertEqual(record.orbit, "SSO")

    def test_launch_summary(self):
        paths = orbits.build_orbit_paths(self.launches, num_points=16)
        summary = orbits.launch_summary(paths, len(self.launches))

        self.assertEqual(summary["total_launches"], 4)
        self.assertEqual(summary["orbits_with_launches"], 3)
        first = summary["launches_by_orbit"][0]
        self.assertEqual(first, {"orbit_code": "LEO", "orbit_name": "Low Earth Orbit", "count": 2})


if __name__ == "__main__":
    unittest.main()
