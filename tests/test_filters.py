"""
Unit Tests for the Filter Engine and Statistics Aggregator

Run with:
    python -m pytest tests/test_filters.py -v
"""

import random
import unittest

from orbit_navigator import statistics
from orbit_navigator.filters import FilterEngine, altitude_band, matches_type
from orbit_navigator.models import FilterState, SHOW_ALL, StatusCounts
from fakes import make_object


class TestAltitudeBand(unittest.TestCase):

    def test_boundaries_belong_to_the_higher_band(self):
        self.assertEqual(altitude_band(1999.9), "LEO")
        self.assertEqual(altitude_band(2000.0), "MEO")
        self.assertEqual(altitude_band(35785.9), "MEO")
        self.assertEqual(altitude_band(35786.0), "GEO")
        self.assertIsNone(altitude_band(None))


class TestFilterEngine(unittest.TestCase):

    def setUp(self):
        self.engine = FilterEngine()
        self.catalog = [
            make_object(25544, perigee=418.0, status="active", name="ISS (ZARYA)", designator="1998-067A"),
            make_object(44714, perigee=550.0, status="active", constellation="STARLINK",
                        name="STARLINK-1008", designator="2019-074B"),
            make_object(24876, perigee=20180.0, status="active", constellation="GPS", name="GPS BIIR-2"),
            make_object(36516, perigee=35790.0, status="inactive", name="SES-1"),
            make_object(13552, perigee=800.0, status="debris", object_type="debris", name="COSMOS 1408 DEB"),
            make_object(27386, perigee=700.0, status="debris", object_type="rocket_body", name="SL-16 R/B"),
            make_object(20580, perigee=540.0, status="active", object_type="telescope", name="HST"),
            make_object(99999, status=None, name="UNKNOWN OBJECT"),
        ]

    def ids(self, state):
        return [o.norad_id for o in self.engine.apply(self.catalog, state)]

    def test_neutral_state_keeps_everything(self):
        self.assertEqual(len(self.engine.apply(self.catalog, FilterState())), len(self.catalog))
        self.assertEqual(len(self.engine.apply(self.catalog, FilterState(location=SHOW_ALL))), len(self.catalog))

    def test_meo_band_scenario(self):
        catalog = [make_object(1, perigee=500.0), make_object(2, perigee=10000.0), make_object(3, perigee=40000.0)]
        working = self.engine.apply(catalog, FilterState(location="MEO"))
        self.assertEqual([o.norad_id for o in working], [2])

    def test_missing_perigee_fails_a_specific_band(self):
        for band in ("LEO", "MEO", "GEO"):
            self.assertNotIn(99999, self.ids(FilterState(location=band)))
        self.assertIn(99999, self.ids(FilterState()))

    def test_search_matches_name_designator_and_id(self):
        self.assertEqual(self.ids(FilterState(search="zarya")), [25544])
        self.assertEqual(self.ids(FilterState(search="2019-074")), [44714])
        self.assertEqual(self.ids(FilterState(search="36516")), [36516])
        self.assertEqual(self.ids(FilterState(search="   ")), self.ids(FilterState()))

    def test_constellations_are_or_ed(self):
        state = FilterState(constellations={"STARLINK", "GPS"})
        self.assertEqual(self.ids(state), [44714, 24876])

    def test_type_mapping(self):
        self.assertEqual(self.ids(FilterState(types={"DEBRIS"})), [13552, 27386])
        self.assertEqual(self.ids(FilterState(types={"telescope"})), [20580])
        self.assertEqual(self.ids(FilterState(types={"TELESCOPE", "DEBRIS"})), [13552, 27386, 20580])

    def test_unrecognized_type_matches_nothing(self):
        self.assertEqual(self.ids(FilterState(types={"LAUNCH SITE"})), [])
        self.assertFalse(matches_type(self.catalog[0], frozenset({"WIDGET"})))

    def test_status_is_exact(self):
        self.assertEqual(self.ids(FilterState(status="INACTIVE")), [36516])

    def test_stages_are_conjunctive(self):
        state = FilterState(location="LEO", types={"SATELLITE"}, status="active", search="starlink")
        self.assertEqual(self.ids(state), [44714])

    def test_result_does_not_depend_on_catalog_order(self):
        state = FilterState(location="LEO", status="active")
        expected = set(self.ids(state))
        shuffled = list(self.catalog)
        random.Random(7).shuffle(shuffled)
        self.assertEqual({o.norad_id for o in self.engine.apply(shuffled, state)}, expected)

    def test_each_stage_is_independent(self):
        state = FilterState(location="LEO", types={"DEBRIS"})
        for obj in self.catalog:
            expected = all(stage(obj) for stage in self.engine.stages(state))
            self.assertEqual(self.engine.passes(obj, state), expected)

    def test_filter_state_normalization(self):
        state = FilterState(location=" leo ", types=["debris"], status="Active")
        self.assertEqual(state.location, "LEO")
        self.assertEqual(state.types, frozenset({"DEBRIS"}))
        self.assertEqual(state.status, "active")
        self.assertEqual(state.with_changes(location=None).location, None)
        self.assertEqual(state.location, "LEO")


class TestStatistics(unittest.TestCase):

    def test_status_scenario(self):
        objects = [make_object(1, status="debris"), make_object(2, status="active"), make_object(3)]
        counts = statistics.aggregate(objects)
        self.assertEqual(counts, StatusCounts(active=1, inactive=0, debris=1, other=1))

    def test_buckets_sum_to_input_size(self):
        objects = [make_object(i, status=s) for i, s in enumerate(
            ["active", "inactive", "debris", "decayed", None, "ACTIVE", "unknown"]
        )]
        counts = statistics.aggregate(objects)
        self.assertEqual(counts.total, len(objects))
        self.assertEqual(counts.active, 2)
        self.assertEqual(counts.other, 3)

    def test_no_hidden_state(self):
        objects = [make_object(1, status="active")]
        self.assertEqual(statistics.aggregate(objects), statistics.aggregate(objects))
        self.assertEqual(statistics.aggregate([]).total, 0)

    def test_display_keys(self):
        display = StatusCounts(active=3, debris=1).as_display()
        self.assertEqual(display, {"ACTIVE": 3, "INACTIVE": 0, "DEBRIS": 1, "OTHER": 0})
        self.assertEqual(StatusCounts.model_validate(display).active, 3)


if __name__ == "__main__":
    unittest.main()
