"""
Tests for the scene manager lifecycle and its resource accounting.

Every backend node is recorded by RecordingBackend, so leaks and double
releases show up directly.

Run with:
    python -m pytest tests/test_scene.py -v
"""

import unittest

import numpy as np

from orbit_navigator import resources
from orbit_navigator.exceptions import AssetLoadError, SceneStateError
from orbit_navigator.models import PositionedObject
from orbit_navigator.orbits import build_orbit_paths
from orbit_navigator.render_backend import hex_to_rgba
from orbit_navigator.scene import (
    ACTIVE_COLOR, DEBRIS_COLOR, DEFAULT_MARKER_COLOR, INACTIVE_COLOR, SELECTED_COLOR,
    RenderableKind, SceneConfig, SceneManager, SceneState, marker_color,
)
from fakes import DeferredExecutor, InlineExecutor, RecordingBackend, counts_by_kind, make_object, texture_image


def positioned(norad_id, position, **kwargs):
    return PositionedObject(make_object(norad_id, **kwargs), tuple(float(c) for c in position))


def failing_loader(url):
    raise AssetLoadError(f"404 for {url}")


class SceneTestCase(unittest.TestCase):

    def make_scene(self, loader=None, executor=None, **overrides):
        settings = dict(star_count=200, star_seed=3, earth_texture_url="http://textures.test/earth.jpg")
        settings.update(overrides)
        self.backend = RecordingBackend()
        self.scene = SceneManager(
            self.backend,
            SceneConfig(**settings),
            executor=executor or InlineExecutor(),
            texture_loader=loader or (lambda url: texture_image()),
        )
        return self.scene


class TestLifecycle(SceneTestCase):

    def test_initialize_allocates_static_scene_once(self):
        scene = self.make_scene()
        self.assertEqual(scene.state, SceneState.UNINITIALIZED)

        scene.initialize()

        self.assertEqual(scene.state, SceneState.READY)
        self.assertEqual(counts_by_kind(self.backend.live),
                         {"surface": 1, "lights": 1, "starfield": 1, "earth": 1})
        self.assertAlmostEqual(self.backend.earth_radius, 6.371)
        self.assertIsNotNone(self.backend.click_handler)
        self.assertTrue(scene.context.scheduler.running)

    def test_initialize_twice_is_an_error(self):
        scene = self.make_scene()
        scene.initialize()
        with self.assertRaises(SceneStateError):
            scene.initialize()

    def test_starfield_is_generated_once_within_the_cube(self):
        scene = self.make_scene()
        scene.initialize()
        stars = self.backend.star_points.copy()

        self.assertEqual(stars.shape, (200, 3))
        self.assertTrue(np.all(np.abs(stars) <= scene.context.config.star_extent / 2.0))
        for _ in range(5):
            scene.frame()
        self.assertEqual(counts_by_kind(self.backend.allocated)["starfield"], 1)
        np.testing.assert_array_equal(self.backend.star_points, stars)

    def test_dispose_releases_everything(self):
        scene = self.make_scene()
        scene.initialize()
        scene.frame()
        scene.update_markers([positioned(i, (i, 0, 0), status="active") for i in range(10)])
        scene.update_paths(build_orbit_paths(num_points=16))

        scene.dispose()

        self.assertEqual(self.backend.live, [])
        self.assertEqual(scene.context.arena.live_count(), 0)
        self.assertTrue(self.backend.closed)
        self.assertEqual(scene.state, SceneState.DISPOSED)
        self.assertFalse(scene.context.scheduler.running)
        self.assertFalse(scene.context.scheduler.tick())

    def test_dispose_is_terminal_and_idempotent(self):
        scene = self.make_scene()
        scene.initialize()
        scene.dispose()
        scene.dispose()

        with self.assertRaises(SceneStateError):
            scene.update_markers([])
        with self.assertRaises(SceneStateError):
            scene.initialize()
        render_count = self.backend.render_count
        scene.frame()
        self.assertEqual(self.backend.render_count, render_count)

    def test_dispose_before_initialize(self):
        scene = self.make_scene()
        scene.dispose()
        self.assertEqual(scene.state, SceneState.DISPOSED)
        self.assertFalse(self.backend.closed)

    def test_frame_repaints_and_syncs_camera(self):
        scene = self.make_scene()
        scene.initialize()
        scene.frame()
        scene.context.scheduler.tick()
        self.assertEqual(self.backend.render_count, 2)
        self.assertEqual(self.backend.sync_count, 2)

    def test_ring_viewer_settings(self):
        cfg = SceneConfig.ring_viewer(min_distance=20.0)
        self.assertIs(cfg.renderable_kind, RenderableKind.PATHS)
        self.assertEqual(cfg.min_distance, 20.0)
        self.assertEqual(cfg.max_distance, 100.0)
        self.assertGreater(cfg.earth_spin_deg, 0.0)
        self.assertIs(SceneConfig.marker_viewer().renderable_kind, RenderableKind.MARKERS)

    def test_spinning_earth(self):
        scene = self.make_scene(renderable_kind=RenderableKind.PATHS, earth_spin_deg=0.5, earth_texture_url=None)
        scene.initialize()
        scene.frame()
        scene.frame()
        self.assertEqual(len(self.backend.rotations), 2)
        self.assertGreater(self.backend.rotations[1], self.backend.rotations[0])


class TestEarthTexture(SceneTestCase):

    def test_texture_replaces_flat_color(self):
        scene = self.make_scene()
        scene.initialize()
        self.assertEqual(self.backend.live_of("texture"), [])

        scene.frame()

        self.assertEqual(len(self.backend.live_of("texture")), 1)
        self.assertFalse(scene.context.texture_failed)

    def test_texture_applies_only_once_finished(self):
        executor = DeferredExecutor()
        scene = self.make_scene(executor=executor)
        scene.initialize()
        scene.frame()
        self.assertEqual(self.backend.live_of("texture"), [])

        executor.run_all()
        scene.frame()
        self.assertEqual(len(self.backend.live_of("texture")), 1)

    def test_texture_failure_keeps_flat_color(self):
        scene = self.make_scene(loader=failing_loader)
        scene.initialize()

        scene.frame()
        scene.frame()

        self.assertTrue(scene.context.texture_failed)
        self.assertEqual(scene.state, SceneState.READY)
        self.assertEqual(self.backend.live_of("texture"), [])
        self.assertEqual(len(self.backend.live_of("earth")), 1)
        self.assertEqual(self.backend.render_count, 2)

    def test_no_texture_url(self):
        scene = self.make_scene(earth_texture_url=None)
        scene.initialize()
        scene.frame()
        self.assertIsNone(scene.context.texture_future)
        self.assertFalse(scene.context.texture_failed)


class TestMarkers(SceneTestCase):

    def test_markers_are_replaced_not_accumulated(self):
        scene = self.make_scene()
        scene.initialize()

        scene.update_markers([positioned(i, (i, 0, 0)) for i in range(5)])
        first = self.backend.live_of("marker")
        scene.update_markers([positioned(i, (0, i, 0)) for i in range(3, 6)])

        self.assertEqual(scene.live_marker_count, 3)
        self.assertEqual(len(self.backend.live_of("marker")), 3)
        for node in first:
            self.assertTrue(any(node is r for r in self.backend.released))
        self.assertEqual(len(self.backend.drawn_markers), 3)

    def test_marker_cap(self):
        scene = self.make_scene(marker_cap=4)
        scene.initialize()

        live = scene.update_markers([positioned(i, (i, 0, 0)) for i in range(10)])

        self.assertEqual(live, 4)
        self.assertEqual([n.object_id for n in self.backend.live_of("marker")], [0, 1, 2, 3])

    def test_empty_working_set_clears_markers(self):
        scene = self.make_scene()
        scene.initialize()
        scene.update_markers([positioned(1, (1, 0, 0))])
        self.assertEqual(scene.update_markers([]), 0)
        self.assertEqual(self.backend.live_of("marker"), [])

    def test_ring_only_view_ignores_markers(self):
        scene = self.make_scene(renderable_kind=RenderableKind.PATHS)
        scene.initialize()
        self.assertEqual(scene.update_markers([positioned(1, (1, 0, 0))]), 0)
        self.assertEqual(self.backend.live_of("marker"), [])

    def test_status_colors(self):
        self.assertEqual(marker_color(make_object(1, status="debris")), DEBRIS_COLOR)
        self.assertEqual(marker_color(make_object(1, object_type="rocket_body", status="active")), DEBRIS_COLOR)
        self.assertEqual(marker_color(make_object(1, status="active")), ACTIVE_COLOR)
        self.assertEqual(marker_color(make_object(1, status="inactive")), INACTIVE_COLOR)
        self.assertEqual(marker_color(make_object(1, status="decayed")), DEFAULT_MARKER_COLOR)
        self.assertEqual(marker_color(make_object(1, status="debris"), selected=True), SELECTED_COLOR)

    def test_selection_highlight(self):
        scene = self.make_scene()
        scene.initialize()
        scene.update_markers([positioned(i, (i, 0, 0), status="active") for i in range(3)])

        scene.set_selection(1)

        colors = {n.object_id: n.color for n in self.backend.live_of("marker")}
        self.assertEqual(colors[1], hex_to_rgba(SELECTED_COLOR, 1.0))
        self.assertEqual(colors[0], hex_to_rgba(ACTIVE_COLOR, 0.8))
        self.assertEqual(len(self.backend.live_of("marker")), 3)

        scene.set_selection(2)
        colors = {n.object_id: n.color for n in self.backend.live_of("marker")}
        self.assertEqual(colors[1], hex_to_rgba(ACTIVE_COLOR, 0.8))
        self.assertEqual(colors[2], hex_to_rgba(SELECTED_COLOR, 1.0))

    def test_selection_survives_marker_refresh(self):
        scene = self.make_scene()
        scene.initialize()
        scene.set_selection(7)
        scene.update_markers([positioned(7, (1, 0, 0), status="inactive")])
        self.assertEqual(self.backend.live_of("marker")[0].color, hex_to_rgba(SELECTED_COLOR, 1.0))


class TestOrbitRings(SceneTestCase):

    def setUp(self):
        self.paths = build_orbit_paths(num_points=16)

    def test_empty_selection_shows_every_ring(self):
        scene = self.make_scene()
        scene.initialize()

        self.assertTrue(scene.update_paths(self.paths))
        self.assertEqual(scene.live_path_count, len(self.paths))
        self.assertEqual(len(self.backend.live_of("path")[0].points), 17)

    def test_unchanged_selection_is_a_no_op(self):
        scene = self.make_scene()
        scene.initialize()
        scene.update_paths(self.paths, ["LEO", "GEO"])
        allocated = len(self.backend.allocated)

        self.assertFalse(scene.update_paths(self.paths, ["geo", "leo"]))
        self.assertEqual(len(self.backend.allocated), allocated)

    def test_rebuilt_identical_rings_are_kept(self):
        scene = self.make_scene()
        scene.initialize()
        scene.update_paths(self.paths)
        nodes = list(self.backend.live_of("path"))

        self.assertFalse(scene.update_paths(build_orbit_paths(num_points=16)))
        self.assertEqual(self.backend.live_of("path"), nodes)
        self.assertEqual(self.backend.released, [])

    def test_changed_geometry_redraws_the_ring(self):
        scene = self.make_scene()
        scene.initialize()
        scene.update_paths(self.paths, ["LEO"])

        self.assertTrue(scene.update_paths(build_orbit_paths(num_points=32), ["LEO"]))
        self.assertEqual(scene.live_path_count, 1)
        self.assertEqual(len(self.backend.live_of("path")[0].points), 33)

    def test_narrowing_the_selection_releases_rings(self):
        scene = self.make_scene()
        scene.initialize()
        scene.update_paths(self.paths)

        self.assertTrue(scene.update_paths(self.paths, ["MEO"]))

        self.assertEqual(scene.context.arena.keys(resources.PATH), ["MEO"])
        self.assertEqual(len(self.backend.live_of("path")), 1)
        self.assertEqual(self.backend.live_of("path")[0].color, self.paths["MEO"].color)

    def test_marker_only_view_ignores_rings(self):
        scene = self.make_scene(renderable_kind=RenderableKind.MARKERS)
        scene.initialize()
        self.assertFalse(scene.update_paths(self.paths))
        self.assertEqual(scene.live_path_count, 0)


class TestScenePicking(SceneTestCase):

    def test_click_selects_nearest_marker(self):
        scene = self.make_scene()
        scene.initialize()
        picked = []
        scene.selection_listeners.append(picked.append)
        # camera looks along +y from (0, -50, 0); both markers sit on the center ray
        scene.update_markers([positioned(1, (0, 0, 0)), positioned(2, (0, -10, 0))])

        self.backend.click_handler(0.0, 0.0)

        self.assertEqual([o.norad_id for o in picked], [2])

    def test_miss_emits_nothing(self):
        scene = self.make_scene()
        scene.initialize()
        picked = []
        scene.selection_listeners.append(picked.append)
        scene.update_markers([positioned(1, (0, 0, 0))])

        self.assertIsNone(scene.handle_click(0.9, 0.9))
        self.assertEqual(picked, [])

    def test_pick_off_center_marker(self):
        scene = self.make_scene()
        scene.initialize()
        target = (5.0, 0.0, 2.0)
        scene.update_markers([positioned(1, (0, 0, 0)), positioned(3, target)])

        ndc_x, ndc_y, _ = scene.context.camera.project(target)
        self.assertEqual(scene.pick(ndc_x, ndc_y).norad_id, 3)

    def test_click_anywhere_on_the_drawn_marker(self):
        scene = self.make_scene(size=(700, 700), marker_pixel_size=6.0)
        scene.initialize()
        scene.update_markers([positioned(1, (0, 0, 0))])
        self.assertEqual(self.backend.marker_pixel_size, 6.0)

        for pixels in (0.25, 0.5, 1.0, 2.0, 2.9):
            hit = scene.pick(0.0, pixels * 2.0 / 700)
            self.assertIsNotNone(hit, f"{pixels} px off center")
            self.assertEqual(hit.norad_id, 1)

        self.assertIsNone(scene.pick(0.0, 4.5 * 2.0 / 700))

    def test_drawn_size_tracks_the_viewport(self):
        scene = self.make_scene(size=(700, 700), marker_pixel_size=6.0)
        scene.initialize()
        scene.update_markers([positioned(1, (0, 0, 0))])

        # same pixel offset on a taller window covers less world space
        scene.context.camera.set_viewport(1400, 1400)
        self.assertIsNotNone(scene.pick(0.0, 2.0 * 2.0 / 1400))
        self.assertIsNone(scene.pick(0.0, 4.5 * 2.0 / 1400))


if __name__ == "__main__":
    unittest.main()
