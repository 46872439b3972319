"""
Scene/Resource Manager

Owns the live 3D view: Earth body, starfield, one orbit ring per visible orbit
class and one marker per rendered object. Every backend node lives in a
ResourceArena, so replacing markers or rings and tearing the view down are
all counted releases.

Lifecycle (``SceneState``)::

    UNINITIALIZED --initialize()--> READY --dispose()--> DISPOSED

``initialize()`` allocates the surface, lights, starfield and Earth exactly
once and starts the frame scheduler. ``frame()`` advances the controls and
repaints; it performs no I/O and only polls the background texture load.
Marker and ring updates happen between frames, on the control thread.
``dispose()`` is terminal: everything is released and the loop stops.

One manager serves both viewers: ``RenderableKind`` selects rings only,
markers only, or both.
"""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from config import config, DEFAULT_STAR_COUNT, STARFIELD_EXTENT, MARKER_RADIUS, MARKER_PIXEL_SIZE
from orbit_navigator import resources, transform
from orbit_navigator.controls import OrbitControls, PerspectiveCamera
from orbit_navigator.exceptions import AssetLoadError, SceneStateError
from orbit_navigator.models import CatalogObject, PositionedObject
from orbit_navigator.orbits import OrbitPath
from orbit_navigator.picking import PickingController
from orbit_navigator.render_backend import RenderBackend, hex_to_rgba
from orbit_navigator.resources import ResourceArena
from orbit_navigator.scheduler import FrameScheduler
from orbit_navigator.textures import load_texture

logger = logging.getLogger(__name__)

SELECTED_COLOR = "#4A90E2"
DEBRIS_COLOR = "#FF4444"
ACTIVE_COLOR = "#44FF44"
INACTIVE_COLOR = "#888888"
DEFAULT_MARKER_COLOR = "#808080"


def marker_color(obj: Optional[CatalogObject], selected: bool = False) -> str:
    """Status/type color for a marker; the selection highlight overrides everything."""
    if obj is None:
        return DEFAULT_MARKER_COLOR
    if selected:
        return SELECTED_COLOR
    if obj.status == "debris" or obj.object_type in ("debris", "rocket_body"):
        return DEBRIS_COLOR
    if obj.status == "active":
        return ACTIVE_COLOR
    if obj.status == "inactive":
        return INACTIVE_COLOR
    return DEFAULT_MARKER_COLOR


class RenderableKind(Enum):
    PATHS = "paths"
    MARKERS = "markers"
    BOTH = "both"

    @property
    def shows_paths(self) -> bool:
        return self in (RenderableKind.PATHS, RenderableKind.BOTH)

    @property
    def shows_markers(self) -> bool:
        return self in (RenderableKind.MARKERS, RenderableKind.BOTH)


class SceneState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DISPOSED = "disposed"


@dataclass
class SceneConfig:
    """Per-view settings. Marker cap and ring point count are performance knobs."""

    renderable_kind: RenderableKind = RenderableKind.BOTH
    marker_cap: int = field(default_factory=lambda: config.MAX_SATELLITES_RENDER)
    path_points: int = field(default_factory=lambda: config.ORBIT_PATH_POINTS)
    star_count: int = DEFAULT_STAR_COUNT
    star_extent: float = STARFIELD_EXTENT
    star_seed: Optional[int] = None
    star_size: float = 1.0
    earth_color: str = "#1a4d80"
    earth_segments: int = 64
    earth_texture_url: Optional[str] = field(default_factory=lambda: config.EARTH_TEXTURE_URL)
    earth_spin_deg: float = 0.0
    background: str = "#000011"
    title: str = "Orbit Navigator"
    size: Tuple[int, int] = (1200, 700)
    fov: float = 50.0
    near: float = 0.01
    far: float = 10000.0
    camera_distance: float = 50.0
    min_distance: float = 2.0
    max_distance: float = 1000.0
    damping_factor: float = 0.05
    auto_rotate_speed: float = 1.0
    ambient_light: float = 0.4
    directional_light: float = 1.0
    light_direction: Tuple[float, float, float] = (10.0, 10.0, 5.0)
    marker_radius: float = MARKER_RADIUS
    marker_pixel_size: float = MARKER_PIXEL_SIZE
    marker_opacity: float = 0.8
    selected_opacity: float = 1.0
    path_opacity: float = 0.8

    @classmethod
    def ring_viewer(cls, **overrides) -> "SceneConfig":
        """Orbit rings only, close-in camera, slowly spinning Earth."""
        settings = dict(
            renderable_kind=RenderableKind.PATHS,
            star_extent=600.0,
            min_distance=15.0,
            max_distance=100.0,
            earth_spin_deg=float(np.degrees(0.001)),
        )
        settings.update(overrides)
        return cls(**settings)

    @classmethod
    def marker_viewer(cls, **overrides) -> "SceneConfig":
        """High object-count marker view."""
        settings = dict(renderable_kind=RenderableKind.MARKERS)
        settings.update(overrides)
        return cls(**settings)


@dataclass
class SceneContext:
    """Everything one mounted view owns, passed through every manager operation."""

    backend: RenderBackend
    config: SceneConfig
    camera: PerspectiveCamera
    controls: OrbitControls
    arena: ResourceArena
    picking: PickingController
    state: SceneState = SceneState.UNINITIALIZED
    markers: Dict[int, PositionedObject] = field(default_factory=dict)
    paths: Dict[str, OrbitPath] = field(default_factory=dict)
    visible_orbits: Optional[FrozenSet[str]] = None
    selected_id: Optional[int] = None
    auto_rotate: bool = False
    earth_rotation_deg: float = 0.0
    texture_future: Optional[Future] = None
    texture_failed: bool = False
    scheduler: Optional[FrameScheduler] = None


class SceneManager:
    """
    Live scene owner for one view.

    Args:
        backend: Graphics backend
        scene_config: View settings (default: markers and rings)
        executor: Runs the Earth texture download off the control thread
        texture_loader: ``url -> image array``; raises AssetLoadError on failure
    """

    def __init__(self, backend: RenderBackend, scene_config: Optional[SceneConfig] = None,
                 executor: Optional[Executor] = None,
                 texture_loader: Callable[[str], np.ndarray] = load_texture):
        scene_config = scene_config or SceneConfig()
        camera = PerspectiveCamera(fov=scene_config.fov, near=scene_config.near, far=scene_config.far)
        camera.set_viewport(*scene_config.size)
        controls = OrbitControls(
            camera,
            distance=scene_config.camera_distance,
            min_distance=scene_config.min_distance,
            max_distance=scene_config.max_distance,
            damping_factor=scene_config.damping_factor,
            auto_rotate_speed=scene_config.auto_rotate_speed,
        )
        self.context = SceneContext(
            backend=backend,
            config=scene_config,
            camera=camera,
            controls=controls,
            arena=ResourceArena(backend.release),
            picking=PickingController(camera, scene_config.marker_radius, scene_config.marker_pixel_size),
        )
        self._owns_executor = executor is None
        self._executor = executor
        self._texture_loader = texture_loader
        self.selection_listeners: List[Callable[[CatalogObject], None]] = []

    @property
    def state(self) -> SceneState:
        return self.context.state

    @property
    def live_marker_count(self) -> int:
        return self.context.arena.live_count(resources.MARKER)

    @property
    def live_path_count(self) -> int:
        return self.context.arena.live_count(resources.PATH)

    def _require(self, state: SceneState, operation: str):
        if self.context.state is not state:
            raise SceneStateError(f"Cannot {operation} in state {self.context.state.value}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, start_loop: bool = True):
        """Allocate the static scene once and start the frame loop."""
        ctx = self.context
        self._require(SceneState.UNINITIALIZED, "initialize")
        cfg = ctx.config
        backend = ctx.backend
        arena = ctx.arena

        arena.add(resources.SURFACE, "surface", backend.create_surface(cfg.title, cfg.size, cfg.background))
        arena.add(resources.LIGHT, "lights", backend.add_lights(
            cfg.ambient_light, cfg.directional_light, cfg.light_direction
        ))
        arena.add(resources.STARFIELD, "stars", backend.add_starfield(
            self._starfield_points(cfg), "#ffffff", cfg.star_size
        ))
        arena.add(resources.EARTH, "earth", backend.add_earth(
            transform.earth_radius_scene(), cfg.earth_color, cfg.earth_segments
        ))

        if cfg.earth_texture_url:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="texture")
            ctx.texture_future = self._executor.submit(self._texture_loader, cfg.earth_texture_url)

        backend.connect_input(self.handle_click, ctx.controls)
        ctx.scheduler = FrameScheduler(self.frame, backend.timer_factory())
        ctx.state = SceneState.READY
        logger.info(f"Scene ready ({cfg.renderable_kind.value}, {cfg.star_count} stars)")

        if start_loop:
            ctx.scheduler.start()

    @staticmethod
    def _starfield_points(cfg: SceneConfig) -> np.ndarray:
        rng = np.random.default_rng(cfg.star_seed)
        return ((rng.random((cfg.star_count, 3)) - 0.5) * cfg.star_extent).astype(np.float32)

    def dispose(self):
        """Release every resource and stop the loop. Terminal; repeated calls do nothing."""
        ctx = self.context
        if ctx.state is SceneState.DISPOSED:
            return

        if ctx.scheduler is not None:
            ctx.scheduler.stop()
        if ctx.texture_future is not None:
            ctx.texture_future.cancel()
            ctx.texture_future = None
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False)

        released = ctx.arena.clear()
        ctx.markers.clear()
        ctx.paths.clear()
        ctx.visible_orbits = None
        if ctx.state is SceneState.READY:
            ctx.backend.close()

        ctx.state = SceneState.DISPOSED
        logger.info(f"Scene disposed, released {released} resources")

    # ------------------------------------------------------------------
    # Per-frame
    # ------------------------------------------------------------------

    def frame(self):
        """Advance controls, spin the Earth, apply a finished texture load, repaint."""
        ctx = self.context
        if ctx.state is not SceneState.READY:
            return

        self._poll_texture()

        ctx.controls.auto_rotate = ctx.auto_rotate
        ctx.controls.update()

        if ctx.config.earth_spin_deg:
            ctx.earth_rotation_deg = (ctx.earth_rotation_deg + ctx.config.earth_spin_deg) % 360.0
            earth = ctx.arena.get(resources.EARTH, "earth")
            if earth is not None:
                ctx.backend.set_rotation(earth.node, ctx.earth_rotation_deg)

        ctx.backend.sync_camera(ctx.camera, ctx.controls)
        ctx.backend.render()

    def _poll_texture(self):
        ctx = self.context
        future = ctx.texture_future
        if future is None or not future.done():
            return
        ctx.texture_future = None

        try:
            image = future.result()
        except AssetLoadError as e:
            ctx.texture_failed = True
            logger.warning(f"Earth texture unavailable, keeping flat color: {e}")
            return
        except Exception as e:
            ctx.texture_failed = True
            logger.warning(f"Earth texture load raised {type(e).__name__}, keeping flat color: {e}")
            return

        earth = ctx.arena.get(resources.EARTH, "earth")
        try:
            node = ctx.backend.apply_earth_texture(earth.node, image)
        except Exception as e:
            ctx.texture_failed = True
            logger.warning(f"Could not apply Earth texture, keeping flat color: {e}")
            return
        ctx.arena.add(resources.TEXTURE, "earth", node)
        logger.info("Earth texture applied")

    def set_auto_rotate(self, enabled: bool):
        """Read by the next frame; does not touch the scheduler."""
        self.context.auto_rotate = bool(enabled)

    # ------------------------------------------------------------------
    # Markers
    # ------------------------------------------------------------------

    def _make_marker(self, item: PositionedObject):
        ctx = self.context
        cfg = ctx.config
        selected = item.norad_id == ctx.selected_id
        color = hex_to_rgba(
            marker_color(item.object, selected),
            cfg.selected_opacity if selected else cfg.marker_opacity,
        )
        node = ctx.backend.create_marker(item.norad_id, item.position, color, cfg.marker_radius)
        ctx.arena.add(resources.MARKER, item.norad_id, node)

    def _draw_markers(self):
        ctx = self.context
        ctx.backend.draw_markers([h.node for h in ctx.arena.handles(resources.MARKER)], ctx.config.marker_pixel_size)

    def update_markers(self, positioned: Sequence[PositionedObject]) -> int:
        """
        Replace the rendered marker set.

        Every existing marker is released before new ones are created; at
        most ``marker_cap`` objects are materialized and the rest are not
        drawn. Markers are keyed by catalog id.

        Returns:
            Number of live markers
        """
        ctx = self.context
        self._require(SceneState.READY, "update markers")
        if not ctx.config.renderable_kind.shows_markers:
            logger.debug("Marker update ignored: view renders orbit rings only")
            return 0

        ctx.arena.remove_kind(resources.MARKER)
        ctx.markers.clear()

        cap = max(0, ctx.config.marker_cap)
        if len(positioned) > cap:
            logger.info(f"Rendering {cap} of {len(positioned)} objects (marker cap)")

        for item in list(positioned)[:cap]:
            self._make_marker(item)
            ctx.markers[item.norad_id] = item

        self._draw_markers()
        return self.live_marker_count

    def set_selection(self, object_id: Optional[int]):
        """Highlight one object's marker (None clears). Affected markers are replaced whole."""
        ctx = self.context
        if object_id == ctx.selected_id:
            return
        previous = ctx.selected_id
        ctx.selected_id = object_id
        if ctx.state is not SceneState.READY:
            return

        changed = False
        for oid in (previous, object_id):
            item = ctx.markers.get(oid) if oid is not None else None
            if item is not None:
                self._make_marker(item)
                changed = True
        if changed:
            self._draw_markers()

    def marker_arrays(self) -> Tuple[List[int], np.ndarray]:
        ids = list(self.context.markers)
        positions = np.array([self.context.markers[i].position for i in ids], dtype=float).reshape(-1, 3)
        return ids, positions

    # ------------------------------------------------------------------
    # Orbit rings
    # ------------------------------------------------------------------

    def update_paths(self, paths: Dict[str, OrbitPath], visible: Optional[Iterable[str]] = None) -> bool:
        """
        Show the rings of the visible orbit classes.

        An empty or missing ``visible`` selection means every class in
        ``paths``. Nothing happens unless the visible set (or a visible
        ring's geometry) changed.

        Returns:
            True if the rendered rings changed
        """
        ctx = self.context
        self._require(SceneState.READY, "update orbit paths")
        if not ctx.config.renderable_kind.shows_paths:
            return False

        selection = frozenset(code.upper() for code in (visible or ()))
        codes = frozenset(c for c in paths if c in selection) if selection else frozenset(paths)

        redraw = {c for c in codes if not paths[c].same_geometry(ctx.paths.get(c))}
        for code in codes - redraw:
            ctx.paths[code] = paths[code]
        if codes == ctx.visible_orbits and not redraw:
            return False

        for code in list(ctx.paths):
            if code not in codes or code in redraw:
                ctx.arena.remove(resources.PATH, code)
                del ctx.paths[code]

        for code in sorted(codes - set(ctx.paths)):
            path = paths[code]
            node = ctx.backend.add_orbit_line(path.closed_points(), path.color, ctx.config.path_opacity)
            ctx.arena.add(resources.PATH, code, node)
            ctx.paths[code] = path

        ctx.visible_orbits = codes
        logger.debug(f"Rendering orbit rings: {sorted(codes)}")
        return True

    # ------------------------------------------------------------------
    # Picking
    # ------------------------------------------------------------------

    def pick(self, ndc_x: float, ndc_y: float) -> Optional[CatalogObject]:
        """Object under the pointer (markers only), or None."""
        if self.context.state is not SceneState.READY:
            return None
        ids, positions = self.marker_arrays()
        hit = self.context.picking.pick(ndc_x, ndc_y, ids, positions)
        if hit is None:
            return None
        return self.context.markers[hit].object

    def handle_click(self, ndc_x: float, ndc_y: float) -> Optional[CatalogObject]:
        """Emit selection-changed on a hit; a miss keeps the current selection."""
        obj = self.pick(ndc_x, ndc_y)
        if obj is not None:
            for listener in list(self.selection_listeners):
                listener(obj)
        return obj
