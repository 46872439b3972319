"""
Render Backends

``RenderBackend`` is everything the scene manager needs from a graphics
toolkit: allocate nodes, draw them, and release them. The scene manager owns
lifecycle and bookkeeping; a backend only turns calls into visuals.

``VispyBackend`` renders with a vispy ``SceneCanvas``. Per-object markers are
lightweight records owned by the scene's resource arena; the backend draws all
live markers as one batched ``Markers`` visual.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Callable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Color = Tuple[float, float, float, float]


def hex_to_rgba(color: str, alpha: float = 1.0) -> Color:
    """'#rrggbb' -> (r, g, b, a) floats in [0, 1]."""
    value = color.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Expected #rrggbb color, got {color!r}")
    r, g, b = (int(value[i:i + 2], 16) / 255.0 for i in (0, 2, 4))
    return (r, g, b, float(alpha))


class MarkerNode(NamedTuple):
    """One object's marker as drawn in the batch."""

    object_id: int
    position: Tuple[float, float, float]
    color: Color
    radius: float


class LightRig(NamedTuple):
    ambient: float
    directional: float
    direction: Tuple[float, float, float]


class RenderBackend(ABC):
    """Graphics operations used by the scene manager."""

    @abstractmethod
    def create_surface(self, title: str, size: Tuple[int, int], background: str) -> Any:
        """Create the drawing surface and root view."""

    @abstractmethod
    def add_lights(self, ambient: float, directional: float,
                   direction: Tuple[float, float, float]) -> Any:
        """Ambient + directional lighting."""

    @abstractmethod
    def add_starfield(self, points: np.ndarray, color: str, size: float) -> Any:
        """Static point cloud."""

    @abstractmethod
    def add_earth(self, radius: float, color: str, segments: int) -> Any:
        """Earth sphere with a flat color."""

    @abstractmethod
    def apply_earth_texture(self, earth: Any, image: np.ndarray) -> Any:
        """Replace the Earth's flat color with a surface image; returns the texture node."""

    @abstractmethod
    def add_orbit_line(self, points: np.ndarray, color: str, opacity: float) -> Any:
        """Closed line loop through ``points`` (first point repeated at the end)."""

    @abstractmethod
    def create_marker(self, object_id: int, position: Tuple[float, float, float],
                      color: Color, radius: float) -> Any:
        """Allocate one object's marker."""

    @abstractmethod
    def draw_markers(self, markers: Sequence[Any], pixel_size: float):
        """Show exactly these markers, each ``pixel_size`` pixels across."""

    @abstractmethod
    def set_rotation(self, node: Any, angle_deg: float):
        """Rotate a node about the scene z-axis."""

    @abstractmethod
    def sync_camera(self, camera, controls):
        """Copy the camera pose from the navigation controls."""

    @abstractmethod
    def render(self):
        """Request a repaint."""

    @abstractmethod
    def connect_input(self, on_click: Callable[[float, float], None], controls) -> None:
        """Route clicks (as NDC) to ``on_click`` and drags/wheel to the controls."""

    @abstractmethod
    def release(self, node: Any):
        """Free one node."""

    @abstractmethod
    def close(self):
        """Close the surface."""

    def timer_factory(self) -> Optional[Callable[[Callable], Any]]:
        """Display-synced timer constructor, or None when frames are ticked manually."""
        return None


def sphere_texcoords(vertices: np.ndarray) -> np.ndarray:
    """
    Equirectangular texture coordinates for per-face sphere vertices.

    ``vertices`` has shape (n_faces, 3, 3). The texture is expected to be
    duplicated horizontally, so faces straddling the date line can wrap
    their longitude past pi without a seam.
    """
    x = vertices[..., 0]
    y = vertices[..., 1]
    z = vertices[..., 2]
    theta = np.arctan2(y, x)
    phi = np.arccos(np.clip(z / np.linalg.norm(vertices, axis=-1), -1.0, 1.0))

    straddles = (x < 0).all(axis=1) & (y.max(axis=1) > 0) & (y.min(axis=1) < 0)
    theta = np.where(straddles[:, None] & (theta < 0), theta + 2.0 * np.pi, theta)

    u = (theta + np.pi) / (2.0 * np.pi) / 2.0
    v = phi / np.pi
    return np.stack([u, v], axis=-1).reshape(-1, 2)


class VispyBackend(RenderBackend):
    """vispy SceneCanvas rendering."""

    def __init__(self, show: bool = True, click_tolerance: float = 3.0):
        from vispy import app, scene

        self._app = app
        self._scene = scene
        self.show = show
        self.click_tolerance = click_tolerance
        self.canvas = None
        self.view = None
        self._lights: Optional[LightRig] = None
        self._markers_visual = None
        self._press_pos = None
        self._last_drag_pos = None

    def create_surface(self, title, size, background):
        scene = self._scene
        self.canvas = scene.SceneCanvas(
            title=title, size=size, keys="interactive", show=self.show, bgcolor=background
        )
        self.view = self.canvas.central_widget.add_view()
        self.view.camera = scene.cameras.TurntableCamera(fov=50, azimuth=0, elevation=0, distance=50)
        self.view.camera.interactive = False

        self._markers_visual = scene.visuals.Markers(parent=self.view.scene)
        self._markers_visual.visible = False
        return self.canvas

    def add_lights(self, ambient, directional, direction):
        self._lights = LightRig(ambient, directional, tuple(direction))
        return self._lights

    def add_starfield(self, points, color, size):
        stars = self._scene.visuals.Markers(parent=self.view.scene)
        stars.set_data(points, face_color=hex_to_rgba(color), size=size, edge_width=0)
        return stars

    def add_earth(self, radius, color, segments):
        from vispy.geometry import create_sphere

        sphere = create_sphere(rows=segments, cols=segments, radius=radius, method="latitude")
        earth = self._scene.visuals.Mesh(meshdata=sphere, color=hex_to_rgba(color), shading="smooth")
        if self._lights is not None:
            light = self._lights
            earth.shading_filter.light_dir = tuple(-c for c in light.direction)
            earth.shading_filter.ambient_light = (1, 1, 1, light.ambient)
            earth.shading_filter.diffuse_light = (1, 1, 1, light.directional)
        earth.parent = self.view.scene
        return earth

    def apply_earth_texture(self, earth, image):
        from vispy.geometry import MeshData
        from vispy.visuals.filters import TextureFilter

        vertices = earth.mesh_data.get_vertices(indexed="faces")
        texcoords = sphere_texcoords(vertices)
        earth.set_data(meshdata=MeshData(vertices=vertices), color=(1.0, 1.0, 1.0, 1.0))
        texture_filter = TextureFilter(np.hstack([image, image]), texcoords)
        earth.attach(texture_filter)
        return (earth, texture_filter)

    def add_orbit_line(self, points, color, opacity):
        return self._scene.visuals.Line(
            pos=np.asarray(points, dtype=np.float32),
            color=hex_to_rgba(color, opacity),
            parent=self.view.scene,
            method="gl",
        )

    def create_marker(self, object_id, position, color, radius):
        return MarkerNode(object_id, tuple(position), color, radius)

    def draw_markers(self, markers, pixel_size):
        if not markers:
            self._markers_visual.visible = False
            return
        positions = np.array([m.position for m in markers], dtype=np.float32)
        colors = np.array([m.color for m in markers], dtype=np.float32)
        self._markers_visual.set_data(positions, face_color=colors, size=pixel_size, edge_width=0)
        self._markers_visual.visible = True

    def set_rotation(self, node, angle_deg):
        from vispy.visuals.transforms import MatrixTransform

        if not isinstance(node.transform, MatrixTransform):
            node.transform = MatrixTransform()
        node.transform.reset()
        node.transform.rotate(angle_deg, (0, 0, 1))

    def sync_camera(self, camera, controls):
        cam = self.view.camera
        cam.fov = camera.fov
        cam.center = tuple(camera.target)
        cam.azimuth = math.degrees(controls.azimuth)
        cam.elevation = math.degrees(controls.elevation)
        cam.distance = controls.distance

    def render(self):
        self.canvas.update()

    def connect_input(self, on_click, controls):
        canvas = self.canvas

        def to_ndc(pos):
            width, height = canvas.size
            return 2.0 * pos[0] / width - 1.0, 1.0 - 2.0 * pos[1] / height

        def handle_press(event):
            if event.button == 1:
                self._press_pos = event.pos
                self._last_drag_pos = event.pos

        def handle_move(event):
            if self._last_drag_pos is None or not event.is_dragging:
                return
            dx = event.pos[0] - self._last_drag_pos[0]
            dy = event.pos[1] - self._last_drag_pos[1]
            controls.drag(dx, dy, canvas.size[1])
            self._last_drag_pos = event.pos

        def handle_release(event):
            if event.button != 1 or self._press_pos is None:
                return
            moved = math.hypot(event.pos[0] - self._press_pos[0], event.pos[1] - self._press_pos[1])
            self._press_pos = None
            self._last_drag_pos = None
            if moved <= self.click_tolerance:
                on_click(*to_ndc(event.pos))

        def handle_wheel(event):
            controls.dolly(event.delta[1])

        def handle_resize(event):
            width, height = canvas.size
            controls.camera.set_viewport(width, height)

        canvas.events.mouse_press.connect(handle_press)
        canvas.events.mouse_move.connect(handle_move)
        canvas.events.mouse_release.connect(handle_release)
        canvas.events.mouse_wheel.connect(handle_wheel)
        canvas.events.resize.connect(handle_resize)
        handle_resize(None)

    def release(self, node):
        if isinstance(node, (MarkerNode, LightRig)):
            return
        if isinstance(node, tuple):
            earth, texture_filter = node
            earth.detach(texture_filter)
            return
        if node is self.canvas:
            return
        node.parent = None

    def close(self):
        if self.canvas is not None:
            self.canvas.close()
            self.canvas = None

    def timer_factory(self):
        def make_timer(callback):
            return self._app.Timer(interval=1 / 60.0, connect=callback, start=False)
        return make_timer
