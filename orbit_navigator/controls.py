"""
Camera and Navigation Controls

A perspective camera plus orbit-style navigation (rotate around a target,
dolly in/out) with damping and optional auto-rotation. The scene is z-up.

The controls own the camera pose. Render backends copy the pose into their
own camera each frame, and picking builds rays from this camera. Markers are
drawn at a fixed pixel size, so picking sizes each hit sphere from the
camera's pixel footprint at the marker's depth.
"""

import math
from typing import Tuple

import numpy as np

EPS = 1e-6


def _normalize(v: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(v)
    if norm < EPS:
        return v
    return v / norm


class PerspectiveCamera:
    """
    Pinhole camera described by its pose and vertical field of view.

    Args:
        fov: Vertical field of view (degrees)
        aspect: Viewport width / height
        near: Near clipping distance
        far: Far clipping distance
    """

    def __init__(self, fov: float = 50.0, aspect: float = 1.0, near: float = 0.01, far: float = 10000.0):
        self.fov = fov
        self.aspect = aspect
        self.near = near
        self.far = far
        self.eye = np.array([0.0, -50.0, 0.0])
        self.target = np.zeros(3)
        self.up = np.array([0.0, 0.0, 1.0])
        self.viewport_height = 600

    def set_viewport(self, width: int, height: int):
        """Track the drawable size in pixels; keeps the aspect ratio in step."""
        if width <= 0 or height <= 0:
            return
        self.aspect = width / height
        self.viewport_height = height

    def world_per_pixel(self, depth):
        """World-space length covered by one pixel at a given view depth."""
        tan_half = math.tan(math.radians(self.fov) / 2.0)
        return 2.0 * np.asarray(depth, dtype=float) * tan_half / self.viewport_height

    def basis(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """(forward, right, up) unit vectors of the view."""
        forward = _normalize(self.target - self.eye)
        right = _normalize(np.cross(forward, self.up))
        if np.linalg.norm(right) < EPS:
            # looking straight along the up axis
            right = np.array([1.0, 0.0, 0.0])
        up = np.cross(right, forward)
        return forward, right, up

    def ray_from_ndc(self, ndc_x: float, ndc_y: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        World-space ray through normalized device coordinates.

        Args:
            ndc_x: -1 (left edge) .. 1 (right edge)
            ndc_y: -1 (bottom edge) .. 1 (top edge)

        Returns:
            (origin, unit direction)
        """
        forward, right, up = self.basis()
        tan_half = math.tan(math.radians(self.fov) / 2.0)
        direction = forward + ndc_x * tan_half * self.aspect * right + ndc_y * tan_half * up
        return self.eye.copy(), _normalize(direction)

    def project(self, point) -> Tuple[float, float, float]:
        """World point -> (ndc_x, ndc_y, depth along the view axis)."""
        forward, right, up = self.basis()
        rel = np.asarray(point, dtype=float) - self.eye
        depth = float(np.dot(rel, forward))
        if depth <= EPS:
            return float("nan"), float("nan"), depth
        tan_half = math.tan(math.radians(self.fov) / 2.0)
        x = float(np.dot(rel, right)) / (depth * tan_half * self.aspect)
        y = float(np.dot(rel, up)) / (depth * tan_half)
        return x, y, depth


class OrbitControls:
    """
    Rotate/dolly navigation around a target point.

    Pending rotation decays by ``damping_factor`` on every ``update()`` so a
    drag keeps gliding for a few frames. Auto-rotation adds a constant
    azimuth step per update. Distance is clamped to [min_distance,
    max_distance] and elevation stops just short of the poles.
    """

    def __init__(self, camera: PerspectiveCamera, distance: float = 50.0,
                 min_distance: float = 2.0, max_distance: float = 1000.0,
                 damping_factor: float = 0.05, enable_damping: bool = True,
                 auto_rotate: bool = False, auto_rotate_speed: float = 1.0,
                 rotate_speed: float = 1.0, zoom_speed: float = 1.0):
        self.camera = camera
        self.min_distance = min_distance
        self.max_distance = max_distance
        self.damping_factor = damping_factor
        self.enable_damping = enable_damping
        self.auto_rotate = auto_rotate
        self.auto_rotate_speed = auto_rotate_speed
        self.rotate_speed = rotate_speed
        self.zoom_speed = zoom_speed

        self.azimuth = 0.0
        self.elevation = 0.0
        self.distance = self._clamp_distance(distance)

        self._delta_azimuth = 0.0
        self._delta_elevation = 0.0
        self.update()

    def _clamp_distance(self, distance: float) -> float:
        return max(self.min_distance, min(self.max_distance, distance))

    def auto_rotation_angle(self) -> float:
        """Azimuth step per update: one revolution per minute at 60 fps and speed 1."""
        return 2.0 * math.pi / 60.0 / 60.0 * self.auto_rotate_speed

    def rotate_left(self, angle: float):
        self._delta_azimuth -= angle

    def rotate_up(self, angle: float):
        self._delta_elevation += angle

    def drag(self, dx_pixels: float, dy_pixels: float, viewport_height: float):
        """Pointer drag in pixels, scaled so a full-height drag is one revolution."""
        if viewport_height <= 0:
            return
        self.rotate_left(2.0 * math.pi * dx_pixels / viewport_height * self.rotate_speed)
        self.rotate_up(2.0 * math.pi * dy_pixels / viewport_height * self.rotate_speed)

    def dolly(self, steps: float):
        """Wheel zoom: positive steps move closer."""
        scale = 0.95 ** (self.zoom_speed * steps)
        self.distance = self._clamp_distance(self.distance * scale)

    def update(self) -> bool:
        """
        Advance damping/auto-rotation and write the pose into the camera.

        Returns:
            True if the camera moved
        """
        previous = self.camera.eye.copy()

        if self.auto_rotate:
            self.rotate_left(self.auto_rotation_angle())

        if self.enable_damping:
            self.azimuth += self._delta_azimuth * self.damping_factor
            self.elevation += self._delta_elevation * self.damping_factor
            self._delta_azimuth *= 1.0 - self.damping_factor
            self._delta_elevation *= 1.0 - self.damping_factor
        else:
            self.azimuth += self._delta_azimuth
            self.elevation += self._delta_elevation
            self._delta_azimuth = 0.0
            self._delta_elevation = 0.0

        limit = math.pi / 2.0 - EPS
        self.elevation = max(-limit, min(limit, self.elevation))
        self.distance = self._clamp_distance(self.distance)

        self.camera.eye = self.camera.target + self.distance * np.array([
            math.cos(self.elevation) * math.sin(self.azimuth),
            -math.cos(self.elevation) * math.cos(self.azimuth),
            math.sin(self.elevation),
        ])
        return not np.allclose(previous, self.camera.eye)
