"""
Picking Controller

Maps a click to a catalog object by casting a ray from the camera through the
pointer's normalized device coordinates and intersecting it with marker
spheres only. Orbit lines, the Earth and the starfield are never hit-tested.
The nearest intersected marker wins; a miss leaves the selection unchanged.

Markers are drawn as fixed-size screen sprites, so each marker's hit sphere
is the larger of its scene radius and the world size of its sprite at the
marker's depth.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from orbit_navigator.controls import PerspectiveCamera

logger = logging.getLogger(__name__)


def ray_sphere_distances(origin: np.ndarray, direction: np.ndarray,
                         centers: np.ndarray, radius) -> np.ndarray:
    """
    Distance along a unit ray to the first intersection with each sphere.

    Args:
        origin: Ray origin, shape (3,)
        direction: Unit ray direction, shape (3,)
        centers: Sphere centers, shape (n, 3)
        radius: Common sphere radius, or one radius per sphere

    Returns:
        Array of shape (n,), ``inf`` where the ray misses
    """
    centers = np.asarray(centers, dtype=float).reshape(-1, 3)
    if centers.shape[0] == 0:
        return np.empty(0)

    radius = np.asarray(radius, dtype=float)
    oc = origin - centers
    b = oc @ direction
    c = np.einsum("ij,ij->i", oc, oc) - radius * radius
    disc = b * b - c

    distances = np.full(centers.shape[0], np.inf)
    hit = disc >= 0.0
    root = np.sqrt(np.where(hit, disc, 0.0))
    near = -b - root
    far = -b + root
    # origin inside a sphere: the exit point is the first hit
    t = np.where(near >= 0.0, near, far)
    hit &= t >= 0.0
    distances[hit] = t[hit]
    return distances


class PickingController:
    """
    Nearest-marker picking against a camera.

    Args:
        camera: Camera the pointer rays are cast from
        marker_radius: Marker size in scene units
        marker_pixel_size: On-screen marker diameter in pixels (0 = scene size only)
    """

    def __init__(self, camera: PerspectiveCamera, marker_radius: float, marker_pixel_size: float = 0.0):
        self.camera = camera
        self.marker_radius = marker_radius
        self.marker_pixel_size = marker_pixel_size

    def hit_radii(self, marker_positions: np.ndarray) -> np.ndarray:
        """Per-marker hit-sphere radius matching what is drawn."""
        positions = np.asarray(marker_positions, dtype=float).reshape(-1, 3)
        radii = np.full(positions.shape[0], float(self.marker_radius))
        if self.marker_pixel_size <= 0:
            return radii

        forward, _, _ = self.camera.basis()
        depth = np.maximum((positions - self.camera.eye) @ forward, 0.0)
        sprite = self.camera.world_per_pixel(depth) * self.marker_pixel_size / 2.0
        return np.maximum(radii, sprite)

    def pick(self, ndc_x: float, ndc_y: float,
             marker_ids: Sequence[int], marker_positions: np.ndarray) -> Optional[int]:
        """
        Object id of the nearest marker under the pointer.

        Returns:
            The hit marker's object id, or None on a miss
        """
        if len(marker_ids) == 0:
            return None

        origin, direction = self.camera.ray_from_ndc(ndc_x, ndc_y)
        distances = ray_sphere_distances(origin, direction, marker_positions, self.hit_radii(marker_positions))
        index = int(np.argmin(distances))
        if not np.isfinite(distances[index]):
            return None

        logger.debug(f"Picked object {marker_ids[index]} at distance {distances[index]:.3f}")
        return marker_ids[index]

    def pick_screen(self, x: float, y: float, size: Tuple[int, int],
                    marker_ids: Sequence[int], marker_positions: np.ndarray) -> Optional[int]:
        """Same as ``pick`` for pixel coordinates (origin top-left)."""
        width, height = size
        return self.pick(2.0 * x / width - 1.0, 1.0 - 2.0 * y / height, marker_ids, marker_positions)
