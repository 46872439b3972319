"""
Shared test doubles: a recording render backend, an inline executor and
sample catalog data.
"""

from concurrent.futures import Future
from datetime import datetime, timezone
from typing import Any, Dict, List

import numpy as np

from orbit_navigator.models import CatalogObject, OrbitalData
from orbit_navigator.render_backend import RenderBackend

# ISS element set (epoch 2023-09-16 13:49 UTC)
ISS_LINE1 = "1 25544U 98067A   23259.57580000  .00012022  00000-0  21844-3 0  9995"
ISS_LINE2 = "2 25544  51.6416 220.9944 0004263 122.0101 312.2755 15.49541986415598"
ISS_EPOCH = datetime(2023, 9, 16, 14, 0, tzinfo=timezone.utc)

# ISS element set with valid checksums (epoch 2008-09-20)
CHECKSUM_LINE1 = "1 25544U 98067A   08264.51782528 -.00002182  00000-0 -11606-4 0  2927"
CHECKSUM_LINE2 = "2 25544  51.6416 247.4627 0006703 130.5360 325.0288 15.72125391563537"


def make_object(norad_id: int, perigee=None, status=None, object_type="satellite",
                constellation=None, name=None, designator=None, with_elements=False) -> CatalogObject:
    return CatalogObject(
        norad_id=norad_id,
        name=name or f"OBJECT {norad_id}",
        international_designator=designator,
        tle_line1=ISS_LINE1 if with_elements else None,
        tle_line2=ISS_LINE2 if with_elements else None,
        orbital_data=OrbitalData(perigee=perigee) if perigee is not None else None,
        object_type=object_type,
        constellation=constellation,
        status=status,
    )


class Node:
    """Opaque backend node."""

    def __init__(self, kind: str, **attrs):
        self.kind = kind
        self.__dict__.update(attrs)

    def __repr__(self):
        return f"Node({self.kind})"


class RecordingBackend(RenderBackend):
    """Backend that records every allocation, release and draw call."""

    def __init__(self):
        self.allocated: List[Node] = []
        self.released: List[Node] = []
        self.drawn_markers: List[Node] = []
        self.marker_pixel_size = None
        self.rotations: List[float] = []
        self.render_count = 0
        self.sync_count = 0
        self.closed = False
        self.click_handler = None
        self.star_points = None
        self.earth_radius = None

    def _alloc(self, kind, **attrs) -> Node:
        node = Node(kind, **attrs)
        self.allocated.append(node)
        return node

    @property
    def live(self) -> List[Node]:
        released = set(map(id, self.released))
        return [n for n in self.allocated if id(n) not in released]

    def live_of(self, kind: str) -> List[Node]:
        return [n for n in self.live if n.kind == kind]

    def create_surface(self, title, size, background):
        return self._alloc("surface", title=title, size=size, background=background)

    def add_lights(self, ambient, directional, direction):
        return self._alloc("lights", ambient=ambient, directional=directional, direction=direction)

    def add_starfield(self, points, color, size):
        self.star_points = np.asarray(points)
        return self._alloc("starfield")

    def add_earth(self, radius, color, segments):
        self.earth_radius = radius
        return self._alloc("earth", color=color, segments=segments)

    def apply_earth_texture(self, earth, image):
        return self._alloc("texture", shape=np.asarray(image).shape)

    def add_orbit_line(self, points, color, opacity):
        return self._alloc("path", points=np.asarray(points), color=color, opacity=opacity)

    def create_marker(self, object_id, position, color, radius):
        return self._alloc("marker", object_id=object_id, position=position, color=color, radius=radius)

    def draw_markers(self, markers, pixel_size):
        self.drawn_markers = list(markers)
        self.marker_pixel_size = pixel_size

    def set_rotation(self, node, angle_deg):
        self.rotations.append(angle_deg)

    def sync_camera(self, camera, controls):
        self.sync_count += 1

    def render(self):
        self.render_count += 1

    def connect_input(self, on_click, controls):
        self.click_handler = on_click

    def release(self, node):
        if any(node is r for r in self.released):
            raise AssertionError(f"{node} released twice")
        self.released.append(node)

    def close(self):
        self.closed = True


class InlineExecutor:
    """Runs submitted work immediately and returns a completed Future."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, *args, **kwargs) -> Future:
        self.submitted += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait=True):
        pass


class DeferredExecutor(InlineExecutor):
    """Queues work until ``run_all()`` is called."""

    def __init__(self):
        super().__init__()
        self.queue: List[Any] = []

    def submit(self, fn, *args, **kwargs) -> Future:
        self.submitted += 1
        future = Future()
        self.queue.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        queue, self.queue = self.queue, []
        for future, fn, args, kwargs in queue:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)


def texture_image() -> np.ndarray:
    return np.zeros((4, 8, 3), dtype=np.uint8)


def counts_by_kind(nodes) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for node in nodes:
        counts[node.kind] = counts.get(node.kind, 0) + 1
    return counts
