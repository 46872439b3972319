"""
Orbit Classes and Orbit-Ring Generation

Idealized reference rings for each orbit class. A ring is a pure function of
(class altitude band, inclination): semi-major axis = Earth radius + band
midpoint, eccentricity fixed at 0, N points evenly spaced in true anomaly,
rotated about the scene x-axis by the inclination, emitted in scene units.

Results are cached on (orbit class, inclination, point count) and returned
as read-only arrays, so a cached ring can be handed to any number of
renderables without being mutated.
"""

import math
import logging
import numpy as np
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterable, List, Optional

from config import EARTH_RADIUS_KM, DEFAULT_PATH_POINTS
from orbit_navigator import transform
from orbit_navigator.models import LaunchRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrbitClass:
    code: str
    name: str
    min_altitude: float
    max_altitude: float
    color: str
    description: str

    @property
    def mean_altitude(self) -> float:
        return (self.min_altitude + self.max_altitude) / 2.0


ORBIT_TYPES: Dict[str, OrbitClass] = {
    "LEO": OrbitClass("LEO", "Low Earth Orbit", 200, 2000, "#00ff00",
                      "200-2000 km altitude, used for satellites, ISS, etc."),
    "MEO": OrbitClass("MEO", "Medium Earth Orbit", 2000, 35786, "#ffff00",
                      "2000-35786 km altitude, used for navigation satellites"),
    "GEO": OrbitClass("GEO", "Geostationary Orbit", 35786, 35786, "#ff00ff",
                      "35786 km altitude, synchronous with Earth rotation"),
    "SSO": OrbitClass("SSO", "Sun-Synchronous Orbit", 600, 800, "#00ffff",
                      "600-800 km altitude, maintains constant sun angle"),
    "HEO": OrbitClass("HEO", "High Earth Orbit", 35786, 50000, "#ff8800",
                      "Above GEO, used for specialized missions"),
    "POLAR": OrbitClass("POLAR", "Polar Orbit", 200, 2000, "#0088ff",
                        "Polar orbit, passes over poles"),
}

NEAR_POLAR_INCLINATION = 98.0
REFERENCE_INCLINATION = 51.6
FALLBACK_ALTITUDE_KM = 500.0
DEFAULT_COLOR = "#ffffff"


@dataclass(frozen=True)
class OrbitPath:
    """A renderable ring for one orbit class (points in scene units, read-only)."""

    code: str
    name: str
    color: str
    inclination: float
    points: np.ndarray
    launch_count: int = 0

    @property
    def has_launches(self) -> bool:
        return self.launch_count > 0

    def closed_points(self) -> np.ndarray:
        """Points with the first point repeated at the end, for line-loop rendering."""
        return np.vstack([self.points, self.points[:1]])

    def same_geometry(self, other: Optional["OrbitPath"]) -> bool:
        """True when ``other`` draws the identical ring (launch counts aside)."""
        if other is self:
            return True
        return (
            other is not None
            and self.code == other.code
            and self.color == other.color
            and self.inclination == other.inclination
            and np.array_equal(self.points, other.points)
        )


def calculate_orbit_path(semi_major_axis_km: float, eccentricity: float = 0.0,
                         inclination_deg: float = 0.0,
                         num_points: int = DEFAULT_PATH_POINTS) -> np.ndarray:
    """
    Points of one revolution of an ellipse in the orbital plane, inclined about x.

    Args:
        semi_major_axis_km: Semi-major axis (km)
        eccentricity: Eccentricity in [0, 1)
        inclination_deg: Rotation about the x-axis (degrees)
        num_points: Number of points, evenly spaced in anomaly

    Returns:
        (num_points, 3) array in scene units
    """
    if num_points < 3:
        raise ValueError("An orbit path needs at least 3 points")
    if not 0.0 <= eccentricity < 1.0:
        raise ValueError(f"Eccentricity {eccentricity} outside [0, 1)")

    inclination = math.radians(inclination_deg)
    a = transform.to_scene(semi_major_axis_km)
    b = transform.to_scene(semi_major_axis_km * math.sqrt(1.0 - eccentricity * eccentricity))

    angles = np.arange(num_points) * (2.0 * math.pi / num_points)
    x_orbital = a * np.cos(angles)
    y_orbital = b * np.sin(angles)

    points = np.empty((num_points, 3))
    points[:, 0] = x_orbital
    points[:, 1] = y_orbital * math.cos(inclination)
    points[:, 2] = y_orbital * math.sin(inclination)
    return points


def default_inclination(orbit_code: str) -> float:
    """Class default: near-polar for SSO/POLAR, equatorial for GEO, 51.6 deg otherwise."""
    code = orbit_code.upper()
    if code in ("SSO", "POLAR"):
        return NEAR_POLAR_INCLINATION
    if code == "GEO":
        return 0.0
    return REFERENCE_INCLINATION


@lru_cache(maxsize=128)
def _cached_points(orbit_code: str, inclination: Optional[float], num_points: int) -> np.ndarray:
    orbit_type = ORBIT_TYPES.get(orbit_code)
    if orbit_type is None:
        points = calculate_orbit_path(
            EARTH_RADIUS_KM + FALLBACK_ALTITUDE_KM, 0.0, inclination or 0.0, num_points
        )
    else:
        if inclination is None:
            inclination = default_inclination(orbit_code)
        points = calculate_orbit_path(
            EARTH_RADIUS_KM + orbit_type.mean_altitude, 0.0, inclination, num_points
        )
    points.flags.writeable = False
    return points


def orbit_points_for_type(orbit_code: str, inclination: Optional[float] = None,
                          num_points: int = DEFAULT_PATH_POINTS) -> np.ndarray:
    """
    Ring points for an orbit class.

    Unknown codes fall back to a 500 km circular ring at the requested
    inclination (0 when none is given) instead of failing.
    """
    code = (orbit_code or "").upper()
    if code and code not in ORBIT_TYPES:
        logger.debug(f"Unknown orbit class {orbit_code!r}, using low-orbit fallback ring")
    return _cached_points(code, None if inclination is None else float(inclination), int(num_points))


def orbit_path_for_type(orbit_code: str, inclination: Optional[float] = None,
                        num_points: int = DEFAULT_PATH_POINTS, launch_count: int = 0) -> OrbitPath:
    """Build the OrbitPath renderable description for one class."""
    code = (orbit_code or "").upper()
    orbit_type = ORBIT_TYPES.get(code)
    if orbit_type is None:
        effective = inclination or 0.0
    else:
        effective = default_inclination(code) if inclination is None else inclination

    return OrbitPath(
        code=code,
        name=get_orbit_name(code),
        color=get_orbit_color(code),
        inclination=float(effective),
        points=orbit_points_for_type(code, inclination, num_points),
        launch_count=launch_count,
    )


def get_orbit_color(orbit_code: Optional[str]) -> str:
    orbit_type = ORBIT_TYPES.get((orbit_code or "").upper())
    return orbit_type.color if orbit_type else DEFAULT_COLOR


def get_orbit_name(orbit_code: Optional[str]) -> str:
    orbit_type = ORBIT_TYPES.get((orbit_code or "").upper())
    if orbit_type:
        return orbit_type.name
    return orbit_code or "Unknown Orbit"


def group_launches_by_orbit(launches: Iterable[LaunchRecord]) -> Dict[str, List[LaunchRecord]]:
    """Group launch records by upper-cased orbit code ("UNKNOWN" when absent)."""
    grouped: Dict[str, List[LaunchRecord]] = {}
    for launch in launches:
        key = (launch.orbit or "UNKNOWN").upper()
        grouped.setdefault(key, []).append(launch)
    return grouped


def build_orbit_paths(launches: Iterable[LaunchRecord] = (),
                      num_points: int = DEFAULT_PATH_POINTS) -> Dict[str, OrbitPath]:
    """
    Orbit rings for the ring viewer.

    Every standard class is present whether or not it has launches; codes
    that only appear in launch data get a ring too (the fallback ring for
    unrecognized codes).
    """
    grouped = group_launches_by_orbit(launches)
    paths = {
        code: orbit_path_for_type(code, num_points=num_points, launch_count=len(records))
        for code, records in grouped.items()
    }
    for code in ORBIT_TYPES:
        if code not in paths:
            paths[code] = orbit_path_for_type(code, num_points=num_points)
    return paths


def launch_summary(paths: Dict[str, OrbitPath], total_launches: int) -> dict:
    """Launch counts per class for the ring viewer's statistics panel."""
    by_orbit = sorted(
        (
            {"orbit_code": p.code, "orbit_name": p.name, "count": p.launch_count}
            for p in paths.values()
            if p.launch_count > 0
        ),
        key=lambda item: item["count"],
        reverse=True,
    )
    return {
        "total_launches": total_launches,
        "orbits_with_launches": len(by_orbit),
        "launches_by_orbit": by_orbit,
    }
