"""
Orbit Navigator Configuration and Constants

This module contains physical constants, rendering parameters and the
environment-driven service settings used throughout the project.

Constants:
    Earth mean radius and gravitational parameter used to derive orbital
    altitudes and to size the rendered Earth. Every geometric quantity that
    reaches the scene goes through KM_PER_SCENE_UNIT (1 scene unit = 1000 km).

Rendering parameters:
    DEFAULT_MARKER_CAP and DEFAULT_PATH_POINTS are performance knobs, not
    physical quantities. Both can be overridden via environment variables
    (MAX_SATELLITES_RENDER, ORBIT_PATH_POINTS).

Fallback TLE Data:
    Hardcoded ISS TLE data for demonstrations and testing when live data is unavailable.

    IMPORTANT: Update this TLE data periodically for accuracy.
    - Low Earth Orbit (LEO) satellites: Update weekly
    - Medium Earth Orbit (MEO): Update monthly
    - Geostationary (GEO): Update quarterly

    Sources for updated TLEs:
    - Space-Track.org (requires free registration)
    - CelesTrak.org (public access)
"""

import os
from typing import Dict, Any, Optional

# Earth model
EARTH_RADIUS_KM: float = 6371.0  # Mean Earth radius (km)
GRAVITATIONAL_PARAMETER: float = 398600.4418  # Earth gravitational parameter (km³/s²)
EARTH_ROTATION_RATE: float = 7.2921159e-5  # rad/s

# Scene scale: 1 scene unit = 1000 km
KM_PER_SCENE_UNIT: float = 1000.0

# Altitude band boundaries (perigee, km)
LEO_MEO_BOUNDARY_KM: float = 2000.0
GEO_ALTITUDE_KM: float = 35786.0

# Rendering parameters
DEFAULT_MARKER_CAP: int = 5000
DEFAULT_PATH_POINTS: int = 100
DEFAULT_STAR_COUNT: int = 5000
STARFIELD_EXTENT: float = 2000.0  # edge length of the star cube (scene units)
MARKER_RADIUS: float = 0.03  # scene units
MARKER_PIXEL_SIZE: float = 6.0  # on-screen marker diameter (pixels)

DEFAULT_EARTH_TEXTURE_URL: str = (
    "https://threejs.org/examples/textures/planets/earth_atmos_2048.jpg"
)

# Fallback ISS TLE for demonstrations and testing
FALLBACK_ISS_TLE: Dict[str, Any] = {
    'name': 'ISS (ZARYA)',
    'norad_id': 25544,
    'line1': '1 25544U 98067A   25230.51041667  .00002182  00000-0  13103-3 0  9996',
    'line2': '2 25544  51.6416  45.1234 0002329  75.6910 284.4861 15.50000000123457',
    'epoch': '2025-08-18T12:15:00Z',
    'mean_motion': 15.5,
    'inclination': 51.6416,
    'eccentricity': 0.0002329
}


class NavigatorConfig:
    """Service and viewer settings read from the environment."""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        env = os.environ if environ is None else environ

        self.API_BASE = env.get('ORBIT_API_BASE', 'http://localhost:3000').rstrip('/')
        self.CELESTRAK_BASE = env.get('CELESTRAK_API_BASE', 'https://celestrak.org').rstrip('/')
        self.CELESTRAK_GROUP = env.get('CELESTRAK_GROUP', 'ACTIVE')
        self.REDIS_URL = env.get('REDIS_URL', '')
        self.CACHE_TTL = int(env.get('CACHE_TTL', '3600'))
        self.REQUEST_TIMEOUT = float(env.get('REQUEST_TIMEOUT', '30'))
        self.MAX_SATELLITES_RENDER = int(env.get('MAX_SATELLITES_RENDER', str(DEFAULT_MARKER_CAP)))
        self.ORBIT_PATH_POINTS = int(env.get('ORBIT_PATH_POINTS', str(DEFAULT_PATH_POINTS)))
        self.EARTH_TEXTURE_URL = env.get('EARTH_TEXTURE_URL', DEFAULT_EARTH_TEXTURE_URL)
        self.CATALOG_FETCH_LIMIT = int(env.get('CATALOG_FETCH_LIMIT', '10000'))

    def __repr__(self):
        return (
            f"NavigatorConfig(api_base={self.API_BASE!r}, "
            f"marker_cap={self.MAX_SATELLITES_RENDER}, "
            f"redis={'on' if self.REDIS_URL else 'off'})"
        )


config = NavigatorConfig()
