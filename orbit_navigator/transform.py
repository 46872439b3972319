"""
Coordinate/Scale Transform

One scale factor converts every physical kilometre quantity that reaches the
scene (Earth-fixed positions, the Earth radius, orbit-ring radii) into scene
units. Anything that introduces new geometry must go through these helpers
instead of dividing by its own constant.
"""

import numpy as np

from config import KM_PER_SCENE_UNIT, EARTH_RADIUS_KM

SCENE_SCALE = 1.0 / KM_PER_SCENE_UNIT


def to_scene(km):
    """Kilometres -> scene units. Accepts scalars or array-likes."""
    if np.isscalar(km):
        return float(km) / KM_PER_SCENE_UNIT
    return np.asarray(km, dtype=float) / KM_PER_SCENE_UNIT


def to_km(units):
    """Scene units -> kilometres (inverse of ``to_scene``)."""
    if np.isscalar(units):
        return float(units) * KM_PER_SCENE_UNIT
    return np.asarray(units, dtype=float) * KM_PER_SCENE_UNIT


def earth_radius_scene() -> float:
    """Rendered Earth radius."""
    return to_scene(EARTH_RADIUS_KM)
