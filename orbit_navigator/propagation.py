"""
SGP4 Propagation Contract

Wraps the sgp4 library behind the contract the rest of the navigator relies
on: propagating an element set to an instant either yields a finite
position/velocity with ``valid=True`` or an invalid result. Nothing here
raises to the caller; exceptions, NaNs and SGP4 error codes all collapse into
``valid=False`` for that object at that instant, and the object stays in the
catalog for the next evaluation.

Features:
- Satrec cache keyed by the element lines (element sets are immutable)
- Vectorised batch propagation of a working set via SatrecArray
- TEME -> Earth-fixed rotation and scene-unit conversion for rendering
- Geodetic sub-point of a rendered position (WGS84, Bowring)
- Geodetic height and speed for the "current status" display (skyfield)
"""

import logging
import numpy as np
from datetime import datetime, timezone
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from sgp4.api import Satrec, SatrecArray
from skyfield.api import load, EarthSatellite, wgs84

from orbit_navigator.exceptions import PropagationError
from orbit_navigator.models import CatalogObject, PositionedObject
from orbit_navigator.tle import TLEParser
from orbit_navigator import transform

logger = logging.getLogger(__name__)


# SGP4 error code meanings
SGP4_ERROR_CODES = {
    0: "No error",
    1: "Mean eccentricity < 0.0 or > 1.0",
    2: "Mean motion < 0.0",
    3: "Perturbed eccentricity < 0.0 or > 1.0",
    4: "Semi-latus rectum < 0.0",
    5: "Satellite has decayed",
    6: "Satellite has decayed (low altitude)",
}


class PropagationResult(NamedTuple):
    """Outcome of propagating one element set to one instant (TEME frame, km and km/s)."""

    valid: bool
    position: Optional[np.ndarray] = None
    velocity: Optional[np.ndarray] = None
    error_code: int = 0
    message: str = ""


class CurrentStatus(NamedTuple):
    """Geodetic snapshot used by the details display."""

    valid: bool
    altitude_km: Optional[float] = None
    speed_kms: Optional[float] = None
    latitude_deg: Optional[float] = None
    longitude_deg: Optional[float] = None


def _as_utc(timestamp: Optional[datetime]) -> datetime:
    if timestamp is None:
        return datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp


class Propagator:
    """
    SGP4 invocation, caching and conversion into renderable units.

    The cache only ever holds parsed Satrec objects; propagation results are
    a pure function of (element set, timestamp) and are never stored back on
    the catalog object.
    """

    def __init__(self, parser: Optional[TLEParser] = None):
        self.parser = parser or TLEParser()
        self._satrecs: Dict[Tuple[str, str], Satrec] = {}
        self._timescale = None

    def satrec_for(self, line1: Optional[str], line2: Optional[str]) -> Satrec:
        """Return the cached Satrec for an element set, parsing it on first use."""
        key = (line1 or "", line2 or "")
        satrec = self._satrecs.get(key)
        if satrec is None:
            satrec = self.parser.load_satrec(line1, line2)
            self._satrecs[key] = satrec
        return satrec

    def clear_cache(self):
        """Forget parsed element sets (call on catalog reload)."""
        self._satrecs.clear()

    def propagate(self, line1: Optional[str], line2: Optional[str],
                  timestamp: Optional[datetime] = None) -> PropagationResult:
        """
        Propagate an element set to a timestamp.

        Args:
            line1: TLE line 1
            line2: TLE line 2
            timestamp: Target time (default: now, naive values taken as UTC)

        Returns:
            PropagationResult; ``valid`` is False on any failure
        """
        timestamp = _as_utc(timestamp)
        try:
            satrec = self.satrec_for(line1, line2)
            jd, fr = self.parser.datetime_to_jd_fr(timestamp)
            error, position, velocity = satrec.sgp4(jd, fr)

            if error != 0:
                raise PropagationError(
                    f"SGP4 error {error}: {SGP4_ERROR_CODES.get(error, 'Unknown error')}",
                    error_code=error,
                )

            position = np.asarray(position, dtype=float)
            velocity = np.asarray(velocity, dtype=float)
            if not (np.isfinite(position).all() and np.isfinite(velocity).all()):
                raise PropagationError("SGP4 returned non-finite state")

            return PropagationResult(True, position, velocity)
        except PropagationError as e:
            logger.debug(f"Propagation failed: {e}")
            return PropagationResult(False, error_code=e.error_code or -1, message=str(e))
        except Exception as e:
            logger.debug(f"Unexpected propagation failure: {e}")
            return PropagationResult(False, error_code=-1, message=str(e))

    def scene_position(self, line1: Optional[str], line2: Optional[str],
                       timestamp: Optional[datetime] = None) -> Optional[np.ndarray]:
        """Earth-fixed position of one element set in scene units, or None if invalid."""
        timestamp = _as_utc(timestamp)
        result = self.propagate(line1, line2, timestamp)
        if not result.valid:
            return None
        r_ecef, _ = self.parser.teme_to_ecef_precise(result.position, result.velocity, timestamp)
        return transform.to_scene(r_ecef)

    def geodetic_of(self, scene_position) -> Tuple[float, float, float]:
        """Latitude, longitude (degrees) and height (km) under an Earth-fixed scene position."""
        return self.parser.ecef_to_geodetic_precise(transform.to_km(scene_position))

    def propagate_batch(self, objects: Iterable[CatalogObject],
                        timestamp: Optional[datetime] = None) -> List[PositionedObject]:
        """
        Propagate a working set to one instant and annotate scene positions.

        Objects whose element sets are missing, malformed, or fail numerically
        are left out of the returned list. Input order is preserved.

        Args:
            objects: Catalog objects to place
            timestamp: Target time (default: now)

        Returns:
            List of PositionedObject in scene units (Earth-fixed frame)
        """
        timestamp = _as_utc(timestamp)
        loaded = []
        satrecs = []

        for obj in objects:
            try:
                satrecs.append(self.satrec_for(obj.tle_line1, obj.tle_line2))
                loaded.append(obj)
            except PropagationError as e:
                logger.debug(f"Skipping {obj.norad_id}: {e}")

        if not loaded:
            return []

        jd, fr = self.parser.datetime_to_jd_fr(timestamp)
        errors, positions, velocities = SatrecArray(satrecs).sgp4(np.array([jd]), np.array([fr]))

        positions = positions[:, 0, :]
        velocities = velocities[:, 0, :]
        valid = (errors[:, 0] == 0) & np.isfinite(positions).all(axis=1) & np.isfinite(velocities).all(axis=1)

        invalid_count = int((~valid).sum())
        if invalid_count:
            logger.debug(f"{invalid_count} of {len(loaded)} objects failed to propagate")

        r_ecef, _ = self.parser.teme_to_ecef_precise(positions[valid], velocities[valid], timestamp)
        scene = transform.to_scene(r_ecef)

        valid_objects = [obj for obj, ok in zip(loaded, valid) if ok]
        return [
            PositionedObject(obj, (float(p[0]), float(p[1]), float(p[2])))
            for obj, p in zip(valid_objects, scene)
        ]

    def current_status(self, line1: Optional[str], line2: Optional[str],
                       timestamp: Optional[datetime] = None, name: str = "") -> CurrentStatus:
        """
        Geodetic height, sub-point and inertial speed at an instant.

        Used for the details display only; rendering positions come from
        ``propagate_batch``.
        """
        timestamp = _as_utc(timestamp)
        if not line1 or not line2:
            return CurrentStatus(False)

        try:
            ts = self._get_timescale()
            satellite = EarthSatellite(line1.strip(), line2.strip(), name or None, ts)
            geocentric = satellite.at(ts.from_datetime(timestamp))

            position = geocentric.position.km
            velocity = geocentric.velocity.km_per_s
            if not (np.isfinite(position).all() and np.isfinite(velocity).all()):
                logger.debug(f"Status unavailable for {name or line1[2:7]}: {getattr(geocentric, 'message', '')}")
                return CurrentStatus(False)

            lat, lon = wgs84.latlon_of(geocentric)
            altitude = wgs84.height_of(geocentric).km
            speed = float(np.linalg.norm(velocity))

            return CurrentStatus(
                True,
                altitude_km=round(float(altitude), 2),
                speed_kms=round(speed, 2),
                latitude_deg=float(lat.degrees),
                longitude_deg=float(lon.degrees),
            )
        except Exception as e:
            logger.debug(f"Status computation failed: {e}")
            return CurrentStatus(False)

    def _get_timescale(self):
        if self._timescale is None:
            self._timescale = load.timescale()
        return self._timescale


_default_propagator = Propagator()


def propagate(line1: Optional[str], line2: Optional[str],
              timestamp: Optional[datetime] = None) -> PropagationResult:
    """Module-level shortcut using a shared Propagator."""
    return _default_propagator.propagate(line1, line2, timestamp)
