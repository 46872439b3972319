"""
TLE Utilities Module

Provides utilities for parsing Two-Line Element (TLE) sets, validating their
checksums, deriving catalog orbital data (apogee, perigee, period), and the
frame rotations needed to place a propagated state in the Earth-fixed frame.

This module serves as a high-level interface to the sgp4 library with added
functionality for TLE inspection and coordinate transformations.
"""

import math
import re
import numpy as np
from datetime import datetime, timezone, timedelta
from typing import Dict, Tuple, Any, Optional
from sgp4.api import Satrec

from config import EARTH_RADIUS_KM, GRAVITATIONAL_PARAMETER, EARTH_ROTATION_RATE
from orbit_navigator.exceptions import PropagationError

TLE_LINE_LENGTH = 69

_DESIGNATOR_PATTERN = re.compile(r"^\d{2}\d{3}[A-Z]")

# WGS84 ellipsoid (km)
WGS84_A = 6378.137
WGS84_F = 1.0 / 298.257223563
WGS84_B = WGS84_A * (1.0 - WGS84_F)
WGS84_E2 = WGS84_F * (2.0 - WGS84_F)
WGS84_EP2 = WGS84_E2 / (1.0 - WGS84_E2)


class TLEParser:
    """
    Parser and utilities for Two-Line Element (TLE) sets.

    Provides methods for:
    - Parsing TLE data into structured format
    - Checksum validation
    - Deriving apogee/perigee/period for catalog records
    - Coordinate transformations (TEME to ECEF/Geodetic)
    """

    def parse_tle(self, line1: str, line2: str, name: str = "") -> Dict[str, Any]:
        """
        Parse TLE lines into structured data.

        Args:
            line1: First line of TLE
            line2: Second line of TLE
            name: Optional satellite name

        Returns:
            Dictionary containing parsed TLE data

        Raises:
            PropagationError: if the lines cannot be parsed
        """
        satellite = self.load_satrec(line1, line2)

        # Convert mean motion from rad/min to rev/day
        mean_motion_rev_day = satellite.no_kozai * 1440.0 / (2.0 * math.pi)

        epoch_year = satellite.epochyr
        epoch_days = satellite.epochdays

        return {
            "name": name,
            "norad_id": satellite.satnum,
            "international_designator": self.international_designator(line1),
            "classification": getattr(satellite, 'classification', 'U'),
            "epoch_year": epoch_year,
            "epoch_days": epoch_days,
            "epoch_datetime": self.epoch_to_datetime(epoch_year, epoch_days),
            "bstar_drag": satellite.bstar,
            "inclination_deg": math.degrees(satellite.inclo),
            "raan_deg": math.degrees(satellite.nodeo),
            "eccentricity": satellite.ecco,
            "arg_perigee_deg": math.degrees(satellite.argpo),
            "mean_anomaly_deg": math.degrees(satellite.mo),
            "mean_motion_rev_per_day": mean_motion_rev_day,
            "line1": line1,
            "line2": line2,
        }

    def load_satrec(self, line1: Optional[str], line2: Optional[str]) -> Satrec:
        """Build a Satrec from two element lines, raising PropagationError on bad input."""
        if not line1 or not line2:
            raise PropagationError("Element set is missing")

        line1 = line1.strip()
        line2 = line2.strip()
        if not line1.startswith("1 ") or not line2.startswith("2 "):
            raise PropagationError("Element lines must start with '1 ' and '2 '")

        try:
            return Satrec.twoline2rv(line1, line2)
        except Exception as e:
            raise PropagationError(f"Failed to parse element set: {e}")

    def orbital_data(self, line1: str, line2: str) -> Dict[str, float]:
        """
        Derive the catalog orbital summary for an element set.

        Semi-major axis comes from the Kozai mean motion; apogee and perigee
        are altitudes above the mean Earth radius.

        Returns:
            Dictionary with apogee, perigee, inclination, period (s),
            eccentricity and semi_major_axis (km)
        """
        satellite = self.load_satrec(line1, line2)

        n_rad_s = satellite.no_kozai / 60.0
        if n_rad_s <= 0:
            raise PropagationError("Mean motion must be positive", error_code=2)

        semi_major_axis = (GRAVITATIONAL_PARAMETER / n_rad_s ** 2) ** (1.0 / 3.0)
        eccentricity = satellite.ecco
        apogee = semi_major_axis * (1 + eccentricity) - EARTH_RADIUS_KM
        perigee = semi_major_axis * (1 - eccentricity) - EARTH_RADIUS_KM
        period = 2.0 * math.pi / n_rad_s

        return {
            "apogee": round(apogee, 2),
            "perigee": round(perigee, 2),
            "inclination": round(math.degrees(satellite.inclo), 2),
            "period": round(period),
            "eccentricity": round(eccentricity, 4),
            "semi_major_axis": round(semi_major_axis, 2),
        }

    def international_designator(self, line1: str) -> Optional[str]:
        """
        Format the international designator from columns 10-17 of line 1.

        "1 44714U 19074B   ..." -> "2019-074B"
        """
        if not line1 or len(line1) < 18:
            return None

        des_part = line1[9:17].strip()
        if not _DESIGNATOR_PATTERN.match(des_part):
            return None

        year = int(des_part[0:2])
        number = des_part[2:5]
        piece = des_part[5:].strip()
        full_year = 2000 + year if year < 57 else 1900 + year

        return f"{full_year}-{number}{piece}"

    def verify_checksum(self, line: str) -> bool:
        """Check the trailing mod-10 checksum digit of a TLE line."""
        line = line.rstrip()
        if len(line) < TLE_LINE_LENGTH or not line[68].isdigit():
            return False
        return self._checksum(line) == int(line[68])

    def datetime_to_jd_fr(self, dt: datetime) -> Tuple[float, float]:
        """
        Convert datetime to Julian date and fraction.

        Args:
            dt: Datetime object (naive values are taken as UTC)

        Returns:
            Tuple of (julian_day, fraction)
        """
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc)

        year, month, day = dt.year, dt.month, dt.day
        seconds = dt.hour * 3600.0 + dt.minute * 60.0 + dt.second + dt.microsecond / 1e6

        # Julian day calculation
        if month <= 2:
            year -= 1
            month += 12

        a = int(year / 100)
        b = 2 - a + int(a / 4)

        jd = int(365.25 * (year + 4716)) + int(30.6001 * (month + 1)) + day + b - 1524.5

        # Fractional part
        fr = seconds / 86400.0

        return jd, fr

    def epoch_to_datetime(self, epoch_year: int, epoch_days: float) -> datetime:
        """
        Convert TLE epoch to datetime.

        Args:
            epoch_year: Two-digit year
            epoch_days: Day of year with fractional part

        Returns:
            Datetime object in UTC
        """
        year = 1900 + epoch_year if epoch_year >= 57 else 2000 + epoch_year
        return datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=epoch_days - 1.0)

    def gast(self, dt: datetime) -> float:
        """Greenwich apparent sidereal time in radians."""
        jd, fr = self.datetime_to_jd_fr(dt)
        T = (jd - 2451545.0 + fr) / 36525.0

        # GMST with higher order terms (IAU 2000B)
        gmst_sec = (
            67310.54841 +
            (876600.0 * 3600.0 + 8640184.812866) * T +
            0.093104 * T * T -
            6.2e-6 * T * T * T
        )
        gmst_rad = (gmst_sec % 86400.0) * (2.0 * math.pi / 86400.0)

        # Equation of equinoxes
        omega = 125.04452 - 1934.136261 * T
        delta_psi = -0.000319 * math.sin(math.radians(omega))
        eqeq = delta_psi * math.cos(math.radians(23.4393))

        return gmst_rad + eqeq

    def teme_to_ecef_precise(self, r_teme: np.ndarray, v_teme: np.ndarray,
                             epoch_datetime: datetime) -> Tuple[np.ndarray, np.ndarray]:
        """
        TEME to ECEF transformation with Earth rotation.

        Works on single vectors of shape (3,) or stacks of shape (n, 3).

        Args:
            r_teme: Position in TEME coordinates (km)
            v_teme: Velocity in TEME coordinates (km/s)
            epoch_datetime: Instant of the state

        Returns:
            Tuple of (r_ecef, v_ecef) with the input shapes
        """
        r_teme = np.asarray(r_teme, dtype=float)
        v_teme = np.asarray(v_teme, dtype=float)

        theta = self.gast(epoch_datetime)
        cos_g = math.cos(theta)
        sin_g = math.sin(theta)

        r_ecef = np.empty_like(r_teme)
        r_ecef[..., 0] = cos_g * r_teme[..., 0] + sin_g * r_teme[..., 1]
        r_ecef[..., 1] = -sin_g * r_teme[..., 0] + cos_g * r_teme[..., 1]
        r_ecef[..., 2] = r_teme[..., 2]

        v_ecef = np.empty_like(v_teme)
        v_ecef[..., 0] = cos_g * v_teme[..., 0] + sin_g * v_teme[..., 1] + EARTH_ROTATION_RATE * r_ecef[..., 1]
        v_ecef[..., 1] = -sin_g * v_teme[..., 0] + cos_g * v_teme[..., 1] - EARTH_ROTATION_RATE * r_ecef[..., 0]
        v_ecef[..., 2] = v_teme[..., 2]

        return r_ecef, v_ecef

    def ecef_to_geodetic_precise(self, r_ecef: np.ndarray) -> Tuple[float, float, float]:
        """
        Earth-fixed position to WGS84 latitude, longitude and height.

        Bowring's method, iterating on the reduced latitude until it settles.

        Args:
            r_ecef: Position vector in ECEF coordinates [x, y, z] (km)

        Returns:
            Tuple of (latitude_deg, longitude_deg, altitude_km)
        """
        x, y, z = (float(c) for c in r_ecef)
        lon = math.atan2(y, x)
        p = math.hypot(x, y)

        if p < 1e-10:
            lat = math.copysign(math.pi / 2.0, z)
            return math.degrees(lat), math.degrees(lon), abs(z) - WGS84_B

        beta = math.atan2(z * WGS84_A, p * WGS84_B)
        lat = beta
        for _ in range(5):
            lat = math.atan2(z + WGS84_EP2 * WGS84_B * math.sin(beta) ** 3,
                             p - WGS84_E2 * WGS84_A * math.cos(beta) ** 3)
            next_beta = math.atan2((1.0 - WGS84_F) * math.sin(lat), math.cos(lat))
            converged = abs(next_beta - beta) < 1e-12
            beta = next_beta
            if converged:
                break

        sin_lat = math.sin(lat)
        cos_lat = math.cos(lat)
        n = WGS84_A / math.sqrt(1.0 - WGS84_E2 * sin_lat * sin_lat)
        if abs(cos_lat) > 1e-10:
            alt = p / cos_lat - n
        else:
            alt = z / sin_lat - n * (1.0 - WGS84_E2)

        return math.degrees(lat), math.degrees(lon), alt

    def _checksum(self, line: str) -> int:
        """Calculate TLE checksum."""
        checksum = 0
        for char in line[:68]:
            if char.isdigit():
                checksum += int(char)
            elif char == "-":
                checksum += 1
        return checksum % 10
