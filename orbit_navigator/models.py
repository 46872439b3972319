"""
Data models for catalog objects, filter state, statistics and launches.

Catalog objects are immutable snapshots of what the catalog service returned;
per-frame state (scene position, validity) lives in ``PositionedObject`` and
selection lives in the session, so propagation never touches an element set.
"""

from typing import FrozenSet, NamedTuple, Optional, Tuple, Any

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator, model_validator

# Location sentinel meaning "no altitude constraint"
SHOW_ALL = "EARTH"

LOCATION_CODES = ("EARTH", "LEO", "MEO", "GEO")
TYPE_CODES = ("SATELLITE", "DEBRIS", "TELESCOPE", "LAUNCH SITE")
CONSTELLATIONS = ("STARLINK", "GPS", "ONEWEB", "GLONASS", "GALILEO", "BEIDOU")


class OrbitalData(BaseModel):
    """Catalog-supplied orbital summary (km, degrees, seconds)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    apogee: Optional[float] = None
    perigee: Optional[float] = None
    inclination: Optional[float] = None
    period: Optional[float] = None
    eccentricity: Optional[float] = None
    semi_major_axis: Optional[float] = None


class CatalogObject(BaseModel):
    """One orbiting object as delivered by the catalog service."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    norad_id: int
    name: str = ""
    international_designator: Optional[str] = None
    tle_line1: Optional[str] = None
    tle_line2: Optional[str] = None
    orbital_data: Optional[OrbitalData] = None
    object_type: Optional[str] = None
    constellation: Optional[str] = None
    status: Optional[str] = None
    country: Optional[str] = None
    launch_date: Optional[str] = None
    epoch: Optional[str] = None  # element-set epoch, ISO 8601 UTC

    @field_validator("object_type", "status", mode="before")
    @classmethod
    def _lowercase_codes(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            return value or None
        return value

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name") and data.get("norad_id") is not None:
            data = {**data, "name": f"NORAD {data['norad_id']}"}
        return data

    @property
    def perigee(self) -> Optional[float]:
        return self.orbital_data.perigee if self.orbital_data else None

    @property
    def has_elements(self) -> bool:
        return bool(self.tle_line1 and self.tle_line2)


class PositionedObject(NamedTuple):
    """A catalog object annotated with its scene-space position for one evaluation."""

    object: CatalogObject
    position: Tuple[float, float, float]

    @property
    def norad_id(self) -> int:
        return self.object.norad_id


class FilterState(BaseModel):
    """
    Current catalog query.

    ``location`` is an altitude-band code or None / ``SHOW_ALL``;
    constellations and types are OR-ed within their sets; status is an
    exact match when set.
    """

    model_config = ConfigDict(frozen=True)

    search: str = ""
    location: Optional[str] = None
    constellations: FrozenSet[str] = frozenset()
    types: FrozenSet[str] = frozenset()
    status: Optional[str] = None

    @field_validator("location", mode="before")
    @classmethod
    def _upper_location(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper() or None
        return value

    @field_validator("types", mode="before")
    @classmethod
    def _upper_types(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        return frozenset(str(v).strip().upper() for v in value)

    @field_validator("constellations", mode="before")
    @classmethod
    def _constellation_set(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        return frozenset(value)

    @field_validator("status", mode="before")
    @classmethod
    def _lower_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    def with_changes(self, **changes) -> "FilterState":
        """Return a validated copy with some fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return FilterState(**data)

    @property
    def shows_all_locations(self) -> bool:
        return self.location is None or self.location == SHOW_ALL


class StatusCounts(BaseModel):
    """Status bucket counts shown as "currently in orbit"."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    active: int = Field(0, alias="ACTIVE")
    inactive: int = Field(0, alias="INACTIVE")
    debris: int = Field(0, alias="DEBRIS")
    other: int = Field(0, alias="OTHER")

    @property
    def total(self) -> int:
        return self.active + self.inactive + self.debris + self.other

    def as_display(self) -> dict:
        return self.model_dump(by_alias=True)


class LaunchRecord(BaseModel):
    """Launch record as far as the orbit-ring viewer needs it."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Optional[Any] = None
    name: Optional[str] = None
    orbit: Optional[str] = Field(None, validation_alias=AliasChoices("orbit", "orbit_code"))
