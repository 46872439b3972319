"""
CelesTrak Catalog Ingest

Fetches three-line element text (name line followed by the two element
lines) from CelesTrak, classifies each object from its name, and produces
CatalogObject records with derived orbital data.

Objects with missing or malformed element lines are skipped and logged;
they never abort a load.
"""

import logging
from typing import Dict, Iterator, List, Optional, Tuple

import requests

from config import config
from orbit_navigator.exceptions import CatalogServiceError, PropagationError
from orbit_navigator.models import CatalogObject, OrbitalData
from orbit_navigator.tle import TLEParser

logger = logging.getLogger(__name__)

# name keyword -> constellation, first match wins
CONSTELLATION_KEYWORDS: List[Tuple[Tuple[str, ...], str]] = [
    (("STARLINK",), "STARLINK"),
    (("GPS", "NAVSTAR"), "GPS"),
    (("ONEWEB",), "ONEWEB"),
    (("GLONASS",), "GLONASS"),
    (("GALILEO",), "GALILEO"),
    (("BEIDOU",), "BEIDOU"),
]

COUNTRY_KEYWORDS: List[Tuple[Tuple[str, ...], str]] = [
    (("USA", "UNITED STATES"), "USA"),
    (("CHINA", "PRC"), "CHINA"),
    (("RUSSIA", "RUSSIAN"), "RUSSIA"),
    (("EUROPE", "ESA"), "EUROPE"),
    (("JAPAN", "JAXA"), "JAPAN"),
    (("INDIA", "ISRO"), "INDIA"),
]


def _first_keyword_match(name: str, table) -> Optional[str]:
    for keywords, value in table:
        if any(k in name for k in keywords):
            return value
    return None


def classify(name: str, object_type: str = "") -> Dict[str, Optional[str]]:
    """
    Classify an object from its catalog name.

    Returns:
        Dictionary with object_type, status, constellation and country
    """
    name = (name or "").upper()
    object_type = (object_type or "").upper()

    if "DEBRIS" in object_type or "DEB" in name:
        kind, status = "debris", "debris"
    elif "ROCKET" in object_type or "R/B" in name or "ROCKET" in name:
        kind, status = "rocket_body", "debris"
    elif "TELESCOPE" in name or "HST" in name or "JWST" in name:
        kind, status = "telescope", "active"
    elif "ISS" in name or "SPACE STATION" in name:
        kind, status = "satellite", "active"
    elif "DEFUNCT" in name or "DECAYED" in name or "RETIRED" in name:
        kind, status = "satellite", "inactive"
    else:
        kind, status = "satellite", "active"

    return {
        "object_type": kind,
        "status": status,
        "constellation": _first_keyword_match(name, CONSTELLATION_KEYWORDS),
        "country": _first_keyword_match(name, COUNTRY_KEYWORDS),
    }


def split_three_line(text: str) -> Iterator[Tuple[str, str, str]]:
    """
    Yield (name, line1, line2) triples from three-line element text.

    Tolerates CRLF endings, blank lines and stray lines between a name and
    its element lines.
    """
    lines = [line.strip() for line in text.replace("\r\n", "\n").split("\n") if line.strip()]
    i = 0
    while i < len(lines):
        name = lines[i]
        i += 1
        while i < len(lines) and not lines[i].startswith("1 "):
            i += 1
        if i >= len(lines):
            break
        line1 = lines[i]
        i += 1
        while i < len(lines) and not lines[i].startswith("2 "):
            i += 1
        if i >= len(lines):
            break
        line2 = lines[i]
        i += 1
        yield name, line1, line2


class CelestrakIngestor:
    """Builds catalog snapshots from CelesTrak element text."""

    def __init__(self, base_url: Optional[str] = None, group: Optional[str] = None,
                 session: Optional[requests.Session] = None, parser: Optional[TLEParser] = None,
                 verify_checksums: bool = True):
        self.base_url = (base_url or config.CELESTRAK_BASE).rstrip("/")
        self.group = group or config.CELESTRAK_GROUP
        self.session = session or requests.Session()
        self.parser = parser or TLEParser()
        self.verify_checksums = verify_checksums

    def fetch_text(self) -> str:
        """Download the element text for the configured group."""
        url = f"{self.base_url}/NORAD/elements/gp.php"
        try:
            response = self.session.get(
                url, params={"GROUP": self.group, "FORMAT": "TLE"}, timeout=config.REQUEST_TIMEOUT
            )
            response.raise_for_status()
        except requests.RequestException as e:
            status = getattr(getattr(e, "response", None), "status_code", None)
            raise CatalogServiceError(f"CelesTrak request failed: {e}", status_code=status)
        return response.text

    def fetch_catalog(self) -> List[CatalogObject]:
        """Fetch and parse the configured group."""
        catalog = self.parse_text(self.fetch_text())
        logger.info(f"Fetched {len(catalog)} objects from CelesTrak group {self.group}")
        return catalog

    def parse_text(self, text: str) -> List[CatalogObject]:
        catalog = []
        for name, line1, line2 in split_three_line(text):
            obj = self.build_object(name, line1, line2)
            if obj is not None:
                catalog.append(obj)
        return catalog

    def build_object(self, name: str, line1: str, line2: str) -> Optional[CatalogObject]:
        """One CatalogObject from a three-line record, or None if the elements are unusable."""
        if self.verify_checksums and not (self.parser.verify_checksum(line1) and self.parser.verify_checksum(line2)):
            logger.warning(f"Skipping {name!r}: element checksum mismatch")
            return None

        try:
            orbital = self.parser.orbital_data(line1, line2)
            elements = self.parser.parse_tle(line1, line2, name)
            norad_id = int(elements["norad_id"])
        except (PropagationError, ValueError) as e:
            logger.warning(f"Skipping {name!r}: {e}")
            return None

        designator = elements["international_designator"]
        launch_date = f"{designator[:4]}-01-01" if designator else None

        return CatalogObject(
            norad_id=norad_id,
            name=name,
            international_designator=designator,
            tle_line1=line1,
            tle_line2=line2,
            orbital_data=OrbitalData(**orbital),
            launch_date=launch_date,
            epoch=elements["epoch_datetime"].isoformat(),
            **classify(name),
        )
