"""
Filter Engine

Evaluates a FilterState against catalog objects. The five stages (text search,
altitude band, constellation, type, status) are conjunctive and each is a
pure predicate over one object, so the working set never depends on catalog
order and every stage can be checked on its own.
"""

import logging
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from config import LEO_MEO_BOUNDARY_KM, GEO_ALTITUDE_KM
from orbit_navigator.models import CatalogObject, FilterState

logger = logging.getLogger(__name__)

# Selected type code -> catalog classifications it matches
TYPE_CLASSIFICATIONS: Dict[str, FrozenSet[str]] = {
    "SATELLITE": frozenset({"satellite"}),
    "DEBRIS": frozenset({"debris", "rocket_body"}),
    "TELESCOPE": frozenset({"telescope"}),
}


def altitude_band(perigee_km: Optional[float]) -> Optional[str]:
    """
    Altitude band for a perigee.

    Boundaries belong to the higher band: 2000 km is MEO, 35786 km is GEO.
    Returns None when the perigee is unknown.
    """
    if perigee_km is None:
        return None
    if perigee_km < LEO_MEO_BOUNDARY_KM:
        return "LEO"
    if perigee_km < GEO_ALTITUDE_KM:
        return "MEO"
    return "GEO"


def matches_search(obj: CatalogObject, search: str) -> bool:
    if not search:
        return True
    needle = search.strip().lower()
    if not needle:
        return True
    haystacks = (obj.name, obj.international_designator or "", str(obj.norad_id))
    return any(needle in h.lower() for h in haystacks)


def matches_location(obj: CatalogObject, state: FilterState) -> bool:
    if state.shows_all_locations:
        return True
    return altitude_band(obj.perigee) == state.location


def matches_constellation(obj: CatalogObject, constellations: FrozenSet[str]) -> bool:
    if not constellations:
        return True
    return obj.constellation in constellations


def matches_type(obj: CatalogObject, types: FrozenSet[str]) -> bool:
    if not types:
        return True
    for code in types:
        if obj.object_type in TYPE_CLASSIFICATIONS.get(code, frozenset()):
            return True
    return False


def matches_status(obj: CatalogObject, status: Optional[str]) -> bool:
    if not status:
        return True
    return obj.status == status


class FilterEngine:
    """
    Compound catalog predicate for a FilterState.

    Example:
        >>> engine = FilterEngine()
        >>> state = FilterState(location="MEO")
        >>> working_set = engine.apply(catalog, state)
    """

    def stages(self, state: FilterState) -> List[Callable[[CatalogObject], bool]]:
        """The five per-object predicates for ``state``, in evaluation order."""
        return [
            lambda obj: matches_search(obj, state.search),
            lambda obj: matches_location(obj, state),
            lambda obj: matches_constellation(obj, state.constellations),
            lambda obj: matches_type(obj, state.types),
            lambda obj: matches_status(obj, state.status),
        ]

    def passes(self, obj: CatalogObject, state: FilterState) -> bool:
        """Does ``obj`` pass every stage of ``state``?"""
        return all(stage(obj) for stage in self.stages(state))

    def apply(self, catalog: Iterable[CatalogObject], state: FilterState) -> List[CatalogObject]:
        """
        Working set for ``state``.

        Args:
            catalog: Immutable catalog snapshot
            state: Current filter state

        Returns:
            Objects passing all stages, in catalog order
        """
        stages = self.stages(state)
        catalog = list(catalog)
        working_set = [obj for obj in catalog if all(stage(obj) for stage in stages)]

        unknown_types = state.types - TYPE_CLASSIFICATIONS.keys()
        if unknown_types:
            logger.debug(f"Type codes without classifications match nothing: {sorted(unknown_types)}")

        logger.debug(f"Filter kept {len(working_set)} of {len(catalog)} objects")
        return working_set
