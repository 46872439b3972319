"""
Navigator Session

Host-facing orchestration for one view. Catalog, statistics and launch
fetches run on a thread pool and are applied on the control thread when
``tick()`` polls them. Filter changes run the filter + propagation pass
synchronously and hand the result to the scene manager.

Every pass carries a generation number; a pass finishing after a newer one
started is discarded, so the scene never shows markers from two filter
states at once. Fetch failures become an advisory message; the view keeps
working with whatever data it has.
"""

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from config import config
from orbit_navigator import statistics
from orbit_navigator.catalog_client import CatalogClient
from orbit_navigator.exceptions import CatalogServiceError
from orbit_navigator.filters import FilterEngine
from orbit_navigator.models import CatalogObject, FilterState, LaunchRecord, PositionedObject, StatusCounts
from orbit_navigator.orbits import OrbitPath, build_orbit_paths, launch_summary
from orbit_navigator.propagation import Propagator
from orbit_navigator.scene import SceneManager, SceneState

logger = structlog.get_logger()

CATALOG_ADVISORY = "Failed to load satellite data"
LAUNCH_ADVISORY = "Failed to load launch data. Showing demo orbits."


class NavigatorSession:
    """
    Catalog, filter, selection and orbit-ring state for one view.

    Args:
        client: Catalog service client
        scene: Scene manager to feed (optional; headless sessions still filter)
        propagator: SGP4 propagator
        executor: Runs fetches off the control thread
        clock: Returns the evaluation instant (default: now, UTC)
    """

    def __init__(self, client: Optional[CatalogClient] = None, scene: Optional[SceneManager] = None,
                 propagator: Optional[Propagator] = None,
                 filter_engine: Optional[FilterEngine] = None,
                 executor: Optional[Executor] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 fetch_limit: Optional[int] = None,
                 path_points: Optional[int] = None):
        self.client = client
        self.scene = scene
        self.propagator = propagator or Propagator()
        self.filter_engine = filter_engine or FilterEngine()
        self.executor = executor or ThreadPoolExecutor(max_workers=3, thread_name_prefix="catalog")
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.fetch_limit = fetch_limit or config.CATALOG_FETCH_LIMIT
        self.path_points = path_points or config.ORBIT_PATH_POINTS

        self.catalog: Tuple[CatalogObject, ...] = ()
        self.filter_state = FilterState()
        self.working_set: List[CatalogObject] = []
        self.positioned: List[PositionedObject] = []
        self.statistics: Optional[StatusCounts] = None
        self.selected: Optional[CatalogObject] = None
        self.advisory: Optional[str] = None
        self.auto_rotate = False
        self.generation = 0
        self.loading = False

        self.launches: List[LaunchRecord] = []
        self.orbit_paths: Dict[str, OrbitPath] = build_orbit_paths(num_points=self.path_points)
        self.selected_orbits: Tuple[str, ...] = ()

        self.selection_listeners: List[Callable[[Optional[CatalogObject]], None]] = []
        self._pending: Dict[str, Future] = {}
        self._statistics_from_service = False

        if scene is not None:
            scene.selection_listeners.append(self.select)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def load_catalog(self):
        """Start catalog and statistics fetches; results apply on a later tick."""
        self._require_client()
        self.loading = True
        self._pending["catalog"] = self.executor.submit(self.client.fetch_satellites, limit=self.fetch_limit)
        self._pending["statistics"] = self.executor.submit(self.client.fetch_statistics)

    def load_launches(self, limit: int = 1000):
        """Start the launch fetch for the orbit-ring viewer."""
        self._require_client()
        self._pending["launches"] = self.executor.submit(self.client.fetch_launches, limit)

    def _require_client(self):
        if self.client is None:
            raise RuntimeError("No catalog client configured")

    def tick(self):
        """Apply finished fetches and background passes. Call on the control thread."""
        for key in ("catalog", "statistics", "launches"):
            future = self._pending.get(key)
            if future is not None and future.done():
                del self._pending[key]
                getattr(self, f"_apply_{key}")(future)

        background = self._pending.get("pass")
        if background is not None and background.done():
            del self._pending["pass"]
            try:
                self._apply_pass(*background.result())
            except Exception as e:
                logger.error("Background recompute failed", error=str(e))

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def _apply_catalog(self, future: Future):
        self.loading = False
        try:
            catalog = future.result()
        except CatalogServiceError as e:
            logger.error("Catalog fetch failed", error=str(e), advisory=CATALOG_ADVISORY)
            self.advisory = CATALOG_ADVISORY
            return
        self.set_catalog(catalog)

    def _apply_statistics(self, future: Future):
        try:
            self.statistics = future.result()
            self._statistics_from_service = True
        except CatalogServiceError as e:
            logger.error("Statistics fetch failed, counting locally", error=str(e))
            self._statistics_from_service = False
            self.statistics = statistics.aggregate(self.catalog)

    def _apply_launches(self, future: Future):
        try:
            launches = future.result()
        except CatalogServiceError as e:
            logger.error("Launch fetch failed", error=str(e), advisory=LAUNCH_ADVISORY)
            self.advisory = LAUNCH_ADVISORY
            launches = []
        self.set_launches(launches)

    def set_catalog(self, catalog: Sequence[CatalogObject]):
        """Replace the catalog wholesale and re-run the working-set pass."""
        self.catalog = tuple(catalog)
        self.propagator.clear_cache()
        if self.selected is not None:
            reloaded = next((o for o in self.catalog if o.norad_id == self.selected.norad_id), None)
            if reloaded is None:
                self.select(None)
            else:
                self.selected = reloaded
        if not self._statistics_from_service:
            self.statistics = statistics.aggregate(self.catalog)
        logger.info("Catalog loaded", count=len(self.catalog))
        self.recompute()

    def dismiss_advisory(self):
        self.advisory = None

    # ------------------------------------------------------------------
    # Working-set pass
    # ------------------------------------------------------------------

    @property
    def marker_cap(self) -> int:
        if self.scene is not None:
            return self.scene.context.config.marker_cap
        return config.MAX_SATELLITES_RENDER

    def _compute_pass(self, generation: int, catalog: Tuple[CatalogObject, ...],
                      state: FilterState, timestamp: datetime):
        working = self.filter_engine.apply(catalog, state)
        positioned = self.propagator.propagate_batch(working[:self.marker_cap], timestamp)
        return generation, working, positioned

    def _apply_pass(self, generation: int, working: List[CatalogObject],
                    positioned: List[PositionedObject]) -> bool:
        if generation != self.generation:
            logger.debug("Discarding superseded pass", generation=generation, latest=self.generation)
            return False
        self.working_set = working
        self.positioned = positioned
        if self.scene is not None and self.scene.state is SceneState.READY:
            self.scene.update_markers(positioned)
        return True

    def recompute(self, timestamp: Optional[datetime] = None) -> bool:
        """Filter + propagate now and push the markers to the scene."""
        self.generation += 1
        result = self._compute_pass(self.generation, self.catalog, self.filter_state, timestamp or self.clock())
        return self._apply_pass(*result)

    def recompute_in_background(self, timestamp: Optional[datetime] = None) -> Future:
        """
        Run the pass on the executor; ``tick()`` applies it if nothing newer
        started in the meantime.
        """
        self.generation += 1
        future = self.executor.submit(
            self._compute_pass, self.generation, self.catalog, self.filter_state, timestamp or self.clock()
        )
        self._pending["pass"] = future
        return future

    # ------------------------------------------------------------------
    # Filter-control surface
    # ------------------------------------------------------------------

    def set_filter_state(self, state: FilterState):
        if state == self.filter_state:
            return
        self.filter_state = state
        self.recompute()

    def set_search(self, text: str):
        self.set_filter_state(self.filter_state.with_changes(search=text or ""))

    def toggle_location(self, code: Optional[str]):
        """Select an altitude band; selecting the active band again clears it."""
        code = code.upper() if code else None
        location = None if code == self.filter_state.location else code
        self.set_filter_state(self.filter_state.with_changes(location=location))

    def toggle_constellation(self, name: str):
        selected = set(self.filter_state.constellations)
        selected.symmetric_difference_update({name})
        self.set_filter_state(self.filter_state.with_changes(constellations=selected))

    def toggle_type(self, code: str):
        selected = set(self.filter_state.types)
        selected.symmetric_difference_update({code.upper()})
        self.set_filter_state(self.filter_state.with_changes(types=selected))

    def set_status(self, status: Optional[str]):
        self.set_filter_state(self.filter_state.with_changes(status=status))

    def reset_filters(self):
        self.set_filter_state(FilterState())

    # ------------------------------------------------------------------
    # Selection and details
    # ------------------------------------------------------------------

    def select(self, obj: Optional[CatalogObject]):
        """Set the selected object (None clears) and notify listeners."""
        if obj is self.selected or (obj is not None and self.selected is not None
                                    and obj.norad_id == self.selected.norad_id):
            return
        self.selected = obj
        if self.scene is not None:
            self.scene.set_selection(obj.norad_id if obj is not None else None)
        for listener in list(self.selection_listeners):
            listener(obj)

    def clear_selection(self):
        self.select(None)

    def selection_details(self, timestamp: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        """Identity, catalog orbital data and current altitude/speed for the selected object."""
        obj = self.selected
        if obj is None:
            return None

        details = obj.model_dump(exclude={"tle_line1", "tle_line2"})
        status = self.propagator.current_status(obj.tle_line1, obj.tle_line2, timestamp or self.clock(), obj.name)
        if status.valid:
            details["current_position"] = {
                "altitude": status.altitude_km,
                "latitude": status.latitude_deg,
                "longitude": status.longitude_deg,
            }
            details["current_speed"] = status.speed_kms
        return details

    def set_auto_rotate(self, enabled: bool):
        self.auto_rotate = bool(enabled)
        if self.scene is not None:
            self.scene.set_auto_rotate(self.auto_rotate)

    # ------------------------------------------------------------------
    # Orbit-ring viewer
    # ------------------------------------------------------------------

    def set_launches(self, launches: Sequence[LaunchRecord]):
        self.launches = list(launches)
        self.orbit_paths = build_orbit_paths(self.launches, num_points=self.path_points)
        self.selected_orbits = tuple(c for c in self.selected_orbits if c in self.orbit_paths)
        self.refresh_paths()

    @property
    def available_orbits(self) -> List[str]:
        return sorted(self.orbit_paths)

    def toggle_orbit(self, code: str):
        code = code.upper()
        if code in self.selected_orbits:
            self.selected_orbits = tuple(c for c in self.selected_orbits if c != code)
        else:
            self.selected_orbits = self.selected_orbits + (code,)
        self.refresh_paths()

    def select_all_orbits(self):
        self.selected_orbits = tuple(self.available_orbits)
        self.refresh_paths()

    def deselect_all_orbits(self):
        """No selection: every ring is shown."""
        self.selected_orbits = ()
        self.refresh_paths()

    def is_orbit_visible(self, code: str) -> bool:
        return not self.selected_orbits or code.upper() in self.selected_orbits

    def refresh_paths(self) -> bool:
        if self.scene is None or self.scene.state is not SceneState.READY:
            return False
        return self.scene.update_paths(self.orbit_paths, self.selected_orbits)

    def launch_statistics(self) -> Dict[str, Any]:
        return launch_summary(self.orbit_paths, len(self.launches))

    # ------------------------------------------------------------------

    def close(self):
        for future in self._pending.values():
            future.cancel()
        self._pending.clear()
        self.executor.shutdown(wait=False)
        if self.scene is not None:
            self.scene.dispose()
