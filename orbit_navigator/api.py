"""
Catalog REST Service

Flask application serving the in-memory catalog to viewers: filtered
listings, status statistics, per-object details with current position,
scene-unit positions, refresh from CelesTrak and generated orbit rings.

Responses use the ``{success, data, ...}`` envelope; errors return
``{success: false, error, message}`` with a 4xx/5xx status.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import structlog
from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config import config
from orbit_navigator import __version__, statistics
from orbit_navigator.filters import matches_location, matches_search
from orbit_navigator.ingest import CelestrakIngestor
from orbit_navigator.models import CatalogObject, FilterState
from orbit_navigator.orbits import ORBIT_TYPES, orbit_path_for_type
from orbit_navigator.propagation import Propagator

logger = structlog.get_logger()

DEFAULT_PAGE_SIZE = 1000


class CatalogStore:
    """
    In-memory catalog snapshot, replaced wholesale on refresh.

    Args:
        catalog: Initial objects
        ingestor: Source used by ``refresh()``
    """

    def __init__(self, catalog: Iterable[CatalogObject] = (),
                 ingestor: Optional[CelestrakIngestor] = None,
                 propagator: Optional[Propagator] = None):
        self._lock = threading.Lock()
        self._objects = {}
        self.ingestor = ingestor
        self.propagator = propagator or Propagator()
        self.last_refresh: Optional[datetime] = None
        self.replace(catalog)

    def replace(self, catalog: Iterable[CatalogObject]):
        objects = {obj.norad_id: obj for obj in catalog}
        with self._lock:
            self._objects = objects
        self.propagator.clear_cache()
        self.last_refresh = datetime.now(timezone.utc)

    def snapshot(self) -> List[CatalogObject]:
        """All objects ordered by catalog id."""
        with self._lock:
            objects = dict(self._objects)
        return [objects[k] for k in sorted(objects)]

    def get(self, norad_id: int) -> Optional[CatalogObject]:
        with self._lock:
            return self._objects.get(norad_id)

    def __len__(self):
        with self._lock:
            return len(self._objects)

    def refresh(self) -> int:
        """Re-ingest from CelesTrak; returns the new object count."""
        if self.ingestor is None:
            raise RuntimeError("No ingest source configured")
        catalog = self.ingestor.fetch_catalog()
        self.replace(catalog)
        logger.info("Catalog refreshed", count=len(catalog))
        return len(catalog)


def _error(status: int, error: str, message: Optional[str] = None):
    body = {"success": False, "error": error}
    if message:
        body["message"] = message
    return jsonify(body), status


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    timestamp = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp


def _serialize(obj: CatalogObject) -> dict:
    return obj.model_dump()


def create_app(store: Optional[CatalogStore] = None, refresh_executor=None) -> Flask:
    """Build the Flask app around a catalog store."""
    store = store if store is not None else CatalogStore()
    refresh_executor = refresh_executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="refresh")

    app = Flask(__name__)
    CORS(app)
    app.config["CATALOG_STORE"] = store

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "services": {
                "satellites_loaded": len(store),
                "last_refresh": store.last_refresh.isoformat() if store.last_refresh else None,
            },
        }), 200

    @app.route("/api/satellites", methods=["GET"])
    def list_satellites():
        args = request.args
        try:
            limit = int(args.get("limit", DEFAULT_PAGE_SIZE))
            offset = int(args.get("offset", 0))
        except ValueError:
            return _error(400, "limit and offset must be integers")
        if limit < 0 or offset < 0:
            return _error(400, "limit and offset must be non-negative")

        object_type = (args.get("type") or "").strip().lower()
        constellation = (args.get("constellation") or "").strip().upper()
        state = FilterState(
            search=args.get("search", ""),
            location=args.get("location"),
            status=args.get("status"),
        )

        rows = [
            obj for obj in store.snapshot()
            if matches_search(obj, state.search)
            and matches_location(obj, state)
            and (not state.status or obj.status == state.status)
            and (not object_type or obj.object_type == object_type)
            and (not constellation or (obj.constellation or "").upper() == constellation)
        ]
        page = rows[offset:offset + limit]

        return jsonify({
            "success": True,
            "data": [_serialize(obj) for obj in page],
            "count": len(page),
            "limit": limit,
            "offset": offset,
        })

    @app.route("/api/satellites/statistics", methods=["GET"])
    def satellite_statistics():
        counts = statistics.aggregate(store.snapshot())
        return jsonify({"success": True, "data": counts.as_display()})

    @app.route("/api/satellites/positions", methods=["GET"])
    def satellite_positions():
        raw = request.args.getlist("norad_ids[]") or request.args.get("norad_ids", "").split(",")
        raw = [r.strip() for r in raw if r and r.strip()]
        if not raw:
            return _error(400, "norad_ids parameter is required")
        try:
            norad_ids = [int(r) for r in raw]
            timestamp = _parse_timestamp(request.args.get("timestamp"))
        except ValueError as e:
            return _error(400, "Invalid positions request", str(e))

        objects = [obj for obj in (store.get(i) for i in norad_ids) if obj is not None]
        positions = []
        for p in store.propagator.propagate_batch(objects, timestamp):
            latitude, longitude, altitude = store.propagator.geodetic_of(p.position)
            positions.append({
                "norad_id": p.norad_id,
                "x": p.position[0],
                "y": p.position[1],
                "z": p.position[2],
                "latitude": round(latitude, 4),
                "longitude": round(longitude, 4),
                "altitude": round(altitude, 2),
                "timestamp": timestamp.isoformat(),
            })
        return jsonify({"success": True, "data": positions, "count": len(positions)})

    @app.route("/api/satellites/<int:norad_id>", methods=["GET"])
    def satellite_details(norad_id: int):
        obj = store.get(norad_id)
        if obj is None:
            return _error(404, "Satellite not found")

        data = _serialize(obj)
        status = store.propagator.current_status(obj.tle_line1, obj.tle_line2, name=obj.name)
        if status.valid:
            data["current_position"] = {
                "altitude": status.altitude_km,
                "latitude": status.latitude_deg,
                "longitude": status.longitude_deg,
            }
            data["current_speed"] = status.speed_kms
        return jsonify({"success": True, "data": data})

    @app.route("/api/satellites/refresh", methods=["POST"])
    def refresh_catalog():
        if store.ingestor is None:
            return _error(503, "Failed to start cache refresh", "No ingest source configured")

        def run_refresh():
            try:
                store.refresh()
            except Exception as e:
                logger.error("Catalog refresh failed", error=str(e))

        refresh_executor.submit(run_refresh)
        logger.info("Catalog refresh requested")
        return jsonify({"success": True, "message": "Cache refresh started. This may take several minutes."})

    def _path_args():
        inclination = request.args.get("inclination")
        points = int(request.args.get("points", config.ORBIT_PATH_POINTS))
        if points < 3:
            raise ValueError("points must be at least 3")
        return (float(inclination) if inclination is not None else None), points

    def _path_body(path):
        return {
            "orbit_code": path.code,
            "orbit_name": path.name,
            "color": path.color,
            "inclination": path.inclination,
            "points": path.points.tolist(),
        }

    @app.route("/api/orbits/paths", methods=["GET"])
    def orbit_paths():
        try:
            inclination, points = _path_args()
        except ValueError as e:
            return _error(400, "Invalid orbit path request", str(e))
        paths = [orbit_path_for_type(code, inclination, points) for code in ORBIT_TYPES]
        return jsonify({"success": True, "data": [_path_body(p) for p in paths], "count": len(paths)})

    @app.route("/api/orbits/paths/<code>", methods=["GET"])
    def orbit_path(code: str):
        try:
            inclination, points = _path_args()
        except ValueError as e:
            return _error(400, "Invalid orbit path request", str(e))
        return jsonify({"success": True, "data": _path_body(orbit_path_for_type(code, inclination, points))})

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return _error(e.code, e.name, e.description)
        logger.error("Unhandled request error", error=str(e))
        return _error(500, "Internal server error", str(e))

    return app
