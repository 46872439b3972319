"""
Catalog Service Client

REST client for the satellite catalog, statistics and launch services that
feed the navigator. Responses use the ``{success, data, ...}`` envelope; any
transport error, non-2xx status or ``success: false`` body raises
CatalogServiceError so the session can turn it into an advisory message.

Raw JSON bodies are optionally cached in Redis keyed by URL and parameters.
An unreachable Redis disables caching with a warning and is never fatal.
"""

import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import redis
import requests
import structlog

from config import config
from orbit_navigator.exceptions import CatalogServiceError
from orbit_navigator.models import CatalogObject, LaunchRecord, StatusCounts

logger = structlog.get_logger()


class CatalogClient:
    """Synchronous client for the catalog REST service."""

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None,
                 redis_url: Optional[str] = None, cache_ttl: Optional[int] = None,
                 timeout: Optional[float] = None):
        self.base_url = (base_url or config.API_BASE).rstrip("/")
        self.session = session or requests.Session()
        self.cache_ttl = config.CACHE_TTL if cache_ttl is None else cache_ttl
        self.timeout = config.REQUEST_TIMEOUT if timeout is None else timeout
        self.redis_client = self._connect_cache(config.REDIS_URL if redis_url is None else redis_url)

    def _connect_cache(self, redis_url: str):
        if not redis_url:
            return None
        try:
            client = redis.from_url(redis_url, decode_responses=True)
            client.ping()
            logger.info("Redis connection successful.")
            return client
        except (redis.exceptions.RedisError, ValueError) as e:
            logger.warning(f"Redis connection failed or not configured: {e}. Caching will be disabled.")
            return None

    def _cache_key(self, path: str, params: Optional[Dict[str, Any]]) -> str:
        encoded = json.dumps(params or {}, sort_keys=True, default=str)
        return f"catalog:{path}:{encoded}"

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None, cache: bool = True) -> Dict[str, Any]:
        cache_key = self._cache_key(path, params)
        if cache and self.redis_client:
            try:
                cached = self.redis_client.get(cache_key)
            except redis.exceptions.ConnectionError as e:
                logger.warning(f"Redis connection failed: {e}. Caching will be disabled.")
                self.redis_client = None
                cached = None
            except redis.exceptions.RedisError as e:
                logger.warning(f"Could not read cached catalog response from Redis: {e}")
                cached = None
            if cached:
                try:
                    body = json.loads(cached)
                except ValueError as e:
                    logger.warning(f"Ignoring unreadable cached response: {e}", path=path)
                else:
                    logger.debug("Using cached catalog response", path=path)
                    return body

        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise CatalogServiceError(f"GET {path} failed with status {status}", status_code=status)
        except (requests.RequestException, ValueError) as e:
            raise CatalogServiceError(f"GET {path} failed: {e}")

        if isinstance(body, dict) and body.get("success") is False:
            raise CatalogServiceError(body.get("error") or f"GET {path} was rejected")

        if cache and self.redis_client:
            try:
                self.redis_client.setex(cache_key, self.cache_ttl, json.dumps(body))
            except redis.exceptions.RedisError as e:
                logger.warning(f"Could not cache catalog response to Redis: {e}")

        return body

    @staticmethod
    def _data(body: Any) -> Any:
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def fetch_satellites(self, type: Optional[str] = None, constellation: Optional[str] = None,
                         status: Optional[str] = None, location: Optional[str] = None,
                         search: Optional[str] = None, limit: Optional[int] = None,
                         offset: Optional[int] = None) -> List[CatalogObject]:
        """
        Filtered catalog listing.

        Args:
            type: Object type code (SATELLITE, DEBRIS, ...)
            constellation: Constellation name
            status: Operational status
            location: Altitude band (LEO, MEO, GEO)
            search: Free-text search
            limit: Page size
            offset: Page offset

        Returns:
            List of CatalogObject
        """
        params = {
            "type": type,
            "constellation": constellation,
            "status": status,
            "location": location,
            "search": search,
            "limit": limit,
            "offset": offset,
        }
        params = {k: v for k, v in params.items() if v not in (None, "")}

        rows = self._data(self._get("/api/satellites", params)) or []
        catalog = []
        for row in rows:
            try:
                catalog.append(CatalogObject.model_validate(row))
            except ValueError as e:
                logger.warning(f"Dropping malformed catalog row: {e}")
        logger.info("Fetched satellites", count=len(catalog))
        return catalog

    def fetch_satellite_details(self, norad_id: int) -> Dict[str, Any]:
        """Single object with its current position/speed block, as returned by the service."""
        data = self._data(self._get(f"/api/satellites/{int(norad_id)}", cache=False))
        if not isinstance(data, dict):
            raise CatalogServiceError(f"Unexpected details payload for {norad_id}")
        return data

    def fetch_positions(self, norad_ids: Iterable[int],
                        timestamp: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Server-side positions in scene units for a list of catalog ids."""
        ids = ",".join(str(int(i)) for i in norad_ids)
        params: Dict[str, Any] = {"norad_ids": ids}
        if timestamp is not None:
            params["timestamp"] = timestamp.isoformat()
        return list(self._data(self._get("/api/satellites/positions", params, cache=False)) or [])

    def fetch_statistics(self) -> StatusCounts:
        """Status bucket counts over the whole catalog."""
        data = self._data(self._get("/api/satellites/statistics", cache=False)) or {}
        try:
            return StatusCounts.model_validate(data)
        except ValueError as e:
            raise CatalogServiceError(f"Unexpected statistics payload: {e}")

    def fetch_launches(self, limit: int = 1000) -> List[LaunchRecord]:
        """Launch records for the orbit-ring viewer."""
        rows = self._data(self._get("/api/launches", {"limit": limit})) or []
        if not isinstance(rows, list):
            return []
        launches = []
        for row in rows:
            try:
                launches.append(LaunchRecord.model_validate(row))
            except ValueError as e:
                logger.warning(f"Dropping malformed launch row: {e}")
        logger.info("Fetched launches", count=len(launches))
        return launches

    def refresh(self) -> Dict[str, Any]:
        """Ask the service to re-ingest its catalog."""
        url = f"{self.base_url}/api/satellites/refresh"
        try:
            response = self.session.post(url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise CatalogServiceError(f"Catalog refresh failed: {e}")
