"""Road route resolution for sectors via a directions HTTP API.

:class:`RouteProvider` turns a sector's two camera points into a road
polyline.  Routing profiles are tried in order; each attempt is classified as
*accept*, *try next profile*, *rate limited* or *abort all profiles*.
Successful polylines are cached in-process for 24 hours; failures are never
cached.

:class:`RouteLoader` resolves every catalog sector on a background thread so
fix processing never waits on the network; until a route arrives the
tracker uses the straight line between the sector's endpoints.
"""

from __future__ import annotations

import enum
import logging
import math
import threading
import time
from collections.abc import Callable, Sequence

import httpx

from sector_tracker.geo.distance import Coordinate
from sector_tracker.sectors.catalog import SectorCatalog
from sector_tracker.sectors.models import Sector

_logger = logging.getLogger(__name__)

CACHE_TTL_S = 24 * 60 * 60
DEFAULT_PROFILES: tuple[str, ...] = ("driving", "driving-traffic")

Route = tuple[Coordinate, ...]


class Outcome(enum.Enum):
    """Classification of one routing-profile attempt."""

    ACCEPT = "accept"
    NEXT = "next"
    RATE_LIMITED = "rate_limited"
    ABORT = "abort"


def classify_status(status_code: int) -> Outcome:
    """Map a non-2xx HTTP status to the action for the remaining profiles."""
    if status_code == 401:
        return Outcome.ABORT
    if status_code == 429:
        return Outcome.RATE_LIMITED
    return Outcome.NEXT


def valid_coordinates(raw) -> list[Coordinate]:
    """Keep only ``[lng, lat]`` pairs of finite numbers from a GeoJSON coordinate list."""
    if not isinstance(raw, list):
        return []
    coords: list[Coordinate] = []
    for item in raw:
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            continue
        lng, lat = item
        if isinstance(lng, bool) or isinstance(lat, bool):
            continue
        if not isinstance(lng, (int, float)) or not isinstance(lat, (int, float)):
            continue
        if math.isfinite(lng) and math.isfinite(lat):
            coords.append((float(lng), float(lat)))
    return coords


def extract_route(payload) -> Route | None:
    """Pull the first route's GeoJSON line out of a directions response.

    Returns None unless at least 3 valid coordinate pairs are present.
    """
    if not isinstance(payload, dict):
        return None
    routes = payload.get("routes")
    if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
        return None
    geometry = routes[0].get("geometry")
    if not isinstance(geometry, dict):
        return None
    coords = valid_coordinates(geometry.get("coordinates"))
    if len(coords) < 3:
        return None
    return tuple(coords)


class RouteProvider:
    """Resolves and caches sector road polylines.

    Args:
        token: Directions API access token.  Without one no request is made.
        base_url: Directions endpoint up to (excluding) the profile segment.
        profiles: Routing profiles tried in order.
        timeout: Per-attempt HTTP timeout in seconds.
        rate_limit_wait_s: Pause after the first HTTP 429 before moving on.
        client: Optional pre-built :class:`httpx.Client` (tests inject one
            backed by :class:`httpx.MockTransport`).
        _clock: Wall-clock seconds, injectable for cache-expiry tests.
        _sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.mapbox.com/directions/v5/mapbox",
        profiles: Sequence[str] = DEFAULT_PROFILES,
        timeout: float = 8.0,
        rate_limit_wait_s: float = 2.0,
        client: httpx.Client | None = None,
        _clock: Callable[[], float] = time.time,
        _sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._profiles = tuple(profiles)
        self._timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)
        self._rate_limit_wait_s = rate_limit_wait_s
        self._clock = _clock
        self._sleep = _sleep
        self._cache: dict[str, tuple[float, Route]] = {}
        self._lock = threading.Lock()
        self.credentials_rejected = False
        """Set once the service answers HTTP 401; cleared by :meth:`invalidate` with no id."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_route(self, sector: Sector) -> Route | None:
        """Return a road polyline (3+ points) for *sector*, or None on total failure.

        Never raises; the caller substitutes the straight-line fallback.
        """
        key = self.cache_key(sector)
        cached = self._cached(key)
        if cached is not None:
            _logger.debug("Using cached route for %s (%d points)", sector.name, len(cached))
            return cached

        if not self._token:
            _logger.error("No routing token configured; cannot resolve route for %s", sector.name)
            return None
        if self.credentials_rejected:
            _logger.debug("Routing credentials were rejected; skipping %s", sector.name)
            return None

        waited = False
        for profile in self._profiles:
            outcome, route = self._attempt(sector, profile)
            if outcome is Outcome.ACCEPT and route is not None:
                with self._lock:
                    self._cache[key] = (self._clock(), route)
                _logger.info(
                    "Resolved route for %s with %s profile: %d points",
                    sector.name,
                    profile,
                    len(route),
                )
                return route
            if outcome is Outcome.ABORT:
                self.credentials_rejected = True
                _logger.error("Routing service rejected credentials; giving up on %s", sector.name)
                break
            if outcome is Outcome.RATE_LIMITED and not waited:
                waited = True
                self._sleep(self._rate_limit_wait_s)

        _logger.warning("No usable route for %s with any profile", sector.name)
        return None

    def invalidate(self, sector_id: str | None = None) -> None:
        """Drop cached routes for *sector_id*, or every cached route when None."""
        with self._lock:
            if sector_id is None:
                self._cache.clear()
                self.credentials_rejected = False
                return
            prefix = f"{sector_id}_"
            for key in [k for k in self._cache if k.startswith(prefix)]:
                del self._cache[key]

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def cache_key(sector: Sector) -> str:
        return (
            f"{sector.id}_{sector.start.lng}_{sector.start.lat}"
            f"_{sector.end.lng}_{sector.end.lat}"
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _cached(self, key: str) -> Route | None:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            stored_at, route = entry
            if self._clock() - stored_at >= CACHE_TTL_S:
                del self._cache[key]
                return None
            return route

    def _attempt(self, sector: Sector, profile: str) -> tuple[Outcome, Route | None]:
        url = (
            f"{self._base_url}/{profile}/"
            f"{sector.start.lng},{sector.start.lat};{sector.end.lng},{sector.end.lat}"
        )
        params = {
            "geometries": "geojson",
            "overview": "full",
            "alternatives": "false",
            "continue_straight": "false",
            "access_token": self._token,
        }
        _logger.debug("Fetching route for %s using %s profile", sector.name, profile)
        try:
            response = self._client.get(
                url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            _logger.warning("Route request for %s (%s) failed: %s", sector.name, profile, exc)
            return Outcome.NEXT, None

        if response.status_code != 200:
            _logger.warning(
                "Route request for %s (%s) returned HTTP %d",
                sector.name,
                profile,
                response.status_code,
            )
            return classify_status(response.status_code), None

        try:
            payload = response.json()
        except ValueError as exc:
            _logger.warning("Unreadable route response for %s (%s): %s", sector.name, profile, exc)
            return Outcome.NEXT, None

        route = extract_route(payload)
        if route is None:
            return Outcome.NEXT, None
        return Outcome.ACCEPT, route


class RouteLoader:
    """Resolves routes for every catalog sector on a daemon thread.

    Parameters
    ----------
    catalog:
        Catalog receiving resolved routes via :meth:`SectorCatalog.attach_route`.
    provider:
        A :class:`RouteProvider`.
    batch_size:
        Sectors per batch; a short pause separates batches.
    retries:
        Extra attempts per sector after a failed resolution.
    batch_pause_s:
        Pause between batches.
    retry_backoff_s:
        Base backoff; the n-th retry waits ``n * retry_backoff_s``.
    """

    def __init__(
        self,
        catalog: SectorCatalog,
        provider: RouteProvider,
        batch_size: int = 5,
        retries: int = 2,
        batch_pause_s: float = 0.5,
        retry_backoff_s: float = 1.0,
    ) -> None:
        self._catalog = catalog
        self._provider = provider
        self._batch_size = max(1, batch_size)
        self._retries = retries
        self._batch_pause_s = batch_pause_s
        self._retry_backoff_s = retry_backoff_s
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start loading in the background; no-op if a load is already running."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.load_all, daemon=True, name="RouteLoader")
        self._thread.start()

    def stop(self) -> None:
        """Ask the loader to stop after the current request and join it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def reload(self) -> None:
        """Invalidate every cached route and load again."""
        self.stop()
        self._provider.invalidate()
        self.start()

    def load_all(self) -> int:
        """Resolve all sectors synchronously; returns how many got a real route."""
        sectors = self._catalog.all()
        loaded = 0
        for start in range(0, len(sectors), self._batch_size):
            if self._provider.credentials_rejected:
                break
            if start and self._stop_event.wait(self._batch_pause_s):
                break
            for sector in sectors[start : start + self._batch_size]:
                if self._stop_event.is_set() or self._provider.credentials_rejected:
                    break
                route = self._resolve_with_retry(sector)
                if route is not None:
                    self._catalog.attach_route(sector.id, route)
                    loaded += 1
        _logger.info("Loaded %d/%d sector routes", loaded, len(sectors))
        return loaded

    def _resolve_with_retry(self, sector: Sector) -> Route | None:
        for attempt in range(self._retries + 1):
            if attempt and self._stop_event.wait(attempt * self._retry_backoff_s):
                return None
            route = self._provider.resolve_route(sector)
            if route is not None:
                return route
            if self._provider.credentials_rejected:
                _logger.error("Routing credentials rejected; stopping route loading")
                return None
        _logger.warning("Falling back to straight line for %s", sector.name)
        return None
