"""Client for the metro data proxy."""

import logging
import time
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import MetroClientError
from .models import HistoryEntry, HistoryPage, TimesEvent, TimetableEntry, TrainStatus

logger = logging.getLogger(__name__)


def parse_datetime(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp into local time.

    Naive values are taken as UTC. Local time is used so that times of day
    line up with the timetable and the coarse feed.
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone()


def format_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_status(data: Optional[Dict[str, Any]]) -> TrainStatus:
    """Parse a raw status object carrying the timesAPI and trainStatusesAPI feeds."""
    data = data or {}
    times_event = None
    last_event = (data.get("timesAPI") or {}).get("lastEvent")
    if last_event:
        times_event = TimesEvent(
            type=last_event["type"],
            location=last_event["location"],
            time=parse_datetime(last_event["time"]),
        )
    last_seen = (data.get("trainStatusesAPI") or {}).get("lastSeen")
    return TrainStatus(times_event=times_event, last_seen=last_seen or None)


def parse_history_entry(data: Dict[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        date=parse_datetime(data["date"]),
        active=bool(data.get("active")),
        status=parse_status(data.get("status")),
    )


def parse_timetable_entry(data: Dict[str, Any]) -> TimetableEntry:
    return TimetableEntry(
        location=data["location"],
        destination=data["destination"],
        arrival_time=data.get("arrivalTime"),
        departure_time=data.get("departureTime"),
    )


class MetroClient:
    """Fetches constants, history, live status and timetables from the proxy."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10,
        cache_ttl: float = 300,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Proxy base URL.
            timeout: Per-request timeout in seconds.
            cache_ttl: Lifetime of cached constants, network and timetables.
            session: Optional pre-configured requests session.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._cache: Dict[str, Tuple[Any, float]] = {}  # path -> (data, timestamp)
        self._cache_ttl = cache_ttl
        self._max_cache_size = 10
        self._session = session or self._make_session()

    @staticmethod
    def _make_session() -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=5,
            connect=3,
            read=3,
            backoff_factor=0.5,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset(["GET"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=16, pool_maxsize=16)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        session.headers.update({"Accept": "application/json"})
        return session

    def get_constants(self) -> Dict[str, Any]:
        """Data source constants, including LOCATION_ABBREVIATIONS."""
        return self._get_cached("/constants")

    def get_network(self) -> Dict[str, List[str]]:
        """Static network adjacency document."""
        return self._get_cached("/network")

    def get_history_summary(self) -> List[str]:
        """TRNs that have recorded history."""
        data = self._get("/history/summary")
        return list((data.get("trains") or {}).keys())

    def get_train_history(self, trn: str, time_from: datetime, limit: int) -> HistoryPage:
        """
        Get one page of a train's history.

        Args:
            trn: Train run number.
            time_from: Earliest timestamp to include.
            limit: Maximum number of entries.

        Returns:
            HistoryPage ordered by date.
        """
        data = self._get(f"/history/{trn}", params={"from": format_datetime(time_from), "limit": limit})
        try:
            return HistoryPage([parse_history_entry(entry) for entry in data.get("extract") or []])
        except (KeyError, TypeError, ValueError) as e:
            raise MetroClientError(f"Malformed history page for T{trn}: {e}") from e

    def get_active_trains(self) -> Tuple[datetime, Dict[str, TrainStatus]]:
        """
        Current snapshot of all active trains.

        Returns:
            (heartbeat, {trn: status})
        """
        data = self._get("/active")
        heartbeat = parse_datetime(data["date"])
        trains = {
            trn: parse_status(train.get("status"))
            for trn, train in (data.get("trains") or {}).items()
        }
        return heartbeat, trains

    def get_timetable(self, day: date) -> Dict[str, List[TimetableEntry]]:
        """Timetable for a service day, by TRN."""
        data = self._get_cached("/timetable", params={"date": day.isoformat()})
        return {
            trn: [parse_timetable_entry(entry) for entry in entries]
            for trn, entries in (data.get("trains") or {}).items()
        }

    def _get_cached(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        cache_key = path if not params else f"{path}?{sorted(params.items())}"
        now = time.time()
        if cache_key in self._cache:
            data, timestamp = self._cache[cache_key]
            if now - timestamp < self._cache_ttl:
                logger.debug(f"Using cached data for {cache_key}")
                return data

        self._evict_expired_cache(now)
        if len(self._cache) >= self._max_cache_size:
            oldest_key = min(self._cache.keys(), key=lambda k: self._cache[k][1])
            del self._cache[oldest_key]

        data = self._get(path, params=params)
        self._cache[cache_key] = (data, now)
        return data

    def _evict_expired_cache(self, current_time: float) -> None:
        expired_keys = [
            key for key, (_, timestamp) in self._cache.items()
            if current_time - timestamp >= self._cache_ttl
        ]
        for key in expired_keys:
            del self._cache[key]

        if expired_keys:
            logger.debug(f"Evicted {len(expired_keys)} expired cache entries")

    def clear_cache(self) -> None:
        """Manually clear the cache."""
        self._cache.clear()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"Fetching {url} {params or ''}")
        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to fetch {url}: {e}")
            raise MetroClientError(f"Failed to fetch {url}: {e}") from e

    def close(self) -> None:
        self.clear_cache()
        self._session.close()
