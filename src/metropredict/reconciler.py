"""Merges the precise event feed and the coarse "last seen" feed into one observation."""

import logging
import re
from datetime import datetime, timedelta
from typing import Optional, Tuple

from .directory import StationDirectory
from .exceptions import MalformedStatus
from .models import LastSeen, Location, Observation, TimesEvent, TrainState, TrainStatus

logger = logging.getLogger(__name__)

TWELVE_HOURS = timedelta(hours=12)

_TIMES_LOCATION_RE = re.compile(r"^(?P<station>.+?)(?: Platform (?P<platform>\d+))?$")
_LAST_SEEN_RE = re.compile(
    r"^(?P<station>.+?)(?: Platform (?P<platform>\d+))? at (?P<hours>\d{1,2}):(?P<minutes>\d{2})$"
)

# Longest names first so "Ready to start" is not shadowed by a shorter prefix
_STATES_BY_LENGTH = sorted(TrainState, key=lambda s: len(s.value), reverse=True)


def parse_times_location(location: str) -> Tuple[str, Optional[int]]:
    """Split "Station Name Platform 2" into ("Station Name", 2)."""
    match = _TIMES_LOCATION_RE.match(location.strip())
    if not match:
        raise MalformedStatus(f"Invalid event location '{location}'")
    platform = match.group("platform")
    return match.group("station"), int(platform) if platform is not None else None


def parse_last_seen(text: str) -> LastSeen:
    """
    Parse a coarse status string.

    Args:
        text: e.g. "Approaching Monument Platform 2 at 16:30"

    Raises:
        MalformedStatus: If the string does not follow the expected format.
    """
    text = text.strip()
    for state in _STATES_BY_LENGTH:
        prefix = state.value + " "
        if text.lower().startswith(prefix.lower()):
            match = _LAST_SEEN_RE.match(text[len(prefix):])
            if not match:
                break
            hours = int(match.group("hours"))
            minutes = int(match.group("minutes"))
            if hours > 23 or minutes > 59:
                break
            platform = match.group("platform")
            return LastSeen(
                state=state,
                station=match.group("station"),
                platform=int(platform) if platform is not None else None,
                hours=hours,
                minutes=minutes,
            )
    raise MalformedStatus(f"Invalid last seen string '{text}'")


class StateReconciler:
    """
    Builds a single trustworthy Observation from two feeds.

    The precise feed carries full timestamps but may lag; the coarse feed only
    carries a time of day, which is anchored to the heartbeat date.
    """

    def __init__(self, directory: StationDirectory):
        self.directory = directory

    def reconcile(
        self,
        times_event: Optional[TimesEvent],
        last_seen: Optional[LastSeen],
        heartbeat: datetime,
    ) -> Observation:
        """
        Reconcile the two signals.

        Raises:
            UnrecognizedLocation: If a station name cannot be resolved.
            MalformedStatus: If neither signal is usable.
        """
        if last_seen is None:
            if times_event is None:
                raise MalformedStatus("Status has neither a precise event nor a last seen signal")
            return self._format_times_event(times_event)

        coarse_time = self.anchor_time_of_day(heartbeat, last_seen.hours, last_seen.minutes)
        if times_event is None or coarse_time > times_event.time:
            return self._format_last_seen(last_seen, coarse_time)
        return self._format_times_event(times_event)

    def reconcile_status(self, status: TrainStatus, heartbeat: datetime) -> Observation:
        """
        Reconcile a raw status, parsing its last seen string first.

        Raises:
            ReconcileError: If the status cannot be reconciled.
        """
        last_seen = parse_last_seen(status.last_seen) if status.last_seen else None
        return self.reconcile(status.times_event, last_seen, heartbeat)

    @staticmethod
    def anchor_time_of_day(heartbeat: datetime, hours: int, minutes: int) -> datetime:
        """Place HH:MM on the heartbeat's date, within 12 hours of the heartbeat."""
        anchored = heartbeat.replace(hour=hours, minute=minutes, second=0, microsecond=0)
        diff = anchored - heartbeat
        if diff < -TWELVE_HOURS:
            anchored += timedelta(days=1)
        elif diff > TWELVE_HOURS:
            anchored -= timedelta(days=1)
        return anchored

    def _format_times_event(self, event: TimesEvent) -> Observation:
        station, platform = parse_times_location(event.location)
        try:
            state = TrainState.normalize(event.type)
        except ValueError as e:
            raise MalformedStatus(f"Unknown event type '{event.type}'") from e
        return Observation(
            state=state,
            location=Location(self.directory.get_station_code(station, platform), platform),
            timestamp=event.time,
        )

    def _format_last_seen(self, last_seen: LastSeen, timestamp: datetime) -> Observation:
        return Observation(
            state=last_seen.state,
            location=Location(
                self.directory.get_station_code(last_seen.station, last_seen.platform),
                last_seen.platform,
            ),
            timestamp=timestamp,
        )
