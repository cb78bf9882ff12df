"""Data models for MetroPredict."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

PATH_DELIMITER = "->"

_LOCATION_CODE_RE = re.compile(r"^(?P<station>.+?)(?:_(?P<platform>\d+))?$")


class TrainState(str, Enum):
    """Closed set of train states reported by the data source."""
    APPROACHING = "Approaching"
    ARRIVED = "Arrived"
    DEPARTED = "Departed"
    READY_TO_START = "Ready to start"

    @classmethod
    def normalize(cls, raw: str) -> "TrainState":
        """
        Convert a raw event type (e.g. "READY_TO_START") to a TrainState.

        Raises:
            ValueError: If the normalized name is not a known state.
        """
        name = raw.lower().replace("_", " ").strip()
        if not name:
            raise ValueError("Empty train state")
        return cls(name[0].upper() + name[1:])


@dataclass(frozen=True)
class Location:
    """A station code plus an optional platform number."""
    station: str
    platform: Optional[int] = None

    @property
    def code(self) -> str:
        """Canonical location code: STATION or STATION_PLATFORM."""
        return to_location_code(self.station, self.platform)

    @classmethod
    def parse(cls, code: str) -> "Location":
        return parse_location(code)

    def __str__(self) -> str:
        return self.code


@dataclass(frozen=True)
class Observation:
    """A reconciled (state, location, timestamp) triple."""
    state: TrainState
    location: Location
    timestamp: datetime

    @property
    def station(self) -> str:
        return self.location.station

    @property
    def platform(self) -> Optional[int]:
        return self.location.platform

    @property
    def location_code(self) -> str:
        return self.location.code

    @property
    def key(self) -> str:
        """Observation key: STATE-LOCATIONCODE."""
        return to_observation_key(self.state, self.location.code)


@dataclass
class TimesEvent:
    """Precise event-feed signal."""
    type: str
    location: str  # e.g. "Monument Platform 2"
    time: datetime


@dataclass
class LastSeen:
    """Coarse time-of-day signal parsed from a "last seen" string."""
    state: TrainState
    station: str  # Station name, not code
    platform: Optional[int]
    hours: int
    minutes: int


@dataclass
class TrainStatus:
    """Raw status of one train as reported by both feeds."""
    times_event: Optional[TimesEvent] = None
    last_seen: Optional[str] = None  # Unparsed, e.g. "Arrived Monument Platform 2 at 16:30"


@dataclass
class HistoryEntry:
    """One entry of a train's history."""
    date: datetime
    active: bool
    status: TrainStatus


@dataclass
class HistoryPage:
    """A page of history entries, ordered by date."""
    entries: List[HistoryEntry] = field(default_factory=list)

    @property
    def last_date(self) -> Optional[datetime]:
        return self.entries[-1].date if self.entries else None


@dataclass
class TimetableEntry:
    """A scheduled stop; times are seconds since midnight."""
    location: str
    destination: str
    arrival_time: Optional[int] = None
    departure_time: Optional[int] = None


@dataclass
class ArrivalPrediction:
    """A predicted future arrival."""
    location_code: str
    time: datetime


def to_location_code(station: str, platform: Optional[int] = None) -> str:
    if platform is None:
        return station
    return f"{station}_{platform}"


def parse_location(code: str) -> Location:
    """
    Parse a location code into a Location.

    Raises:
        ValueError: If the code is empty.
    """
    match = _LOCATION_CODE_RE.match(code or "")
    if not match:
        raise ValueError(f"Invalid location code '{code}'")
    platform = match.group("platform")
    return Location(match.group("station"), int(platform) if platform is not None else None)


def station_of(code: str) -> str:
    """Station part of a location code."""
    return parse_location(code).station


def to_observation_key(state: TrainState, location_code: str) -> str:
    state_name = state.value if isinstance(state, TrainState) else state
    return f"{state_name}-{location_code}"


def collapse(codes: Iterable[str]) -> List[str]:
    """Remove consecutive duplicates."""
    collapsed: List[str] = []
    for code in codes:
        if not collapsed or collapsed[-1] != code:
            collapsed.append(code)
    return collapsed


def to_path_key(codes: Iterable[str]) -> str:
    """Encode a location sequence as a PathKey, collapsing consecutive duplicates."""
    return PATH_DELIMITER.join(collapse(codes))


def split_path_key(path_key: str) -> List[str]:
    if not path_key:
        return []
    return path_key.split(PATH_DELIMITER)


def to_time_delta_key(observation_key: str, path: Iterable[str]) -> str:
    """Encode a TimeDeltaKey: OBSERVATIONKEY->PATHKEY."""
    path_key = path if isinstance(path, str) else PATH_DELIMITER.join(path)
    return f"{observation_key}{PATH_DELIMITER}{path_key}"
