"""Station name to station code lookup."""

import logging
from typing import Dict, Mapping, Optional, Tuple

from .exceptions import UnrecognizedLocation

logger = logging.getLogger(__name__)

# Station names that map to different codes depending on platform:
# name -> (highest platform of the first code, first code, second code)
DEFAULT_SPLIT_STATIONS: Dict[str, Tuple[int, str, str]] = {
    "Monument": (2, "MTS", "MTW"),
}


class StationDirectory:
    """Resolves station names reported by the feeds to station codes."""

    def __init__(
        self,
        names_to_codes: Mapping[str, str],
        split_stations: Optional[Mapping[str, Tuple[int, str, str]]] = None,
    ):
        self._codes: Dict[str, str] = dict(names_to_codes)
        self._split_stations = dict(DEFAULT_SPLIT_STATIONS if split_stations is None else split_stations)

    @classmethod
    def from_abbreviations(cls, abbreviations: Mapping[str, str], **kwargs) -> "StationDirectory":
        """Build from a {code: name} mapping as published by the data source."""
        return cls({name: code for code, name in abbreviations.items()}, **kwargs)

    @classmethod
    def from_constants(cls, constants: Mapping, **kwargs) -> "StationDirectory":
        abbreviations = constants.get("LOCATION_ABBREVIATIONS") or {}
        if not abbreviations:
            logger.warning("Data source constants contain no LOCATION_ABBREVIATIONS")
        return cls.from_abbreviations(abbreviations, **kwargs)

    def __len__(self) -> int:
        return len(self._codes)

    def get_station_code(self, station: str, platform: Optional[int] = None) -> str:
        """
        Get the station code for a station name.

        Raises:
            UnrecognizedLocation: If the name is unknown.
        """
        split = self._split_stations.get(station)
        if split:
            last_platform, low_code, high_code = split
            return low_code if platform is not None and platform <= last_platform else high_code

        code = self._codes.get(station)
        if code:
            return code
        raise UnrecognizedLocation(station)
