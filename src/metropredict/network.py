"""Static network adjacency and shortest-path search."""

import json
import logging
from collections import deque
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from .exceptions import NetworkFormatError
from .models import parse_location

logger = logging.getLogger(__name__)

# Timetables name the directional platforms of Monument as separate stops
DEFAULT_STATION_ALIASES = {
    "MTN": "MTS",
    "MTE": "MTW",
}


class LocationGraph:
    """
    Directed adjacency over location codes.

    Neighbours keep the order in which the network document lists them, so
    breadth-first search results are reproducible.
    """

    def __init__(
        self,
        adjacency: Mapping[str, Iterable[str]],
        station_aliases: Optional[Dict[str, str]] = None,
        platform_insensitive: Optional[Iterable[str]] = None,
    ):
        self._neighbors: Dict[str, List[str]] = {}
        self._adjacent: Dict[str, Set[str]] = {}
        for location, adjacent in adjacency.items():
            ordered = list(dict.fromkeys(adjacent))
            self._neighbors[location] = ordered
            self._adjacent[location] = set(ordered)

        self.station_aliases = dict(DEFAULT_STATION_ALIASES if station_aliases is None else station_aliases)
        self.platform_insensitive = set(platform_insensitive or [])

    @classmethod
    def from_json(cls, data: Any, **kwargs) -> "LocationGraph":
        """Build a graph from a {location: [adjacent, ...]} document."""
        if not isinstance(data, dict):
            raise NetworkFormatError(f"Expected network to be an object, got {type(data).__name__}")
        for location, adjacent in data.items():
            if not isinstance(adjacent, list):
                raise NetworkFormatError(
                    f"Expected network[{location!r}] to be a list, got {type(adjacent).__name__}"
                )
            for neighbor in adjacent:
                if not isinstance(neighbor, str):
                    raise NetworkFormatError(
                        f"Expected entries of network[{location!r}] to be strings, got {type(neighbor).__name__}"
                    )
        return cls(data, **kwargs)

    @classmethod
    def from_file(cls, path: str, **kwargs) -> "LocationGraph":
        logger.info(f"Loading network from {path}")
        with open(path, "r", encoding="utf-8") as f:
            graph = cls.from_json(json.load(f), **kwargs)
        logger.info(f"Loaded network with {len(graph)} locations")
        return graph

    def __len__(self) -> int:
        return len(self._neighbors)

    def __contains__(self, location: str) -> bool:
        return location in self._neighbors

    def neighbors(self, location: str) -> List[str]:
        return list(self._neighbors.get(location, []))

    def is_adjacent(self, from_location: str, to_location: str) -> bool:
        adjacent = self._adjacent.get(from_location)
        if not adjacent:
            return False
        return to_location in adjacent

    def canonical_station(self, station: str) -> str:
        return self.station_aliases.get(station, station)

    def locations_match(self, candidate: str, target: str) -> bool:
        """
        Check whether a location satisfies a target location or station.

        Stations are compared after alias resolution. Platforms only matter
        when both sides have one and the station is not platform-insensitive.
        """
        if candidate == target:
            return True
        a = parse_location(candidate)
        b = parse_location(target)
        station = self.canonical_station(a.station)
        if station != self.canonical_station(b.station):
            return False
        if a.platform is None or b.platform is None or station in self.platform_insensitive:
            return True
        return a.platform == b.platform

    def shortest_path(self, from_location: str, to_location: str) -> Optional[List[str]]:
        """
        Unweighted shortest path by breadth-first search.

        Returns:
            Locations after from_location up to and including the first
            location matching to_location, or None if unreachable.
        """
        previous: Dict[str, Optional[str]] = {from_location: None}
        queue = deque([from_location])
        while queue:
            current = queue.popleft()
            for neighbor in self._neighbors.get(current, []):
                if neighbor in previous:
                    continue
                previous[neighbor] = current
                if self.locations_match(neighbor, to_location):
                    return self._unwind(previous, neighbor)
                queue.append(neighbor)
        return None

    @staticmethod
    def _unwind(previous: Dict[str, Optional[str]], last: str) -> List[str]:
        path = []
        node: Optional[str] = last
        while previous[node] is not None:
            path.append(node)
            node = previous[node]
        path.reverse()
        return path
