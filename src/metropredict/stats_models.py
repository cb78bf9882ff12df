"""Persisted statistical models used by the Predictor.

Each model wraps a plain dict and knows how to convert itself to and from
the JSON documents written by the trainer. Parsing is strict: any null,
array or wrongly typed value raises ModelFormatError naming the offending
path, and nothing is partially loaded.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .exceptions import ModelFormatError
from .models import split_path_key, station_of

Number = Union[int, float]


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _require_object(value: Any, path: str) -> Dict[str, Any]:
    if value is None:
        raise ModelFormatError(f"{path} cannot be null")
    if isinstance(value, (list, tuple)):
        raise ModelFormatError(f"Expected {path} to be an object, got an array")
    if not isinstance(value, dict):
        raise ModelFormatError(f"Expected {path} to be an object, got {_json_type(value)}")
    for key in value:
        if not isinstance(key, str):
            raise ModelFormatError(f"Expected keys of {path} to be strings, got {_json_type(key)}")
    return value


def _require_string(value: Any, path: str) -> str:
    if not isinstance(value, str):
        raise ModelFormatError(f"Expected {path} to be a string, got {_json_type(value)}")
    return value


def _require_number(value: Any, path: str) -> Number:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ModelFormatError(f"Expected {path} to be a number, got {_json_type(value)}")
    return value


def _nested_to_json(data: Dict[str, Dict[str, str]]) -> Dict[str, Dict[str, str]]:
    return {outer: dict(inner) for outer, inner in data.items()}


class MedianTimeDeltas:
    """TimeDeltaKey -> median time delta in milliseconds."""

    name = "medianPathTimes"

    def __init__(self, deltas: Optional[Dict[str, Number]] = None):
        self._deltas: Dict[str, Number] = dict(deltas or {})

    def get(self, key: str) -> Optional[Number]:
        return self._deltas.get(key)

    def set(self, key: str, median: Number) -> None:
        self._deltas[key] = median

    def items(self) -> Iterator[Tuple[str, Number]]:
        return iter(self._deltas.items())

    def __contains__(self, key: str) -> bool:
        return key in self._deltas

    def __len__(self) -> int:
        return len(self._deltas)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MedianTimeDeltas) and self._deltas == other._deltas

    def to_json(self) -> Dict[str, Number]:
        return dict(self._deltas)

    @classmethod
    def from_json(cls, data: Any) -> "MedianTimeDeltas":
        root = _require_object(data, cls.name)
        model = cls()
        for key, value in root.items():
            model.set(key, _require_number(value, f"{cls.name}[{key!r}]"))
        return model


class UsualPaths:
    """Current location -> destination station -> usual PathKey."""

    name = "usualPaths"

    def __init__(self):
        self._paths: Dict[str, Dict[str, str]] = {}

    def set_usual_path(self, from_location: str, to_station: str, path_key: str) -> None:
        self._paths.setdefault(from_location, {})[to_station] = path_key

    def get_usual_path_key(self, from_location: str, destination: str) -> Optional[str]:
        """
        Look up the usual path key.

        Args:
            from_location: Current location code.
            destination: Destination station or location code; only the station
                part is used.
        """
        return self._paths.get(from_location, {}).get(station_of(destination))

    def get_usual_path(self, from_location: str, destination: str) -> Optional[List[str]]:
        path_key = self.get_usual_path_key(from_location, destination)
        if not path_key:
            return None
        return split_path_key(path_key)

    def __len__(self) -> int:
        return len(self._paths)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, UsualPaths) and self._paths == other._paths

    def to_json(self) -> Dict[str, Dict[str, str]]:
        return _nested_to_json(self._paths)

    @classmethod
    def from_json(cls, data: Any) -> "UsualPaths":
        root = _require_object(data, cls.name)
        model = cls()
        for from_location, destinations in root.items():
            path = f"{cls.name}[{from_location!r}]"
            model._paths.setdefault(from_location, {})
            for to_station, path_key in _require_object(destinations, path).items():
                model.set_usual_path(
                    from_location,
                    to_station,
                    _require_string(path_key, f"{path}[{to_station!r}]"),
                )
        return model


class UsualDestinations:
    """Starting location -> current location -> usual final destination."""

    name = "usualDestinations"

    def __init__(self):
        self._destinations: Dict[str, Dict[str, str]] = {}

    def set_usual_destination(self, starting_location: str, current_location: str, destination: str) -> None:
        self._destinations.setdefault(starting_location, {})[current_location] = destination

    def get_usual_destination(self, starting_location: str, current_location: str) -> Optional[str]:
        return self._destinations.get(starting_location, {}).get(current_location)

    def __len__(self) -> int:
        return len(self._destinations)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, UsualDestinations) and self._destinations == other._destinations

    def to_json(self) -> Dict[str, Dict[str, str]]:
        return _nested_to_json(self._destinations)

    @classmethod
    def from_json(cls, data: Any) -> "UsualDestinations":
        root = _require_object(data, cls.name)
        model = cls()
        for starting_location, current_to_destination in root.items():
            path = f"{cls.name}[{starting_location!r}]"
            model._destinations.setdefault(starting_location, {})
            for current_location, destination in _require_object(current_to_destination, path).items():
                model.set_usual_destination(
                    starting_location,
                    current_location,
                    _require_string(destination, f"{path}[{current_location!r}]"),
                )
        return model
