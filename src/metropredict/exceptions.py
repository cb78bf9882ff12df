"""Exceptions raised by MetroPredict."""


class MetroPredictError(Exception):
    """Base class for all MetroPredict errors."""


class ConfigurationError(MetroPredictError):
    """Required configuration is missing or invalid."""


class ReconcileError(MetroPredictError, ValueError):
    """A raw train status could not be turned into an observation."""


class UnrecognizedLocation(ReconcileError):
    """A station name could not be resolved to a station code."""

    def __init__(self, station: str):
        super().__init__(f"Unrecognised station: {station}")
        self.station = station


class MalformedStatus(ReconcileError):
    """A raw status is missing both signals or carries an unknown state."""


class PredictionError(MetroPredictError):
    """A single prediction call could not be completed."""


class NoDestinationFound(PredictionError):
    def __init__(self, starting_location: str, current_location: str):
        super().__init__(
            f"No destination found for starting location {starting_location} "
            f"and current location {current_location}"
        )
        self.starting_location = starting_location
        self.current_location = current_location


class NoPathFound(PredictionError):
    def __init__(self, current_location: str, destination: str):
        super().__init__(f"No path found from {current_location} to {destination}")
        self.current_location = current_location
        self.destination = destination


class ModelFormatError(MetroPredictError, ValueError):
    """A persisted model document is malformed."""


class NetworkFormatError(MetroPredictError, ValueError):
    """The network adjacency document is malformed."""


class MetroClientError(MetroPredictError):
    """A request to the transit data source failed."""
