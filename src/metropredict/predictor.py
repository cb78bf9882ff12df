"""Projects trained models forward from a train's current state."""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from .exceptions import NoDestinationFound, NoPathFound, PredictionError
from .models import (
    ArrivalPrediction,
    Observation,
    TimetableEntry,
    TrainState,
    parse_location,
    to_observation_key,
    to_time_delta_key,
)
from .network import LocationGraph
from .stats_models import MedianTimeDeltas, UsualDestinations, UsualPaths

logger = logging.getLogger(__name__)

PREDICTION_WINDOW = timedelta(hours=2)
TIMETABLE_THRESHOLD = timedelta(minutes=15)
MAX_HOPS = 32

_ARRIVAL_STATES = (TrainState.APPROACHING, TrainState.ARRIVED)


def seconds_since_midnight(moment: datetime) -> int:
    return moment.hour * 3600 + moment.minute * 60 + moment.second


class Predictor:
    """
    Predicts the next arrivals of a train.

    Predictions never lie before the heartbeat and never beyond the
    heartbeat plus the prediction window.
    """

    def __init__(
        self,
        median_times: MedianTimeDeltas,
        usual_paths: UsualPaths,
        usual_destinations: UsualDestinations,
        graph: LocationGraph,
        prediction_window: timedelta = PREDICTION_WINDOW,
        timetable_threshold: timedelta = TIMETABLE_THRESHOLD,
        max_hops: int = MAX_HOPS,
    ):
        self.median_times = median_times
        self.usual_paths = usual_paths
        self.usual_destinations = usual_destinations
        self.graph = graph
        self.prediction_window = prediction_window
        self.timetable_threshold = timetable_threshold
        self.max_hops = max_hops

    def predict(
        self,
        heartbeat: datetime,
        observation: Observation,
        starting_location: Optional[str] = None,
        destination: Optional[str] = None,
        timetable: Optional[Sequence[TimetableEntry]] = None,
    ) -> List[ArrivalPrediction]:
        """
        Predict upcoming arrivals.

        Args:
            heartbeat: Reference "now"; no prediction is earlier than this.
            observation: Current reconciled state of the train.
            starting_location: Where the current trip started. Defaults to the
                               current location.
            destination: Known destination station or location code.
            timetable: The train's timetable, used to infer the destination.

        Returns:
            Predictions in travel order, chained across trips.

        Raises:
            NoDestinationFound: If no destination can be inferred.
            NoPathFound: If no path to the destination is known.
        """
        return self._predict(heartbeat, observation, starting_location, destination, timetable, hops=0)

    def _predict(
        self,
        heartbeat: datetime,
        observation: Observation,
        starting_location: Optional[str],
        destination: Optional[str],
        timetable: Optional[Sequence[TimetableEntry]],
        hops: int,
    ) -> List[ArrivalPrediction]:
        current_location = observation.location_code
        if starting_location is None:
            starting_location = current_location
        if destination is None:
            destination = self.resolve_destination(observation, starting_location, timetable)

        path = self.resolve_path(current_location, destination)
        predictions = self._walk(heartbeat, observation, path)
        if not predictions:
            return predictions

        if hops + 1 >= self.max_hops:
            logger.debug(f"Not chaining beyond {self.max_hops} legs from {current_location}")
            return predictions

        last = predictions[-1]
        try:
            predictions.extend(
                self._predict(
                    heartbeat,
                    Observation(TrainState.ARRIVED, parse_location(last.location_code), last.time),
                    last.location_code,
                    None,
                    timetable,
                    hops + 1,
                )
            )
        except PredictionError as e:
            logger.debug(f"No further legs after {last.location_code}: {e}")
        return predictions

    def resolve_destination(
        self,
        observation: Observation,
        starting_location: str,
        timetable: Optional[Sequence[TimetableEntry]] = None,
    ) -> str:
        """Destination from the timetable, falling back to the usual destination."""
        destination = None
        if timetable:
            destination = self._destination_from_timetable(observation, timetable)
        if not destination:
            destination = self.usual_destinations.get_usual_destination(
                starting_location, observation.location_code
            )
        if not destination:
            raise NoDestinationFound(starting_location, observation.location_code)
        return destination

    def _destination_from_timetable(
        self, observation: Observation, timetable: Sequence[TimetableEntry]
    ) -> Optional[str]:
        use_arrival = observation.state in _ARRIVAL_STATES
        now = seconds_since_midnight(observation.timestamp)
        smallest_diff = self.timetable_threshold.total_seconds()
        destination = None
        for entry in timetable:
            if entry.departure_time is None:
                continue
            if not self.graph.locations_match(entry.location, observation.location_code):
                continue
            entry_time = entry.arrival_time if use_arrival and entry.arrival_time is not None else entry.departure_time
            diff = abs(entry_time - now)
            if diff < smallest_diff:
                smallest_diff = diff
                destination = self.graph.canonical_station(parse_location(entry.destination).station)
        return destination

    def resolve_path(self, current_location: str, destination: str) -> List[str]:
        path = self.usual_paths.get_usual_path(current_location, destination)
        if not path:
            path = self.graph.shortest_path(current_location, destination)
        if not path:
            raise NoPathFound(current_location, destination)
        return path

    def _walk(self, heartbeat: datetime, observation: Observation, path: List[str]) -> List[ArrivalPrediction]:
        """
        Convert median time deltas along a path into arrival times.

        Each delta is looked up under a running state key, initially the
        observation's key. When it has no data, already-pathed locations are
        tried as Arrived states, most recent first, and the state key moves to
        each one tried. Times are always measured from the observation's time
        plus the clamp buffer. Stops at the first leg without data or beyond
        the window.
        """
        predictions: List[ArrivalPrediction] = []
        pathed: List[str] = []
        state_key = observation.key
        buffer = timedelta(0)
        limit = heartbeat + self.prediction_window

        for next_location in path:
            delta = self.median_times.get(to_time_delta_key(state_key, pathed + [next_location]))
            if delta is None:
                for i in range(len(pathed) - 1, -1, -1):
                    state_key = to_observation_key(TrainState.ARRIVED, pathed[i])
                    delta = self.median_times.get(to_time_delta_key(state_key, pathed[i + 1:] + [next_location]))
                    if delta is not None:
                        break
                else:
                    logger.debug(f"No time data to reach {next_location} from {observation.key}")
                    return predictions

            time = observation.timestamp + buffer + timedelta(milliseconds=delta)
            if time < heartbeat:
                buffer += heartbeat - time
                time = heartbeat
            if time > limit:
                return predictions

            pathed.append(next_location)
            predictions.append(ArrivalPrediction(location_code=next_location, time=time))

        return predictions
