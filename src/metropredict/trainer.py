"""Mines train history into raw path, destination and time statistics."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from .exceptions import MetroClientError, ReconcileError
from .model_builder import TrainedModels, build_models
from .models import HistoryEntry, Observation, TrainState, collapse, to_path_key, to_time_delta_key
from .network import LocationGraph
from .reconciler import StateReconciler

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MILLISECOND = timedelta(milliseconds=1)


def elapsed_ms(start: datetime, end: datetime) -> int:
    return (end - start) // ONE_MILLISECOND


class TrainingStatistics:
    """
    Raw accumulators shared by all trains of a training run.

    All mutation goes through methods holding one lock, so several
    segmenters may write concurrently.
    """

    def __init__(self):
        self._lock = threading.Lock()
        # Current location -> destination station -> path -> frequency
        self.path_frequencies: Dict[str, Dict[str, Dict[str, int]]] = {}
        # Starting location -> current location -> final destination -> frequency
        self.destination_frequencies: Dict[str, Dict[str, Dict[str, int]]] = {}
        # TimeDeltaKey -> elapsed milliseconds
        self.time_deltas: Dict[str, List[int]] = {}

    def add_path(self, from_location: str, destination_station: str, path_key: str) -> None:
        with self._lock:
            frequencies = self.path_frequencies.setdefault(from_location, {}).setdefault(destination_station, {})
            frequencies[path_key] = frequencies.get(path_key, 0) + 1

    def add_destination(self, starting_location: str, current_location: str, destination: str) -> None:
        with self._lock:
            frequencies = self.destination_frequencies.setdefault(starting_location, {}).setdefault(
                current_location, {}
            )
            frequencies[destination] = frequencies.get(destination, 0) + 1

    def add_time_delta(self, key: str, delta_ms: int) -> None:
        with self._lock:
            self.time_deltas.setdefault(key, []).append(delta_ms)


class JourneySegmenter:
    """
    Splits one train's ordered history into journeys and records statistics.

    Consecutive journey entries are either at the same location with a new
    state, or at adjacent locations.
    """

    def __init__(self, graph: LocationGraph, reconciler: StateReconciler, statistics: TrainingStatistics):
        self.graph = graph
        self.reconciler = reconciler
        self.statistics = statistics
        self.journey: List[Observation] = []

    def reset(self) -> None:
        self.journey = []

    def feed(self, entry: HistoryEntry) -> None:
        """Process one raw history entry."""
        if not entry.active:
            self.reset()
            return
        try:
            observation = self.reconciler.reconcile_status(entry.status, entry.date)
        except ReconcileError as e:
            logger.debug(f"Discarding journey: {e}")
            self.reset()
            return
        self.add(observation)

    def add(self, observation: Observation) -> None:
        """Process one reconciled observation."""
        if not self.journey:
            self.journey.append(observation)
            return

        previous = self.journey[-1]
        if observation.timestamp <= previous.timestamp:
            logger.debug(f"Dropping out-of-order observation {observation.key} at {observation.timestamp}")
            return
        if observation.key == previous.key:
            return

        if observation.location_code != previous.location_code:
            if not self.graph.is_adjacent(previous.location_code, observation.location_code):
                logger.debug(f"Discarding journey: {previous.location_code} -> {observation.location_code} not adjacent")
                self.reset()
                return
            if any(seen.station == observation.station for seen in self.journey):
                self._record_terminus(previous, observation)
                self.journey = [previous]

        self.journey.append(observation)

        if observation.state == TrainState.ARRIVED:
            self._record_arrival(observation)

    def _record_terminus(self, terminus: Observation, turned_back: Observation) -> None:
        # The observation that revealed the terminus counts as part of the trip
        starting_location = self.journey[0].location_code
        for seen in self.journey + [turned_back]:
            self.statistics.add_destination(starting_location, seen.location_code, terminus.location_code)

    def _record_arrival(self, arrival: Observation) -> None:
        for i, start in enumerate(self.journey[:-1]):
            locations = [seen.location_code for seen in self.journey[i + 1:]]
            while locations and locations[0] == start.location_code:
                locations.pop(0)
            path = collapse(locations)
            path_key = to_path_key(path)
            if path:
                self.statistics.add_path(start.location_code, arrival.station, path_key)
            self.statistics.add_time_delta(
                to_time_delta_key(start.key, path_key),
                elapsed_ms(start.timestamp, arrival.timestamp),
            )


class Trainer:
    """Fetches history for every train and feeds it through journey segmentation."""

    def __init__(
        self,
        client,
        graph: LocationGraph,
        reconciler: StateReconciler,
        max_workers: int = 8,
        page_limit: Optional[int] = None,
    ):
        """
        Initialize the trainer.

        Args:
            client: Data source exposing get_history_summary(),
                    get_train_history() and get_constants().
            graph: Network adjacency.
            reconciler: Reconciler with a loaded station directory.
            max_workers: Maximum number of trains fetched concurrently.
            page_limit: History page size. Defaults to the data source's
                        MAX_HISTORY_REQUEST_LIMIT constant.
        """
        self.client = client
        self.graph = graph
        self.reconciler = reconciler
        self.max_workers = max_workers
        self.page_limit = page_limit

    def _resolve_page_limit(self) -> int:
        if self.page_limit is None:
            constants = self.client.get_constants()
            self.page_limit = int(constants["MAX_HISTORY_REQUEST_LIMIT"])
        return self.page_limit

    def train(self, trns: Optional[Iterable[str]] = None) -> TrainingStatistics:
        """
        Collect raw statistics for the given trains (all known trains by default).

        Returns:
            Populated TrainingStatistics.
        """
        if trns is None:
            trns = self.client.get_history_summary()
        trns = list(trns)
        page_limit = self._resolve_page_limit()
        statistics = TrainingStatistics()

        logger.info(f"Fetching and processing history for {len(trns)} TRNs")
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_trn = {
                executor.submit(self.process_train, trn, statistics, page_limit): trn
                for trn in trns
            }
            for future in as_completed(future_to_trn):
                trn = future_to_trn[future]
                try:
                    entries = future.result()
                    logger.info(f"Processed {entries} history entries for T{trn}")
                except Exception as e:
                    logger.error(f"Error processing T{trn}: {e}", exc_info=True)

        logger.info(f"Processed all history; found {len(statistics.time_deltas)} unique time delta keys")
        return statistics

    def process_train(self, trn: str, statistics: TrainingStatistics, page_limit: int) -> int:
        """
        Page through one train's history in timestamp order.

        A failed page stops pagination for this train only; statistics from
        earlier pages are kept.

        Returns:
            Number of history entries processed.
        """
        segmenter = JourneySegmenter(self.graph, self.reconciler, statistics)
        cursor = EPOCH
        processed = 0
        while True:
            try:
                page = self.client.get_train_history(trn, cursor, page_limit)
            except MetroClientError as e:
                logger.warning(f"Stopping history for T{trn} after {processed} entries: {e}")
                break
            if not page.entries:
                break
            for entry in page.entries:
                segmenter.feed(entry)
            processed += len(page.entries)
            cursor = page.last_date + ONE_MILLISECOND
            if len(page.entries) < page_limit:
                break
        return processed

    def train_models(self, trns: Optional[Iterable[str]] = None) -> TrainedModels:
        """Collect statistics and reduce them into persistable models."""
        return build_models(self.train(trns))
