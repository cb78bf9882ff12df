"""Tests for JourneySegmenter and Trainer."""

import threading
import unittest
from unittest.mock import MagicMock
from datetime import datetime, timedelta
import sys
from pathlib import Path

# Add src to path so we can import metropredict
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from metropredict.directory import StationDirectory
from metropredict.exceptions import MetroClientError
from metropredict.models import (
    HistoryEntry,
    HistoryPage,
    Location,
    Observation,
    TimesEvent,
    TrainState,
    TrainStatus,
)
from metropredict.network import LocationGraph
from metropredict.reconciler import StateReconciler
from metropredict.trainer import EPOCH, JourneySegmenter, Trainer, TrainingStatistics

LINEAR_NETWORK = {
    "A": ["B"],
    "B": ["A", "C"],
    "C": ["B", "D"],
    "D": ["C"],
}

STATION_NAMES = {"A": "Alpha", "B": "Bravo", "C": "Charlie", "D": "Delta"}

MINUTE = 60 * 1000


def at(hour: int, minute: int, second: int = 0) -> datetime:
    return datetime(2025, 11, 21, hour, minute, second)


def obs(state: TrainState, location: str, moment: datetime) -> Observation:
    return Observation(state, Location.parse(location), moment)


def entry(event_type: str, station: str, moment: datetime, active: bool = True) -> HistoryEntry:
    return HistoryEntry(
        date=moment,
        active=active,
        status=TrainStatus(times_event=TimesEvent(event_type, station, moment)),
    )


def make_reconciler() -> StateReconciler:
    return StateReconciler(StationDirectory.from_abbreviations(STATION_NAMES))


class TestTrainingStatistics(unittest.TestCase):
    """Test the shared accumulators under concurrent writers."""

    def test_concurrent_writes_to_same_key(self):
        """Test that no increment or sample is lost when threads share keys."""
        statistics = TrainingStatistics()
        threads_count = 8
        writes = 2000
        barrier = threading.Barrier(threads_count)

        def worker():
            barrier.wait()
            for i in range(writes):
                statistics.add_path("A", "D", "B->C->D")
                statistics.add_destination("A", "B", "D")
                statistics.add_time_delta("Departed-A->B", i)

        threads = [threading.Thread(target=worker) for _ in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(statistics.path_frequencies["A"]["D"]["B->C->D"], threads_count * writes)
        self.assertEqual(statistics.destination_frequencies["A"]["B"]["D"], threads_count * writes)
        self.assertEqual(len(statistics.time_deltas["Departed-A->B"]), threads_count * writes)


class TestJourneySegmenter(unittest.TestCase):
    """Test journey segmentation and statistics recording."""

    def setUp(self):
        self.statistics = TrainingStatistics()
        self.segmenter = JourneySegmenter(
            LocationGraph.from_json(LINEAR_NETWORK), make_reconciler(), self.statistics
        )

    def test_linear_journey_records_paths_and_deltas(self):
        """Test the statistics of a simple A to D journey."""
        self.segmenter.add(obs(TrainState.DEPARTED, "A", at(9, 0)))
        self.segmenter.add(obs(TrainState.ARRIVED, "B", at(9, 5)))
        self.segmenter.add(obs(TrainState.ARRIVED, "C", at(9, 10)))
        self.segmenter.add(obs(TrainState.ARRIVED, "D", at(9, 15)))

        self.assertEqual(self.statistics.path_frequencies["A"]["D"], {"B->C->D": 1})
        self.assertEqual(self.statistics.path_frequencies["B"]["D"], {"C->D": 1})
        self.assertEqual(self.statistics.path_frequencies["C"]["D"], {"D": 1})
        self.assertEqual(self.statistics.time_deltas["Departed-A->B"], [5 * MINUTE])
        self.assertEqual(self.statistics.time_deltas["Departed-A->B->C->D"], [15 * MINUTE])
        self.assertEqual(self.statistics.time_deltas["Arrived-B->C"], [5 * MINUTE])
        self.assertEqual(self.statistics.destination_frequencies, {})

    def test_departure_does_not_record(self):
        """Test that only arrivals record paths and deltas."""
        self.segmenter.add(obs(TrainState.ARRIVED, "A", at(9, 0)))
        self.segmenter.add(obs(TrainState.DEPARTED, "A", at(9, 1)))
        self.segmenter.add(obs(TrainState.APPROACHING, "B", at(9, 4)))
        self.assertEqual(self.statistics.time_deltas, {})
        self.assertEqual(self.statistics.path_frequencies, {})
        self.assertEqual(len(self.segmenter.journey), 3)

    def test_duplicate_dropped(self):
        """Test that a repeated state and location is ignored."""
        self.segmenter.add(obs(TrainState.DEPARTED, "A", at(9, 0)))
        self.segmenter.add(obs(TrainState.DEPARTED, "A", at(9, 1)))
        self.assertEqual(len(self.segmenter.journey), 1)
        self.assertEqual(self.segmenter.journey[0].timestamp, at(9, 0))

    def test_out_of_order_dropped(self):
        """Test that observations not strictly after the last one are rejected."""
        self.segmenter.add(obs(TrainState.DEPARTED, "A", at(9, 0)))
        self.segmenter.add(obs(TrainState.ARRIVED, "B", at(8, 59)))
        self.segmenter.add(obs(TrainState.ARRIVED, "B", at(9, 0)))
        self.assertEqual(len(self.segmenter.journey), 1)
        self.assertEqual(self.statistics.time_deltas, {})

    def test_same_location_state_change(self):
        """Test that state changes at one stop extend the journey without degenerate paths."""
        self.segmenter.add(obs(TrainState.DEPARTED, "A", at(9, 0)))
        self.segmenter.add(obs(TrainState.APPROACHING, "B", at(9, 4)))
        self.segmenter.add(obs(TrainState.ARRIVED, "B", at(9, 5)))

        self.assertEqual(len(self.segmenter.journey), 3)
        self.assertEqual(self.statistics.path_frequencies, {"A": {"B": {"B": 1}}})
        self.assertEqual(self.statistics.time_deltas["Departed-A->B"], [5 * MINUTE])
        self.assertEqual(self.statistics.time_deltas["Approaching-B->"], [1 * MINUTE])

    def test_non_adjacent_discards_journey(self):
        """Test that a jump between non-adjacent locations resets segmentation."""
        self.segmenter.add(obs(TrainState.DEPARTED, "A", at(9, 0)))
        self.segmenter.add(obs(TrainState.ARRIVED, "C", at(9, 5)))
        self.assertEqual(self.segmenter.journey, [])

        self.segmenter.add(obs(TrainState.ARRIVED, "D", at(9, 10)))
        self.assertEqual([o.key for o in self.segmenter.journey], ["Arrived-D"])
        self.assertEqual(self.statistics.time_deltas, {})

    def test_revisited_station_marks_terminus(self):
        """Test that turning back records destinations and restarts from the terminus."""
        self.segmenter.add(obs(TrainState.DEPARTED, "A", at(9, 0)))
        self.segmenter.add(obs(TrainState.ARRIVED, "B", at(9, 5)))
        self.segmenter.add(obs(TrainState.ARRIVED, "C", at(9, 10)))
        self.segmenter.add(obs(TrainState.DEPARTED, "C", at(9, 11)))
        self.segmenter.add(obs(TrainState.ARRIVED, "B", at(9, 15)))

        self.assertEqual(
            self.statistics.destination_frequencies,
            {"A": {"A": {"C": 1}, "B": {"C": 2}, "C": {"C": 2}}},
        )
        self.assertEqual([o.key for o in self.segmenter.journey], ["Departed-C", "Arrived-B"])
        self.assertEqual(self.statistics.path_frequencies["C"]["B"], {"B": 1})
        self.assertEqual(self.statistics.time_deltas["Departed-C->B"], [4 * MINUTE])

    def test_terminus_ignores_platform(self):
        """Test that revisiting a station on another platform is a terminus."""
        graph = LocationGraph.from_json({
            "A_1": ["B_1"],
            "B_1": ["B_2"],
            "B_2": ["A_2"],
        })
        segmenter = JourneySegmenter(graph, make_reconciler(), self.statistics)
        segmenter.add(obs(TrainState.DEPARTED, "A_1", at(9, 0)))
        segmenter.add(obs(TrainState.ARRIVED, "B_1", at(9, 5)))
        segmenter.add(obs(TrainState.DEPARTED, "B_2", at(9, 10)))

        self.assertEqual(
            self.statistics.destination_frequencies,
            {"A_1": {"A_1": {"B_1": 1}, "B_1": {"B_1": 1}, "B_2": {"B_1": 1}}},
        )
        self.assertEqual([o.key for o in segmenter.journey], ["Arrived-B_1", "Departed-B_2"])

    def test_inactive_entry_resets(self):
        """Test that inactive history entries reset the journey."""
        self.segmenter.feed(entry("DEPARTED", "Alpha", at(9, 0)))
        self.assertEqual(len(self.segmenter.journey), 1)
        self.segmenter.feed(entry("ARRIVED", "Bravo", at(9, 5), active=False))
        self.assertEqual(self.segmenter.journey, [])

    def test_unrecognized_station_resets(self):
        """Test that an unresolvable station discards the journey and continues."""
        self.segmenter.feed(entry("DEPARTED", "Alpha", at(9, 0)))
        self.segmenter.feed(entry("ARRIVED", "Atlantis", at(9, 3)))
        self.assertEqual(self.segmenter.journey, [])

        self.segmenter.feed(entry("DEPARTED", "Bravo", at(9, 6)))
        self.segmenter.feed(entry("ARRIVED", "Charlie", at(9, 10)))
        self.assertEqual(self.statistics.time_deltas, {"Departed-B->C": [4 * MINUTE]})


class TestTrainer(unittest.TestCase):
    """Test paginated history processing."""

    def setUp(self):
        self.client = MagicMock()
        self.client.get_constants.return_value = {"MAX_HISTORY_REQUEST_LIMIT": 2}
        self.client.get_history_summary.return_value = ["101"]
        self.trainer = Trainer(
            self.client, LocationGraph.from_json(LINEAR_NETWORK), make_reconciler(), max_workers=2
        )

    def test_pagination_cursor_and_stop(self):
        """Test that pages are requested from the last timestamp plus one millisecond."""
        self.client.get_train_history.side_effect = [
            HistoryPage([entry("DEPARTED", "Alpha", at(9, 0)), entry("ARRIVED", "Bravo", at(9, 5))]),
            HistoryPage([entry("ARRIVED", "Charlie", at(9, 10))]),
        ]

        statistics = self.trainer.train()

        calls = self.client.get_train_history.call_args_list
        self.assertEqual(len(calls), 2)
        self.assertEqual(calls[0].args, ("101", EPOCH, 2))
        self.assertEqual(calls[1].args, ("101", at(9, 5) + timedelta(milliseconds=1), 2))
        self.assertEqual(statistics.time_deltas["Departed-A->B->C"], [10 * MINUTE])

    def test_empty_page_stops(self):
        """Test that an empty page ends pagination."""
        self.client.get_train_history.side_effect = [
            HistoryPage([entry("DEPARTED", "Alpha", at(9, 0)), entry("ARRIVED", "Bravo", at(9, 5))]),
            HistoryPage([]),
        ]
        self.trainer.train()
        self.assertEqual(self.client.get_train_history.call_count, 2)

    def test_fetch_failure_keeps_completed_pages(self):
        """Test that a failed page keeps statistics from earlier pages."""
        self.client.get_train_history.side_effect = [
            HistoryPage([entry("DEPARTED", "Alpha", at(9, 0)), entry("ARRIVED", "Bravo", at(9, 5))]),
            MetroClientError("timeout"),
        ]

        statistics = self.trainer.train()

        self.assertEqual(statistics.time_deltas, {"Departed-A->B": [5 * MINUTE]})

    def test_trains_processed_independently(self):
        """Test that several trains contribute to the same statistics."""
        histories = {
            "101": [HistoryPage([entry("DEPARTED", "Alpha", at(9, 0)), entry("ARRIVED", "Bravo", at(9, 5))]),
                    HistoryPage([])],
            "102": [HistoryPage([entry("DEPARTED", "Alpha", at(10, 0)), entry("ARRIVED", "Bravo", at(10, 7))]),
                    HistoryPage([])],
        }

        def get_train_history(trn, time_from, limit):
            return histories[trn].pop(0)

        self.client.get_train_history.side_effect = get_train_history

        statistics = self.trainer.train(["101", "102"])

        self.assertEqual(sorted(statistics.time_deltas["Departed-A->B"]), [5 * MINUTE, 7 * MINUTE])
        self.assertEqual(statistics.path_frequencies["A"]["B"], {"B": 2})
        self.client.get_history_summary.assert_not_called()

    def test_explicit_page_limit(self):
        """Test that an explicit page limit skips the constants lookup."""
        trainer = Trainer(self.client, LocationGraph.from_json(LINEAR_NETWORK), make_reconciler(), page_limit=50)
        self.client.get_train_history.return_value = HistoryPage([])
        trainer.train(["101"])
        self.client.get_constants.assert_not_called()
        self.assertEqual(self.client.get_train_history.call_args.args[2], 50)

    def test_train_models(self):
        """Test training straight into models."""
        self.client.get_train_history.side_effect = [
            HistoryPage([entry("DEPARTED", "Alpha", at(9, 0)), entry("ARRIVED", "Bravo", at(9, 5))]),
            HistoryPage([entry("ARRIVED", "Charlie", at(9, 10))]),
        ]
        models = self.trainer.train_models()
        self.assertEqual(models.median_times.get("Departed-A->B"), 5 * MINUTE)
        self.assertEqual(models.usual_paths.get_usual_path("A", "C"), ["B", "C"])


if __name__ == "__main__":
    unittest.main()
