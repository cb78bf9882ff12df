"""Reduces raw training statistics into persistable models."""

import logging
from typing import List, Mapping, NamedTuple, Optional, TypeVar

import pandas as pd

from .stats_models import MedianTimeDeltas, UsualDestinations, UsualPaths

logger = logging.getLogger(__name__)

K = TypeVar("K")


class TrainedModels(NamedTuple):
    median_times: MedianTimeDeltas
    usual_paths: UsualPaths
    usual_destinations: UsualDestinations


def compute_medians(samples: Mapping[str, List[int]]) -> MedianTimeDeltas:
    """
    Median time delta per key.

    Even-sized sample lists use the mean of the two middle values. Integral
    medians are stored as ints.
    """
    medians = MedianTimeDeltas()
    rows = [(key, delta) for key, deltas in samples.items() for delta in deltas]
    if not rows:
        return medians

    frame = pd.DataFrame(rows, columns=["key", "delta"])
    for key, median in frame.groupby("key", sort=False)["delta"].median().items():
        median = float(median)
        medians.set(key, int(median) if median.is_integer() else median)
    return medians


def find_most_frequent(frequencies: Mapping[K, int]) -> Optional[K]:
    """Most frequent key; on ties the first key to reach the maximum wins."""
    most_frequent = None
    highest = 0
    for key, frequency in frequencies.items():
        if frequency > highest:
            highest = frequency
            most_frequent = key
    return most_frequent


def compute_usual_paths(path_frequencies: Mapping[str, Mapping[str, Mapping[str, int]]]) -> UsualPaths:
    usual_paths = UsualPaths()
    for from_location, destinations in path_frequencies.items():
        for destination, frequencies in destinations.items():
            path_key = find_most_frequent(frequencies)
            if path_key:
                usual_paths.set_usual_path(from_location, destination, path_key)
    return usual_paths


def compute_usual_destinations(
    destination_frequencies: Mapping[str, Mapping[str, Mapping[str, int]]],
) -> UsualDestinations:
    usual_destinations = UsualDestinations()
    for starting_location, current_locations in destination_frequencies.items():
        for current_location, frequencies in current_locations.items():
            destination = find_most_frequent(frequencies)
            if destination:
                usual_destinations.set_usual_destination(starting_location, current_location, destination)
    return usual_destinations


def build_models(statistics) -> TrainedModels:
    """Reduce TrainingStatistics into the three models."""
    logger.info("Computing median times...")
    median_times = compute_medians(statistics.time_deltas)
    logger.info("Computing usual paths...")
    usual_paths = compute_usual_paths(statistics.path_frequencies)
    logger.info("Computing usual destinations...")
    usual_destinations = compute_usual_destinations(statistics.destination_frequencies)
    logger.info(
        f"Built models: {len(median_times)} median times, {len(usual_paths)} path origins, "
        f"{len(usual_destinations)} destination origins"
    )
    return TrainedModels(median_times, usual_paths, usual_destinations)
