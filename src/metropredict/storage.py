"""Reads and writes model files."""

import json
import logging
from pathlib import Path
from typing import Union

from .exceptions import ModelFormatError
from .model_builder import TrainedModels
from .stats_models import MedianTimeDeltas, UsualDestinations, UsualPaths

logger = logging.getLogger(__name__)

MEDIAN_TIMES_FILE = "medianPathTimes.json"
USUAL_PATHS_FILE = "usualPaths.json"
USUAL_DESTINATIONS_FILE = "usualDestinations.json"


def save_models(models: TrainedModels, directory: Union[str, Path]) -> None:
    """Write the three models as JSON documents into a directory."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    for filename, model in (
        (MEDIAN_TIMES_FILE, models.median_times),
        (USUAL_PATHS_FILE, models.usual_paths),
        (USUAL_DESTINATIONS_FILE, models.usual_destinations),
    ):
        with open(directory / filename, "w", encoding="utf-8") as f:
            json.dump(model.to_json(), f)
    logger.info(f"Saved models to {directory}")


def _read_json(path: Path):
    with open(path, "r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ModelFormatError(f"{path.name} is not valid JSON: {e}") from e


def load_models(directory: Union[str, Path]) -> TrainedModels:
    """
    Load and validate the three models.

    Raises:
        ModelFormatError: If any document is malformed.
        FileNotFoundError: If a model file is missing.
    """
    directory = Path(directory)
    try:
        models = TrainedModels(
            median_times=MedianTimeDeltas.from_json(_read_json(directory / MEDIAN_TIMES_FILE)),
            usual_paths=UsualPaths.from_json(_read_json(directory / USUAL_PATHS_FILE)),
            usual_destinations=UsualDestinations.from_json(_read_json(directory / USUAL_DESTINATIONS_FILE)),
        )
    except (ModelFormatError, OSError) as e:
        logger.error(f"Failed to load models from {directory}: {e}")
        raise
    logger.info(f"Loaded {len(models.median_times)} median times from {directory}")
    return models
