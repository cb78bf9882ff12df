"""MetroPredict - Metro arrival time prediction from historical train positions."""

__version__ = "0.1.0"

from .models import ArrivalPrediction, Location, Observation, TimetableEntry, TrainState
from .network import LocationGraph
from .directory import StationDirectory
from .reconciler import StateReconciler
from .trainer import JourneySegmenter, Trainer, TrainingStatistics
from .model_builder import TrainedModels, build_models
from .predictor import Predictor
from .metro_client import MetroClient
from .arrival_tracker import MetroArrivalTracker

__all__ = [
    "MetroArrivalTracker",
    "MetroClient",
    "Predictor",
    "Trainer",
    "JourneySegmenter",
    "TrainingStatistics",
    "TrainedModels",
    "build_models",
    "StateReconciler",
    "StationDirectory",
    "LocationGraph",
    "Location",
    "Observation",
    "TrainState",
    "TimetableEntry",
    "ArrivalPrediction",
]
