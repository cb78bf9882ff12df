"""Main MetroPredict facade."""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .config import Settings
from .directory import StationDirectory
from .exceptions import MetroClientError, PredictionError, ReconcileError
from .metro_client import MetroClient
from .model_builder import TrainedModels
from .models import ArrivalPrediction, TimetableEntry, TrainStatus
from .network import LocationGraph
from .predictor import Predictor
from .reconciler import StateReconciler
from .storage import load_models, save_models
from .trainer import Trainer

logger = logging.getLogger(__name__)


class MetroArrivalTracker:
    """
    Trains arrival models and predicts arrivals for live trains.

    This class provides methods to:
    - Train and save models from the data source's history
    - Predict upcoming arrivals for every active train
    - Get predicted arrivals at one station
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[MetroClient] = None,
        graph: Optional[LocationGraph] = None,
        directory: Optional[StationDirectory] = None,
    ):
        """
        Initialize the tracker.

        Args:
            settings: Runtime settings. Read from the environment if omitted.
            client: Data source client. Built from settings if omitted.
            graph: Network graph. Loaded from NETWORK_PATH or the data source if omitted.
            directory: Station directory. Built from the data source constants if omitted.
        """
        self.settings = settings or Settings.from_env()
        self.client = client or MetroClient(
            self.settings.require_proxy_base_url(), timeout=self.settings.request_timeout
        )
        self._graph = graph
        self._directory = directory
        self.predictor: Optional[Predictor] = None

    @property
    def graph(self) -> LocationGraph:
        if self._graph is None:
            if self.settings.network_path:
                self._graph = LocationGraph.from_file(self.settings.network_path)
            else:
                self._graph = LocationGraph.from_json(self.client.get_network())
        return self._graph

    @property
    def directory(self) -> StationDirectory:
        if self._directory is None:
            self._directory = StationDirectory.from_constants(self.client.get_constants())
            logger.info(f"Loaded {len(self._directory)} station names")
        return self._directory

    def train(self, trns: Optional[Sequence[str]] = None, save: bool = True) -> TrainedModels:
        """
        Train models from history.

        Args:
            trns: Train run numbers to train on. All known TRNs if omitted.
            save: Write the models to the models directory.
        """
        trainer = Trainer(
            self.client,
            self.graph,
            StateReconciler(self.directory),
            max_workers=self.settings.max_concurrent_fetches,
            page_limit=self.settings.history_page_limit,
        )
        models = trainer.train_models(trns)
        if save:
            save_models(models, self.settings.models_dir)
        self.use_models(models)
        return models

    def load_models(self) -> None:
        """Load models from the models directory."""
        self.use_models(load_models(self.settings.models_dir))

    def use_models(self, models: TrainedModels) -> None:
        self.predictor = Predictor(
            models.median_times,
            models.usual_paths,
            models.usual_destinations,
            self.graph,
            prediction_window=self.settings.prediction_window,
            max_hops=self.settings.max_prediction_hops,
        )

    def predict_train(
        self,
        trn: str,
        status: TrainStatus,
        heartbeat: datetime,
        timetable: Optional[Sequence[TimetableEntry]] = None,
        destination: Optional[str] = None,
    ) -> List[ArrivalPrediction]:
        """
        Predict arrivals for one train.

        Returns:
            Predictions, or an empty list if the train's state cannot be
            reconciled or no destination/path is known.
        """
        if self.predictor is None:
            self.load_models()
        try:
            observation = StateReconciler(self.directory).reconcile_status(status, heartbeat)
        except ReconcileError as e:
            logger.warning(f"Skipping T{trn}: {e}")
            return []
        try:
            return self.predictor.predict(heartbeat, observation, destination=destination, timetable=timetable)
        except PredictionError as e:
            logger.warning(f"No prediction for T{trn}: {e}")
            return []

    def predict_all(self) -> Tuple[datetime, Dict[str, List[ArrivalPrediction]]]:
        """
        Predict arrivals for every active train.

        Returns:
            (heartbeat, {trn: predictions})
        """
        heartbeat, statuses = self.client.get_active_trains()
        timetables = self._get_timetables(heartbeat)
        predictions = {
            trn: self.predict_train(trn, status, heartbeat, timetables.get(trn))
            for trn, status in statuses.items()
        }
        logger.info(f"Predicted arrivals for {sum(1 for p in predictions.values() if p)}/{len(statuses)} trains")
        return heartbeat, predictions

    def get_station_arrivals(self, location: str) -> List[Tuple[str, ArrivalPrediction]]:
        """
        Predicted arrivals at a station or location, soonest first.

        Args:
            location: Station code (any platform) or location code.

        Returns:
            List of (trn, prediction). Only the next arrival of each train is kept.
        """
        _, predictions = self.predict_all()
        arrivals = []
        for trn, train_predictions in predictions.items():
            for prediction in train_predictions:
                if self.graph.locations_match(prediction.location_code, location):
                    arrivals.append((trn, prediction))
                    break
        arrivals.sort(key=lambda x: x[1].time)
        return arrivals

    def _get_timetables(self, heartbeat: datetime) -> Dict[str, List[TimetableEntry]]:
        try:
            return self.client.get_timetable(heartbeat.date())
        except MetroClientError as e:
            logger.warning(f"Failed to fetch timetable, predicting without it: {e}")
            return {}

    def cleanup(self) -> None:
        """Release resources and clear caches."""
        if self.client:
            self.client.close()
        logger.info("Cleaned up tracker resources")
