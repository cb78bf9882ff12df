"""Command line interface for MetroPredict."""

import argparse
import logging
import sys
from typing import List, Optional

from .arrival_tracker import MetroArrivalTracker
from .config import Settings
from .exceptions import MetroPredictError

logger = logging.getLogger(__name__)


def train(tracker: MetroArrivalTracker, args) -> int:
    models = tracker.train(args.trn or None)
    print(f"Trained {len(models.median_times)} median times, "
          f"{len(models.usual_paths)} path origins, "
          f"{len(models.usual_destinations)} destination origins")
    print(f"Models saved to {tracker.settings.models_dir}")
    return 0


def predict(tracker: MetroArrivalTracker, args) -> int:
    tracker.load_models()
    if args.station:
        arrivals = tracker.get_station_arrivals(args.station)
        print(f"\nNext arrivals at {args.station}:")
        if not arrivals:
            print("  No arrivals predicted")
        for trn, prediction in arrivals:
            print(f"  T{trn}: {prediction.time.strftime('%H:%M:%S')} ({prediction.location_code})")
        return 0

    heartbeat, predictions = tracker.predict_all()
    print(f"Predictions at {heartbeat.strftime('%H:%M:%S')}")
    for trn in sorted(predictions):
        if args.trn and trn not in args.trn:
            continue
        print(f"\nT{trn}:")
        if not predictions[trn]:
            print("  No predictions")
        for prediction in predictions[trn]:
            print(f"  {prediction.location_code:<8} {prediction.time.strftime('%H:%M:%S')}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="metropredict", description="Metro arrival time prediction")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--models-dir", help="Directory for model files (default: MODELS_DIR or ./models)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    train_parser = subparsers.add_parser("train", help="Train models from train history")
    train_parser.add_argument("--trn", action="append", help="Only train on this TRN (repeatable)")

    predict_parser = subparsers.add_parser("predict", help="Predict arrivals for active trains")
    predict_parser.add_argument("--trn", action="append", help="Only show this TRN (repeatable)")
    predict_parser.add_argument("--station", help="Show next arrivals at a station or location code")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    tracker = None
    try:
        settings = Settings.from_env()
        if args.models_dir:
            settings.models_dir = args.models_dir
        tracker = MetroArrivalTracker(settings)
        if args.command == "train":
            return train(tracker, args)
        return predict(tracker, args)
    except MetroPredictError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}")
        return 1
    except FileNotFoundError as e:
        print(f"Error: {e}")
        print("Run 'metropredict train' first to create the models")
        return 1
    finally:
        if tracker:
            tracker.cleanup()


if __name__ == "__main__":
    sys.exit(main())
