"""
run_predict.py  -  Query the matching engine from the command line.

USAGE examples
--------------
# one station, past or future
python -m scripts.run_predict --station 7055 --date 2025-01-27T12:00:00

# every station for one hour
python -m scripts.run_predict --date 2025-01-27T12:00:00
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime

from core.config import load_settings
from core.exceptions import ForecastError
from domain.models import NotFound
from usecases import build_engine


def cli(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Predict station availability")
    ap.add_argument("--date", required=True, type=datetime.fromisoformat,
                    help="ISO timestamp, naive values are UTC")
    ap.add_argument("--station", type=int, help="station id (default: all stations)")
    return ap.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = cli(argv)
    try:
        settings = load_settings()
        logging.basicConfig(level=settings.log_level, format="%(asctime)s [%(levelname)s] %(message)s")
        engine = build_engine(settings)
    except ForecastError as exc:
        logging.error("Cannot start matching engine: %s", exc.message)
        return 1

    if args.station is None:
        predictions = engine.lookup_all(args.date)
        print(json.dumps({str(k): p.to_dict() for k, p in sorted(predictions.items())}, indent=2))
        return 0 if predictions else 2

    result = engine.predict(args.station, args.date)
    if isinstance(result, NotFound):
        print(json.dumps({"error": result.code.value, "message": result.message}))
        return 2
    print(json.dumps(result.to_dict()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
