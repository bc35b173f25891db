"""CLI entrypoint for scheduled live-sync runs."""

from __future__ import annotations

import argparse
import logging

from app.settings import SUPPORTED_SPORTS
from app.sync.live_sync import run_live_sync


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile live vendor data against tracked games.",
    )
    parser.add_argument(
        "--sport",
        type=str,
        default=",".join(SUPPORTED_SPORTS),
        help="Comma-separated list of sports (e.g., FOOTBALL,RUGBY).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every rejection with its audit detail.",
    )
    return parser.parse_args()


def _parse_sports(raw: str) -> list[str]:
    sports = [sport.strip().upper() for sport in raw.split(",") if sport.strip()]
    invalid = [sport for sport in sports if sport not in SUPPORTED_SPORTS]
    if invalid:
        supported = ", ".join(SUPPORTED_SPORTS)
        raise SystemExit(f"Unsupported sports: {', '.join(invalid)}. Supported: {supported}")
    if not sports:
        raise SystemExit("No sports provided. Use --sport FOOTBALL,RUGBY")
    return sports


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    args = _parse_args()
    for sport in _parse_sports(args.sport):
        logging.info("Starting live sync sport=%s", sport)
        result = run_live_sync(sport)
        logging.info("Done: %s", result.summary())
        if args.verbose:
            for rejection in result.rejections:
                logging.info("  rejected %s", rejection.describe())


if __name__ == "__main__":
    main()
