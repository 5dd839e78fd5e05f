from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, NoReturn

from dotenv import load_dotenv

from payoutsync.app import summarize_dataset, sync_partner_data
from payoutsync.config import configure_logging
from payoutsync.domain.fetching import DEFAULT_LOOKBACK_DAYS

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

# Exit status of `sync` whatever happened during the run.
NEVER_FAIL_EXIT_CODE = 0


def _parse_run_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {value}") from exc


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Not an integer: {value}") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError(f"Must be positive: {value}")
    return number


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile partner payout data")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Fetch, merge and persist partner records")
    sync.add_argument(
        "--data-file",
        type=Path,
        help="Dataset to update (defaults to PAYOUTSYNC_DATA_FILE or ./agency-data.json)",
    )
    sync.add_argument(
        "--run-date",
        type=_parse_run_date,
        help="Calendar date (UTC) the run is stamped with, defaults to today",
    )
    sync.add_argument(
        "--lookback-days",
        type=_positive_int,
        default=DEFAULT_LOOKBACK_DAYS,
        help="How many days of payouts to request from date-filtered endpoints",
    )
    sync.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    show = subparsers.add_parser("show", help="Summarise the persisted dataset")
    show.add_argument("--data-file", type=Path, help="Dataset to read")

    return parser.parse_args(argv)


def _run_sync(args: argparse.Namespace) -> int:
    try:
        summary = sync_partner_data(
            run_date=args.run_date,
            lookback_days=args.lookback_days,
            data_file=args.data_file,
        )
    except Exception:
        log.exception("Partner sync failed; the dataset was left as it was")
        return NEVER_FAIL_EXIT_CODE

    if summary is not None and summary.auth_expired:
        log.warning(f"Partner credential expired (alert: {summary.alert})")
    return NEVER_FAIL_EXIT_CODE


def _run_show(args: argparse.Namespace) -> int:
    try:
        summary = summarize_dataset(data_file=args.data_file)
    except Exception:
        log.exception("Could not read the dataset")
        return 1

    log.info(
        "Creator payouts: %s (paid %s), distribution payouts: %s (paid %s)",
        summary.creator_payouts,
        summary.creator_paid_total,
        summary.distribution_payouts,
        summary.distribution_paid_total,
    )
    log.info(
        "Latest payout: %s, analytics updated: %s",
        summary.latest_payout_date or "-",
        summary.analytics_last_updated or "-",
    )
    return 0


def main(argv: Sequence[str] | None = None) -> NoReturn:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    verbose = getattr(parsed_args, "verbose", False)
    configure_logging(level=logging.DEBUG if verbose else logging.INFO)

    if parsed_args.command == "sync":
        sys.exit(_run_sync(parsed_args))
    sys.exit(_run_show(parsed_args))


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point: load ``.env`` and install the SIGINT handler."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
