"""Offline summary report for the restaurant dashboard.

Loads saved ``/getOrders`` and ``/getReservations`` responses (or fetches
them once with --fetch), applies an analytics date range, writes CSV/JSON
files, and prints a summary to stdout.

Usage: python dashboard_summary.py orders.json reservations.json --range "Last Month"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from pydantic import ValidationError

from analytics import (
    ORDER_TIME_FIELD,
    RESERVATION_TIME_FIELD,
    build_analytics_payload,
    filter_by_window,
    print_summary_report,
    save_analytics_files,
)
from backoffice_client import BackOfficeClient, DashboardError, FetchError, PayloadShapeError
from config import OUTPUT_DIR
from refresh import RefreshLoop
from schemas import OrdersPayload, ReservationsPayload
from store import DashboardStore
from time_windows import ANALYTICS_RANGES, DEFAULT_ANALYTICS_RANGE, resolve_window

logger = logging.getLogger(__name__)


def load_snapshot(orders_path: str, reservations_path: str) -> DashboardStore:
    """Load saved endpoint responses into a fresh store.

    Args:
        orders_path: JSON file holding a ``{"orders": [...]}`` body.
        reservations_path: JSON file holding a ``{"reservations": [...]}``
            body.

    Returns:
        A store populated the same way a successful refresh would.

    Raises:
        FileNotFoundError: If either file does not exist.
        json.JSONDecodeError: If either file contains invalid JSON.
        PayloadShapeError: If a body lacks its list field.
    """
    with open(orders_path, "r", encoding="utf-8") as f:
        orders_body = json.load(f)
    with open(reservations_path, "r", encoding="utf-8") as f:
        reservations_body = json.load(f)

    try:
        orders = OrdersPayload.model_validate(orders_body).orders
        reservations = ReservationsPayload.model_validate(reservations_body).reservations
    except ValidationError as exc:
        raise PayloadShapeError(f"Invalid snapshot structure: {exc.error_count()} error(s)") from exc

    store = DashboardStore()
    store.set_collections(orders, reservations)
    store.finish_loading()
    return store


async def fetch_snapshot(client: BackOfficeClient | None = None) -> DashboardStore:
    """Run a single refresh cycle against the live API.

    Raises:
        FetchError: If the cycle failed; the message is the banner text.
    """
    client = client or BackOfficeClient()
    store = DashboardStore()
    try:
        await RefreshLoop(store, client).refresh_now()
    finally:
        await client.aclose()
    if store.error:
        raise FetchError(store.error)
    return store


def main(
    orders_path: str = "orders.json",
    reservations_path: str = "reservations.json",
    selection: str = DEFAULT_ANALYTICS_RANGE,
    output_dir: str = OUTPUT_DIR,
    fetch: bool = False,
) -> None:
    """Build and print the summary; exit with status 1 if data can't be loaded."""
    try:
        if fetch:
            store = asyncio.run(fetch_snapshot())
        else:
            store = load_snapshot(orders_path, reservations_path)
    except FileNotFoundError as exc:
        logger.error("Snapshot file not found: %s", exc)
        sys.exit(1)
    except json.JSONDecodeError as exc:
        logger.error("Invalid JSON in snapshot file: %s", exc)
        sys.exit(1)
    except DashboardError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    window = resolve_window(selection)
    orders = filter_by_window(store.orders, ORDER_TIME_FIELD, window)
    reservations = filter_by_window(store.reservations, RESERVATION_TIME_FIELD, window)
    payload = build_analytics_payload(store.orders, store.reservations, selection, window.reference)

    save_analytics_files(orders, reservations, payload, output_dir)
    print_summary_report(payload, output_dir)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summarize restaurant orders and reservations")
    parser.add_argument("orders", nargs="?", default="orders.json",
                        help="Saved /getOrders response (default: orders.json)")
    parser.add_argument("reservations", nargs="?", default="reservations.json",
                        help="Saved /getReservations response (default: reservations.json)")
    parser.add_argument("--range", "-r", dest="selection", default=DEFAULT_ANALYTICS_RANGE,
                        choices=ANALYTICS_RANGES, help="Analytics date range")
    parser.add_argument("--output", "-o", default=OUTPUT_DIR,
                        help="Directory for CSV/JSON output")
    parser.add_argument("--fetch", action="store_true",
                        help="Fetch from the live API instead of reading files")
    return parser.parse_args(argv)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = _parse_args()
    main(args.orders, args.reservations, args.selection, args.output, args.fetch)
