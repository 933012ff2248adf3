"""Date-filtered aggregation over restaurant orders and reservations.

Filters the polled order/reservation collections by time window and delivery
category, and computes the derived views (daily histograms, category and
status splits, peak days, percentages) used by both the table views and the
analytics view.  Used by the dashboard service (app.py) and the offline
summary CLI (dashboard_summary.py).
"""

from __future__ import annotations

import csv
import json
import logging
import os
from datetime import date, datetime, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from config import DEFAULT_TIME_ESTIMATE
from time_windows import TimeWindow, aware_now, resolve_window

logger = logging.getLogger(__name__)

ORDER_TIME_FIELD = "orderTime"
RESERVATION_TIME_FIELD = "date"

# category -> raw ``deliveryOption`` values belonging to it
CATEGORY_OPTIONS: dict[str, frozenset[str]] = {
    "delivery": frozenset({"delivery"}),
    "pickup": frozenset({"tapAndCollect", "pickup"}),
}

# menu option -> categories shown in the order table
MENU_CATEGORIES: dict[str, frozenset[str]] = {
    "Tap & Collect": frozenset({"pickup"}),
    "Delivery Orders": frozenset({"delivery"}),
}

MENU_LABELS: dict[str, str] = {
    "Tap & Collect": "tap & collect orders",
    "Delivery Orders": "delivery orders",
}


# ---------------------------------------------------------------------------
# Record helpers
# ---------------------------------------------------------------------------

def parse_timestamp(value: Any) -> datetime | None:
    """Parse a record timestamp into an aware datetime.

    Accepts ISO-8601 strings (a trailing "Z" means UTC) and numeric epoch
    milliseconds.  Naive values are interpreted in local time, and that
    includes date-only strings: "2024-01-15" is local midnight, not UTC
    midnight, so its day bucket never shifts west of UTC.

    Args:
        value: Raw field value from an order or reservation dict.

    Returns:
        An aware datetime, or None if *value* is missing, empty, not a
        string or number, or cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            if text[-1] in "Zz":
                text = text[:-1] + "+00:00"
            parsed = datetime.fromisoformat(text)
        else:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.astimezone()
    except (TypeError, ValueError, OSError, OverflowError):
        logger.debug("Unparsable timestamp: %r", value)
        return None
    return parsed


def is_renderable_order(order: Any) -> bool:
    """Return True if *order* is a dict with a non-empty ``dishes`` list."""
    if not isinstance(order, dict):
        return False
    dishes = order.get("dishes")
    return isinstance(dishes, list) and len(dishes) > 0


def sort_newest_first(records: Iterable[dict], field: str) -> list[dict]:
    """Sort records by *field* descending; unparsable timestamps go last.

    The sort is stable, so records with equal (or missing) timestamps keep
    their relative order.
    """

    def _key(record: dict) -> tuple[int, float]:
        ts = parse_timestamp(record.get(field))
        if ts is None:
            return (1, 0.0)
        return (0, -ts.timestamp())

    return sorted(records, key=_key)


def order_category(order: dict) -> str | None:
    """Return "delivery", "pickup", or None for an uncategorized order."""
    option = order.get("deliveryOption")
    for category, options in CATEGORY_OPTIONS.items():
        if option in options:
            return category
    return None


# ---------------------------------------------------------------------------
# Record filter
# ---------------------------------------------------------------------------

def filter_by_window(
    records: Iterable[dict],
    field: str,
    window: TimeWindow,
) -> list[dict]:
    """Keep the records whose *field* timestamp falls in *window*.

    Args:
        records: Order or reservation dicts.
        field: Name of the timestamp attribute to read.
        window: Resolved date filter (see ``time_windows.resolve_window``).

    Returns:
        For an unbounded window, every record in its original order
        (including those with missing or unparsable timestamps).  Otherwise
        the order-preserving subsequence whose timestamp parses and lies in
        the window.
    """
    if not window.bounded:
        return list(records)

    kept = []
    for record in records:
        ts = parse_timestamp(record.get(field))
        if ts is not None and window.contains(ts):
            kept.append(record)
    return kept


def filter_by_category(orders: Iterable[dict], categories: Iterable[str]) -> list[dict]:
    """Keep orders whose delivery category is one of *categories*.

    Args:
        orders: Order dicts.
        categories: Any of "delivery" and "pickup".  Unknown names match
            nothing.

    Returns:
        The matching orders in their original order.
    """
    options: set[str] = set()
    for category in categories:
        options |= CATEGORY_OPTIONS.get(category, frozenset())
    return [o for o in orders if o.get("deliveryOption") in options]


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

def daily_histogram(
    records: Iterable[dict],
    field: str,
    tz: tzinfo | None = None,
) -> dict[date, int]:
    """Count records per calendar day.

    Args:
        records: Already-filtered order or reservation dicts.
        field: Timestamp attribute to bucket on.
        tz: Zone the calendar day is taken in; None means local.

    Returns:
        Dict mapping date to count, in first-encountered order.  Records
        whose timestamp is missing or unparsable are not counted.
    """
    histogram: dict[date, int] = {}
    for record in records:
        ts = parse_timestamp(record.get(field))
        if ts is None:
            continue
        day = ts.astimezone(tz).date()
        histogram[day] = histogram.get(day, 0) + 1
    return histogram


def category_split(orders: Iterable[dict]) -> dict[str, int]:
    """Count orders per delivery category; uncategorized orders are dropped."""
    split = {"delivery": 0, "pickup": 0}
    for order in orders:
        category = order_category(order)
        if category is not None:
            split[category] += 1
    return split


def status_split(
    reservations: Iterable[dict],
    now: datetime | None = None,
    field: str = RESERVATION_TIME_FIELD,
) -> dict[str, int]:
    """Partition reservations into upcoming (timestamp >= now) and past.

    Reservations with a missing or unparsable timestamp count as past, so
    the two buckets always sum to the input size.
    """
    now = aware_now(now)
    upcoming = 0
    total = 0
    for reservation in reservations:
        total += 1
        ts = parse_timestamp(reservation.get(field))
        if ts is not None and ts >= now:
            upcoming += 1
    return {"upcoming": upcoming, "past": total - upcoming}


def best_day(histogram: dict[date, int]) -> tuple[date | None, int]:
    """Return the (day, count) with the highest count.

    Ties keep the first-encountered day.  An empty histogram gives
    ``(None, 0)``.
    """
    best: date | None = None
    best_count = 0
    for day, count in histogram.items():
        if best is None or count > best_count:
            best, best_count = day, count
    return best, best_count


def _round_half_up(value: float, places: str) -> Decimal:
    # exact binary value of the float; halves round up
    return Decimal(value).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def percentage(part: float, whole: float) -> int:
    """Integer percentage of *part* in *whole*, rounding .5 up; 0 when *whole* is zero."""
    if not whole:
        return 0
    return int(_round_half_up(part / whole * 100, "1"))


def average_party_size(reservations: list[dict]) -> float:
    """Mean ``guests`` per reservation to one decimal, .5 up (missing counts as 0)."""
    if not reservations:
        return 0.0
    total = 0.0
    for reservation in reservations:
        guests = reservation.get("guests")
        if isinstance(guests, (int, float)) and not isinstance(guests, bool):
            total += guests
    return float(_round_half_up(total / len(reservations), "0.1"))


def pending_counts(
    orders: list[dict],
    reservations: list[dict],
    window: TimeWindow,
    now: datetime | None = None,
) -> dict[str, int]:
    """Compute the menu badge counts for the current table date filter.

    Args:
        orders: Full order collection.
        reservations: Full reservation collection.
        window: Table-view date window.
        now: Reference instant for "upcoming"; defaults to the window's
            reference.

    Returns:
        Dict with keys pending_delivery, pending_pickup (undelivered orders
        per category) and upcoming_reservations.
    """
    now = aware_now(now or window.reference)
    in_window = [
        o for o in filter_by_window(orders, ORDER_TIME_FIELD, window)
        if not o.get("isDelivered")
    ]
    windowed_reservations = filter_by_window(reservations, RESERVATION_TIME_FIELD, window)
    return {
        "pending_delivery": len(filter_by_category(in_window, ["delivery"])),
        "pending_pickup": len(filter_by_category(in_window, ["pickup"])),
        "upcoming_reservations": status_split(windowed_reservations, now)["upcoming"],
    }


def _histogram_series(histogram: dict[date, int]) -> dict[str, list]:
    """Split a histogram into parallel label/count lists for charting."""
    return {
        "labels": [day.isoformat() for day in histogram],
        "counts": list(histogram.values()),
    }


def _peak_day(histogram: dict[date, int]) -> dict[str, Any]:
    day, count = best_day(histogram)
    return {"date": day.isoformat() if day is not None else "N/A", "count": count}


def build_analytics_payload(
    orders: list[dict],
    reservations: list[dict],
    selection: str,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> dict[str, Any]:
    """Compute everything the analytics ("Visual Data") view shows.

    Args:
        orders: Full order collection.
        reservations: Full reservation collection.
        selection: Analytics range, e.g. "Last 15 Days".
        now: Reference instant; defaults to the current time.
        tz: Zone for calendar-day bucketing; None means local.

    Returns:
        Dict with keys: generated_at, range, summary (totals, category and
        status counts with percentages, peak days, average party size),
        orders_over_time, reservations_over_time, order_types,
        reservation_status.
    """
    now = aware_now(now)
    window = resolve_window(selection, now, tz)

    filtered_orders = filter_by_window(orders, ORDER_TIME_FIELD, window)
    filtered_reservations = filter_by_window(reservations, RESERVATION_TIME_FIELD, window)

    order_days = daily_histogram(filtered_orders, ORDER_TIME_FIELD, tz)
    reservation_days = daily_histogram(filtered_reservations, RESERVATION_TIME_FIELD, tz)
    types = category_split(filtered_orders)
    statuses = status_split(filtered_reservations, now)

    total_orders = len(filtered_orders)
    total_reservations = len(filtered_reservations)
    type_total = types["delivery"] + types["pickup"]
    status_total = statuses["upcoming"] + statuses["past"]

    return {
        "generated_at": now.isoformat(),
        "range": selection,
        "summary": {
            "total_orders": total_orders,
            "total_reservations": total_reservations,
            "delivery_orders": types["delivery"],
            "delivery_pct": percentage(types["delivery"], total_orders),
            "pickup_orders": types["pickup"],
            "pickup_pct": percentage(types["pickup"], total_orders),
            "upcoming_reservations": statuses["upcoming"],
            "upcoming_pct": percentage(statuses["upcoming"], total_reservations),
            "peak_order_day": _peak_day(order_days),
            "peak_reservation_day": _peak_day(reservation_days),
            "average_party_size": average_party_size(filtered_reservations),
        },
        "orders_over_time": _histogram_series(order_days),
        "reservations_over_time": _histogram_series(reservation_days),
        "order_types": {
            "labels": ["Delivery", "Tap & Collect"],
            "counts": [types["delivery"], types["pickup"]],
            "percentages": [
                percentage(types["delivery"], type_total),
                percentage(types["pickup"], type_total),
            ],
        },
        "reservation_status": {
            "labels": ["Upcoming", "Past"],
            "counts": [statuses["upcoming"], statuses["past"]],
            "percentages": [
                percentage(statuses["upcoming"], status_total),
                percentage(statuses["past"], status_total),
            ],
        },
    }


# ---------------------------------------------------------------------------
# Table views
# ---------------------------------------------------------------------------

def _format_price(price: Any) -> str:
    if isinstance(price, (int, float)) and not isinstance(price, bool):
        return f"${price:.2f}"
    return "$0.00"


def _order_line_rows(
    order: dict,
    tz: tzinfo | None,
    time_selections: dict[str, str],
    time_sent: dict[str, str],
) -> list[dict]:
    """Flatten one order into table rows, one per line item.

    The first row carries the order-level columns and a ``rowspan`` equal to
    the number of line items.
    """
    order_id = order.get("_id")
    ts = parse_timestamp(order.get(ORDER_TIME_FIELD))
    local = ts.astimezone(tz) if ts is not None else None
    delivered = bool(order.get("isDelivered"))
    sent = time_sent.get(order_id)

    rows = []
    dishes = order["dishes"]
    for idx, item in enumerate(dishes):
        item = item if isinstance(item, dict) else {}
        row: dict[str, Any] = {
            "order_id": order_id,
            "dish": item.get("name") or "N/A",
            "quantity": item.get("quantity") or 0,
            "price": _format_price(item.get("price")),
        }
        if idx == 0:
            row.update(
                {
                    "rowspan": len(dishes),
                    "order_time": local.strftime("%H:%M") if local else "N/A",
                    "order_date": local.date().isoformat() if local else "N/A",
                    "email": order.get("email") or "N/A",
                    "customer_name": order.get("name") or "N/A",
                    "address": order.get("address") or "N/A",
                    "status": "Delivered" if delivered else "Pending",
                    "time_estimate": time_selections.get(order_id, DEFAULT_TIME_ESTIMATE),
                    "time_sent": sent,
                    "can_mark_delivered": not delivered,
                    "can_send_time": not delivered and sent is None,
                }
            )
        rows.append(row)
    return rows


def build_order_rows(
    orders: list[dict],
    menu_option: str,
    selection: str,
    now: datetime | None = None,
    tz: tzinfo | None = None,
    time_selections: dict[str, str] | None = None,
    time_sent: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Build the order table for the "Tap & Collect" / "Delivery Orders" views.

    Args:
        orders: Full order collection, newest first.
        menu_option: "Tap & Collect" or "Delivery Orders"; selects the
            delivery category shown.
        selection: Table date range, e.g. "3days".
        now: Reference instant; defaults to the current time.
        tz: Zone used for the displayed time and date; None means local.
        time_selections: Per-order chosen estimate in minutes.
        time_sent: Per-order "sent" stamp for estimates already sent.

    Returns:
        Dict with keys menu_option, range, count, pending, summary (header
        text), empty_message (None when rows exist), show_address and rows.

    Raises:
        ValueError: If *menu_option* is not an order menu.
    """
    if menu_option not in MENU_CATEGORIES:
        raise ValueError(f"Not an order menu: {menu_option!r}")
    time_selections = time_selections or {}
    time_sent = time_sent or {}
    window = resolve_window(selection, now, tz)

    filtered = filter_by_window(orders, ORDER_TIME_FIELD, window)
    filtered = filter_by_category(filtered, MENU_CATEGORIES[menu_option])
    filtered = [o for o in filtered if is_renderable_order(o)]

    pending = sum(1 for o in filtered if not o.get("isDelivered"))
    label = MENU_LABELS[menu_option]

    rows: list[dict] = []
    for order in filtered:
        rows.extend(_order_line_rows(order, tz, time_selections, time_sent))

    return {
        "menu_option": menu_option,
        "range": selection,
        "count": len(filtered),
        "pending": pending,
        "summary": f"Showing {len(filtered)} {label} ({pending} pending)",
        "empty_message": (
            None if filtered
            else f"No {menu_option.lower()} found for selected date range"
        ),
        "show_address": menu_option == "Delivery Orders",
        "rows": rows,
    }


def build_reservation_rows(
    reservations: list[dict],
    selection: str,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> dict[str, Any]:
    """Build the reservation table.

    Returns:
        Dict with keys range, count, upcoming, summary, empty_message and
        rows.  Each row has name, email, phone, date, time, guests,
        special_requests and status ("Upcoming" or "Past").
    """
    now = aware_now(now)
    window = resolve_window(selection, now, tz)
    filtered = filter_by_window(reservations, RESERVATION_TIME_FIELD, window)

    rows = []
    upcoming = 0
    for reservation in filtered:
        ts = parse_timestamp(reservation.get(RESERVATION_TIME_FIELD))
        is_upcoming = ts is not None and ts >= now
        upcoming += is_upcoming
        rows.append(
            {
                "reservation_id": reservation.get("_id"),
                "name": reservation.get("name") or "N/A",
                "email": reservation.get("email") or "N/A",
                "phone": reservation.get("phone") or "N/A",
                "date": ts.astimezone(tz).date().isoformat() if ts else "N/A",
                "time": reservation.get("time") or "N/A",
                "guests": reservation.get("guests") or "N/A",
                "special_requests": reservation.get("specialRequests") or "None",
                "status": "Upcoming" if is_upcoming else "Past",
            }
        )

    return {
        "range": selection,
        "count": len(filtered),
        "upcoming": upcoming,
        "summary": f"Showing {len(filtered)} reservations ({upcoming} upcoming)",
        "empty_message": None if filtered else "No reservations found for selected date range",
        "rows": rows,
    }


# ---------------------------------------------------------------------------
# CLI helpers (dashboard_summary.py)
# ---------------------------------------------------------------------------

_ORDER_CSV_FIELDS = ["_id", "orderTime", "deliveryOption", "isDelivered", "email", "items", "total"]
_RESERVATION_CSV_FIELDS = ["_id", "date", "time", "name", "email", "phone", "guests"]


def _order_csv_row(order: dict) -> dict:
    dishes = order.get("dishes") or []
    total = 0.0
    for item in dishes:
        if not isinstance(item, dict):
            continue
        price = item.get("price")
        quantity = item.get("quantity")
        if isinstance(price, (int, float)) and isinstance(quantity, (int, float)):
            total += price * quantity
    return {
        "_id": order.get("_id"),
        "orderTime": order.get("orderTime"),
        "deliveryOption": order.get("deliveryOption"),
        "isDelivered": bool(order.get("isDelivered")),
        "email": order.get("email"),
        "items": len(dishes),
        "total": round(total, 2),
    }


def save_analytics_files(
    orders: list[dict],
    reservations: list[dict],
    payload: dict[str, Any],
    output_dir: str = "dashboard_analytics",
) -> None:
    """Write CSV/JSON analytics files to output_dir.

    Creates the output directory if it doesn't exist and writes:
    orders.csv, reservations.csv, daily_counts.csv (orders and reservations
    per day) and analytics.json (the full analytics payload).

    Args:
        orders: Filtered order dicts.
        reservations: Filtered reservation dicts.
        payload: Analytics payload from ``build_analytics_payload``.
        output_dir: Directory path for output files.
    """
    os.makedirs(output_dir, exist_ok=True)

    with open(f"{output_dir}/analytics.json", "w") as f:
        json.dump(payload, f, indent=2)

    with open(f"{output_dir}/orders.csv", "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=_ORDER_CSV_FIELDS)
        writer.writeheader()
        writer.writerows(_order_csv_row(o) for o in orders)

    with open(f"{output_dir}/reservations.csv", "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=_RESERVATION_CSV_FIELDS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(
            {k: r.get(k) for k in _RESERVATION_CSV_FIELDS} for r in reservations
        )

    order_days = dict(zip(payload["orders_over_time"]["labels"], payload["orders_over_time"]["counts"]))
    res_days = dict(
        zip(payload["reservations_over_time"]["labels"], payload["reservations_over_time"]["counts"])
    )
    with open(f"{output_dir}/daily_counts.csv", "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=["date", "orders", "reservations"])
        writer.writeheader()
        for day in sorted(set(order_days) | set(res_days)):
            writer.writerow(
                {"date": day, "orders": order_days.get(day, 0), "reservations": res_days.get(day, 0)}
            )


def print_summary_report(payload: dict[str, Any], output_dir: str = "dashboard_analytics") -> None:
    """Print the CLI summary report to stdout.

    Args:
        payload: Analytics payload from ``build_analytics_payload``.
        output_dir: Directory the analytics files were written to.
    """
    summary = payload["summary"]
    print(f"\n{'=' * 60}")
    print(f"Restaurant Summary ({payload['range']})")
    print(f"{'=' * 60}")
    print(f"Total Orders: {summary['total_orders']:,}")
    print(f"  Delivery: {summary['delivery_orders']:,} ({summary['delivery_pct']}%)")
    print(f"  Tap & Collect: {summary['pickup_orders']:,} ({summary['pickup_pct']}%)")
    print(f"Total Reservations: {summary['total_reservations']:,}")
    print(
        f"  Upcoming: {summary['upcoming_reservations']:,} "
        f"({summary['upcoming_pct']}%)"
    )
    print(f"  Average Party Size: {summary['average_party_size']:.1f}")

    peak_order = summary["peak_order_day"]
    peak_res = summary["peak_reservation_day"]
    print(f"\nPeak Order Day: {peak_order['date']} ({peak_order['count']:,} orders)")
    print(f"Peak Reservation Day: {peak_res['date']} ({peak_res['count']:,} reservations)")

    series = payload["orders_over_time"]
    if series["labels"]:
        print("\nOrders per Day:")
        for label, count in zip(series["labels"], series["counts"]):
            print(f"  {label}: {count:,}")

    print(f"{'=' * 60}")
    print(f"\nAnalytics data has been saved to the '{output_dir}' directory:")
    print("1. orders.csv / reservations.csv - Filtered records")
    print("2. daily_counts.csv - Orders and reservations per day")
    print("3. analytics.json - Full analytics payload")
