"""Single owner of the dashboard's in-memory state.

Holds the current order and reservation collections, filter selections,
the error/loading flags, and per-order time-estimate bookkeeping.  All
changes go through the action methods; the aggregation functions in
``analytics`` stay pure functions over a snapshot of this state.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from analytics import (
    ORDER_TIME_FIELD,
    RESERVATION_TIME_FIELD,
    is_renderable_order,
    sort_newest_first,
)
from config import DEFAULT_TIME_ESTIMATE, TIME_ESTIMATE_CHOICES
from schemas import DEFAULT_MENU_OPTION
from time_windows import DEFAULT_ANALYTICS_RANGE, DEFAULT_TABLE_RANGE

logger = logging.getLogger(__name__)


class DashboardStore:
    """State container with discrete update actions."""

    def __init__(self) -> None:
        self.orders: list[dict] = []
        self.reservations: list[dict] = []
        self.loading = True
        self.error = ""
        self.table_range = DEFAULT_TABLE_RANGE
        self.analytics_range = DEFAULT_ANALYTICS_RANGE
        self.menu_option = DEFAULT_MENU_OPTION
        self.time_selections: dict[str, str] = {}
        self.time_sent: dict[str, str] = {}
        self.last_refreshed: datetime | None = None

    def set_collections(self, orders: list[Any], reservations: list[Any]) -> None:
        """Replace both collections wholesale and clear the error.

        Orders without a non-empty ``dishes`` list and non-dict entries are
        dropped.  Both collections are stored newest first.
        """
        renderable = [o for o in orders if is_renderable_order(o)]
        if len(renderable) != len(orders):
            logger.debug("Dropped %d non-renderable orders", len(orders) - len(renderable))
        valid_reservations = [r for r in reservations if isinstance(r, dict)]

        self.orders = sort_newest_first(renderable, ORDER_TIME_FIELD)
        self.reservations = sort_newest_first(valid_reservations, RESERVATION_TIME_FIELD)
        self.error = ""
        self.last_refreshed = datetime.now().astimezone()

    def set_error(self, message: str) -> None:
        """Record *message* for the error banner; collections are untouched."""
        self.error = message

    def fail_refresh(self, message: str) -> None:
        """Empty both collections and set the error (all-or-nothing)."""
        self.orders = []
        self.reservations = []
        self.error = message

    def finish_loading(self) -> None:
        self.loading = False

    def set_filter(
        self,
        table_range: str | None = None,
        analytics_range: str | None = None,
        menu_option: str | None = None,
    ) -> None:
        if table_range is not None:
            self.table_range = table_range
        if analytics_range is not None:
            self.analytics_range = analytics_range
        if menu_option is not None:
            self.menu_option = menu_option

    def find_order(self, order_id: str) -> dict | None:
        for order in self.orders:
            if order.get("_id") == order_id:
                return order
        return None

    def patch_order(self, order_id: str, **changes: Any) -> bool:
        """Apply *changes* to the local copy of *order_id*.

        The order dict is replaced rather than mutated so earlier snapshots
        stay unchanged.

        Returns:
            True if the order was found.
        """
        for idx, order in enumerate(self.orders):
            if order.get("_id") == order_id:
                self.orders[idx] = {**order, **changes}
                return True
        return False

    def select_time(self, order_id: str, minutes: str) -> None:
        if minutes not in TIME_ESTIMATE_CHOICES:
            raise ValueError(f"Unsupported time estimate: {minutes!r}")
        self.time_selections[order_id] = minutes

    def selected_time(self, order_id: str) -> str:
        return self.time_selections.get(order_id, DEFAULT_TIME_ESTIMATE)

    def mark_time_sent(self, order_id: str, minutes: str, at: datetime | None = None) -> str:
        """Stamp *order_id* as having had its estimate sent; returns the stamp."""
        at = at or datetime.now()
        stamp = f"{minutes} minutes sent at {at.strftime('%H:%M:%S')}"
        self.time_sent[order_id] = stamp
        return stamp

    def snapshot(self) -> dict[str, Any]:
        """Return the state as plain JSON-ready data."""
        return {
            "loading": self.loading,
            "error": self.error,
            "table_range": self.table_range,
            "analytics_range": self.analytics_range,
            "menu_option": self.menu_option,
            "order_count": len(self.orders),
            "reservation_count": len(self.reservations),
            "last_refreshed": (
                self.last_refreshed.isoformat() if self.last_refreshed else None
            ),
        }
