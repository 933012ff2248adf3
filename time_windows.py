"""Date-filter selections and the windows they resolve to.

The dashboard offers two families of symbolic date filters: the table views
("all", "1day", ... "1month") and the analytics view ("Today", "Last 3 Days",
... "Last Month").  ``resolve_window`` turns either into a ``TimeWindow``
anchored at a reference instant.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Literal

TableRange = Literal["all", "1day", "3days", "1week", "15days", "1month"]
AnalyticsRange = Literal["Today", "Last 3 Days", "Last 15 Days", "Last Month"]

TABLE_RANGES: tuple[str, ...] = ("all", "1day", "3days", "1week", "15days", "1month")
ANALYTICS_RANGES: tuple[str, ...] = ("Today", "Last 3 Days", "Last 15 Days", "Last Month")
DEFAULT_TABLE_RANGE = "all"
DEFAULT_ANALYTICS_RANGE = "Last 15 Days"

# selection -> (days, months) to subtract from the reference instant
_ROLLING_OFFSETS: dict[str, tuple[int, int]] = {
    "1day": (1, 0),
    "3days": (3, 0),
    "1week": (7, 0),
    "15days": (15, 0),
    "1month": (0, 1),
    "Last 3 Days": (3, 0),
    "Last 15 Days": (15, 0),
    "Last Month": (0, 1),
}
_SAME_DAY_SELECTIONS = frozenset({"Today"})

WindowMode = Literal["all", "same_day", "since"]


@dataclass(frozen=True)
class TimeWindow:
    """A resolved date filter.

    Attributes:
        mode: "all" (no lower bound), "same_day" (calendar-date equality with
            *reference*), or "since" (timestamp >= *cutoff*).
        reference: The instant the window was resolved against.
        cutoff: Lower bound for "since" windows, otherwise None.
        tz: Zone used for calendar-date comparisons; None means the local
            zone.
    """

    mode: WindowMode
    reference: datetime
    cutoff: datetime | None = None
    tz: tzinfo | None = None

    @property
    def bounded(self) -> bool:
        return self.mode != "all"

    def contains(self, moment: datetime) -> bool:
        """Return True if the aware datetime *moment* falls in the window."""
        if self.mode == "all":
            return True
        if self.mode == "same_day":
            return moment.astimezone(self.tz).date() == self.reference.astimezone(self.tz).date()
        return moment >= self.cutoff


def aware_now(now: datetime | None = None) -> datetime:
    """Return *now* as an aware datetime (naive values are local time)."""
    if now is None:
        return datetime.now().astimezone()
    if now.tzinfo is None:
        return now.astimezone()
    return now


def subtract_months(moment: datetime, months: int) -> datetime:
    """Step *moment* back by whole calendar months.

    The day of month is clamped to the last day of the target month, so
    31 March minus one month is 28 (or 29) February at the same wall-clock
    time.

    Args:
        moment: Datetime to step back from.
        months: Number of calendar months to subtract (may be zero).

    Returns:
        A datetime with the same time-of-day and tzinfo as *moment*.
    """
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month0 = divmod(month_index, 12)
    month = month0 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def resolve_window(
    selection: str | None,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> TimeWindow:
    """Map a symbolic date-filter selection to a ``TimeWindow``.

    "Today" compares calendar dates rather than using a cutoff.  Every other
    known selection is a rolling cutoff computed by subtracting days or
    calendar months from *now*.  "all", None, and unrecognized values give
    an unbounded window.

    Args:
        selection: A table or analytics range name.
        now: Reference instant; defaults to the current local time.
        tz: Zone for calendar-date comparisons; None means local.

    Returns:
        The resolved window.
    """
    reference = aware_now(now)
    if selection in _SAME_DAY_SELECTIONS:
        return TimeWindow(mode="same_day", reference=reference, tz=tz)

    offset = _ROLLING_OFFSETS.get(selection) if selection is not None else None
    if offset is None:
        return TimeWindow(mode="all", reference=reference, tz=tz)

    days, months = offset
    cutoff = subtract_months(reference, months) - timedelta(days=days)
    return TimeWindow(mode="since", reference=reference, cutoff=cutoff, tz=tz)
