"""Pydantic models for upstream payloads and dashboard request bodies."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from time_windows import AnalyticsRange, TableRange

MenuOption = Literal["Tap & Collect", "Delivery Orders", "Reservations", "Visual Data"]
DEFAULT_MENU_OPTION = "Tap & Collect"


# ---------------------------------------------------------------------------
# Upstream read payloads
# ---------------------------------------------------------------------------
class OrdersPayload(BaseModel):
    """Body of ``GET /getOrders``.  Only the ``orders`` list is required."""

    model_config = ConfigDict(extra="allow")

    orders: list[Any] = Field(strict=True)


class ReservationsPayload(BaseModel):
    """Body of ``GET /getReservations``."""

    model_config = ConfigDict(extra="allow")

    reservations: list[Any] = Field(strict=True)


# ---------------------------------------------------------------------------
# Upstream write payloads
# ---------------------------------------------------------------------------
class MarkDeliveredRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId")


class TimeEstimateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str | None = None
    expected_time: str = Field(alias="expectedTime")


class MutationErrorBody(BaseModel):
    """Error body the write endpoints may return on failure."""

    model_config = ConfigDict(extra="allow")

    error: str | None = None


# ---------------------------------------------------------------------------
# Dashboard request bodies
# ---------------------------------------------------------------------------
class FilterUpdate(BaseModel):
    table_range: TableRange | None = None
    analytics_range: AnalyticsRange | None = None
    menu_option: MenuOption | None = None


class TimeSelection(BaseModel):
    minutes: Literal["10", "20", "30"]
