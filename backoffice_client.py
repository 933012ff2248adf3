"""Async client for the restaurant back-office API.

Wraps the two read endpoints (orders, reservations) and the two write
endpoints (mark delivered, send time estimate).  Every failure is raised as
a ``DashboardError`` subclass carrying a message fit for the error banner.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from config import BACKOFFICE_API_URL, REQUEST_TIMEOUT_SECONDS
from schemas import (
    MarkDeliveredRequest,
    MutationErrorBody,
    OrdersPayload,
    ReservationsPayload,
    TimeEstimateRequest,
)

logger = logging.getLogger(__name__)

# InvalidURL is raised outside the HTTPError hierarchy
_REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


class DashboardError(Exception):
    """Base class for errors surfaced in the dashboard error banner."""


class FetchError(DashboardError):
    """Transport failure or non-success status on a read endpoint."""


class PayloadShapeError(DashboardError):
    """A read endpoint returned a body without the expected list field."""


class MutationError(DashboardError):
    """A write endpoint reported a failure."""


def _reason(response: httpx.Response) -> str:
    return response.reason_phrase or str(response.status_code)


class BackOfficeClient:
    """Thin wrapper over ``httpx.AsyncClient`` for the four upstream calls.

    Args:
        http: Optional pre-built client (tests pass one with a
            ``MockTransport``).  When omitted, one is created against
            ``BACKOFFICE_API_URL`` and closed by ``aclose``.
    """

    def __init__(self, http: httpx.AsyncClient | None = None) -> None:
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            base_url=BACKOFFICE_API_URL,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _get_json(self, path: str, what: str) -> Any:
        try:
            response = await self._http.get(path)
        except _REQUEST_ERRORS as exc:
            raise FetchError(f"Error fetching {what}: {exc}") from exc
        if not response.is_success:
            raise FetchError(f"Error fetching {what}: {_reason(response)}")
        try:
            return response.json()
        except ValueError as exc:
            raise PayloadShapeError(
                f"Invalid {what} data structure received from server"
            ) from exc

    async def fetch_orders(self) -> list[Any]:
        """Return the raw ``orders`` list from ``GET /getOrders``."""
        body = await self._get_json("/getOrders", "orders")
        try:
            return OrdersPayload.model_validate(body).orders
        except ValidationError as exc:
            raise PayloadShapeError(
                "Invalid orders data structure received from server"
            ) from exc

    async def fetch_reservations(self) -> list[Any]:
        """Return the raw ``reservations`` list from ``GET /getReservations``."""
        body = await self._get_json("/getReservations", "reservations")
        try:
            return ReservationsPayload.model_validate(body).reservations
        except ValidationError as exc:
            raise PayloadShapeError(
                "Invalid reservations data structure received from server"
            ) from exc

    async def _post(self, path: str, payload: dict, default_message: str) -> None:
        try:
            response = await self._http.post(path, json=payload)
        except _REQUEST_ERRORS as exc:
            raise MutationError(f"{default_message}: {exc}") from exc
        if response.is_success:
            return

        message = default_message
        try:
            body = MutationErrorBody.model_validate(response.json())
            if body.error:
                message = body.error
        except (ValueError, ValidationError):
            logger.debug("%s returned %d with no usable error body", path, response.status_code)
        raise MutationError(message)

    async def mark_delivered(self, order_id: str) -> None:
        """POST ``/markAsDelivered`` for *order_id*."""
        payload = MarkDeliveredRequest(order_id=order_id).model_dump(by_alias=True)
        await self._post("/markAsDelivered", payload, "Error marking order as delivered")

    async def send_time_estimate(self, email: str | None, minutes: str) -> None:
        """POST ``/timeDetails`` telling *email* the order is *minutes* away."""
        payload = TimeEstimateRequest(
            email=email, expected_time=f"{minutes} minutes"
        ).model_dump(by_alias=True)
        await self._post("/timeDetails", payload, "Failed to send time estimate")
