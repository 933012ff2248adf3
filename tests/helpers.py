"""Shared test helpers for dashboard tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any

import httpx

from backoffice_client import BackOfficeClient


def ago(days: float = 0, hours: float = 0) -> str:
    """Naive local ISO timestamp *days*/*hours* before the real current time."""
    return (datetime.now() - timedelta(days=days, hours=hours)).isoformat()


def make_order(
    order_id: str,
    order_time: Any,
    option: str = "delivery",
    delivered: bool = False,
    dishes: list[dict] | None = None,
    email: str | None = "guest@example.com",
) -> dict:
    """Build an order dict shaped like the ``/getOrders`` records."""
    if dishes is None:
        dishes = [{"name": "Butter Chicken", "quantity": 1, "price": 12.5}]
    return {
        "_id": order_id,
        "dishes": dishes,
        "orderTime": order_time,
        "deliveryOption": option,
        "isDelivered": delivered,
        "email": email,
        "name": "Sam Guest",
        "address": "1 High Street",
    }


def make_reservation(
    reservation_id: str,
    when: Any,
    guests: Any = 2,
    special_requests: str | None = None,
) -> dict:
    """Build a reservation dict shaped like the ``/getReservations`` records."""
    return {
        "_id": reservation_id,
        "name": "Alex Diner",
        "email": "alex@example.com",
        "phone": "0123 456789",
        "date": when,
        "time": "19:30",
        "guests": guests,
        "specialRequests": special_requests,
    }


class FakeBackOffice:
    """In-memory stand-in for the upstream API, served via ``httpx.MockTransport``.

    Attributes:
        status: path -> status code to answer with.
        bodies: path -> JSON body overriding the default response.
        raw: path -> raw text body (for non-JSON responses).
        errors: path -> exception raised instead of answering.
        gate: when set to an ``asyncio.Event``, every response waits on it.
        requests: every request received, in order.
    """

    def __init__(self, orders: list | None = None, reservations: list | None = None) -> None:
        self.orders = orders if orders is not None else []
        self.reservations = reservations if reservations is not None else []
        self.status: dict[str, int] = {}
        self.bodies: dict[str, Any] = {}
        self.raw: dict[str, str] = {}
        self.errors: dict[str, Exception] = {}
        self.gate = None
        self.requests: list[httpx.Request] = []

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()

        path = request.url.path
        if path in self.errors:
            raise self.errors[path]
        status = self.status.get(path, 200)
        if path in self.raw:
            return httpx.Response(status, text=self.raw[path])
        if path in self.bodies:
            return httpx.Response(status, json=self.bodies[path])
        if status >= 400:
            return httpx.Response(status, json={})
        if path == "/getOrders":
            return httpx.Response(200, json={"orders": self.orders})
        if path == "/getReservations":
            return httpx.Response(200, json={"reservations": self.reservations})
        if path in ("/markAsDelivered", "/timeDetails"):
            return httpx.Response(200, json={"success": True})
        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> BackOfficeClient:
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(self.handle),
            base_url="http://backoffice.test",
        )
        return BackOfficeClient(http)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def last_body(self, path: str) -> dict:
        return json.loads(self.calls(path)[-1].content)
