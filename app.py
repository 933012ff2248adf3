"""FastAPI service for the Restaurant Back-Office Dashboard.

Hosts the polling refresh loop and serves the order/reservation tables,
the analytics view, and the two staff actions (mark delivered, send time
estimate) as JSON, plus one HTML page with the state injected.

Deployment: uvicorn app:app --host 127.0.0.1 --port 8204
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Literal

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import HTMLResponse

from analytics import (
    MENU_CATEGORIES,
    build_analytics_payload,
    build_order_rows,
    build_reservation_rows,
    pending_counts,
)
from backoffice_client import BackOfficeClient, DashboardError
from config import REFRESH_INTERVAL_SECONDS, TEMPLATE_PATH
from refresh import RefreshLoop
from schemas import DEFAULT_MENU_OPTION, FilterUpdate, TimeSelection
from store import DashboardStore
from time_windows import AnalyticsRange, TableRange, resolve_window

OrderMenu = Literal["Tap & Collect", "Delivery Orders"]

# ---------------------------------------------------------------------------
# State (one store and one loop per process)
# ---------------------------------------------------------------------------
_state: dict[str, Any] = {
    "store": None,
    "loop": None,
}


def _build_client() -> BackOfficeClient:
    return BackOfficeClient()


@asynccontextmanager
async def lifespan(_: FastAPI):
    client = _build_client()
    store = DashboardStore()
    loop = RefreshLoop(store, client, interval=REFRESH_INTERVAL_SECONDS)
    _state["store"] = store
    _state["loop"] = loop

    await loop.refresh_now()
    loop.start(immediate=False)
    try:
        yield
    finally:
        loop.stop()
        await client.aclose()
        _state["store"] = None
        _state["loop"] = None


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Restaurant Back-Office Dashboard",
    lifespan=lifespan,
)


def _store() -> DashboardStore:
    store = _state["store"]
    if store is None:
        raise HTTPException(status_code=503, detail="Dashboard is not running")
    return store


def _loop() -> RefreshLoop:
    loop = _state["loop"]
    if loop is None:
        raise HTTPException(status_code=503, detail="Dashboard is not running")
    return loop


def _banner(store: DashboardStore) -> dict[str, Any]:
    return {"loading": store.loading, "error": store.error}


def _state_payload(store: DashboardStore, now: datetime | None = None) -> dict[str, Any]:
    window = resolve_window(store.table_range, now)
    return {
        **store.snapshot(),
        "badges": pending_counts(store.orders, store.reservations, window, now),
    }


def _orders_view(store: DashboardStore, menu: str | None, date_range: str | None) -> dict:
    if menu is None:
        # Reservations and Visual Data have no order table of their own
        menu = store.menu_option
        if menu not in MENU_CATEGORIES:
            menu = DEFAULT_MENU_OPTION
    return {
        **_banner(store),
        **build_order_rows(
            store.orders,
            menu,
            date_range or store.table_range,
            time_selections=store.time_selections,
            time_sent=store.time_sent,
        ),
    }


def _reservations_view(store: DashboardStore, date_range: str | None) -> dict:
    return {
        **_banner(store),
        **build_reservation_rows(store.reservations, date_range or store.table_range),
    }


def _analytics_view(store: DashboardStore, date_range: str | None) -> dict:
    return {
        **_banner(store),
        **build_analytics_payload(
            store.orders, store.reservations, date_range or store.analytics_range
        ),
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health")
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/", response_class=HTMLResponse)
def dashboard_html():
    """Serve the dashboard HTML with injected data."""
    if not TEMPLATE_PATH.exists():
        raise HTTPException(status_code=500, detail="Template not found")

    store = _store()
    data = {
        "state": _state_payload(store),
        "orders": _orders_view(store, None, None),
        "reservations": _reservations_view(store, None),
        "analytics": _analytics_view(store, None),
    }
    template = TEMPLATE_PATH.read_text(encoding="utf-8")
    data_json = json.dumps(data, ensure_ascii=False)
    data_json = data_json.replace("</", r"<\/")
    html = template.replace(
        "const DASHBOARD_DATA = {};",
        f"const DASHBOARD_DATA = {data_json};",
    )
    return HTMLResponse(content=html)


@app.get("/api/state")
def api_state():
    """Loading/error flags, current selections, and menu badge counts."""
    return _state_payload(_store())


@app.get("/api/orders")
def api_orders(
    menu: OrderMenu | None = None,
    date_range: TableRange | None = Query(None, alias="range"),
):
    """Order table for the pickup or delivery view."""
    return _orders_view(_store(), menu, date_range)


@app.get("/api/reservations")
def api_reservations(date_range: TableRange | None = Query(None, alias="range")):
    return _reservations_view(_store(), date_range)


@app.get("/api/analytics")
def api_analytics(date_range: AnalyticsRange | None = Query(None, alias="range")):
    """Aggregates for the Visual Data view."""
    return _analytics_view(_store(), date_range)


@app.put("/api/filters")
async def api_filters(update: FilterUpdate):
    """Change selections; switching the menu option also refetches."""
    store = _store()
    menu_changed = (
        update.menu_option is not None and update.menu_option != store.menu_option
    )
    store.set_filter(
        table_range=update.table_range,
        analytics_range=update.analytics_range,
        menu_option=update.menu_option,
    )
    if menu_changed:
        await _loop().refresh_now()
    return _state_payload(store)


@app.put("/api/orders/{order_id}/time-selection")
def api_time_selection(order_id: str, selection: TimeSelection):
    store = _store()
    if store.find_order(order_id) is None:
        raise HTTPException(status_code=404, detail="Order not found")
    store.select_time(order_id, selection.minutes)
    return {"order_id": order_id, "minutes": selection.minutes}


@app.post("/api/orders/{order_id}/delivered")
async def api_mark_delivered(order_id: str):
    store = _store()
    if store.find_order(order_id) is None:
        raise HTTPException(status_code=404, detail="Order not found")
    try:
        await _loop().mark_delivered(order_id)
    except DashboardError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"order_id": order_id, "isDelivered": True}


@app.post("/api/orders/{order_id}/time-estimate")
async def api_send_time_estimate(order_id: str):
    store = _store()
    order = store.find_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    if order_id in store.time_sent:
        raise HTTPException(status_code=409, detail="Time estimate already sent")
    try:
        stamp = await _loop().send_time_estimate(order_id, order.get("email"))
    except DashboardError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"order_id": order_id, "time_sent": stamp}


@app.get("/api/refresh")
async def api_refresh():
    """Run a refresh cycle now instead of waiting for the timer."""
    refreshed = await _loop().refresh_now()
    store = _store()
    return {
        "status": "refreshed" if refreshed else "failed",
        "error": store.error,
        "last_refreshed": (
            store.last_refreshed.isoformat() if store.last_refreshed else None
        ),
    }
