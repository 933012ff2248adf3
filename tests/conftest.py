"""Shared fixtures for dashboard tests."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from helpers import FakeBackOffice, ago, make_order, make_reservation


def _sample_orders() -> list[dict]:
    """Orders relative to the real clock (the service uses real time)."""
    return [
        make_order("o-pickup-old", ago(days=20), option="pickup", delivered=True),
        make_order("o-delivery", ago(hours=1), option="delivery", email="dee@example.com"),
        make_order("o-tap", ago(days=2), option="tapAndCollect"),
        make_order("o-empty", ago(hours=2), option="delivery", dishes=[]),
    ]


def _sample_reservations() -> list[dict]:
    return [
        make_reservation("r-past", ago(days=1), guests=2),
        make_reservation("r-old", ago(days=40), guests=6),
        make_reservation("r-future", ago(days=-2), guests=4),
    ]


@pytest.fixture()
def upstream():
    """A fake upstream API holding the sample orders and reservations."""
    return FakeBackOffice(orders=_sample_orders(), reservations=_sample_reservations())


@pytest.fixture()
def client(upstream):
    """TestClient for app.py wired to the fake upstream.

    The lifespan runs one refresh cycle before serving; the timer interval
    is stretched so no background cycle fires during a test.
    """
    import app as app_module

    with patch.object(app_module, "_build_client", upstream.client):
        with patch.object(app_module, "REFRESH_INTERVAL_SECONDS", 3600):
            with TestClient(app_module.app) as tc:
                yield tc
