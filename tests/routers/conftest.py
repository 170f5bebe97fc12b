# tests/routers/conftest.py
"""
Fixtures for API tests.

The app's service getters are overridden with the in-memory services from
tests/conftest.py, so HTTP tests and service tests share the same fakes.
"""

import pytest
from fastapi.testclient import TestClient

from stocktracker.dependencies import (
    get_document_store,
    get_fx_rate_service,
    get_portfolio_service,
    get_price_service,
)
from stocktracker.main import app
from stocktracker.services.store import JsonDocumentStore


@pytest.fixture
def json_store(tmp_path) -> JsonDocumentStore:
    """File-backed store in a temp dir (used by /health)."""
    return JsonDocumentStore(tmp_path / "portfolio.json")


@pytest.fixture(scope="function")
def client(fx_service, price_service, portfolio_service, json_store) -> TestClient:
    """
    Create TestClient with service dependency overrides.

    Cleans up overrides after test completes.
    """
    app.dependency_overrides[get_fx_rate_service] = lambda: fx_service
    app.dependency_overrides[get_price_service] = lambda: price_service
    app.dependency_overrides[get_portfolio_service] = lambda: portfolio_service
    app.dependency_overrides[get_document_store] = lambda: json_store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
