"""Fixtures for job service integration tests."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from spender_export.config import JobServiceSettings
from spender_export.service import Customer, InMemoryCustomerSource, Order, create_app


def build_source(customers=250):
    people = [
        Customer(id=index, email=f"customer{index}@example.com", first_name=f"C{index}")
        for index in range(1, customers + 1)
    ]
    orders = [
        Order(id=index, customer_id=index, total=Decimal(index))
        for index in range(1, customers + 1)
    ]
    return InMemoryCustomerSource(people, orders)


@pytest.fixture
def service_settings():
    return JobServiceSettings(batch_size=100, rate_limit_ms=1000)


@pytest.fixture
def app(service_settings):
    return create_app(build_source(), service_settings)


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def token(client):
    response = client.post("/export/session")
    return response.json()["data"]["token"]
