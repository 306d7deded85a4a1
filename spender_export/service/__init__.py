"""Reference implementation of the export job service."""

from __future__ import annotations

from .demo import demo_customer_source
from .factory import create_app
from .models import Customer, CustomerRow, Order, OrderStatus, StoreStatistics
from .ranking import CustomerSource, InMemoryCustomerSource, render_csv
from .state import ExportJobStore

__all__ = [
    "create_app",
    "demo_customer_source",
    "Customer",
    "CustomerRow",
    "CustomerSource",
    "ExportJobStore",
    "InMemoryCustomerSource",
    "Order",
    "OrderStatus",
    "StoreStatistics",
    "render_csv",
]
