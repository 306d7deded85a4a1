"""Data models for the reference job service."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


# Orders counted towards a customer's total spend.
PAID_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.PROCESSING})


class Customer(BaseModel):
    """A registered store user."""

    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class Order(BaseModel):
    id: int
    customer_id: int
    total: Decimal
    status: OrderStatus = OrderStatus.COMPLETED


class CustomerRow(BaseModel):
    """One line of the exported report."""

    name: str
    email: str
    phone: str = "N/A"
    total_spent: Decimal = Decimal("0")


class ExportSession(BaseModel):
    """Server-side bookkeeping for one prepared export."""

    total_customers: int
    total_batches: int
    current_batch: int = 0
    started: datetime = Field(default_factory=datetime.now)


class BatchRequest(BaseModel):
    batch: int = 0


class StoreStatistics(BaseModel):
    total_customers: int
    total_orders: int
    total_revenue: Decimal


__all__ = [
    "OrderStatus",
    "PAID_STATUSES",
    "Customer",
    "Order",
    "CustomerRow",
    "ExportSession",
    "BatchRequest",
    "StoreStatistics",
]
