"""Customer ranking by total spend and CSV rendering."""

from __future__ import annotations

import csv
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from io import StringIO
from typing import Dict, Iterable, List, Protocol, Sequence

from .models import PAID_STATUSES, Customer, CustomerRow, Order, StoreStatistics

CSV_HEADER = ["Name", "Email", "Phone Number", "Total Spend"]
UTF8_BOM = "\ufeff"


class CustomerSource(Protocol):
    """Where the ranked customer list comes from."""

    def count(self) -> int: ...

    def fetch_ranked(self, offset: int, limit: int) -> List[CustomerRow]: ...

    def statistics(self) -> StoreStatistics: ...


def display_name(customer: Customer) -> str:
    """Billing name, or the local part of the email address when unset."""
    first = (customer.first_name or "").strip()
    last = (customer.last_name or "").strip()
    full_name = f"{first} {last}".strip()
    if full_name:
        return full_name
    return customer.email.split("@", 1)[0]


class InMemoryCustomerSource:
    """Customer source backed by plain lists, used for demos and tests.

    Every registered customer is ranked, including those without paid orders
    (they get a total of zero). Ties are broken by customer id.
    """

    def __init__(self, customers: Iterable[Customer], orders: Iterable[Order] = ()) -> None:
        self.customers: List[Customer] = list(customers)
        self.orders: List[Order] = list(orders)
        self._ranked: List[CustomerRow] = []
        self._dirty = True

    def _totals(self) -> Dict[int, Decimal]:
        totals: Dict[int, Decimal] = defaultdict(Decimal)
        for order in self.orders:
            if order.status in PAID_STATUSES and order.customer_id:
                totals[order.customer_id] += order.total
        return totals

    def _rank(self) -> List[CustomerRow]:
        if self._dirty:
            totals = self._totals()
            ordered = sorted(
                self.customers,
                key=lambda customer: (-totals.get(customer.id, Decimal("0")), customer.id),
            )
            self._ranked = [
                CustomerRow(
                    name=display_name(customer),
                    email=customer.email.strip(),
                    phone=(customer.phone or "").strip() or "N/A",
                    total_spent=totals.get(customer.id, Decimal("0")),
                )
                for customer in ordered
            ]
            self._dirty = False
        return self._ranked

    def count(self) -> int:
        return len(self.customers)

    def fetch_ranked(self, offset: int, limit: int) -> List[CustomerRow]:
        return list(self._rank()[offset : offset + limit])

    def statistics(self) -> StoreStatistics:
        paid = [order for order in self.orders if order.status in PAID_STATUSES]
        return StoreStatistics(
            total_customers=len(self.customers),
            total_orders=len(paid),
            total_revenue=sum((order.total for order in paid), Decimal("0")),
        )


def format_amount(amount: Decimal) -> str:
    return str(Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def render_csv(rows: Sequence[CustomerRow]) -> str:
    """Render rows as CSV with a BOM so spreadsheet tools detect UTF-8."""
    output = StringIO()
    output.write(UTF8_BOM)
    writer = csv.writer(output)
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow([row.name, row.email, row.phone, format_amount(row.total_spent)])
    return output.getvalue()


__all__ = [
    "CSV_HEADER",
    "CustomerSource",
    "InMemoryCustomerSource",
    "display_name",
    "format_amount",
    "render_csv",
]
