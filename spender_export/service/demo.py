"""Deterministic sample store used by ``spender-export serve``."""

from __future__ import annotations

import random
from decimal import Decimal

from .models import Customer, Order, OrderStatus
from .ranking import InMemoryCustomerSource

FIRST_NAMES = ["Ada", "Grace", "Alan", "Edsger", "Barbara", "Ken", "Radia", "Linus", ""]
LAST_NAMES = ["Lovelace", "Hopper", "Turing", "Dijkstra", "Liskov", "Thompson", "Perlman", ""]


def demo_customer_source(customers: int = 250, seed: int = 7) -> InMemoryCustomerSource:
    rng = random.Random(seed)
    statuses = list(OrderStatus)
    people = []
    orders = []
    order_id = 1
    for customer_id in range(1, customers + 1):
        people.append(
            Customer(
                id=customer_id,
                email=f"customer{customer_id}@example.com",
                first_name=rng.choice(FIRST_NAMES),
                last_name=rng.choice(LAST_NAMES),
                phone=f"555-{rng.randint(0, 9999):04d}" if rng.random() > 0.3 else None,
            )
        )
        for _ in range(rng.randint(0, 5)):
            orders.append(
                Order(
                    id=order_id,
                    customer_id=customer_id,
                    total=Decimal(rng.randint(500, 50000)) / 100,
                    status=rng.choice(statuses),
                )
            )
            order_id += 1
    return InMemoryCustomerSource(people, orders)


__all__ = ["demo_customer_source"]
