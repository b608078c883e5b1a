"""
Semantic test: competing writers on the same item or order.

Invariant:
Of two acceptances racing for one item exactly one succeeds; the other
reports that the item is no longer available and its order stays pending.
A cancel that lands between an accept's read and write wins, and the accept
reports that the order was already resolved.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from roa_exchange.adapters.memory_store import InMemoryExchangeStore
from roa_exchange.core.domain.errors import AlreadyResolved, ItemUnavailable, OrderAlreadyResolved
from roa_exchange.core.domain.types import Actor, BatchItem, ExchangeOrder
from roa_exchange.core.events.sinks.null_event_bus import NullEventBus
from roa_exchange.core.exchange.order_lifecycle import ExchangeOrderLifecycle

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

GENERATOR = Actor(actor_id="gen-1")
COLLECTOR_A = Actor(actor_id="col-a")
COLLECTOR_B = Actor(actor_id="col-b")


def _two_pending_orders() -> tuple[InMemoryExchangeStore, ExchangeOrderLifecycle, ExchangeOrder, ExchangeOrder]:
    store = InMemoryExchangeStore()
    item = store.add_item(BatchItem(item_id="batch-1", owner_id=GENERATOR.actor_id))
    lifecycle = ExchangeOrderLifecycle(store, NullEventBus(), clock=lambda: T0)

    order_a = lifecycle.request_exchange(item, COLLECTOR_A)
    order_b = lifecycle.request_exchange(item, COLLECTOR_B)
    return store, lifecycle, order_a, order_b


@pytest.mark.parametrize("interleave_at", ["update_order_status", "update_item_status"])
def test_exactly_one_of_two_accepts_wins(interleave_at: str) -> None:
    store, lifecycle, order_a, order_b = _two_pending_orders()

    results: dict[str, ExchangeOrder] = {}

    def _competing_accept() -> None:
        results["b"] = lifecycle.accept(order_b, GENERATOR)

    store.before_next(interleave_at, _competing_accept)

    with pytest.raises(AlreadyResolved) as exc_info:
        lifecycle.accept(order_a, GENERATOR)

    assert isinstance(exc_info.value, ItemUnavailable)
    assert results["b"].status == "accepted"

    item = store.get_item("batch", "batch-1")
    assert item.status == "reserved"
    assert item.order_ref == order_b.order_id

    # The loser's order is left (or put back) pending
    assert store.get_order(order_a.order_id).status == "pending"


def test_accept_after_competitor_reserved_fails_with_item_unavailable() -> None:
    store, lifecycle, order_a, order_b = _two_pending_orders()

    lifecycle.accept(order_b, GENERATOR)

    with pytest.raises(ItemUnavailable):
        lifecycle.accept(order_a, GENERATOR)

    assert store.get_order(order_a.order_id).status == "pending"


def test_cancel_between_read_and_write_beats_accept() -> None:
    store, lifecycle, order_a, _ = _two_pending_orders()

    store.before_next("update_order_status", lambda: lifecycle.cancel(order_a, COLLECTOR_A))

    with pytest.raises(OrderAlreadyResolved) as exc_info:
        lifecycle.accept(order_a, GENERATOR)

    assert exc_info.value.observed_status == "cancelled"
    assert store.get_order(order_a.order_id).status == "cancelled"
    assert store.get_item("batch", "batch-1").status == "available"


def test_complete_racing_cancel_leaves_one_outcome() -> None:
    store, lifecycle, order_a, _ = _two_pending_orders()
    accepted = lifecycle.accept(order_a, GENERATOR)

    store.before_next("update_order_status", lambda: lifecycle.cancel(accepted, COLLECTOR_A))

    with pytest.raises(OrderAlreadyResolved):
        lifecycle.complete(accepted, GENERATOR)

    assert store.get_order(order_a.order_id).status == "cancelled"
    item = store.get_item("batch", "batch-1")
    assert item.status == "available"
    assert item.order_ref is None
