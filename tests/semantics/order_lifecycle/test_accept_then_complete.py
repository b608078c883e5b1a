"""
Semantic test: pending -> accepted -> completed.

Invariant:
Accepting reserves the item for the accepted order; completing collects it.
The item is never collected without its order being completed.
"""

from __future__ import annotations

from datetime import datetime, timezone

from roa_exchange.adapters.memory_store import InMemoryExchangeStore
from roa_exchange.core.domain.types import Actor, BatchItem
from roa_exchange.core.events.events import ItemStatusTransitionEvent, OrderStatusTransitionEvent
from roa_exchange.core.events.sinks.null_event_bus import RecordingEventBus
from roa_exchange.core.exchange.order_lifecycle import ExchangeOrderLifecycle

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

GENERATOR = Actor(actor_id="gen-1")
COLLECTOR = Actor(actor_id="col-1")


def test_accept_reserves_and_complete_collects() -> None:
    store = InMemoryExchangeStore()
    item = store.add_item(BatchItem(item_id="batch-1", owner_id=GENERATOR.actor_id))
    bus = RecordingEventBus()
    lifecycle = ExchangeOrderLifecycle(store, bus, clock=lambda: T0, id_factory=lambda: "order-1")

    order = lifecycle.request_exchange(item, COLLECTOR)
    assert order.status == "pending"
    assert order.provider_id == GENERATOR.actor_id
    assert order.requester_id == COLLECTOR.actor_id
    # Requesting does not reserve
    assert store.get_item("batch", "batch-1").status == "available"

    accepted = lifecycle.accept(order, GENERATOR)
    assert accepted.status == "accepted"

    reserved = store.get_item("batch", "batch-1")
    assert reserved.status == "reserved"
    assert reserved.order_ref == "order-1"

    completed = lifecycle.complete(accepted, GENERATOR)
    assert completed.status == "completed"

    collected = store.get_item("batch", "batch-1")
    assert collected.status == "collected"
    assert collected.order_ref == "order-1"

    # ---------- assert events ----------
    order_moves = [(e.prev_status, e.next_status) for e in bus.of_type(OrderStatusTransitionEvent)]
    assert order_moves == [(None, "pending"), ("pending", "accepted"), ("accepted", "completed")]

    item_moves = [(e.prev_status, e.next_status) for e in bus.of_type(ItemStatusTransitionEvent)]
    assert item_moves == [("available", "reserved"), ("reserved", "collected")]


def test_reject_leaves_item_untouched() -> None:
    store = InMemoryExchangeStore()
    item = store.add_item(BatchItem(item_id="batch-1", owner_id=GENERATOR.actor_id))
    lifecycle = ExchangeOrderLifecycle(store, RecordingEventBus(), clock=lambda: T0)

    order = lifecycle.request_exchange(item, COLLECTOR)
    rejected = lifecycle.reject(order, GENERATOR)

    assert rejected.status == "rejected"
    assert store.get_item("batch", "batch-1").status == "available"

    # Rejecting again is a no-op
    assert lifecycle.reject(order, GENERATOR).status == "rejected"


def test_product_orders_follow_the_same_table() -> None:
    store = InMemoryExchangeStore()
    item = store.add_item(BatchItem(item_id="prod-1", kind="product", owner_id=GENERATOR.actor_id))
    lifecycle = ExchangeOrderLifecycle(store, RecordingEventBus(), clock=lambda: T0)

    order = lifecycle.request_exchange(item, COLLECTOR)
    assert order.item_kind == "product"

    lifecycle.complete(lifecycle.accept(order, GENERATOR), GENERATOR)

    assert store.get_item("product", "prod-1").status == "collected"
    assert store.get_item("batch", "prod-1") is None
