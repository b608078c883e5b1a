"""
Semantic test: cancellation.

Invariant:
Either participant may cancel a pending or accepted order. Cancelling an
accepted order releases the item back to available; nobody else may cancel.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from roa_exchange.adapters.memory_store import InMemoryExchangeStore
from roa_exchange.core.domain.errors import InvalidTransition, NotAuthorized
from roa_exchange.core.domain.types import Actor, BatchItem
from roa_exchange.core.events.sinks.null_event_bus import NullEventBus
from roa_exchange.core.exchange.order_lifecycle import ExchangeOrderLifecycle

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

GENERATOR = Actor(actor_id="gen-1")
COLLECTOR = Actor(actor_id="col-1")
STRANGER = Actor(actor_id="someone-else")


def _setup() -> tuple[InMemoryExchangeStore, ExchangeOrderLifecycle, BatchItem]:
    store = InMemoryExchangeStore()
    item = store.add_item(BatchItem(item_id="batch-1", owner_id=GENERATOR.actor_id))
    lifecycle = ExchangeOrderLifecycle(store, NullEventBus(), clock=lambda: T0)
    return store, lifecycle, item


def test_requester_cancels_accepted_order_and_item_is_released() -> None:
    store, lifecycle, item = _setup()

    accepted = lifecycle.accept(lifecycle.request_exchange(item, COLLECTOR), GENERATOR)
    cancelled = lifecycle.cancel(accepted, COLLECTOR)

    assert cancelled.status == "cancelled"
    released = store.get_item("batch", "batch-1")
    assert released.status == "available"
    assert released.order_ref is None


def test_provider_cancels_pending_order() -> None:
    store, lifecycle, item = _setup()

    cancelled = lifecycle.cancel(lifecycle.request_exchange(item, COLLECTOR), GENERATOR)

    assert cancelled.status == "cancelled"
    assert store.get_item("batch", "batch-1").status == "available"


def test_non_participant_cannot_cancel() -> None:
    _, lifecycle, item = _setup()
    order = lifecycle.request_exchange(item, COLLECTOR)

    with pytest.raises(NotAuthorized):
        lifecycle.cancel(order, STRANGER)


def test_completed_order_cannot_be_cancelled() -> None:
    store, lifecycle, item = _setup()

    completed = lifecycle.complete(lifecycle.accept(lifecycle.request_exchange(item, COLLECTOR), GENERATOR), GENERATOR)

    with pytest.raises(InvalidTransition):
        lifecycle.cancel(completed, COLLECTOR)

    assert store.get_item("batch", "batch-1").status == "collected"


def test_cancel_is_idempotent() -> None:
    store, lifecycle, item = _setup()
    accepted = lifecycle.accept(lifecycle.request_exchange(item, COLLECTOR), GENERATOR)

    lifecycle.cancel(accepted, COLLECTOR)
    again = lifecycle.cancel(accepted, GENERATOR)

    assert again.status == "cancelled"
    assert store.get_item("batch", "batch-1").status == "available"
