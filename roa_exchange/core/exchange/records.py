"""Fresh-read helpers shared by the item and order operations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from roa_exchange.core.domain.errors import (
    AlreadyResolved,
    ExchangeError,
    InvalidTransition,
    RecordNotFound,
)

if TYPE_CHECKING:
    from roa_exchange.core.domain.types import BatchItem, ExchangeOrder, ItemKind
    from roa_exchange.core.ports.exchange_store import ExchangeStore


def require_item(store: ExchangeStore, kind: ItemKind, item_id: str) -> BatchItem:
    item = store.get_item(kind, item_id)
    if item is None:
        raise RecordNotFound(f"{kind} {item_id} does not exist")
    return item


def require_order(store: ExchangeStore, order_id: str) -> ExchangeOrder:
    order = store.get_order(order_id)
    if order is None:
        raise RecordNotFound(f"order {order_id} does not exist")
    return order


def stale_or_invalid(
    *,
    subject: str,
    seen_status: str,
    fresh_status: str,
    target: str,
    conflict_cls: type[AlreadyResolved] = AlreadyResolved,
) -> ExchangeError:
    """Classify a refused status change.

    If the caller's snapshot is stale the refusal is a concurrency conflict
    (``conflict_cls``); if the caller saw the current status the refusal
    comes from the transition table.
    """
    if seen_status != fresh_status:
        return conflict_cls(
            f"{subject} is now {fresh_status!r} (was {seen_status!r})",
            observed_status=fresh_status,
        )
    return InvalidTransition(
        f"{subject}: {fresh_status!r} -> {target!r} is not allowed",
        current=fresh_status,
        target=target,
    )
