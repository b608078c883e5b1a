"""In-process ExchangeStore implementation.

Rows are copied on every read and write so callers never share mutable
state with the store, which mimics a remote table. Two test seams are
provided:

- ``fail_next(operation, times)`` makes the next calls of an operation raise
  StoreUnavailable before touching any row.
- ``before_next(operation, callback)`` runs a callback once, right before the
  next call of an operation, to interleave a competing actor between a read
  and a conditional write.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Callable

from roa_exchange.core.domain.errors import StoreUnavailable
from roa_exchange.core.ports.exchange_store import ExchangeStore

if TYPE_CHECKING:
    from datetime import datetime

    from roa_exchange.core.domain.types import (
        AccountStatus,
        AuditLogEntry,
        BatchItem,
        BatchStatus,
        EntityType,
        ExchangeOrder,
        ItemKind,
        OrderStatus,
        Rating,
    )


class InMemoryExchangeStore(ExchangeStore):
    """Dict-backed store with per-row compare-and-set writes."""

    def __init__(self) -> None:
        self._items: dict[tuple[str, str], BatchItem] = {}
        self._orders: dict[str, ExchangeOrder] = {}
        self._ratings: dict[str, Rating] = {}
        self._accounts: dict[str, AccountStatus] = {}
        self._audit: list[AuditLogEntry] = []

        self._failures: defaultdict[str, int] = defaultdict(int)
        self._hooks: defaultdict[str, list[Callable[[], None]]] = defaultdict(list)

    # ---------------------------------------------------------------------
    # Test seams
    # ---------------------------------------------------------------------

    def fail_next(self, operation: str, times: int = 1) -> None:
        self._failures[operation] += times

    def before_next(self, operation: str, callback: Callable[[], None]) -> None:
        self._hooks[operation].append(callback)

    def _enter(self, operation: str) -> None:
        hooks = self._hooks.pop(operation, [])
        for hook in hooks:
            hook()

        if self._failures[operation] > 0:
            self._failures[operation] -= 1
            raise StoreUnavailable(f"store unavailable during {operation}")

    # ---------------------------------------------------------------------
    # Seeding
    # ---------------------------------------------------------------------

    def add_item(self, item: BatchItem) -> BatchItem:
        self._items[(item.kind, item.item_id)] = item.model_copy()
        return item.model_copy()

    def add_account(self, actor_id: str, status: AccountStatus = "active") -> None:
        self._accounts[actor_id] = status

    # ---------------------------------------------------------------------
    # Items
    # ---------------------------------------------------------------------

    def get_item(self, kind: ItemKind, item_id: str) -> BatchItem | None:
        self._enter("get_item")
        item = self._items.get((kind, item_id))
        return None if item is None else item.model_copy()

    def update_item_status(
        self,
        kind: ItemKind,
        item_id: str,
        *,
        expected_status: BatchStatus,
        expected_order_ref: str | None,
        new_status: BatchStatus,
        new_order_ref: str | None,
    ) -> BatchItem | None:
        self._enter("update_item_status")
        key = (kind, item_id)
        current = self._items.get(key)
        if current is None:
            return None
        if current.status != expected_status or current.order_ref != expected_order_ref:
            return None

        updated = current.model_copy(update={"status": new_status, "order_ref": new_order_ref})
        self._items[key] = updated
        return updated.model_copy()

    # ---------------------------------------------------------------------
    # Orders
    # ---------------------------------------------------------------------

    def insert_order(self, order: ExchangeOrder) -> ExchangeOrder:
        self._enter("insert_order")
        if order.order_id in self._orders:
            raise ValueError(f"order {order.order_id} already exists")
        self._orders[order.order_id] = order.model_copy()
        return order.model_copy()

    def get_order(self, order_id: str) -> ExchangeOrder | None:
        self._enter("get_order")
        order = self._orders.get(order_id)
        return None if order is None else order.model_copy()

    def update_order_status(
        self,
        order_id: str,
        *,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        updated_at: datetime,
    ) -> ExchangeOrder | None:
        self._enter("update_order_status")
        current = self._orders.get(order_id)
        if current is None or current.status != expected_status:
            return None

        updated = current.model_copy(update={"status": new_status, "updated_at": updated_at})
        self._orders[order_id] = updated
        return updated.model_copy()

    # ---------------------------------------------------------------------
    # Ratings
    # ---------------------------------------------------------------------

    def list_ratings_for_order(self, order_id: str) -> list[Rating]:
        self._enter("list_ratings_for_order")
        return [r.model_copy() for r in self._ratings.values() if r.order_id == order_id]

    def list_ratings_for_actor(self, rated_id: str) -> list[Rating]:
        self._enter("list_ratings_for_actor")
        return [r.model_copy() for r in self._ratings.values() if r.rated_id == rated_id]

    def get_rating(self, rating_id: str) -> Rating | None:
        self._enter("get_rating")
        rating = self._ratings.get(rating_id)
        return None if rating is None else rating.model_copy()

    def insert_rating(self, rating: Rating) -> Rating | None:
        self._enter("insert_rating")
        # unique (order_id, rater_id) among live ratings
        for existing in self._ratings.values():
            if (
                existing.order_id == rating.order_id
                and existing.rater_id == rating.rater_id
                and not existing.withdrawn
            ):
                return None
        self._ratings[rating.rating_id] = rating.model_copy()
        return rating.model_copy()

    def update_rating_flags(
        self,
        rating_id: str,
        *,
        reported: bool | None = None,
        withdrawn: bool | None = None,
    ) -> Rating | None:
        self._enter("update_rating_flags")
        current = self._ratings.get(rating_id)
        if current is None:
            return None

        changes: dict[str, bool] = {}
        if reported is not None:
            changes["reported"] = reported
        if withdrawn is not None:
            changes["withdrawn"] = withdrawn
        updated = current.model_copy(update=changes)
        self._ratings[rating_id] = updated
        return updated.model_copy()

    # ---------------------------------------------------------------------
    # Accounts
    # ---------------------------------------------------------------------

    def get_account_status(self, actor_id: str) -> AccountStatus | None:
        self._enter("get_account_status")
        return self._accounts.get(actor_id)

    def update_account_status(
        self,
        actor_id: str,
        *,
        expected_status: AccountStatus,
        new_status: AccountStatus,
    ) -> AccountStatus | None:
        self._enter("update_account_status")
        if self._accounts.get(actor_id) != expected_status:
            return None
        self._accounts[actor_id] = new_status
        return new_status

    # ---------------------------------------------------------------------
    # Audit log
    # ---------------------------------------------------------------------

    def append_audit_entry(self, entry: AuditLogEntry) -> AuditLogEntry:
        self._enter("append_audit_entry")
        self._audit.append(entry)
        return entry

    def list_audit_entries(
        self,
        *,
        entity_type: EntityType | None = None,
        entity_id: str | None = None,
    ) -> list[AuditLogEntry]:
        self._enter("list_audit_entries")
        selected = [
            e
            for e in self._audit
            if (entity_type is None or e.entity_type == entity_type)
            and (entity_id is None or e.entity_id == entity_id)
        ]
        return list(reversed(selected))
