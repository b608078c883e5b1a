"""Owner-driven listing changes on a tradable item.

Reservation and collection are driven by orders; the only changes an owner
makes directly are taking an item off the market and putting a cancelled
item back on it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from roa_exchange.core.domain.batch_state_machine import BatchStatusGuard
from roa_exchange.core.domain.errors import AlreadyResolved, ExchangeError, InvalidTransition, NotAuthorized
from roa_exchange.core.domain.reject_reasons import RejectReason
from roa_exchange.core.domain.types import utc_now
from roa_exchange.core.events.events import ItemStatusTransitionEvent, OperationRejectedEvent
from roa_exchange.core.exchange.records import require_item, stale_or_invalid

if TYPE_CHECKING:
    from roa_exchange.core.config.exchange_config import ReactivationPolicy
    from roa_exchange.core.domain.types import Actor, BatchItem, BatchStatus, Clock
    from roa_exchange.core.events.event_bus import EventBus
    from roa_exchange.core.ports.exchange_store import ExchangeStore


class ItemListing:
    def __init__(
        self,
        store: ExchangeStore,
        event_bus: EventBus,
        reactivation: ReactivationPolicy,
        *,
        guard: BatchStatusGuard | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._event_bus = event_bus
        self._reactivation = reactivation
        self._guard = guard if guard is not None else BatchStatusGuard()
        self._clock = clock

    def allowed_next_statuses(self, item: BatchItem) -> frozenset[str]:
        """Statuses the UI may offer for this item."""
        return self._guard.allowed_next_statuses(item.status)

    def withdraw(self, item: BatchItem, actor: Actor) -> BatchItem:
        """Owner takes an item off the market (-> cancelled)."""
        fresh = require_item(self._store, item.kind, item.item_id)
        if actor.actor_id != fresh.owner_id:
            raise self._rejected(
                "withdraw", actor, fresh.item_id,
                NotAuthorized(f"only the owner may withdraw {fresh.kind} {fresh.item_id}"),
            )

        if fresh.status == "cancelled":
            return fresh

        if fresh.status == "reserved" and fresh.order_ref is not None:
            raise self._rejected(
                "withdraw", actor, fresh.item_id,
                InvalidTransition(
                    f"{fresh.kind} {fresh.item_id} is held by order {fresh.order_ref}",
                    current=fresh.status,
                    target="cancelled",
                    reason=RejectReason.ITEM_HELD_BY_ORDER,
                ),
            )

        return self._transition("withdraw", item, fresh, "cancelled", fresh.order_ref, actor)

    def reactivate(self, item: BatchItem, actor: Actor) -> BatchItem:
        """Put a cancelled item back on the market (-> available).

        Who may do this and whether the previous order reference survives is
        decided by the configured ReactivationPolicy.
        """
        fresh = require_item(self._store, item.kind, item.item_id)
        is_owner = actor.actor_id == fresh.owner_id
        if not self._reactivation.permits(is_owner=is_owner, is_admin=actor.is_admin):
            raise self._rejected(
                "reactivate", actor, fresh.item_id,
                NotAuthorized(
                    f"reactivation is restricted to {self._reactivation.allowed_by}",
                    reason=RejectReason.NOT_ADMIN if self._reactivation.allowed_by == "admin" else None,
                ),
            )

        if fresh.status == "available":
            return fresh

        if fresh.status != "cancelled":
            # reserved -> available is a valid table entry but belongs to order cancellation
            raise self._rejected(
                "reactivate", actor, fresh.item_id,
                stale_or_invalid(
                    subject=f"{fresh.kind} {fresh.item_id}",
                    seen_status=item.status,
                    fresh_status=fresh.status,
                    target="available",
                ),
            )

        order_ref = None if self._reactivation.clear_order_ref else fresh.order_ref
        return self._transition("reactivate", item, fresh, "available", order_ref, actor)

    def _transition(
        self,
        operation: str,
        seen: BatchItem,
        fresh: BatchItem,
        target: BatchStatus,
        order_ref: str | None,
        actor: Actor,
    ) -> BatchItem:
        if not self._guard.is_transition_allowed(fresh.status, target):
            raise self._rejected(
                operation, actor, fresh.item_id,
                stale_or_invalid(
                    subject=f"{fresh.kind} {fresh.item_id}",
                    seen_status=seen.status,
                    fresh_status=fresh.status,
                    target=target,
                ),
            )

        updated = self._store.update_item_status(
            fresh.kind,
            fresh.item_id,
            expected_status=fresh.status,
            expected_order_ref=fresh.order_ref,
            new_status=target,
            new_order_ref=order_ref,
        )
        if updated is None:
            raise self._rejected(
                operation, actor, fresh.item_id,
                AlreadyResolved(f"{fresh.kind} {fresh.item_id} changed concurrently"),
            )

        self._event_bus.emit(
            ItemStatusTransitionEvent(
                at=self._clock(),
                item_kind=updated.kind,
                item_id=updated.item_id,
                prev_status=fresh.status,
                next_status=updated.status,
                actor_id=actor.actor_id,
                order_id=updated.order_ref,
            )
        )
        return updated

    def _rejected(self, operation: str, actor: Actor, subject_id: str, error: ExchangeError) -> ExchangeError:
        self._event_bus.emit(
            OperationRejectedEvent(
                at=self._clock(),
                operation=operation,
                actor_id=actor.actor_id,
                reason=error.reason,
                subject_id=subject_id,
            )
        )
        return error
