"""Exchange order lifecycle.

Drives a bilateral order (requester, provider) through
pending -> accepted -> completed, or to rejected / cancelled, and keeps the
referenced item status consistent through the batch transition table.

Write ordering: the order row is written first and the item row second. The
store only guarantees single-row atomicity, so a crash between the two writes
leaves an order that is ahead of its item (e.g. accepted while the item is
still available). Every operation is idempotent under retry and re-drives the
item half when it finds such an order.
"""

# pylint: disable=too-many-arguments
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Callable

from roa_exchange.core.domain.batch_state_machine import BatchStatusGuard
from roa_exchange.core.domain.errors import (
    ExchangeError,
    ItemUnavailable,
    NotAuthorized,
    OrderAlreadyResolved,
)
from roa_exchange.core.domain.order_state_machine import is_valid_transition
from roa_exchange.core.domain.reject_reasons import RejectReason
from roa_exchange.core.domain.types import ExchangeOrder, utc_now
from roa_exchange.core.events.events import (
    ItemStatusTransitionEvent,
    OperationRejectedEvent,
    OrderStatusTransitionEvent,
)
from roa_exchange.core.exchange.records import require_item, require_order, stale_or_invalid

if TYPE_CHECKING:
    from roa_exchange.core.domain.types import Actor, BatchItem, Clock, OrderStatus
    from roa_exchange.core.events.event_bus import EventBus
    from roa_exchange.core.ports.exchange_store import ExchangeStore

LOGGER = logging.getLogger(__name__)


class ExchangeOrderLifecycle:
    """State machine service for exchange orders."""

    def __init__(
        self,
        store: ExchangeStore,
        event_bus: EventBus,
        *,
        guard: BatchStatusGuard | None = None,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._event_bus = event_bus
        self._guard = guard if guard is not None else BatchStatusGuard()
        self._clock = clock
        self._new_id = id_factory if id_factory is not None else (lambda: uuid.uuid4().hex)

    # ---------------------------------------------------------------------
    # Operations
    # ---------------------------------------------------------------------

    def request_exchange(self, item: BatchItem, requester: Actor) -> ExchangeOrder:
        """Open a pending order on an available item.

        The item is not reserved here; reservation happens on acceptance.
        """
        fresh = require_item(self._store, item.kind, item.item_id)

        if requester.actor_id == fresh.owner_id:
            raise self._rejected(
                "request",
                requester,
                fresh.item_id,
                NotAuthorized("cannot request an exchange for an own item", reason=RejectReason.OWN_ITEM),
            )

        if fresh.status != "available":
            raise self._rejected(
                "request",
                requester,
                fresh.item_id,
                stale_or_invalid(
                    subject=f"{fresh.kind} {fresh.item_id}",
                    seen_status=item.status,
                    fresh_status=fresh.status,
                    target="reserved",
                    conflict_cls=ItemUnavailable,
                ),
            )

        now = self._clock()
        order = ExchangeOrder(
            order_id=self._new_id(),
            item_id=fresh.item_id,
            item_kind=fresh.kind,
            requester_id=requester.actor_id,
            provider_id=fresh.owner_id,
            status="pending",
            created_at=now,
            updated_at=now,
        )
        stored = self._store.insert_order(order)

        self._event_bus.emit(
            OrderStatusTransitionEvent(
                at=now,
                order_id=stored.order_id,
                item_id=stored.item_id,
                prev_status=None,
                next_status="pending",
                actor_id=requester.actor_id,
            )
        )
        return stored

    def accept(self, order: ExchangeOrder, actor: Actor) -> ExchangeOrder:
        """Provider accepts a pending order and reserves the item.

        Fails with ItemUnavailable when the item can no longer be reserved
        (order stays pending) and with OrderAlreadyResolved when the order
        moved on since the caller read it.
        """
        fresh = require_order(self._store, order.order_id)
        self._require_provider("accept", fresh, actor)

        if fresh.status == "accepted":
            return self._redrive_reservation(fresh, actor)

        self._require_transition("accept", order, fresh, "accepted", actor)

        # Re-read the item immediately before committing.
        item = require_item(self._store, fresh.item_kind, fresh.item_id)
        if not self._guard.is_transition_allowed(item.status, "reserved"):
            raise self._rejected(
                "accept",
                actor,
                fresh.order_id,
                ItemUnavailable(
                    f"{item.kind} {item.item_id} is {item.status!r}",
                    observed_status=item.status,
                ),
            )

        accepted = self._write_order(fresh, "accepted", actor)
        if accepted is None:
            latest = require_order(self._store, fresh.order_id)
            if latest.status == "accepted":
                return self._redrive_reservation(latest, actor)
            raise self._order_moved("accept", actor, latest)

        return self._reserve_item(accepted, item, actor)

    def reject(self, order: ExchangeOrder, actor: Actor) -> ExchangeOrder:
        """Provider declines a pending order. The item is untouched."""
        fresh = require_order(self._store, order.order_id)
        self._require_provider("reject", fresh, actor)

        if fresh.status == "rejected":
            return fresh

        self._require_transition("reject", order, fresh, "rejected", actor)

        rejected = self._write_order(fresh, "rejected", actor)
        if rejected is None:
            latest = require_order(self._store, fresh.order_id)
            if latest.status == "rejected":
                return latest
            raise self._order_moved("reject", actor, latest)
        return rejected

    def cancel(self, order: ExchangeOrder, actor: Actor) -> ExchangeOrder:
        """Either participant cancels a pending or accepted order.

        Cancelling an accepted order releases the item back to available.
        """
        fresh = require_order(self._store, order.order_id)
        if not fresh.is_participant(actor.actor_id):
            raise self._rejected(
                "cancel",
                actor,
                fresh.order_id,
                NotAuthorized(f"{actor.actor_id} is not a participant of order {fresh.order_id}"),
            )

        if fresh.status == "cancelled":
            self._release_item(fresh, actor)
            return fresh

        self._require_transition("cancel", order, fresh, "cancelled", actor)

        cancelled = self._write_order(fresh, "cancelled", actor)
        if cancelled is None:
            latest = require_order(self._store, fresh.order_id)
            if latest.status != "cancelled":
                raise self._order_moved("cancel", actor, latest)
            cancelled = latest

        self._release_item(cancelled, actor)
        return cancelled

    def complete(self, order: ExchangeOrder, actor: Actor) -> ExchangeOrder:
        """Provider marks an accepted order completed; the item becomes collected (irreversible).

        An accepted order whose item is still available gets its reservation
        re-driven first. If the item cannot be reserved any more the order goes
        back to pending and ItemUnavailable is raised.
        """
        fresh = require_order(self._store, order.order_id)
        self._require_provider("complete", fresh, actor)

        if fresh.status == "completed":
            self._collect_item(fresh, actor)
            return fresh

        self._require_transition("complete", order, fresh, "completed", actor)

        # An acceptance whose item write never landed is finished first.
        self._redrive_reservation(fresh, actor, operation="complete")

        completed = self._write_order(fresh, "completed", actor)
        if completed is None:
            latest = require_order(self._store, fresh.order_id)
            if latest.status != "completed":
                raise self._order_moved("complete", actor, latest)
            completed = latest

        self._collect_item(completed, actor)
        return completed

    # ---------------------------------------------------------------------
    # Item half
    # ---------------------------------------------------------------------

    def _reserve_item(
        self,
        order: ExchangeOrder,
        item: BatchItem,
        actor: Actor,
        operation: str = "accept",
    ) -> ExchangeOrder:
        reserved = self._store.update_item_status(
            item.kind,
            item.item_id,
            expected_status=item.status,
            expected_order_ref=item.order_ref,
            new_status="reserved",
            new_order_ref=order.order_id,
        )
        if reserved is None:
            # Another order reserved the item between our read and our write.
            self._revert_acceptance(order, actor)
            raise self._rejected(
                operation,
                actor,
                order.order_id,
                ItemUnavailable(f"{item.kind} {item.item_id} was reserved concurrently"),
            )

        self._emit_item(reserved, item.status, actor, order.order_id)
        return order

    def _redrive_reservation(self, order: ExchangeOrder, actor: Actor, operation: str = "accept") -> ExchangeOrder:
        item = require_item(self._store, order.item_kind, order.item_id)
        if item.is_held_by(order.order_id):
            return order

        if self._guard.is_transition_allowed(item.status, "reserved"):
            LOGGER.info(
                "Re-driving item reservation for accepted order",
                extra={"order_id": order.order_id, "item_id": item.item_id},
            )
            return self._reserve_item(order, item, actor, operation)

        self._revert_acceptance(order, actor)
        raise self._rejected(
            operation,
            actor,
            order.order_id,
            ItemUnavailable(
                f"{item.kind} {item.item_id} is {item.status!r}",
                observed_status=item.status,
            ),
        )

    def _revert_acceptance(self, order: ExchangeOrder, actor: Actor) -> None:
        """Compensate an acceptance whose reservation failed (order back to pending)."""
        now = self._clock()
        reverted = self._store.update_order_status(
            order.order_id,
            expected_status="accepted",
            new_status="pending",
            updated_at=now,
        )
        LOGGER.warning(
            "Reverted acceptance after failed reservation",
            extra={"order_id": order.order_id, "reverted": reverted is not None},
        )
        if reverted is not None:
            self._event_bus.emit(
                OrderStatusTransitionEvent(
                    at=now,
                    order_id=order.order_id,
                    item_id=order.item_id,
                    prev_status="accepted",
                    next_status="pending",
                    actor_id=actor.actor_id,
                )
            )

    def _release_item(self, order: ExchangeOrder, actor: Actor) -> None:
        item = require_item(self._store, order.item_kind, order.item_id)
        if not item.is_held_by(order.order_id):
            return

        self._guard.check(item.status, "available")
        released = self._store.update_item_status(
            item.kind,
            item.item_id,
            expected_status="reserved",
            expected_order_ref=order.order_id,
            new_status="available",
            new_order_ref=None,
        )
        if released is None:
            LOGGER.warning(
                "Item changed while releasing reservation",
                extra={"order_id": order.order_id, "item_id": item.item_id},
            )
            return
        self._emit_item(released, "reserved", actor, order.order_id)

    def _collect_item(self, order: ExchangeOrder, actor: Actor) -> None:
        item = require_item(self._store, order.item_kind, order.item_id)
        if not item.is_held_by(order.order_id):
            return

        self._guard.check(item.status, "collected")
        collected = self._store.update_item_status(
            item.kind,
            item.item_id,
            expected_status="reserved",
            expected_order_ref=order.order_id,
            new_status="collected",
            new_order_ref=order.order_id,
        )
        if collected is None:
            LOGGER.warning(
                "Item changed while marking it collected",
                extra={"order_id": order.order_id, "item_id": item.item_id},
            )
            return
        self._emit_item(collected, "reserved", actor, order.order_id)

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    def _write_order(
        self,
        order: ExchangeOrder,
        new_status: OrderStatus,
        actor: Actor,
    ) -> ExchangeOrder | None:
        now = self._clock()
        updated = self._store.update_order_status(
            order.order_id,
            expected_status=order.status,
            new_status=new_status,
            updated_at=now,
        )
        if updated is not None:
            self._event_bus.emit(
                OrderStatusTransitionEvent(
                    at=now,
                    order_id=order.order_id,
                    item_id=order.item_id,
                    prev_status=order.status,
                    next_status=new_status,
                    actor_id=actor.actor_id,
                )
            )
        return updated

    def _emit_item(self, item: BatchItem, prev_status: str, actor: Actor, order_id: str) -> None:
        self._event_bus.emit(
            ItemStatusTransitionEvent(
                at=self._clock(),
                item_kind=item.kind,
                item_id=item.item_id,
                prev_status=prev_status,
                next_status=item.status,
                actor_id=actor.actor_id,
                order_id=order_id,
            )
        )

    def _require_provider(self, operation: str, order: ExchangeOrder, actor: Actor) -> None:
        if actor.actor_id != order.provider_id:
            raise self._rejected(
                operation,
                actor,
                order.order_id,
                NotAuthorized(f"only the provider of order {order.order_id} may {operation} it"),
            )

    def _require_transition(
        self,
        operation: str,
        seen: ExchangeOrder,
        fresh: ExchangeOrder,
        target: OrderStatus,
        actor: Actor,
    ) -> None:
        if is_valid_transition(fresh.status, target):
            return
        raise self._rejected(
            operation,
            actor,
            fresh.order_id,
            stale_or_invalid(
                subject=f"order {fresh.order_id}",
                seen_status=seen.status,
                fresh_status=fresh.status,
                target=target,
                conflict_cls=OrderAlreadyResolved,
            ),
        )

    def _order_moved(self, operation: str, actor: Actor, latest: ExchangeOrder) -> ExchangeError:
        return self._rejected(
            operation,
            actor,
            latest.order_id,
            OrderAlreadyResolved(
                f"order {latest.order_id} is now {latest.status!r}",
                observed_status=latest.status,
            ),
        )

    def _rejected(
        self,
        operation: str,
        actor: Actor | None,
        subject_id: str | None,
        error: ExchangeError,
    ) -> ExchangeError:
        self._event_bus.emit(
            OperationRejectedEvent(
                at=self._clock(),
                operation=operation,
                actor_id=None if actor is None else actor.actor_id,
                reason=error.reason,
                subject_id=subject_id,
            )
        )
        return error
