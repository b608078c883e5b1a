"""Administrative status overrides and their audit trail.

An override is the pair (status write, audit entry). The pair is treated as
one unit: no audit entry is written for a status write that did not happen,
and an audit write failure is reported together with whether the status
change could be compensated.

An override that moves a reserved item also moves the order holding it: a
release cancels the order and clears the item's order reference, a
collection completes it. The order row is written before the item row, as
in the order lifecycle, so a retried override or a retried cancel finishes
the item half.
"""

# pylint: disable=too-many-arguments,too-many-positional-arguments
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Callable

from roa_exchange.core.domain.account_state_machine import (
    ACCOUNT_ALLOWED_TRANSITIONS,
    is_valid_account_transition,
)
from roa_exchange.core.domain.batch_state_machine import (
    BATCH_STATUSES,
    BatchStatusGuard,
    is_terminal_status,
)
from roa_exchange.core.domain.errors import (
    AlreadyResolved,
    ExchangeError,
    InvalidInput,
    InvalidTransition,
    NotAuthorized,
    OverrideFailed,
    RecordNotFound,
    StoreUnavailable,
)
from roa_exchange.core.domain.reject_reasons import RejectReason
from roa_exchange.core.domain.types import AuditLogEntry, utc_now
from roa_exchange.core.events.events import (
    AuditOverrideEvent,
    ItemStatusTransitionEvent,
    OperationRejectedEvent,
    OrderStatusTransitionEvent,
)

if TYPE_CHECKING:
    from roa_exchange.core.domain.types import Actor, BatchItem, Clock, EntityType, ExchangeOrder
    from roa_exchange.core.events.event_bus import EventBus
    from roa_exchange.core.ports.exchange_store import ExchangeStore

LOGGER = logging.getLogger(__name__)

_ITEM_ENTITY_TYPES = frozenset({"batch", "product"})


def _order_ref_after(item: BatchItem, new_status: str) -> str | None:
    # Releasing a reservation clears the reference; every other move keeps it.
    if item.status == "reserved" and new_status in ("available", "cancelled"):
        return None
    return item.order_ref


class AdminAuditTrail:
    """Applies administrative overrides and records one audit entry per override."""

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

    def record_override(
        self,
        entity_type: EntityType,
        entity_id: str,
        actor: Actor,
        previous_status: str,
        new_status: str,
        note: str | None = None,
    ) -> AuditLogEntry:
        """Apply ``previous_status -> new_status`` on an entity and audit it.

        Raises:
            NotAuthorized: actor is not an admin.
            InvalidTransition: the table forbids the change (terminal items included).
            AlreadyResolved: the entity is no longer in ``previous_status``.
            OverrideFailed: the status write or the audit write failed.
        """
        if not actor.is_admin:
            raise self._rejected(
                actor, entity_id,
                NotAuthorized("only administrators may override statuses", reason=RejectReason.NOT_ADMIN),
            )

        self._check_override(actor, entity_type, entity_id, previous_status, new_status)

        item = None
        if entity_type in _ITEM_ENTITY_TYPES:
            item = self._store.get_item(entity_type, entity_id)
            current = None if item is None else item.status
        else:
            current = self._store.get_account_status(entity_id)
        if current is None:
            raise RecordNotFound(f"{entity_type} {entity_id} does not exist")

        if current != previous_status:
            # A terminal current status wins over the stale snapshot.
            self._check_override(actor, entity_type, entity_id, current, new_status)
            raise self._rejected(
                actor, entity_id,
                AlreadyResolved(
                    f"{entity_type} {entity_id} is now {current!r} (expected {previous_status!r})",
                    observed_status=current,
                ),
            )

        try:
            if item is not None and item.status == "reserved":
                self._resolve_holder(actor, item, new_status)
            written = self._write_status(entity_type, entity_id, item, previous_status, new_status)
        except StoreUnavailable as exc:
            raise OverrideFailed(
                f"status write for {entity_type} {entity_id} failed; no audit entry was written",
                stage="status_write",
                cause=exc,
                status_committed=False,
            ) from exc
        if not written:
            raise self._rejected(
                actor, entity_id,
                AlreadyResolved(f"{entity_type} {entity_id} changed concurrently"),
            )

        entry = AuditLogEntry(
            entry_id=self._new_id(),
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor.actor_id,
            previous_status=previous_status,
            new_status=new_status,
            note=note,
            created_at=self._clock(),
        )
        try:
            stored = self._store.append_audit_entry(entry)
        except StoreUnavailable as exc:
            compensated = self._compensate(entity_type, entity_id, item, previous_status, new_status)
            raise OverrideFailed(
                f"audit write for {entity_type} {entity_id} failed"
                + ("; status change was reverted" if compensated else "; status change stands un-audited"),
                stage="audit_write",
                cause=exc,
                status_committed=not compensated,
                pending_entry=None if compensated else entry,
            ) from exc

        self._emit_committed(stored)
        return stored

    def complete_pending_audit(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Append the audit half of an override whose status write already stands."""
        stored = self._store.append_audit_entry(entry)
        self._emit_committed(stored)
        return stored

    def entries(
        self,
        entity_type: EntityType | None = None,
        entity_id: str | None = None,
    ) -> list[AuditLogEntry]:
        return self._store.list_audit_entries(entity_type=entity_type, entity_id=entity_id)

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    def _check_override(
        self,
        actor: Actor,
        entity_type: str,
        entity_id: str,
        previous_status: str,
        new_status: str,
    ) -> None:
        if entity_type in _ITEM_ENTITY_TYPES:
            if previous_status not in BATCH_STATUSES or new_status not in BATCH_STATUSES:
                raise self._rejected(
                    actor, entity_id,
                    InvalidInput(f"unknown {entity_type} status in {previous_status!r} -> {new_status!r}"),
                )
            try:
                self._guard.check(previous_status, new_status)
            except InvalidTransition as exc:
                raise self._rejected(actor, entity_id, exc) from None
            if new_status == "reserved":
                raise self._rejected(
                    actor, entity_id,
                    InvalidTransition(
                        f"{entity_type} {entity_id} can only be reserved by accepting an order",
                        current=previous_status,
                        target=new_status,
                        reason=RejectReason.RESERVATION_NEEDS_ORDER,
                    ),
                )
            return

        if entity_type == "user":
            if previous_status not in ACCOUNT_ALLOWED_TRANSITIONS or new_status not in ACCOUNT_ALLOWED_TRANSITIONS:
                raise self._rejected(
                    actor, entity_id,
                    InvalidInput(f"unknown account status in {previous_status!r} -> {new_status!r}"),
                )
            if not is_valid_account_transition(previous_status, new_status):
                raise self._rejected(
                    actor, entity_id,
                    InvalidTransition(
                        f"account status {previous_status!r} -> {new_status!r} is not allowed",
                        current=previous_status,
                        target=new_status,
                    ),
                )
            return

        raise self._rejected(actor, entity_id, InvalidInput(f"unknown entity type {entity_type!r}"))

    def _write_status(
        self,
        entity_type: str,
        entity_id: str,
        item: BatchItem | None,
        expected: str,
        new: str,
    ) -> bool:
        if item is not None:
            updated = self._store.update_item_status(
                item.kind,
                entity_id,
                expected_status=expected,  # type: ignore[arg-type]
                expected_order_ref=item.order_ref,
                new_status=new,  # type: ignore[arg-type]
                new_order_ref=_order_ref_after(item, new),
            )
            return updated is not None

        account = self._store.update_account_status(
            entity_id,
            expected_status=expected,  # type: ignore[arg-type]
            new_status=new,  # type: ignore[arg-type]
        )
        return account is not None

    def _resolve_holder(self, actor: Actor, item: BatchItem, new_status: str) -> ExchangeOrder | None:
        """Cancel or complete the accepted order holding ``item``.

        Raises AlreadyResolved when the holder already reached the other
        terminal status (a cancelled order cannot be collected, a completed
        one cannot be released).
        """
        if item.order_ref is None:
            return None
        order = self._store.get_order(item.order_ref)
        if order is None:
            return None

        target = "completed" if new_status == "collected" else "cancelled"
        if order.status == "accepted":
            now = self._clock()
            resolved = self._store.update_order_status(
                order.order_id,
                expected_status="accepted",
                new_status=target,
                updated_at=now,
            )
            if resolved is not None:
                LOGGER.info(
                    "Override resolved holding order",
                    extra={"order_id": order.order_id, "item_id": item.item_id, "order_status": target},
                )
                self._event_bus.emit(
                    OrderStatusTransitionEvent(
                        at=now,
                        order_id=order.order_id,
                        item_id=order.item_id,
                        prev_status="accepted",
                        next_status=target,
                        actor_id=actor.actor_id,
                    )
                )
                return resolved
            order = self._store.get_order(order.order_id) or order

        if order.status in ("completed", "cancelled") and order.status != target:
            raise self._rejected(
                actor, item.item_id,
                AlreadyResolved(
                    f"order {order.order_id} holding {item.kind} {item.item_id} is {order.status!r}",
                    observed_status=order.status,
                ),
            )
        return order

    def _compensate(
        self,
        entity_type: str,
        entity_id: str,
        item: BatchItem | None,
        previous: str,
        new: str,
    ) -> bool:
        """Try to restore the row a status write replaced after its audit entry failed.

        Nothing leaves a terminal status, so a change into one stands. A
        restored reservation points at its order again; that order stays
        resolved and a retried override or cancel releases the item.
        """
        if item is not None and is_terminal_status(new):
            return False

        try:
            if item is not None:
                reverted = self._store.update_item_status(
                    item.kind,
                    entity_id,
                    expected_status=new,  # type: ignore[arg-type]
                    expected_order_ref=_order_ref_after(item, new),
                    new_status=previous,  # type: ignore[arg-type]
                    new_order_ref=item.order_ref,
                ) is not None
            else:
                reverted = self._store.update_account_status(
                    entity_id,
                    expected_status=new,  # type: ignore[arg-type]
                    new_status=previous,  # type: ignore[arg-type]
                ) is not None
        except StoreUnavailable:
            LOGGER.exception(
                "Compensating status write failed",
                extra={"entity_type": entity_type, "entity_id": entity_id},
            )
            return False

        LOGGER.warning(
            "Override status write compensated after audit failure",
            extra={"entity_type": entity_type, "entity_id": entity_id, "reverted": reverted},
        )
        return reverted

    def _emit_committed(self, entry: AuditLogEntry) -> None:
        self._event_bus.emit(
            AuditOverrideEvent(
                at=entry.created_at,
                entry_id=entry.entry_id,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                actor_id=entry.actor_id,
                previous_status=entry.previous_status,
                new_status=entry.new_status,
            )
        )
        if entry.entity_type in _ITEM_ENTITY_TYPES:
            self._event_bus.emit(
                ItemStatusTransitionEvent(
                    at=entry.created_at,
                    item_kind=entry.entity_type,
                    item_id=entry.entity_id,
                    prev_status=entry.previous_status,
                    next_status=entry.new_status,
                    actor_id=entry.actor_id,
                    order_id=None,
                )
            )

    def _rejected(self, actor: Actor, entity_id: str, error: ExchangeError) -> ExchangeError:
        self._event_bus.emit(
            OperationRejectedEvent(
                at=self._clock(),
                operation="override",
                actor_id=actor.actor_id,
                reason=error.reason,
                subject_id=entity_id,
            )
        )
        return error
