"""Persistence collaborator protocol.

This module defines the boundary to the hosted relational store. The core
never holds records between operations: every decision re-reads the row it
is about to change, and every status write is conditional on the expected
previous value.

Contract shared by all methods:
- Reads return the current row, or None when the row does not exist.
- Conditional writes return the updated row, or None when the expected
  previous value no longer matches (the write was not applied).
- Any network / authorization failure raises StoreUnavailable.
- A single conditional write is atomic per row. There is no cross-row
  transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

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


class ExchangeStore(Protocol):
    """Store boundary used by all four core components."""

    # ---- Items ----
    def get_item(self, kind: ItemKind, item_id: str) -> BatchItem | None:
        """Return the current item row."""

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
        """Set status/order_ref if both still match the expected values."""

    # ---- Orders ----
    def insert_order(self, order: ExchangeOrder) -> ExchangeOrder:
        """Insert a new order row."""

    def get_order(self, order_id: str) -> ExchangeOrder | None:
        """Return the current order row."""

    def update_order_status(
        self,
        order_id: str,
        *,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        updated_at: datetime,
    ) -> ExchangeOrder | None:
        """Set the order status if it still equals expected_status."""

    # ---- Ratings ----
    def list_ratings_for_order(self, order_id: str) -> list[Rating]:
        """Return all ratings of an order, withdrawn ones included."""

    def list_ratings_for_actor(self, rated_id: str) -> list[Rating]:
        """Return all ratings received by an actor."""

    def get_rating(self, rating_id: str) -> Rating | None:
        """Return one rating row."""

    def insert_rating(self, rating: Rating) -> Rating | None:
        """Insert a rating; None if a live rating exists for (order_id, rater_id)."""

    def update_rating_flags(
        self,
        rating_id: str,
        *,
        reported: bool | None = None,
        withdrawn: bool | None = None,
    ) -> Rating | None:
        """Set the given moderation flags; None if the rating does not exist."""

    # ---- Accounts ----
    def get_account_status(self, actor_id: str) -> AccountStatus | None:
        """Return the account status of an actor."""

    def update_account_status(
        self,
        actor_id: str,
        *,
        expected_status: AccountStatus,
        new_status: AccountStatus,
    ) -> AccountStatus | None:
        """Set the account status if it still equals expected_status."""

    # ---- Audit log ----
    def append_audit_entry(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Append one audit entry. Entries are never updated or deleted."""

    def list_audit_entries(
        self,
        *,
        entity_type: EntityType | None = None,
        entity_id: str | None = None,
    ) -> list[AuditLogEntry]:
        """Return audit entries, newest first, optionally filtered."""
