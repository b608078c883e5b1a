"""Core record models for the exchange lifecycle.

This module defines the canonical Pydantic models exchanged with the
persistence collaborator: tradable items, exchange orders, ratings and audit
log entries. The JSON Schemas under ``core/schemas`` mirror these models and
are treated as the wire contract with the hosted store.
"""

# pylint: disable=missing-class-docstring
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Status vocabularies
# ---------------------------------------------------------------------------

BatchStatus = Literal["available", "reserved", "collected", "cancelled"]
OrderStatus = Literal["pending", "accepted", "rejected", "cancelled", "completed"]
AccountStatus = Literal["active", "suspended"]

ItemKind = Literal["batch", "product"]
EntityType = Literal["batch", "product", "user"]

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock used by the services."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


class Actor(BaseModel):
    """The acting user of one operation.

    ``is_admin`` is a capability resolved once per operation by the identity
    collaborator and injected; services never look it up themselves.
    """

    actor_id: str = Field(..., min_length=1)
    is_admin: bool = False

    model_config = ConfigDict(extra="forbid", frozen=True)


# ---------------------------------------------------------------------------
# Tradable items
# ---------------------------------------------------------------------------


class BatchItem(BaseModel):
    """A generator-owned tradable unit (a batch or a product).

    Notes:
    - order_ref points at the order holding the item while ``reserved``, the
      order that completed it once ``collected``, and otherwise at the most
      recent associated order (or None).
    - title is descriptive metadata and is never interpreted by the core.
    """

    item_id: str = Field(..., min_length=1)
    kind: ItemKind = "batch"
    owner_id: str = Field(..., min_length=1)
    status: BatchStatus = "available"
    order_ref: str | None = Field(default=None, min_length=1)
    title: str | None = None

    model_config = ConfigDict(extra="forbid")

    def is_held_by(self, order_id: str) -> bool:
        return self.status == "reserved" and self.order_ref == order_id


# ---------------------------------------------------------------------------
# Exchange orders
# ---------------------------------------------------------------------------


class ExchangeOrder(BaseModel):
    """A bilateral proposal to exchange one item.

    The provider is always the item owner at request time.
    """

    order_id: str = Field(..., min_length=1)
    item_id: str = Field(..., min_length=1)
    item_kind: ItemKind = "batch"

    requester_id: str = Field(..., min_length=1)
    provider_id: str = Field(..., min_length=1)

    status: OrderStatus = "pending"

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def validate_distinct_parties(self) -> ExchangeOrder:
        if self.requester_id == self.provider_id:
            raise ValueError("requester_id and provider_id must differ")
        return self

    def is_participant(self, actor_id: str) -> bool:
        return actor_id in (self.requester_id, self.provider_id)


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------


class Rating(BaseModel):
    rating_id: str = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1)

    rater_id: str = Field(..., min_length=1)
    rated_id: str = Field(..., min_length=1)

    score: int = Field(..., ge=1)
    comment: str | None = None

    # Set when the rated item was a product; mirrors the order's item_id.
    product_id: str | None = Field(default=None, min_length=1)

    reported: bool = False
    withdrawn: bool = False

    created_at: datetime

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def validate_not_self_rating(self) -> Rating:
        if self.rater_id == self.rated_id:
            raise ValueError("rater_id and rated_id must differ")
        return self

    @property
    def is_live(self) -> bool:
        """A live rating blocks another rating by the same rater on the same order."""
        return not self.withdrawn


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------


class AuditLogEntry(BaseModel):
    """Append-only record of one administrative status override."""

    entry_id: str = Field(..., min_length=1)

    entity_type: EntityType
    entity_id: str = Field(..., min_length=1)

    actor_id: str = Field(..., min_length=1)

    previous_status: str = Field(..., min_length=1)
    new_status: str = Field(..., min_length=1)
    note: str | None = None

    created_at: datetime

    model_config = ConfigDict(extra="forbid", frozen=True)
