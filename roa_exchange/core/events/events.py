"""
Domain event models.

These events represent immutable facts observed while driving items, orders,
ratings and overrides. They are consumed by loggers, recorders, and metrics
sinks; nothing in the core reads them back.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class ItemStatusTransitionEvent:
    at: datetime
    item_kind: str
    item_id: str
    prev_status: str
    next_status: str
    actor_id: str
    order_id: str | None


@dataclass(slots=True)
class OrderStatusTransitionEvent:
    at: datetime
    order_id: str
    item_id: str
    prev_status: str | None
    next_status: str
    actor_id: str


@dataclass(slots=True)
class RatingSubmittedEvent:
    at: datetime
    rating_id: str
    order_id: str
    rater_id: str
    rated_id: str
    score: int


@dataclass(slots=True)
class RatingFlagEvent:
    at: datetime
    rating_id: str
    actor_id: str
    flag: str  # reported | withdrawn


@dataclass(slots=True)
class AuditOverrideEvent:
    at: datetime
    entry_id: str
    entity_type: str
    entity_id: str
    actor_id: str
    previous_status: str
    new_status: str


@dataclass(slots=True)
class OperationRejectedEvent:
    at: datetime
    operation: str
    actor_id: str | None
    reason: str
    subject_id: str | None
