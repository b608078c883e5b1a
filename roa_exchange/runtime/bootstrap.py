"""Wiring of the exchange core for a hosting application.

One ExchangeCore == one store + one identity collaborator + one event bus.
The hosting application owns transport, sessions and rendering; it calls the
facade methods below with records it previously read and presents any
ExchangeError through ``user_message``.
"""

# pylint: disable=too-many-instance-attributes
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from roa_exchange.core.admin.audit_trail import AdminAuditTrail
from roa_exchange.core.domain.batch_state_machine import BatchStatusGuard
from roa_exchange.core.domain.types import utc_now
from roa_exchange.core.events.event_bus import EventBus
from roa_exchange.core.events.sinks.file_recorder import FileRecorderSink
from roa_exchange.core.events.sinks.prometheus_sink import PrometheusEventSink
from roa_exchange.core.events.sinks.sink_logging import LoggingEventSink
from roa_exchange.core.exchange.listing import ItemListing
from roa_exchange.core.exchange.order_lifecycle import ExchangeOrderLifecycle
from roa_exchange.core.ports.identity import resolve_actor
from roa_exchange.core.ratings.rating_eligibility import RatingEligibilityService

if TYPE_CHECKING:
    from roa_exchange.core.config.exchange_config import ExchangeConfig
    from roa_exchange.core.domain.types import (
        Actor,
        AuditLogEntry,
        BatchItem,
        Clock,
        EntityType,
        ExchangeOrder,
        Rating,
    )
    from roa_exchange.core.ports.exchange_store import ExchangeStore
    from roa_exchange.core.ports.identity import IdentityProvider
    from roa_exchange.core.ratings.rating_eligibility import ReputationSummary

LOGGER = logging.getLogger(__name__)


def build_event_bus(
    config: ExchangeConfig,
    *,
    metrics: PrometheusEventSink | None = None,
) -> EventBus:
    """Logging sink always; JSON lines journal and metrics when configured."""
    logger = logging.getLogger("bus")

    best_effort: list = []
    if config.event_log_path is not None:
        best_effort.append(FileRecorderSink(Path(config.event_log_path)))
    if metrics is not None:
        best_effort.append(metrics)

    return EventBus(sinks=[LoggingEventSink(logger)], best_effort_sinks=best_effort)


@dataclass(slots=True)
class ExchangeCore:
    """Facade over the four core services sharing one store and one bus.

    Facade methods resolve the acting user once per call through the identity
    collaborator. The services stay available for callers that already hold
    an ``Actor``.
    """

    config: ExchangeConfig
    store: ExchangeStore
    identity: IdentityProvider
    event_bus: EventBus

    lifecycle: ExchangeOrderLifecycle
    listing: ItemListing
    ratings: RatingEligibilityService
    audit_trail: AdminAuditTrail

    metrics: PrometheusEventSink | None = field(default=None)

    def current_actor(self) -> Actor:
        return resolve_actor(self.identity)

    # --- orders -----------------------------------------------------------

    def request_exchange(self, item: BatchItem) -> ExchangeOrder:
        return self.lifecycle.request_exchange(item, self.current_actor())

    def accept(self, order: ExchangeOrder) -> ExchangeOrder:
        return self.lifecycle.accept(order, self.current_actor())

    def reject(self, order: ExchangeOrder) -> ExchangeOrder:
        return self.lifecycle.reject(order, self.current_actor())

    def cancel(self, order: ExchangeOrder) -> ExchangeOrder:
        return self.lifecycle.cancel(order, self.current_actor())

    def complete(self, order: ExchangeOrder) -> ExchangeOrder:
        return self.lifecycle.complete(order, self.current_actor())

    # --- listings ---------------------------------------------------------

    def withdraw_item(self, item: BatchItem) -> BatchItem:
        return self.listing.withdraw(item, self.current_actor())

    def reactivate_item(self, item: BatchItem) -> BatchItem:
        return self.listing.reactivate(item, self.current_actor())

    def allowed_next_statuses(self, item: BatchItem) -> frozenset[str]:
        return self.listing.allowed_next_statuses(item)

    # --- ratings ----------------------------------------------------------

    def can_rate(self, order: ExchangeOrder) -> bool:
        return self.ratings.can_rate_order(order.order_id, self.current_actor())

    def submit_rating(self, order: ExchangeOrder, score: int, comment: str | None = None) -> Rating:
        return self.ratings.submit_rating(order, self.current_actor(), score=score, comment=comment)

    def withdraw_rating(self, rating_id: str) -> Rating:
        return self.ratings.withdraw_rating(rating_id, self.current_actor())

    def report_rating(self, rating_id: str) -> Rating:
        return self.ratings.report_rating(rating_id, self.current_actor())

    def counterpart_of(self, order: ExchangeOrder) -> str:
        return self.ratings.counterpart_of(order, self.current_actor())

    def reputation_of(self, actor_id: str) -> ReputationSummary:
        return self.ratings.reputation_of(actor_id)

    # --- admin ------------------------------------------------------------

    def override_status(
        self,
        entity_type: EntityType,
        entity_id: str,
        previous_status: str,
        new_status: str,
        note: str | None = None,
    ) -> AuditLogEntry:
        return self.audit_trail.record_override(
            entity_type,
            entity_id,
            self.current_actor(),
            previous_status,
            new_status,
            note,
        )

    def complete_pending_audit(self, entry: AuditLogEntry) -> AuditLogEntry:
        return self.audit_trail.complete_pending_audit(entry)

    def audit_entries(
        self,
        entity_type: EntityType | None = None,
        entity_id: str | None = None,
    ) -> list[AuditLogEntry]:
        return self.audit_trail.entries(entity_type, entity_id)

    def close(self) -> None:
        """Flush sinks (journal file, metrics push)."""
        self.event_bus.close()


def build_exchange_core(
    config: ExchangeConfig,
    store: ExchangeStore,
    identity: IdentityProvider,
    *,
    event_bus: EventBus | None = None,
    with_metrics: bool = True,
    clock: Clock = utc_now,
    id_factory: Callable[[], str] | None = None,
) -> ExchangeCore:
    metrics = PrometheusEventSink(job=config.metrics_job) if with_metrics and event_bus is None else None
    bus = event_bus if event_bus is not None else build_event_bus(config, metrics=metrics)
    guard = BatchStatusGuard()

    LOGGER.info(
        "Exchange core configured",
        extra={
            "reactivation_allowed_by": config.reactivation.allowed_by,
            "reactivation_clears_order_ref": config.reactivation.clear_order_ref,
            "duplicate_check": config.ratings.duplicate_check,
            "event_log_path": config.event_log_path,
            "metrics_push_enabled": metrics is not None and metrics.is_push_enabled(),
        },
    )

    return ExchangeCore(
        config=config,
        store=store,
        identity=identity,
        event_bus=bus,
        lifecycle=ExchangeOrderLifecycle(store, bus, guard=guard, clock=clock, id_factory=id_factory),
        listing=ItemListing(store, bus, config.reactivation, guard=guard, clock=clock),
        ratings=RatingEligibilityService(
            store, bus, policy=config.ratings, clock=clock, id_factory=id_factory
        ),
        audit_trail=AdminAuditTrail(store, bus, guard=guard, clock=clock, id_factory=id_factory),
        metrics=metrics,
    )
