"""Prometheus counters fed from domain events."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from prometheus_client import CollectorRegistry, Counter, push_to_gateway

from roa_exchange.core.events.events import (
    AuditOverrideEvent,
    ItemStatusTransitionEvent,
    OperationRejectedEvent,
    OrderStatusTransitionEvent,
    RatingFlagEvent,
    RatingSubmittedEvent,
)

LOGGER = logging.getLogger(__name__)


class PrometheusEventSink:
    """Counts domain events into a private CollectorRegistry.

    Optional environment:
    - PROMETHEUS_PUSHGATEWAY_URL: URL to a Pushgateway. When unset, counters
      are only kept in ``registry`` (e.g. for an exporter endpoint owned by
      the surrounding application).
    - PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON: JSON object used as grouping key.

    Pushing is best-effort: a failed push is logged and never surfaces as an
    exchange error.
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        *,
        job: str = "roa-exchange",
    ) -> None:
        self._job = job
        self.registry = registry if registry is not None else CollectorRegistry()
        self._pushgateway_url = os.environ.get("PROMETHEUS_PUSHGATEWAY_URL")
        self._grouping_key = self._load_grouping_key()

        self._item_transitions = Counter(
            "roa_exchange_item_transitions",
            "Item status transitions",
            labelnames=["kind", "prev_status", "next_status"],
            registry=self.registry,
        )
        self._order_transitions = Counter(
            "roa_exchange_order_transitions",
            "Exchange order status transitions",
            labelnames=["prev_status", "next_status"],
            registry=self.registry,
        )
        self._ratings = Counter(
            "roa_exchange_ratings",
            "Submitted ratings",
            labelnames=["score"],
            registry=self.registry,
        )
        self._rating_flags = Counter(
            "roa_exchange_rating_flags",
            "Ratings reported or withdrawn",
            labelnames=["flag"],
            registry=self.registry,
        )
        self._overrides = Counter(
            "roa_exchange_admin_overrides",
            "Audited administrative overrides",
            labelnames=["entity_type"],
            registry=self.registry,
        )
        self._rejections = Counter(
            "roa_exchange_rejections",
            "Rejected operations by reason",
            labelnames=["operation", "reason"],
            registry=self.registry,
        )

    def is_push_enabled(self) -> bool:
        return self._pushgateway_url is not None

    @staticmethod
    def _load_grouping_key() -> dict[str, str]:
        raw = os.environ.get("PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON")
        if not raw:
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            LOGGER.warning(
                "Invalid PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON; ignoring"
            )
            return {}

        if not isinstance(data, dict):
            return {}

        return {
            key: value
            for key, value in data.items()
            if isinstance(key, str) and isinstance(value, str)
        }

    def on_event(self, event: Any) -> None:
        if isinstance(event, ItemStatusTransitionEvent):
            self._item_transitions.labels(
                kind=event.item_kind,
                prev_status=event.prev_status,
                next_status=event.next_status,
            ).inc()
        elif isinstance(event, OrderStatusTransitionEvent):
            self._order_transitions.labels(
                prev_status=event.prev_status or "none",
                next_status=event.next_status,
            ).inc()
        elif isinstance(event, RatingSubmittedEvent):
            self._ratings.labels(score=str(event.score)).inc()
        elif isinstance(event, RatingFlagEvent):
            self._rating_flags.labels(flag=event.flag).inc()
        elif isinstance(event, AuditOverrideEvent):
            self._overrides.labels(entity_type=event.entity_type).inc()
        elif isinstance(event, OperationRejectedEvent):
            self._rejections.labels(operation=event.operation, reason=event.reason).inc()

    def push_all(self, *, job: str) -> None:
        if not self._pushgateway_url:
            return

        try:
            push_to_gateway(
                gateway=self._pushgateway_url,
                job=job,
                registry=self.registry,
                grouping_key=self._grouping_key,
            )
        except OSError:
            LOGGER.exception("Prometheus push failed", extra={"job": job})
            return

        LOGGER.info(
            "Prometheus metrics pushed",
            extra={"job": job, "grouping_key": self._grouping_key},
        )

    def close(self) -> None:
        self.push_all(job=self._job)
