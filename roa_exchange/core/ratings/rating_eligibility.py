"""Rating eligibility and moderation.

A participant of a completed order may rate the counterpart exactly once per
order. Withdrawing a rating frees the slot; reporting a rating hides it from
reputation without freeing the slot.
"""

# pylint: disable=too-many-arguments
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable

from roa_exchange.core.config.exchange_config import RatingPolicy
from roa_exchange.core.domain.errors import (
    DuplicateRating,
    ExchangeError,
    InvalidInput,
    NotAuthorized,
    NotEligible,
    RecordNotFound,
)
from roa_exchange.core.domain.reject_reasons import RejectReason
from roa_exchange.core.domain.types import Rating, utc_now
from roa_exchange.core.events.events import OperationRejectedEvent, RatingFlagEvent, RatingSubmittedEvent
from roa_exchange.core.exchange.records import require_order

if TYPE_CHECKING:
    from roa_exchange.core.domain.types import Actor, Clock, ExchangeOrder
    from roa_exchange.core.events.event_bus import EventBus
    from roa_exchange.core.ports.exchange_store import ExchangeStore


@dataclass(frozen=True, slots=True)
class ReputationSummary:
    actor_id: str
    average: float
    count: int


class RatingEligibilityService:
    """Gatekeeper for ratings between order participants."""

    def __init__(
        self,
        store: ExchangeStore,
        event_bus: EventBus,
        *,
        policy: RatingPolicy | None = None,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._event_bus = event_bus
        self._policy = policy if policy is not None else RatingPolicy()
        self._clock = clock
        self._new_id = id_factory if id_factory is not None else (lambda: uuid.uuid4().hex)

    # ---------------------------------------------------------------------
    # Eligibility (pure)
    # ---------------------------------------------------------------------

    @staticmethod
    def eligibility_failure(
        order: ExchangeOrder,
        actor: Actor,
        existing_ratings: Iterable[Rating],
    ) -> ExchangeError | None:
        """Return the reason ``actor`` may not rate ``order``, or None if eligible."""
        if order.status != "completed":
            return NotEligible(
                f"order {order.order_id} is {order.status!r}, not completed",
                reason=RejectReason.ORDER_NOT_COMPLETED,
            )
        if not order.is_participant(actor.actor_id):
            return NotEligible(f"{actor.actor_id} is not a participant of order {order.order_id}")

        for rating in existing_ratings:
            if rating.order_id == order.order_id and rating.rater_id == actor.actor_id and rating.is_live:
                return DuplicateRating(f"{actor.actor_id} already rated order {order.order_id}")
        return None

    def can_rate(self, order: ExchangeOrder, actor: Actor, existing_ratings: Iterable[Rating]) -> bool:
        return self.eligibility_failure(order, actor, existing_ratings) is None

    def check_can_rate(self, order: ExchangeOrder, actor: Actor, existing_ratings: Iterable[Rating]) -> None:
        """Raise NotEligible / DuplicateRating unless ``actor`` may rate ``order``."""
        failure = self.eligibility_failure(order, actor, existing_ratings)
        if failure is not None:
            raise failure

    @staticmethod
    def counterpart_of(order: ExchangeOrder, actor: Actor) -> str:
        """Return the other participant of the order."""
        if actor.actor_id == order.requester_id:
            return order.provider_id
        if actor.actor_id == order.provider_id:
            return order.requester_id
        raise NotEligible(f"{actor.actor_id} is not a participant of order {order.order_id}")

    # ---------------------------------------------------------------------
    # Store-backed operations
    # ---------------------------------------------------------------------

    def can_rate_order(self, order_id: str, actor: Actor) -> bool:
        """Eligibility against the freshest order and rating rows."""
        order = require_order(self._store, order_id)
        return self.can_rate(order, actor, self._store.list_ratings_for_order(order_id))

    def submit_rating(
        self,
        order: ExchangeOrder,
        actor: Actor,
        *,
        score: int,
        comment: str | None = None,
    ) -> Rating:
        self._validate_input(score, comment, actor)

        fresh = require_order(self._store, order.order_id)
        if self._policy.duplicate_check == "eligibility":
            existing = self._store.list_ratings_for_order(fresh.order_id)
        else:
            existing = []

        failure = self.eligibility_failure(fresh, actor, existing)
        if failure is not None:
            raise self._rejected("rate", actor, fresh.order_id, failure)

        rating = Rating(
            rating_id=self._new_id(),
            order_id=fresh.order_id,
            rater_id=actor.actor_id,
            rated_id=self.counterpart_of(fresh, actor),
            score=score,
            comment=comment,
            product_id=fresh.item_id if fresh.item_kind == "product" else None,
            created_at=self._clock(),
        )
        stored = self._store.insert_rating(rating)
        if stored is None:
            raise self._rejected(
                "rate",
                actor,
                fresh.order_id,
                DuplicateRating(f"{actor.actor_id} already rated order {fresh.order_id}"),
            )

        self._event_bus.emit(
            RatingSubmittedEvent(
                at=stored.created_at,
                rating_id=stored.rating_id,
                order_id=stored.order_id,
                rater_id=stored.rater_id,
                rated_id=stored.rated_id,
                score=stored.score,
            )
        )
        return stored

    def withdraw_rating(self, rating_id: str, actor: Actor) -> Rating:
        """The rater (or an admin) withdraws a rating, freeing the rater's slot."""
        rating = self._require_rating(rating_id)
        if actor.actor_id != rating.rater_id and not actor.is_admin:
            raise self._rejected(
                "withdraw_rating", actor, rating_id,
                NotAuthorized("only the rater or an admin may withdraw a rating"),
            )
        if rating.withdrawn:
            return rating
        return self._flag(rating_id, actor, "withdrawn")

    def report_rating(self, rating_id: str, actor: Actor) -> Rating:
        """The rated actor (or an admin) reports a rating; reported ratings leave reputation."""
        rating = self._require_rating(rating_id)
        if actor.actor_id != rating.rated_id and not actor.is_admin:
            raise self._rejected(
                "report_rating", actor, rating_id,
                NotAuthorized("only the rated actor or an admin may report a rating"),
            )
        if rating.reported:
            return rating
        return self._flag(rating_id, actor, "reported")

    def reputation_of(self, actor_id: str) -> ReputationSummary:
        scores = [
            r.score
            for r in self._store.list_ratings_for_actor(actor_id)
            if not r.reported and not r.withdrawn
        ]
        if not scores:
            return ReputationSummary(actor_id=actor_id, average=0.0, count=0)
        return ReputationSummary(actor_id=actor_id, average=sum(scores) / len(scores), count=len(scores))

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    def _validate_input(self, score: int, comment: str | None, actor: Actor) -> None:
        policy = self._policy
        if isinstance(score, bool) or not isinstance(score, int):
            raise self._rejected("rate", actor, None, InvalidInput("score must be an integer"))
        if not policy.min_score <= score <= policy.max_score:
            raise self._rejected(
                "rate", actor, None,
                InvalidInput(f"score must be between {policy.min_score} and {policy.max_score}"),
            )
        if comment is not None and len(comment) > policy.max_comment_length:
            raise self._rejected(
                "rate", actor, None,
                InvalidInput(f"comment exceeds {policy.max_comment_length} characters"),
            )

    def _require_rating(self, rating_id: str) -> Rating:
        rating = self._store.get_rating(rating_id)
        if rating is None:
            raise RecordNotFound(f"rating {rating_id} does not exist")
        return rating

    def _flag(self, rating_id: str, actor: Actor, flag: str) -> Rating:
        if flag == "withdrawn":
            updated = self._store.update_rating_flags(rating_id, withdrawn=True)
        else:
            updated = self._store.update_rating_flags(rating_id, reported=True)
        if updated is None:
            raise RecordNotFound(f"rating {rating_id} does not exist")

        self._event_bus.emit(
            RatingFlagEvent(at=self._clock(), rating_id=rating_id, actor_id=actor.actor_id, flag=flag)
        )
        return updated

    def _rejected(
        self,
        operation: str,
        actor: Actor,
        subject_id: str | None,
        error: ExchangeError,
    ) -> ExchangeError:
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
