"""Typed failures raised by the exchange core.

Every public operation either returns the updated record or raises one of
the exceptions below. ``StoreUnavailable`` is the only retryable kind; all
other kinds describe a decision the caller has to present to the user.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from roa_exchange.core.domain.reject_reasons import RejectReason

if TYPE_CHECKING:
    from roa_exchange.core.domain.types import AuditLogEntry


class ExchangeError(Exception):
    """Base class of all exchange core failures."""

    default_reason: str = RejectReason.INVALID_INPUT
    retryable: bool = False

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason or self.default_reason


class InvalidTransition(ExchangeError):
    """The transition table rejects current -> target."""

    default_reason = RejectReason.INVALID_TRANSITION

    def __init__(
        self,
        message: str,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message, reason=reason)
        self.current = current
        self.target = target


class NotAuthorized(ExchangeError):
    """The actor is not the required participant, owner or admin."""

    default_reason = RejectReason.NOT_AUTHORIZED


class AlreadyResolved(ExchangeError):
    """State changed since the caller's last read (optimistic-concurrency conflict)."""

    default_reason = RejectReason.STATUS_CHANGED

    def __init__(
        self,
        message: str,
        *,
        observed_status: str | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message, reason=reason)
        self.observed_status = observed_status


class OrderAlreadyResolved(AlreadyResolved):
    default_reason = RejectReason.ORDER_ALREADY_RESOLVED


class ItemUnavailable(AlreadyResolved):
    default_reason = RejectReason.ITEM_UNAVAILABLE


class DuplicateRating(ExchangeError):
    default_reason = RejectReason.DUPLICATE_RATING


class NotEligible(ExchangeError):
    """Order not completed, or actor not a participant."""

    default_reason = RejectReason.NOT_PARTICIPANT


class RecordNotFound(ExchangeError):
    default_reason = RejectReason.RECORD_NOT_FOUND


class InvalidInput(ExchangeError):
    default_reason = RejectReason.INVALID_INPUT


class StoreUnavailable(ExchangeError):
    """Persistence or network failure. Always safe to retry."""

    default_reason = RejectReason.STORE_UNAVAILABLE
    retryable = True


OverrideStage = Literal["status_write", "audit_write"]


class OverrideFailed(ExchangeError):
    """Composed failure of the admin override pair (status write + audit write).

    - stage == "status_write": nothing was committed; retry the whole override.
    - stage == "audit_write" and not status_committed: the status write was
      compensated; retry the whole override.
    - stage == "audit_write" and status_committed: the status change stands
      but is un-audited; do NOT retry the status write, re-drive only the
      audit half with ``pending_entry``.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: OverrideStage,
        cause: ExchangeError,
        status_committed: bool,
        pending_entry: AuditLogEntry | None = None,
    ) -> None:
        reason = (
            RejectReason.OVERRIDE_STATUS_WRITE_FAILED
            if stage == "status_write"
            else RejectReason.OVERRIDE_AUDIT_WRITE_FAILED
        )
        super().__init__(message, reason=reason)
        self.stage = stage
        self.cause = cause
        self.status_committed = status_committed
        self.pending_entry = pending_entry

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.cause.retryable

    @property
    def may_retry_status_write(self) -> bool:
        return not self.status_committed


# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------

USER_MESSAGES: dict[str, str] = {
    RejectReason.INVALID_TRANSITION: "This status change is not allowed from the current status.",
    RejectReason.TERMINAL_STATE: "This item was already collected; its status can no longer change.",
    RejectReason.ITEM_HELD_BY_ORDER: "This item is reserved by an exchange. Cancel the exchange first.",
    RejectReason.RESERVATION_NEEDS_ORDER: "Items are reserved by accepting an exchange, not by a status override.",
    RejectReason.NOT_AUTHORIZED: "You are not a participant allowed to perform this action.",
    RejectReason.NOT_ADMIN: "Only administrators can perform this action.",
    RejectReason.OWN_ITEM: "You cannot request an exchange for your own item.",
    RejectReason.NO_CURRENT_ACTOR: "Please sign in to continue.",
    RejectReason.ORDER_ALREADY_RESOLVED: "This exchange was already updated by someone else. Refresh to see its status.",
    RejectReason.ITEM_UNAVAILABLE: "This item is no longer available.",
    RejectReason.STATUS_CHANGED: "The status changed since you loaded it. Refresh and try again.",
    RejectReason.DUPLICATE_RATING: "You already rated this exchange.",
    RejectReason.ORDER_NOT_COMPLETED: "You can rate an exchange only after it is completed.",
    RejectReason.NOT_PARTICIPANT: "Only the two participants of this exchange can do this.",
    RejectReason.INVALID_INPUT: "Some of the submitted values are invalid.",
    RejectReason.RECORD_NOT_FOUND: "The requested record does not exist.",
    RejectReason.STORE_UNAVAILABLE: "Connection problem. Please try again.",
    RejectReason.OVERRIDE_STATUS_WRITE_FAILED: "The status could not be saved. Please try again.",
    RejectReason.OVERRIDE_AUDIT_WRITE_FAILED: "The status changed but the audit record could not be saved. Retry the audit record only.",
}


def user_message(error: ExchangeError) -> tuple[str, bool]:
    """Return (message, retryable) for presenting an error to the user.

    An audit-write failure whose status change was compensated reads like a
    plain status-write failure: the whole override can be retried.
    """
    reason = error.reason
    if isinstance(error, OverrideFailed) and not error.status_committed:
        reason = RejectReason.OVERRIDE_STATUS_WRITE_FAILED
    return USER_MESSAGES.get(reason, USER_MESSAGES[RejectReason.INVALID_INPUT]), error.retryable
