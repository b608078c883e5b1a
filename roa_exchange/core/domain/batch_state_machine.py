"""
Batch / product status transition table.

This module is the single authority on which status changes a tradable item
may undergo. It is pure and owns no state: the order lifecycle, the listing
operations and administrative overrides all consult it, and it never reaches
back into any of them.
"""

from __future__ import annotations

from roa_exchange.core.domain.errors import InvalidTransition
from roa_exchange.core.domain.reject_reasons import RejectReason

BATCH_STATUSES: frozenset[str] = frozenset(
    {
        "available",
        "reserved",
        "collected",
        "cancelled",
    }
)

# Terminal item states: once reached, nobody (admins included) may leave them.
BATCH_TERMINAL_STATES: frozenset[str] = frozenset({"collected"})


# Allowed item status transitions.
#
# Key   : current status
# Value : set of allowed next statuses
#
# Notes:
# - Same-status pairs are never listed: a no-op is not a transition.
# - cancelled -> available is a reactivation; who may trigger it is policy
#   (see ExchangeConfig.reactivation), not part of this table.
BATCH_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "available": frozenset({"reserved", "cancelled"}),
    "reserved": frozenset({"collected", "cancelled", "available"}),
    "collected": frozenset(),
    "cancelled": frozenset({"available"}),
}


def allowed_next_statuses(current: str) -> frozenset[str]:
    """Return the statuses reachable from ``current`` (empty if unknown or terminal)."""
    return BATCH_ALLOWED_TRANSITIONS.get(current, frozenset())


def is_terminal_status(status: str) -> bool:
    """Return True if the given item status is terminal."""
    return status in BATCH_TERMINAL_STATES


def is_transition_allowed(current: str, target: str) -> bool:
    """Return True if the item transition current -> target is allowed."""
    if current == target:
        return False
    return target in allowed_next_statuses(current)


def check_transition(current: str, target: str) -> None:
    """Raise InvalidTransition unless current -> target is allowed."""
    if is_transition_allowed(current, target):
        return

    if is_terminal_status(current):
        raise InvalidTransition(
            f"item status {current!r} is terminal; cannot move to {target!r}",
            current=current,
            target=target,
            reason=RejectReason.TERMINAL_STATE,
        )
    raise InvalidTransition(
        f"item status transition {current!r} -> {target!r} is not allowed",
        current=current,
        target=target,
    )


class BatchStatusGuard:
    """Object form of the transition table, held by the components that drive items."""

    def allowed_next_statuses(self, current: str) -> frozenset[str]:
        return allowed_next_statuses(current)

    def is_transition_allowed(self, current: str, target: str) -> bool:
        return is_transition_allowed(current, target)

    def check(self, current: str, target: str) -> None:
        check_transition(current, target)
