"""
Exchange order lifecycle state machine definitions.

This module defines the canonical order states and the allowed transitions
between them. It is validation-only: the lifecycle service decides who may
trigger each transition and keeps the item status consistent.
"""

from __future__ import annotations

# Terminal order states: once reached, the order is considered resolved.
ORDER_TERMINAL_STATES: frozenset[str] = frozenset(
    {
        "rejected",
        "cancelled",
        "completed",
    }
)


# Allowed order state transitions.
#
# Key   : previous state (or None if the order does not exist yet)
# Value : set of allowed next states
ORDER_ALLOWED_TRANSITIONS: dict[str | None, frozenset[str]] = {
    None: frozenset({"pending"}),

    "pending": frozenset(
        {
            "accepted",
            "rejected",
            "cancelled",
        }
    ),

    "accepted": frozenset(
        {
            "cancelled",
            "completed",
        }
    ),
}


def is_terminal_state(state: str) -> bool:
    """Return True if the given state is terminal."""
    return state in ORDER_TERMINAL_STATES


def is_valid_transition(prev_state: str | None, next_state: str) -> bool:
    """Return True if the transition prev_state -> next_state is allowed."""
    allowed = ORDER_ALLOWED_TRANSITIONS.get(prev_state)
    if allowed is None:
        return False
    return next_state in allowed
