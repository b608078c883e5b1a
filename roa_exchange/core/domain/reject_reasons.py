"""Stable reject reason codes.

Codes are plain strings so they can be logged, counted and shipped to the UI
layer without translation. Every code maps to one user-facing message in
``core.domain.errors``.
"""

from __future__ import annotations


class RejectReason:
    """Namespace of reject reason codes."""

    # Transition table violations
    INVALID_TRANSITION = "INVALID_TRANSITION"
    TERMINAL_STATE = "TERMINAL_STATE"
    ITEM_HELD_BY_ORDER = "ITEM_HELD_BY_ORDER"
    RESERVATION_NEEDS_ORDER = "RESERVATION_NEEDS_ORDER"

    # Actor checks
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    NOT_ADMIN = "NOT_ADMIN"
    OWN_ITEM = "OWN_ITEM"
    NO_CURRENT_ACTOR = "NO_CURRENT_ACTOR"

    # Optimistic concurrency
    ORDER_ALREADY_RESOLVED = "ORDER_ALREADY_RESOLVED"
    ITEM_UNAVAILABLE = "ITEM_UNAVAILABLE"
    STATUS_CHANGED = "STATUS_CHANGED"

    # Ratings
    DUPLICATE_RATING = "DUPLICATE_RATING"
    ORDER_NOT_COMPLETED = "ORDER_NOT_COMPLETED"
    NOT_PARTICIPANT = "NOT_PARTICIPANT"

    # Inputs / lookups
    INVALID_INPUT = "INVALID_INPUT"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"

    # Persistence
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    OVERRIDE_STATUS_WRITE_FAILED = "OVERRIDE_STATUS_WRITE_FAILED"
    OVERRIDE_AUDIT_WRITE_FAILED = "OVERRIDE_AUDIT_WRITE_FAILED"
