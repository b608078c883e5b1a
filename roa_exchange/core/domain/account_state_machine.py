"""Account status table used by administrative user overrides."""

from __future__ import annotations

ACCOUNT_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "active": frozenset({"suspended"}),
    "suspended": frozenset({"active"}),
}


def is_valid_account_transition(current: str, target: str) -> bool:
    """Return True if the account status change current -> target is allowed."""
    return target in ACCOUNT_ALLOWED_TRANSITIONS.get(current, frozenset())
