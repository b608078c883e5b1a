"""Actor-identity collaborator protocol.

Authentication and sessions live outside the core. The surrounding
application resolves the acting user once per operation and hands the core an
``Actor`` carrying the admin capability.
"""

from __future__ import annotations

from typing import Protocol

from roa_exchange.core.domain.errors import NotAuthorized
from roa_exchange.core.domain.reject_reasons import RejectReason
from roa_exchange.core.domain.types import Actor


class IdentityProvider(Protocol):
    def current_actor_id(self) -> str | None:
        """Return the signed-in actor id, or None when anonymous."""

    def is_administrator(self, actor_id: str) -> bool:
        """Return True if the actor holds the admin flag.

        May raise StoreUnavailable when the flag lives in the remote store.
        """


def resolve_actor(identity: IdentityProvider) -> Actor:
    """Resolve the current actor and its admin capability in one step."""
    actor_id = identity.current_actor_id()
    if not actor_id:
        raise NotAuthorized("no signed-in actor", reason=RejectReason.NO_CURRENT_ACTOR)
    return Actor(actor_id=actor_id, is_admin=identity.is_administrator(actor_id))


class StaticIdentity:
    """IdentityProvider over a fixed actor and admin set (tests, scripts)."""

    def __init__(self, actor_id: str | None, admins: frozenset[str] = frozenset()) -> None:
        self._actor_id = actor_id
        self._admins = admins

    def current_actor_id(self) -> str | None:
        return self._actor_id

    def is_administrator(self, actor_id: str) -> bool:
        return actor_id in self._admins
