"""Public API for the roa_exchange package.

Only symbols imported here are considered part of the stable,
supported external interface.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ----------------------------------------------------------------------
# Services
# ----------------------------------------------------------------------
from roa_exchange.core.admin.audit_trail import AdminAuditTrail

# ----------------------------------------------------------------------
# Config API
# ----------------------------------------------------------------------
from roa_exchange.core.config.exchange_config import (
    ExchangeConfig,
    RatingPolicy,
    ReactivationPolicy,
)
from roa_exchange.core.domain.batch_state_machine import BatchStatusGuard

# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------
from roa_exchange.core.domain.errors import (
    AlreadyResolved,
    DuplicateRating,
    ExchangeError,
    InvalidInput,
    InvalidTransition,
    ItemUnavailable,
    NotAuthorized,
    NotEligible,
    OrderAlreadyResolved,
    OverrideFailed,
    RecordNotFound,
    StoreUnavailable,
    user_message,
)
from roa_exchange.core.domain.reject_reasons import RejectReason

# ----------------------------------------------------------------------
# Domain Types
# ----------------------------------------------------------------------
from roa_exchange.core.domain.types import (
    Actor,
    AuditLogEntry,
    BatchItem,
    ExchangeOrder,
    Rating,
)
from roa_exchange.core.exchange.listing import ItemListing
from roa_exchange.core.exchange.order_lifecycle import ExchangeOrderLifecycle

# ----------------------------------------------------------------------
# Collaborator ports
# ----------------------------------------------------------------------
from roa_exchange.core.ports.exchange_store import ExchangeStore
from roa_exchange.core.ports.identity import IdentityProvider, StaticIdentity
from roa_exchange.core.ratings.rating_eligibility import (
    RatingEligibilityService,
    ReputationSummary,
)

# ----------------------------------------------------------------------
# Runtime
# ----------------------------------------------------------------------
from roa_exchange.runtime.bootstrap import ExchangeCore, build_exchange_core

# ----------------------------------------------------------------------
# Public API definition
# ----------------------------------------------------------------------

__all__ = [
    # Services
    "BatchStatusGuard",
    "ExchangeOrderLifecycle",
    "ItemListing",
    "RatingEligibilityService",
    "ReputationSummary",
    "AdminAuditTrail",

    # Runtime
    "ExchangeCore",
    "build_exchange_core",

    # Config
    "ExchangeConfig",
    "ReactivationPolicy",
    "RatingPolicy",

    # Domain types
    "Actor",
    "BatchItem",
    "ExchangeOrder",
    "Rating",
    "AuditLogEntry",

    # Ports
    "ExchangeStore",
    "IdentityProvider",
    "StaticIdentity",

    # Errors
    "ExchangeError",
    "InvalidTransition",
    "NotAuthorized",
    "AlreadyResolved",
    "OrderAlreadyResolved",
    "ItemUnavailable",
    "DuplicateRating",
    "NotEligible",
    "RecordNotFound",
    "InvalidInput",
    "StoreUnavailable",
    "OverrideFailed",
    "RejectReason",
    "user_message",

    # Version
    "__version__",
]

# ----------------------------------------------------------------------
# Package version
# ----------------------------------------------------------------------

try:
    __version__ = version("roa-exchange")
except PackageNotFoundError:
    __version__ = "0.0.0"
