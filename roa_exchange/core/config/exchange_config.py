"""Exchange policy configuration model."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReactivationPolicy(BaseModel):
    """Who may move a cancelled item back to available, and what happens to its order reference.

    Both fields are required: there is no safe default for either.
    """

    allowed_by: Literal["owner", "admin", "owner_or_admin"]
    clear_order_ref: bool

    model_config = ConfigDict(extra="forbid")

    def permits(self, *, is_owner: bool, is_admin: bool) -> bool:
        if self.allowed_by == "owner":
            return is_owner
        if self.allowed_by == "admin":
            return is_admin
        return is_owner or is_admin


class RatingPolicy(BaseModel):
    min_score: int = Field(default=1, ge=1)
    max_score: int = Field(default=5, ge=1)
    max_comment_length: int = Field(default=1000, ge=0)

    # Where a second rating by the same rater is first detected:
    # - "eligibility": checked against existing ratings before the insert
    # - "write": left to the store's unique (order_id, rater_id) constraint
    # Both surface DuplicateRating.
    duplicate_check: Literal["eligibility", "write"] = "eligibility"

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def validate_score_range(self) -> RatingPolicy:
        if self.min_score > self.max_score:
            raise ValueError("min_score must be <= max_score")
        return self


class ExchangeConfig(BaseModel):
    """Structured-only exchange configuration."""

    reactivation: ReactivationPolicy
    ratings: RatingPolicy = Field(default_factory=RatingPolicy)

    # Optional append-only JSON lines journal of domain events.
    event_log_path: str | None = Field(default=None, min_length=1)

    # Prometheus job name used when pushing counters.
    metrics_job: str = Field(default="roa-exchange", min_length=1)

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_json_obj(cls, cfg_obj: dict[str, Any]) -> ExchangeConfig:
        """Create an ExchangeConfig instance from a JSON-compatible object."""
        return cls.model_validate(cfg_obj)

    @classmethod
    def from_json_file(cls, path: str | Path) -> ExchangeConfig:
        """Load the configuration from a JSON file.

        The file may hold the config at top level or under an "exchange" key.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(path)
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, dict) and "exchange" in data:
            data = data["exchange"]
        return cls.from_json_obj(data)
