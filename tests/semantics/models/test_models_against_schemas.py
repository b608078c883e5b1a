"""Schema conformance tests for the exchange record models.

The hosted store exchanges rows shaped like the JSON Schemas under
``roa_exchange/core/schemas``. These tests check that the Pydantic models
accept valid rows, dump to schema-valid JSON, and are at least as strict as
the schemas on invalid input.
"""

# pylint: disable=line-too-long,missing-function-docstring
# pylint: disable=redefined-outer-name,global-statement
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from jsonschema import ValidationError as JsonSchemaValidationError
from jsonschema import validate as jsonschema_validate
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from roa_exchange.core.domain.types import AuditLogEntry, BatchItem, ExchangeOrder, Rating

SCHEMA_REGISTRY = Registry()

TS = "2026-03-01T12:00:00Z"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def load_schema(name: str) -> dict:
    """
    Load JSON schema from the package schema directory.
    """
    global SCHEMA_REGISTRY

    root = Path(__file__).parent.parent.parent.parent
    schema_path = root / "roa_exchange" / "core" / "schemas" / name

    with schema_path.open("r", encoding="utf-8") as f:
        schema = json.load(f)

    schema_id = schema.get("$id")
    if isinstance(schema_id, str) and schema_id:
        resource = Resource.from_contents(schema, default_specification=DRAFT202012)
        SCHEMA_REGISTRY = SCHEMA_REGISTRY.with_resource(schema_id, resource)

    return schema


def pydantic_validate(model_type: Any, data: dict[str, Any]) -> Any:
    return TypeAdapter(model_type).validate_python(data)


def assert_pydantic_then_schema_ok(model_type: Any, data: dict[str, Any], schema: dict[str, Any]) -> dict:
    """
    Validate with Pydantic first, then validate the dumped instance with JSON Schema.
    None values are omitted so optional fields are absent rather than null.
    """
    obj = pydantic_validate(model_type, data)
    instance = obj.model_dump(mode="json", exclude_none=True)
    jsonschema_validate(instance=instance, schema=schema, registry=SCHEMA_REGISTRY)
    return instance


def assert_schema_invalid_but_pydantic_rejects(model_type: Any, data: dict[str, Any], schema: dict[str, Any]):
    """
    If the schema rejects, Pydantic must reject too (otherwise the model is too lax).
    """
    with pytest.raises(JsonSchemaValidationError):
        jsonschema_validate(instance=data, schema=schema, registry=SCHEMA_REGISTRY)

    with pytest.raises(PydanticValidationError):
        pydantic_validate(model_type, data)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="module", autouse=True)
def _load_common_schema() -> None:
    load_schema("common.schema.json")


@pytest.fixture(scope="module")
def batch_item_schema() -> dict:
    return load_schema("batch_item.schema.json")


@pytest.fixture(scope="module")
def exchange_order_schema() -> dict:
    return load_schema("exchange_order.schema.json")


@pytest.fixture(scope="module")
def rating_schema() -> dict:
    return load_schema("rating.schema.json")


@pytest.fixture(scope="module")
def audit_log_entry_schema() -> dict:
    return load_schema("audit_log_entry.schema.json")


# ---------------------------------------------------------------------------
# BatchItem
# ---------------------------------------------------------------------------

def make_item(**overrides) -> dict[str, Any]:
    data: dict[str, Any] = {"item_id": "batch-1", "owner_id": "gen-1"}
    data.update(overrides)
    return data


def test_batch_item_valid_minimal(batch_item_schema):
    instance = assert_pydantic_then_schema_ok(BatchItem, make_item(), batch_item_schema)
    assert instance["status"] == "available"
    assert instance["kind"] == "batch"


def test_batch_item_reserved_product(batch_item_schema):
    data = make_item(kind="product", status="reserved", order_ref="order-1", title="Tomato seedlings")
    assert_pydantic_then_schema_ok(BatchItem, data, batch_item_schema)


def test_batch_item_unknown_status_rejected(batch_item_schema):
    assert_schema_invalid_but_pydantic_rejects(BatchItem, make_item(status="lost"), batch_item_schema)


def test_batch_item_min_length(batch_item_schema):
    assert_schema_invalid_but_pydantic_rejects(BatchItem, make_item(item_id=""), batch_item_schema)
    assert_schema_invalid_but_pydantic_rejects(BatchItem, make_item(order_ref=""), batch_item_schema)


def test_batch_item_rejects_additional_properties(batch_item_schema):
    assert_schema_invalid_but_pydantic_rejects(BatchItem, make_item(unexpected=1), batch_item_schema)


# ---------------------------------------------------------------------------
# ExchangeOrder
# ---------------------------------------------------------------------------

def make_order(**overrides) -> dict[str, Any]:
    data: dict[str, Any] = {
        "order_id": "order-1",
        "item_id": "batch-1",
        "requester_id": "col-1",
        "provider_id": "gen-1",
        "created_at": TS,
        "updated_at": TS,
    }
    data.update(overrides)
    return data


def test_exchange_order_valid_minimal(exchange_order_schema):
    instance = assert_pydantic_then_schema_ok(ExchangeOrder, make_order(), exchange_order_schema)
    assert instance["status"] == "pending"


def test_exchange_order_requires_timestamps(exchange_order_schema):
    bad = make_order()
    bad.pop("created_at")
    assert_schema_invalid_but_pydantic_rejects(ExchangeOrder, bad, exchange_order_schema)


def test_exchange_order_unknown_status_rejected(exchange_order_schema):
    assert_schema_invalid_but_pydantic_rejects(ExchangeOrder, make_order(status="shipped"), exchange_order_schema)


def test_exchange_order_rejects_additional_properties(exchange_order_schema):
    assert_schema_invalid_but_pydantic_rejects(ExchangeOrder, make_order(unexpected="x"), exchange_order_schema)


def test_exchange_order_parties_must_differ():
    # Not expressible in the schema; the model is stricter.
    with pytest.raises(PydanticValidationError):
        pydantic_validate(ExchangeOrder, make_order(requester_id="gen-1"))


# ---------------------------------------------------------------------------
# Rating
# ---------------------------------------------------------------------------

def make_rating(**overrides) -> dict[str, Any]:
    data: dict[str, Any] = {
        "rating_id": "rating-1",
        "order_id": "order-1",
        "rater_id": "col-1",
        "rated_id": "gen-1",
        "score": 5,
        "created_at": TS,
    }
    data.update(overrides)
    return data


def test_rating_valid_with_optionals(rating_schema):
    data = make_rating(comment="Great", product_id="prod-1", reported=True, withdrawn=False)
    assert_pydantic_then_schema_ok(Rating, data, rating_schema)


def test_rating_negative_score_rejected(rating_schema):
    assert_schema_invalid_but_pydantic_rejects(Rating, make_rating(score=-1), rating_schema)


def test_rating_zero_score_rejected(rating_schema):
    # Lowest score a rating policy may allow is 1
    assert_schema_invalid_but_pydantic_rejects(Rating, make_rating(score=0), rating_schema)


def test_rating_fractional_score_rejected(rating_schema):
    assert_schema_invalid_but_pydantic_rejects(Rating, make_rating(score=4.5), rating_schema)


def test_rating_rejects_additional_properties(rating_schema):
    assert_schema_invalid_but_pydantic_rejects(Rating, make_rating(stars=5), rating_schema)


def test_rating_self_rating_rejected():
    with pytest.raises(PydanticValidationError):
        pydantic_validate(Rating, make_rating(rated_id="col-1"))


# ---------------------------------------------------------------------------
# AuditLogEntry
# ---------------------------------------------------------------------------

def make_entry(**overrides) -> dict[str, Any]:
    data: dict[str, Any] = {
        "entry_id": "audit-1",
        "entity_type": "batch",
        "entity_id": "batch-1",
        "actor_id": "admin-1",
        "previous_status": "reserved",
        "new_status": "cancelled",
        "created_at": TS,
    }
    data.update(overrides)
    return data


def test_audit_entry_valid_with_note(audit_log_entry_schema):
    assert_pydantic_then_schema_ok(AuditLogEntry, make_entry(note="fraud report"), audit_log_entry_schema)


def test_audit_entry_user_entity(audit_log_entry_schema):
    data = make_entry(entity_type="user", entity_id="col-1", previous_status="active", new_status="suspended")
    assert_pydantic_then_schema_ok(AuditLogEntry, data, audit_log_entry_schema)


def test_audit_entry_unknown_entity_type_rejected(audit_log_entry_schema):
    assert_schema_invalid_but_pydantic_rejects(AuditLogEntry, make_entry(entity_type="order"), audit_log_entry_schema)


def test_audit_entry_min_length(audit_log_entry_schema):
    assert_schema_invalid_but_pydantic_rejects(AuditLogEntry, make_entry(previous_status=""), audit_log_entry_schema)


def test_audit_entry_is_immutable():
    entry = pydantic_validate(AuditLogEntry, make_entry())
    with pytest.raises(PydanticValidationError):
        entry.new_status = "available"
