# tests/test_transactions_api.py
"""HTTP layer: envelopes, validation / not-found shapes, pagination, soft delete."""

from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient

from ledger.config import Settings, get_settings
from ledger.main import app as fastapi_app


def _create(client, **overrides):
    body = {"type": "expense", "category": "food", "amount": 25.5, "date": "2025-06-01"}
    body.update(overrides)
    return client.post("/api/transactions", json=body)


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.headers.get("X-Trace-Id")


def test_trace_id_is_echoed(client):
    r = client.get("/healthz", headers={"X-Trace-Id": "abc-123"})
    assert r.headers["X-Trace-Id"] == "abc-123"


def test_create_returns_envelope(client):
    r = _create(client, note="lunch")
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["data"]["id"] > 0
    assert body["data"]["category"] == "food"
    assert float(body["data"]["amount"]) == 25.5


def test_schema_errors_are_400_with_field_details(client):
    r = client.post("/api/transactions", json={"type": "expense", "amount": "x"})
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == "VALIDATION_ERROR"
    fields = {d["field"] for d in body["details"]}
    assert {"category", "amount", "date"} <= fields


def test_business_rule_errors_share_the_shape(client):
    r = _create(client, amount=-1)
    assert r.status_code == 400
    assert r.json() == {
        "error": "Validation failed",
        "code": "VALIDATION_ERROR",
        "details": [{"field": "amount", "message": "amount must be greater than 0"}],
    }


def test_not_found_shape(client):
    r = client.get("/api/transactions/999")
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"


def test_list_paginates_and_sets_cache_version(client):
    for day in range(1, 6):
        _create(client, date=f"2025-06-0{day}", amount=day)

    r = client.get("/api/transactions", params={"page": 2, "page_size": 2})
    assert r.status_code == 200
    body = r.json()
    assert [t["date"] for t in body["data"]] == ["2025-06-03", "2025-06-02"]
    assert body["pagination"]["total"] == 5
    assert body["pagination"]["has_next"] is True
    assert int(r.headers["X-Cache-Version"]) >= 1  # bumped by the creates


def test_filters_and_stats(client):
    _create(client, amount=10)
    _create(client, amount=30, category="transport")
    _create(client, type="income", category="salary", amount=100)

    r = client.get("/api/transactions", params={"type": "expense", "min_amount": 20})
    assert [t["category"] for t in r.json()["data"]] == ["transport"]

    stats = client.get("/api/transactions/stats", params={"type": "expense"}).json()["data"]
    assert stats["count"] == 2


def test_soft_delete_and_restore(client):
    txn_id = _create(client).json()["data"]["id"]

    assert client.delete(f"/api/transactions/{txn_id}").status_code == 200
    assert client.get(f"/api/transactions/{txn_id}").status_code == 404
    r = client.get(f"/api/transactions/{txn_id}", params={"include_deleted": True})
    assert r.json()["data"]["deleted_at"] is not None

    r = client.post(f"/api/transactions/{txn_id}/restore")
    assert r.status_code == 200
    assert client.get(f"/api/transactions/{txn_id}").status_code == 200


def test_update_partial(client):
    txn_id = _create(client).json()["data"]["id"]
    r = client.put(f"/api/transactions/{txn_id}", json={"note": "edited"})
    assert r.status_code == 200
    assert r.json()["data"]["note"] == "edited"
    assert r.json()["data"]["category"] == "food"


def test_unexpected_errors_are_500(client, monkeypatch):
    from ledger.services import transactions as svc

    def boom(*args, **kwargs):
        raise RuntimeError("kaput")

    monkeypatch.setattr(svc, "transaction_stats", boom)
    with TestClient(fastapi_app, raise_server_exceptions=False) as raw:
        r = raw.get("/api/transactions/stats")
    assert r.status_code == 500
    assert r.json()["code"] == "INTERNAL_ERROR"


@pytest.mark.parametrize("env, exposed", [("production", False), ("development", True)])
def test_500_detail_only_in_development(client, monkeypatch, env, exposed):
    from ledger.services import transactions as svc

    def boom(*args, **kwargs):
        raise RuntimeError("kaput")

    monkeypatch.setattr(svc, "transaction_stats", boom)
    monkeypatch.setattr(get_settings(), "app_env", env)
    with TestClient(fastapi_app, raise_server_exceptions=False) as raw:
        body = raw.get("/api/transactions/stats").json()
    assert ("message" in body) is exposed
    assert ("stack" in body) is exposed


@pytest.mark.skipif("APP_ENV" in os.environ, reason="APP_ENV set by the environment")
def test_app_env_defaults_to_production():
    assert Settings.model_fields["app_env"].default == "production"
    assert not Settings().is_development


def test_write_is_recorded_as_user_action(client):
    _create(client)
    r = client.get("/api/admin/logs", params={"category": "user_action"})
    assert r.status_code == 200
    actions = [row["message"] for row in r.json()["data"]]
    assert "transaction.create" in actions
