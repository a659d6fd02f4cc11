# tests/test_api_routes.py
"""End-to-end flows through the routers (recurring, budgets, reports, admin)."""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from ledger.deps import get_calendar, get_today
from ledger.main import app as fastapi_app

TODAY = date(2025, 3, 5)


@pytest.fixture()
def api(client, make_calendar):
    """The test client with a fixed 'today' and an offline holiday calendar."""
    fastapi_app.dependency_overrides[get_today] = lambda: TODAY
    fastapi_app.dependency_overrides[get_calendar] = lambda: make_calendar()
    yield client
    fastapi_app.dependency_overrides.pop(get_today, None)
    fastapi_app.dependency_overrides.pop(get_calendar, None)


def _rent(api, **overrides):
    body = {
        "name": "Rent",
        "amount": 1200,
        "category": "rent",
        "frequency": "monthly",
        "frequency_config": {"day_of_month": 5},
        "start_date": "2025-01-05",
    }
    body.update(overrides)
    return api.post("/api/recurring-expenses", json=body)


def test_recurring_create_generate_and_history(api):
    r = _rent(api)
    assert r.status_code == 201
    expense_id = r.json()["data"]["id"]
    assert r.json()["data"]["next_generate"] == "2025-01-05"

    # no body: runs for the overridden today
    r = api.post("/api/recurring-expenses/generate")
    assert r.status_code == 200
    assert r.json()["data"]["generated"] == 3

    r = api.post("/api/recurring-expenses/generate", json={"today": "2025-03-05"})
    assert r.json()["data"]["generated"] == 0

    history = api.get("/api/recurring-expenses/history", params={"recurring_expense_id": expense_id})
    assert len(history.json()["data"]) == 3

    stats = api.get("/api/recurring-expenses/stats").json()["data"]
    assert stats["active_expenses"] == 1

    fixed = api.get("/api/transactions", params={"fixed": True}).json()
    assert fixed["pagination"]["total"] == 3


def test_recurring_validation_error(api):
    r = _rent(api, frequency="weekly", frequency_config={"days_of_week": [9]})
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "frequency_config"


def test_budget_status_reflects_new_spending(api):
    r = api.post("/api/budgets", json={"year": 2025, "month": 3, "category_key": "food", "amount": 100})
    assert r.status_code == 200

    status = api.get("/api/budgets/status").json()["data"]
    assert float(status[0]["spent_amount"]) == 0

    api.post(
        "/api/transactions",
        json={"type": "expense", "category": "food", "amount": 90, "date": "2025-03-02"},
    )
    # the write invalidated the cached status
    food = api.get("/api/budgets/status", params={"year": 2025, "month": 3}).json()["data"][0]
    assert float(food["spent_amount"]) == 90.0
    assert food["is_near_limit"] is True

    summary = api.get("/api/budgets/summary").json()["data"]
    assert summary["near_limit_count"] == 1

    predict = api.get(
        "/api/budgets/predict", params={"category_key": "food", "budget_amount": 100}
    ).json()["data"]
    assert predict["will_exceed_budget"] is True


def test_monthly_report_find_or_create(api):
    api.post(
        "/api/transactions",
        json={"type": "expense", "category": "food", "amount": 20, "date": "2025-02-10"},
    )
    r = api.post("/api/monthly-reports", json={"year": 2025, "month": 2})
    assert r.status_code == 200
    assert r.json()["created"] is True
    report_id = r.json()["data"]["id"]

    r = api.post("/api/monthly-reports", json={"year": 2025, "month": 2})
    assert r.json()["created"] is False
    assert r.json()["data"]["id"] == report_id

    by_period = api.get("/api/monthly-reports", params={"year": 2025, "month": 2}).json()["data"]
    assert by_period["id"] == report_id
    assert api.get("/api/monthly-reports/latest").json()["data"]["id"] == report_id

    assert api.delete(f"/api/monthly-reports/{report_id}").status_code == 200
    assert api.get(f"/api/monthly-reports/{report_id}").status_code == 404


def test_weekly_report_default_week(api):
    r = api.post("/api/weekly-reports/generate", json={})
    assert r.status_code == 200
    # TODAY is Wednesday 2025-03-05; the previous full week starts Sunday 02-23
    assert r.json()["data"]["week_start_date"] == "2025-02-23"


def test_category_delete_conflict_then_migrate(api):
    created = api.post("/api/categories", json={"key": "pets", "label": "Pets"})
    assert created.status_code == 201
    pets_id = created.json()["data"]["id"]
    api.post(
        "/api/transactions",
        json={"type": "expense", "category": "pets", "amount": 5, "date": "2025-03-01"},
    )

    r = api.delete(f"/api/categories/{pets_id}")
    assert r.status_code == 409
    assert r.json()["code"] == "CONFLICT"

    r = api.delete(f"/api/categories/{pets_id}", params={"migrate_to_key": "other"})
    assert r.status_code == 200
    assert r.json()["data"]["affected_transactions"] == 1


def test_payment_method_default_endpoint(api):
    a = api.post("/api/payment-methods", json={"name": "Cash", "is_default": True}).json()["data"]
    b = api.post("/api/payment-methods", json={"name": "Visa"}).json()["data"]

    r = api.post(f"/api/payment-methods/{b['id']}/default")
    assert r.status_code == 200
    listed = api.get("/api/payment-methods").json()["data"]
    assert [m["name"] for m in listed if m["is_default"]] == ["Visa"]
    assert any(m["id"] == a["id"] and not m["is_default"] for m in listed)


def test_cron_run_isolates_jobs(api):
    _rent(api)
    r = api.post("/api/admin/cron/run", json={"jobs": ["recurring", "weekly_report"]})
    assert r.status_code == 200
    jobs = r.json()["data"]["jobs"]
    assert jobs["recurring"]["generated"] == 3
    assert jobs["weekly_report"]["created"] is True

    r = api.post("/api/admin/cron/run", json={"jobs": ["nope"]})
    assert r.status_code == 400


def test_cron_job_database_error_keeps_other_results(api, monkeypatch):
    from ledger.services import system_logs

    def broken_cleanup(*args, **kwargs):
        raise OperationalError("DELETE FROM system_logs", {}, Exception("disk I/O error"))

    monkeypatch.setattr(system_logs, "cleanup_logs", broken_cleanup)
    _rent(api)

    r = api.post("/api/admin/cron/run", json={"jobs": ["recurring", "log_cleanup", "weekly_report"]})

    assert r.status_code == 200
    jobs = r.json()["data"]["jobs"]
    assert jobs["recurring"]["generated"] == 3
    assert jobs["log_cleanup"]["error"].startswith("OperationalError")
    assert jobs["weekly_report"]["created"] is True


def test_log_admin_endpoints(api):
    api.post("/api/categories", json={"key": "pets", "label": "Pets"})
    stats = api.get("/api/admin/logs/stats").json()["data"]
    assert stats["hours"] == 24
    assert api.delete("/api/admin/logs", params={"retention_days": 1}).status_code == 200
