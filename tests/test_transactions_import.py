# tests/test_transactions_import.py
"""CSV template / all-or-nothing import / export round."""

from __future__ import annotations

HEADER = "date,type,category,subcategory,amount,currency,payment_method,merchant,note\n"


def _upload(client, text: str, name: str = "tx.csv"):
    return client.post(
        "/api/transactions/import",
        files={"file": (name, text.encode("utf-8"), "text/csv")},
    )


def test_template_has_expected_header(client):
    r = client.get("/api/transactions/template")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert r.text.splitlines()[0] == HEADER.strip()


def test_import_success(client):
    csv_text = (
        HEADER
        + "2025-01-01,income,salary,,8000,CNY,,,January salary\n"
        + "2025-01-15,expense,food,,45.30,,,Corner Market,Weekly shop\n"
        + ",,,,,,,,\n"  # blank rows are ignored
    )
    r = _upload(client, csv_text)
    assert r.status_code == 200, r.text
    assert r.json()["data"] == {"imported": 2}

    listed = client.get("/api/transactions").json()["data"]
    assert {t["merchant"] for t in listed} == {None, "Corner Market"}


def test_import_accepts_bom(client):
    r = _upload(client, "\ufeff" + HEADER + "2025-01-15,expense,food,,5,,,,\n")
    assert r.status_code == 200
    assert r.json()["data"]["imported"] == 1


def test_import_with_errors_saves_nothing(client):
    csv_text = (
        HEADER
        + "2025-01-15,expense,food,,45.30,,,,\n"
        + "15/01/2025,expense,food,,10,,,,\n"
        + "2025-01-16,expense,ghost,,10,,,,\n"
        + "2025-01-17,expense,food,,-3,,,,\n"
    )
    r = _upload(client, csv_text)
    assert r.status_code == 400
    body = r.json()
    assert body["details"] == [
        "Row 3: date must be in YYYY-MM-DD format",
        'Row 4: category "ghost" does not exist',
        "Row 5: amount must be greater than 0",
    ]
    assert client.get("/api/transactions").json()["pagination"]["total"] == 0


def test_header_mismatch(client):
    r = _upload(client, "when,what\n2025-01-01,x\n")
    assert r.status_code == 400
    assert r.json()["expected"][0] == "date"


def test_empty_file(client):
    r = _upload(client, "")
    assert r.status_code == 400


def test_export_is_reimportable(client):
    client.post(
        "/api/transactions",
        json={"type": "expense", "category": "food", "amount": 12, "date": "2025-02-01", "note": "a, b"},
    )
    r = client.get("/api/transactions/export", params={"category": "food"})
    assert r.status_code == 200
    lines = r.text.splitlines()
    assert lines[0] == HEADER.strip()
    assert lines[1] == '2025-02-01,expense,food,,12.00,CNY,,,"a, b"'

    again = _upload(client, r.text)
    assert again.json()["data"] == {"imported": 1}
