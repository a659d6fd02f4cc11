# ledger/routers/transactions_import.py
from __future__ import annotations

import csv
import io
from datetime import date
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse

from ledger.deps import after_write, get_repositories
from ledger.errors import AppError
from ledger.repositories.container import Repositories
from ledger.repositories.transactions import TransactionFilter
from ledger.routers.transactions import transaction_filter
from ledger.schemas import ok
from ledger.services import transactions as svc

router = APIRouter(prefix="/api/transactions", tags=["transactions-import"])

EXPECTED_HEADER = [
    "date",  # YYYY-MM-DD
    "type",  # income|expense
    "category",  # category key
    "subcategory",
    "amount",  # number > 0
    "currency",  # e.g. CNY
    "payment_method",  # payment method name, optional
    "merchant",
    "note",
]
MAX_IMPORT_BYTES = 5 * 1024 * 1024


def _row_error(ex: Exception) -> str:
    if isinstance(ex, AppError) and ex.details:
        return "; ".join(d["message"] for d in ex.details)
    return str(getattr(ex, "message", None) or ex)


@router.get("/template", response_class=PlainTextResponse)
def download_template():
    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerow(EXPECTED_HEADER)
    # one example row each
    w.writerow(["2025-01-01", "income", "salary", "", "8000", "CNY", "", "", "January salary"])
    w.writerow(["2025-01-15", "expense", "food", "", "45.30", "CNY", "", "Corner Market", "Weekly shop"])
    return PlainTextResponse(
        buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="transactions_template.csv"'},
    )


@router.get("/export")
def export_csv(
    flt: TransactionFilter = Depends(transaction_filter),
    repos: Repositories = Depends(get_repositories),
):
    """Filtered transactions as CSV in the import layout (re-importable)."""
    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerow(EXPECTED_HEADER)
    for t in repos.transactions.find_all(flt):
        w.writerow(
            [
                t.date.isoformat(),
                t.type.value,
                t.category,
                t.subcategory or "",
                f"{t.amount:.2f}",
                t.currency,
                t.payment_method or "",
                t.merchant or "",
                t.note or "",
            ]
        )
    return PlainTextResponse(
        buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="transactions.csv"'},
    )


@router.post("/import")
async def import_csv(
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
    file: UploadFile = File(...),
):
    """
    All-or-nothing import: every row is validated and staged; any error rolls
    the whole file back and the response lists every failing row.
    """
    raw = await file.read()
    if len(raw) > MAX_IMPORT_BYTES:
        return JSONResponse({"error": "File is too large (max 5 MB)."}, status_code=400)
    try:
        text = raw.decode("utf-8-sig")  # tolerate a BOM from spreadsheet exports
    except UnicodeDecodeError:
        return JSONResponse({"error": "File must be UTF-8 text (CSV)."}, status_code=400)

    reader = csv.reader(io.StringIO(text))
    try:
        header = next(reader)
    except StopIteration:
        return JSONResponse({"error": "CSV appears to be empty."}, status_code=400)

    if [h.strip().lower() for h in header] != EXPECTED_HEADER:
        return JSONResponse(
            {
                "error": "Header mismatch. Download the template and use those exact "
                "column names and order.",
                "expected": EXPECTED_HEADER,
            },
            status_code=400,
        )

    errors: List[str] = []
    imported = 0
    row_idx = 1  # the header is row 1
    for row in reader:
        row_idx += 1
        if not any(c.strip() for c in row):
            continue
        # Allow shorter rows (empty trailing columns)
        row = (row + [""] * len(EXPECTED_HEADER))[: len(EXPECTED_HEADER)]
        (
            s_date,
            s_type,
            s_cat,
            s_sub,
            s_amount,
            s_currency,
            s_method,
            s_merchant,
            s_note,
        ) = [c.strip() for c in row]

        try:
            if not s_date:
                raise ValueError("date is required (YYYY-MM-DD)")
            try:
                txn_dt = date.fromisoformat(s_date)
            except ValueError:
                raise ValueError("date must be in YYYY-MM-DD format")
            if not s_amount:
                raise ValueError("amount is required")

            svc.create_transaction(
                repos,
                type=s_type.lower(),
                category=s_cat,
                amount=s_amount,
                date=txn_dt,
                note=s_note or None,
                currency=s_currency or None,
                payment_method=s_method or None,
                merchant=s_merchant or None,
                subcategory=s_sub or None,
                commit=False,
            )
            imported += 1
        except Exception as ex:  # collect row-level errors
            errors.append(f"Row {row_idx}: {_row_error(ex)}")

    if errors:
        repos.rollback()
        return JSONResponse(
            {"error": "Import failed; nothing was saved.", "details": errors},
            status_code=400,
        )

    repos.commit()
    after_write(background, request, repos, svc.WRITE_TAGS, "transaction.import", {"imported": imported})
    return ok({"imported": imported})
