# ledger/routers/analyze.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from ledger.deps import get_ai_client, get_repositories
from ledger.errors import ValidationError
from ledger.period import month_bounds, parse_year_month
from ledger.repositories.container import Repositories
from ledger.repositories.transactions import TransactionFilter
from ledger.schemas import AnalyzeRequest, ok
from ledger.services.ai import AIClient

router = APIRouter(prefix="/api/analyze", tags=["analyze"])

# what the model gets to see of each stored transaction
PAYLOAD_FIELDS = {
    "type",
    "category",
    "amount",
    "date",
    "currency",
    "payment_method",
    "merchant",
    "note",
}


@router.post("")
def analyze_month(
    body: AnalyzeRequest,
    repos: Repositories = Depends(get_repositories),
    ai: AIClient = Depends(get_ai_client),
):
    try:
        year, month = parse_year_month(body.month)
    except ValueError as ex:
        raise ValidationError.for_field("month", str(ex))

    transactions = body.transactions
    if transactions is None:
        start, end = month_bounds(year, month)
        transactions = [
            t.model_dump(mode="json", include=PAYLOAD_FIELDS)
            for t in repos.transactions.find_all(TransactionFilter(start_date=start, end_date=end))
        ]
    return ok({"month": body.month, "summary": ai.analyze_month(body.month, transactions)})
