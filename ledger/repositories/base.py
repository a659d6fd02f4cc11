# ledger/repositories/base.py
"""
Shared pieces for the repository layer.

Each entity module defines an abstract interface (what the services may ask
for) and a SQL implementation built on a SQLModel Session. Repositories only
add/flush; committing is the calling service's job so one use case = one
database transaction.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, TypeVar

from sqlmodel import Session

from ledger.models import utcnow

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    def pagination(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "page_size": self.page_size,
            "total": self.total,
            "total_pages": self.total_pages,
            "has_next": self.page < self.total_pages,
            "has_prev": self.page > 1,
        }


class SqlRepository:
    """Base for SQL implementations: holds the request's session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _save(self, row: T) -> T:
        self.session.add(row)
        self.session.flush()
        self.session.refresh(row)
        return row

    def _apply(self, row: T, changes: Dict[str, Any]) -> T:
        for name, value in changes.items():
            setattr(row, name, value)
        if hasattr(row, "updated_at"):
            row.updated_at = utcnow()
        return self._save(row)
