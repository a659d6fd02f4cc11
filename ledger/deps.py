# ledger/deps.py
"""
FastAPI dependencies shared by the routers.

The SQL repositories are the only backend today; another implementation
plugs in by overriding get_repositories (app.dependency_overrides).
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, Optional

from fastapi import BackgroundTasks, Depends, Request
from sqlmodel import Session

from ledger.cache import invalidate_tags
from ledger.db import get_session
from ledger.repositories.container import Repositories, build_repositories
from ledger.services.ai import AIClient
from ledger.services.holidays import HolidayCalendar
from ledger.services.system_logs import record_user_action


def get_repositories(session: Session = Depends(get_session)) -> Repositories:
    return build_repositories(session)


def get_calendar(session: Session = Depends(get_session)) -> HolidayCalendar:
    # same engine as the request, but its own short sessions
    return HolidayCalendar(bind=session.get_bind())


def get_ai_client() -> AIClient:
    return AIClient()


def get_today() -> date:
    return date.today()


def trace_id(request: Request) -> str | None:
    return getattr(request.state, "trace_id", None)


def after_write(
    background: BackgroundTasks,
    request: Request,
    repos: Repositories,
    tags: Iterable[str],
    action: str,
    meta: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Schedule the post-response side effects of a successful write:
    cache invalidation for `tags` and a best-effort user-action log row.
    Neither can fail the request.
    """
    background.add_task(invalidate_tags, list(tags))
    background.add_task(
        record_user_action,
        repos.session.get_bind(),
        action,
        trace_id=trace_id(request),
        path=request.url.path,
        method=request.method,
        meta=meta,
    )
