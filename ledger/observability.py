# ledger/observability.py
import logging
import time
import uuid

from starlette.background import BackgroundTask, BackgroundTasks
from starlette.middleware.base import BaseHTTPMiddleware

from ledger.config import get_settings

TRACE_HEADER = "X-Trace-Id"


def configure_logging(level: str | None = None) -> None:
    """One root handler for the whole process; level from LOG_LEVEL."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start = time.perf_counter()

        # reuse the caller's trace id so one id follows a request across services
        trace_id = request.headers.get(TRACE_HEADER) or uuid.uuid4().hex
        request.state.trace_id = trace_id

        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logging.getLogger("ledger.req").info(
            "%s %s -> %s in %.1fms trace=%s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            trace_id,
        )
        response.headers[TRACE_HEADER] = trace_id

        if get_settings().persist_request_logs:
            # imported here: ledger.db builds the engine on import
            from ledger.db import engine
            from ledger.models import LogCategory, LogLevel
            from ledger.services.system_logs import write_log

            # runs after the body is sent; the client never waits on it
            task = BackgroundTask(
                write_log,
                engine,
                level=LogLevel.error if response.status_code >= 500 else LogLevel.info,
                category=LogCategory.api_request,
                trace_id=trace_id,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                message=f"{request.method} {request.url.path}",
                duration_ms=int(ms),
            )
            if response.background is None:
                response.background = task
            else:
                response.background = BackgroundTasks([response.background, task])
        return response
