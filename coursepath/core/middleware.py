"""Request context middleware.

Binds the request, trace and correlation ids before the route runs, logs one
line per request with its latency and echoes the request id back so a learner
reporting a failed sync can quote it.
"""

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from coursepath.core.context import clear_context, set_request_id, set_trace_ids


logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
TRACE_ID_HEADER = "X-Trace-ID"
CORRELATION_ID_HEADER = "X-Correlation-ID"
TRACEPARENT_HEADER = "traceparent"


def extract_traceparent(traceparent: str | None) -> str | None:
    """Trace id of a W3C ``traceparent`` (version-traceid-parentid-flags)."""
    if not traceparent:
        return None
    parts = traceparent.split("-")
    return parts[1] if len(parts) >= 2 and parts[1] else None


def bind_request(request: Request) -> str:
    """Bind the ids carried by ``request`` and return its request id."""
    headers = request.headers
    request_id = set_request_id(headers.get(REQUEST_ID_HEADER))
    set_trace_ids(
        trace_id=headers.get(TRACE_ID_HEADER)
        or extract_traceparent(headers.get(TRACEPARENT_HEADER)),
        correlation_id=headers.get(CORRELATION_ID_HEADER),
    )
    request.state.request_id = request_id
    return request_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request context for structured logging and access-log requests."""

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = tuple(exclude_paths or ["/health"])

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started = time.perf_counter()
        request_id = bind_request(request)
        path = request.url.path
        logged = self.log_requests and not path.startswith(self.exclude_paths)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "request_failed",
                method=request.method,
                path=path,
                error_type=type(e).__name__,
                duration_ms=_elapsed_ms(started),
            )
            raise
        else:
            if logged:
                log = logger.warning if response.status_code >= 400 else logger.info
                log(
                    "request_completed",
                    method=request.method,
                    path=path,
                    status_code=response.status_code,
                    duration_ms=_elapsed_ms(started),
                )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
