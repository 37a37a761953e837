# Core infrastructure
from coursepath.core.context import (
    clear_context,
    get_context,
    get_request_id,
    set_request_id,
    set_trace_ids,
    set_user_id,
)
from coursepath.core.logging import configure_structlog, get_logger
from coursepath.core.middleware import RequestContextMiddleware


__all__ = [
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "set_request_id",
    "set_trace_ids",
    "set_user_id",
]
