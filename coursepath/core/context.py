"""Per-request identifiers kept in contextvars.

The logging processor merges them into every event, so anything logged while
serving a request carries the request id and, once the bearer token has been
decoded, the learner id.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# (log key, variable, value meaning "unset")
_FIELDS: tuple[tuple[str, ContextVar[Any], Any], ...] = (
    ("request_id", request_id_var, ""),
    ("user_id", user_id_var, None),
    ("trace_id", trace_id_var, None),
    ("correlation_id", correlation_id_var, None),
)


def get_request_id() -> str:
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Adopt the caller's request id, or mint one when the header is absent."""
    value = request_id or str(uuid4())
    request_id_var.set(value)
    return value


def set_user_id(user_id: str | UUID | None) -> None:
    user_id_var.set(str(user_id) if user_id is not None else None)


def set_trace_ids(
    trace_id: str | None = None, correlation_id: str | None = None
) -> None:
    """Bind distributed tracing ids propagated by the tracker or a gateway."""
    if trace_id:
        trace_id_var.set(trace_id)
    if correlation_id:
        correlation_id_var.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Bound identifiers, skipping the unset ones."""
    return {
        name: var.get()
        for name, var, unset in _FIELDS
        if var.get() not in (unset, None, "")
    }


def clear_context() -> None:
    for _, var, unset in _FIELDS:
        var.set(unset)
