"""Structlog configuration with console and file output.

Configures structlog for structured logging with:
- Console output (colored in development, JSON elsewhere)
- Rotating JSON file output (all events + errors only)
- Request context injection via contextvars
- Masking of credentials and bearer tokens
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor

from coursepath.core.context import get_context


if TYPE_CHECKING:
    from coursepath.config.settings import Settings


# Minimum length for partial masking (show first 2 and last 2 chars)
_MIN_MASK_LENGTH = 4

_SENSITIVE_KEYS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "authorization",
        "credentials",
        "private_key",
    }
)

_NOISY_LOGGERS = (
    "uvicorn.access",
    "uvicorn.error",
    "cassandra",
    "httpx",
    "httpcore",
    "google",
    "urllib3",
)


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Inject request context (request_id, user_id, trace ids) into log events."""
    event_dict.update(get_context())
    return event_dict


def add_app_info_processor(
    app_name: str,
    app_version: str,
    environment: str,
) -> Processor:
    """Create a processor that stamps application info on every event."""

    def processor(
        logger: logging.Logger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict["app"] = app_name
        event_dict["version"] = app_version
        event_dict["environment"] = environment
        return event_dict

    return processor


def _mask_value(key: str, value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _mask_value(k, v) for k, v in value.items()}
    if isinstance(value, str) and any(s in key.lower() for s in _SENSITIVE_KEYS):
        if len(value) > _MIN_MASK_LENGTH:
            return value[:2] + "*" * (len(value) - _MIN_MASK_LENGTH) + value[-2:]
        return "***"
    return value


def filter_sensitive_data(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Mask tokens, secrets and credentials before rendering."""
    return {k: _mask_value(k, v) for k, v in event_dict.items()}


def build_shared_processors(settings: "Settings") -> list[Processor]:
    """Processor chain shared by structlog and foreign (stdlib) records."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        add_app_info_processor(
            settings.app_name, settings.app_version, settings.environment
        ),
        filter_sensitive_data,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_include_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
        )
    return processors


def _handler(
    handler: logging.Handler,
    level: str,
    renderer: Processor,
    shared_processors: list[Processor],
) -> logging.Handler:
    handler.setLevel(getattr(logging, level.upper()))
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )
    return handler


def configure_structlog(
    settings: "Settings",
    log_dir: Path | str | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Console output follows ``settings.log_format``. Two rotating JSON files
    are written to ``log_dir`` (defaults to ``settings.log_dir``): every event
    in ``<app>.log`` and errors only in ``<app>.error.log``.
    """
    level = settings.log_level
    log_dir = Path(log_dir or settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    shared = build_shared_processors(settings)

    if settings.log_format == "json":
        console_renderer: Processor = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )
    json_renderer = structlog.processors.JSONRenderer()

    def rotating(file_name: str) -> RotatingFileHandler:
        return RotatingFileHandler(
            filename=str(log_dir / file_name),
            maxBytes=settings.log_file_max_bytes,
            backupCount=settings.log_file_backup_count,
            encoding="utf-8",
        )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in (
        _handler(logging.StreamHandler(sys.stdout), level, console_renderer, shared),
        _handler(rotating(f"{settings.app_name}.log"), level, json_renderer, shared),
        _handler(
            rotating(f"{settings.app_name}.error.log"), "ERROR", json_renderer, shared
        ),
    ):
        root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)
