"""structlog setup.

Application code logs through ``get_logger(__name__)`` with an event name
and keyword fields. Records from uvicorn and SQLAlchemy go through the same
stdlib handler, so every line shares one format: JSON in production and a
console layout elsewhere.
"""
# ruff: noqa: ARG001

import logging
import sys
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from carenotes.config.settings import get_settings

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

ROUTED_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "sqlalchemy")
QUIET_LOGGERS = ("sqlalchemy", "sqlalchemy.engine")


def add_request_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Fill request_id, tenant_id and actor_id from the active request, unless already set."""
    # imported here: core.context depends on modules that log
    from carenotes.core.context import get_current_context_or_none

    ctx = get_current_context_or_none()
    if ctx is None:
        return event_dict
    for key, value in (
        ("request_id", ctx.request_id),
        ("tenant_id", ctx.tenant_id),
        ("actor_id", ctx.actor_id),
    ):
        event_dict.setdefault(key, str(value))
    return event_dict


def add_environment(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["environment"] = get_settings().ENVIRONMENT
    return event_dict


def drop_color_message_key(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """uvicorn duplicates its message with ANSI codes under color_message."""
    event_dict.pop("color_message", None)
    return event_dict


def build_processors(add_timestamp: bool = True) -> list[Processor]:
    """Chain applied both to structlog events and to foreign stdlib records."""
    chain: list[Processor] = []
    if add_timestamp:
        chain.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    chain += [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_request_context,
        add_environment,
        drop_color_message_key,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    return chain


def _stdout_handler(pre_chain: list[Processor], renderer: Processor) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    return handler


def setup_logging(
    log_level: LogLevel | None = None,
    json_format: bool | None = None,
    add_timestamp: bool = True,
) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: Minimum level; defaults to ``Settings.log_level``
        json_format: Force JSON on or off; defaults to on in production
        add_timestamp: Prefix events with a UTC ISO timestamp
    """
    settings = get_settings()
    level_name = (log_level or settings.log_level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    use_json = settings.is_production if json_format is None else json_format

    chain = build_processors(add_timestamp)
    if use_json:
        chain.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = _stdout_handler(chain, renderer)
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in ROUTED_LOGGERS:
        routed = logging.getLogger(name)
        routed.handlers = [handler]
        routed.propagate = False
    # statement echo is INFO
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class LogContext:
    """Bind fields to every event logged inside the block.

        with LogContext(operation="seed", tenant="oak-lodge"):
            logger.info("seeding_started")
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        self._tokens = structlog.contextvars.bind_contextvars(**self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)


def log_exception(
    logger: structlog.stdlib.BoundLogger, exc: BaseException, **fields: Any
) -> None:
    """Log ``exc`` at error level with its type, message and traceback."""
    logger.error(
        "exception_occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        exc_info=exc,
        **fields,
    )
