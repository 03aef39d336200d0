# Context variable for the correlation ID forwarded on outgoing requests
import contextvars
import logging
import sys

import structlog
from pythonjsonlogger import jsonlogger
from structlog.stdlib import LoggerFactory

from ..config.settings import ClientSettings, get_settings

DEFAULT_SERVICE_NAME = "identity-client"

_correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("correlation_id", default=None)


def setup_logging(settings: ClientSettings | None = None, service_name: str = DEFAULT_SERVICE_NAME) -> None:
    """
    Configure structlog and the stdlib root logger from client settings

    The client never calls this on its own; it only emits debug events on the
    ``identity_client`` loggers. Applications without a logging setup of their
    own call it once at startup, and ``IDENTITY_CLIENT_LOG_LEVEL`` /
    ``IDENTITY_CLIENT_LOG_FORMAT`` then decide what is printed.

    Args:
        settings: Client settings; the cached ``get_settings()`` when omitted
        service_name: Value of the ``service`` key on every event
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    as_json = settings.log_format.lower() != "console"

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    if as_json:
        # httpx and httpcore records share the JSON shape of structlog events
        handler.setFormatter(
            jsonlogger.JsonFormatter(
                fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S%z",
            )
        )
    else:
        handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.handlers = [handler]

    renderer = structlog.processors.JSONRenderer() if as_json else structlog.dev.ConsoleRenderer(colors=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            bind_service(service_name),
            bind_correlation_id,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def bind_service(service_name: str):
    """Return a processor stamping ``service`` on every event"""

    def processor(logger, method_name, event_dict):
        event_dict["service"] = service_name
        return event_dict

    return processor


def bind_correlation_id(logger, method_name, event_dict):
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context"""
    _correlation_id_var.set(correlation_id)


def get_correlation_id() -> str | None:
    return _correlation_id_var.get()


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)
