"""
Shared logging configuration for the protected static cache service.

Every module logs through ``get_logger("protected_cache.<component>")``.
Events carry the service name plus the request and resource being served,
taken from context variables set by the request middleware and the cache
coordinator.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Context variables for correlation IDs
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
resource_id_var: ContextVar[Optional[str]] = ContextVar('resource_id', default=None)

_service_name: Optional[str] = None


def configure_logging(service_name: str, log_level: str = "info", json_output: bool = True) -> None:
    """
    Configure structlog over the standard library logger.

    Args:
        service_name: Attached to every event as ``service``
        log_level: Standard level name
        json_output: JSON lines when True, key/value console output otherwise
    """
    global _service_name
    _service_name = service_name

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_correlation_context,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    
    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add the configured service name and the emitting component."""
    if _service_name:
        event_dict.setdefault("service", _service_name)

    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["component"] = logger_name.rsplit(".", 1)[1]

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add correlation context to log events."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id
    
    resource_id = resource_id_var.get()
    if resource_id:
        event_dict["resource_id"] = resource_id
    
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_resource_context(resource_id: Optional[str] = None):
    """Set the resource being served in logging context."""
    resource_id_var.set(resource_id)


def clear_context():
    """Clear all context variables."""
    request_id_var.set(None)
    resource_id_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
