"""Logging and observability configuration using Pydantic Logfire.

All modules use Python's standard logging library (logging.getLogger(__name__)),
and Logfire captures and enriches these logs once configured.

Standard usage:
    import logging
    logger = logging.getLogger(__name__)
    logger.info("Message", extra={"key": "value"})

Structured logging utilities:
    log_with_context(logger, "info", "Message", task_id=7, user_id=3)
"""

import logging

import logfire

from tasktracker.core.config import Settings, settings as default_settings


def configure_logfire(settings: Settings | None = None) -> None:
    """Configure Pydantic Logfire with token from environment.

    Logs are only shipped when a token is present; otherwise spans stay local.
    """
    settings = settings or default_settings
    logfire.configure(
        token=settings.logfire_token,
        service_name=settings.service_name,
        service_version="0.1.0",
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )

    logger = logging.getLogger(__name__)
    logger.info("Logfire configured successfully")


def span(name: str, **attributes: object) -> logfire.LogfireSpan:
    """Create a custom span for repository functions.

    Usage:
        with span("task_repository.create", user_id=3):
            # Your data access here
            pass
    """
    return logfire.span(name, **attributes)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: object,
) -> None:
    """Log a message with structured context fields.

    Args:
        logger: Logger instance to use
        level: Log level ("debug", "info", "warning", "error", "critical")
        message: Log message
        **context: Additional context fields (task_id, user_id, operation, etc.)
    """
    log_method = getattr(logger, level.lower())
    log_method(message, extra=context)
