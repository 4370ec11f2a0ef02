"""structlog configuration for the StackAlchemy API.

Request-scoped values such as the request ID are bound with
``structlog.contextvars`` by the middleware and merged into every event
logged while the request is handled.
"""

import logging

import structlog


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog processors and the standard library root logger.

    Args:
        level: Minimum log level name.
        json_logs: Render JSON lines instead of colored console output.
    """
    log_level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    renderer: structlog.typing.Processor
    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # SQLAlchemy, httpx and uvicorn log through the standard library.
    logging.basicConfig(level=log_level, format="%(levelname)s %(name)s %(message)s")
