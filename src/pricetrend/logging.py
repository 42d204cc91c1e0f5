"""structlog setup for the price trend service.

Everything logs through structlog bound loggers; stdlib records from
uvicorn, aiosqlite and ccxt are routed through the same ProcessorFormatter
so one process emits one format.
"""

import logging

import structlog

# Libraries that log every statement or request at DEBUG.
_NOISY_LOGGERS = ("aiosqlite", "ccxt", "asyncio")


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format.lower() == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Root level name, e.g. "INFO" or "DEBUG".
        log_format: "json" for machine-readable lines, anything else for
            the human-readable console renderer.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    # Context bound with structlog.contextvars (the poller binds the hour
    # being written) is merged into every event of that task.
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
