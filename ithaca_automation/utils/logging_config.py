"""
Logging setup

Configures structlog for timestamped status lines. Wallet and stage are bound
as context variables by the cycle runner, so every line emitted while a
wallet is processed names the wallet and the stage it belongs to.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

import structlog

_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}


def configure_logging(level: str = 'info', json_logs: bool = False) -> None:
    """Configure structlog processors and renderer

    Args:
        level: Minimum level name (debug, info, warning, error)
        json_logs: Render JSON lines instead of the colored console format
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=True)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_LEVELS.get(level.lower(), logging.INFO)),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def wallet_context(wallet: str) -> Iterator[None]:
    """Bind ``wallet`` to every log line emitted inside the block"""
    with structlog.contextvars.bound_contextvars(wallet=wallet):
        yield


@contextmanager
def stage_context(stage: str) -> Iterator[None]:
    """Bind the operation stage (transfer, bridge, ...) to log lines"""
    with structlog.contextvars.bound_contextvars(stage=stage):
        yield
