"""Structured logging for Historian.

Cache events are structlog key/value events (``cache_refilled``,
``refill_discarded``, ``page_cache_miss``). Output is a colored console
rendering by default and JSON when ``HISTORIAN_LOG_FORMAT=json``.

Work done on behalf of one cached repository runs inside
:func:`repository_context`, so every line it produces, including lines from
the git source and from stdlib loggers, carries ``root`` and ``generation``.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from historian.config import HistorianConfig

__all__ = [
    "configure_logging",
    "get_logger",
    "repository_context",
    "resolve_level",
]

LOG_FORMAT_ENV_VAR = "HISTORIAN_LOG_FORMAT"
LOG_LEVEL_ENV_VAR = "HISTORIAN_LOG_LEVEL"

DEFAULT_LOG_LEVEL = logging.INFO

#: Third-party loggers that report every git command or filesystem event.
#: They only pass through when Historian itself is at DEBUG.
CHATTY_LOGGERS = ("git", "watchfiles")


def resolve_level(level: int | str | None) -> int | None:
    """Turn a logging level or verbosity name ("debug", "warning") into an int."""
    if level is None or isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else None


def _effective_level(config: HistorianConfig | None, level: int | str | None) -> int:
    for candidate in (
        level,
        os.environ.get(LOG_LEVEL_ENV_VAR),
        config.verbosity if config is not None else None,
    ):
        resolved = resolve_level(candidate)
        if resolved is not None:
            return resolved
    return DEFAULT_LOG_LEVEL


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(use_json: bool) -> Processor:
    if use_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    config: HistorianConfig | None = None,
    *,
    force_json: bool = False,
    level: int | str | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Safe to call more than once; each call replaces the previous setup.

    The level is the first one set of: ``level``, ``HISTORIAN_LOG_LEVEL``,
    ``config.verbosity``. Without any of them it is INFO.

    Args:
        config: Loaded configuration; its ``verbosity`` sets the level.
        force_json: Force JSON output regardless of HISTORIAN_LOG_FORMAT.
        level: Explicit level, as an int or a verbosity name.
    """
    use_json = force_json or os.environ.get(LOG_FORMAT_ENV_VAR, "").lower() == "json"
    log_level = _effective_level(config, level)
    renderer = _renderer(use_json)
    exc_processor = (
        structlog.processors.dict_tracebacks if use_json else structlog.processors.format_exc_info
    )

    structlog.configure(
        processors=[*_shared_processors(), exc_processor, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
            foreign_pre_chain=_shared_processors(),
        )
    )
    root_logger = logging.getLogger()
    for old in root_logger.handlers[:]:
        root_logger.removeHandler(old)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    chatty_level = log_level if log_level <= logging.DEBUG else max(log_level, logging.WARNING)
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(chatty_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, usually ``get_logger(__name__)``."""
    log: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return log


@contextmanager
def repository_context(root: str, generation: int) -> Iterator[None]:
    """Tag every log line emitted inside the block with a cached repository.

    The binding lives in contextvars, so it follows awaits and asyncio
    tasks created inside the block, and is undone on exit.
    """
    with structlog.contextvars.bound_contextvars(root=root, generation=generation):
        yield
