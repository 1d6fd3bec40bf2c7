"""Structured logging for the CLI and the vault watcher.

Every record goes through structlog into stdlib handlers, one per configured
output. Console handlers go quiet while a sync progress bar owns the
terminal; file handlers keep everything.

Records carry a ``request_id``: one per CLI invocation (``cli-xxxxxxxx``)
and one per batch of filesystem changes seen by the watcher
(``watch-xxxxxxxx``), so a watcher batch can be followed through the
pipeline in a shared log file.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from relnotes.config.models import LoggingConfig, LogOutputConfig

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

# Loggers that are chatty below WARNING and say nothing about notes.
_QUIET_LOGGERS = ("watchfiles.main",)


def _new_request_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:8]}"


def get_request_id() -> str | None:
    return _request_id.get()


def set_request_id(request_id: str | None = None, *, prefix: str = "cli") -> str:
    """Tag every following record in this context, e.g. for one CLI command."""
    rid = request_id or _new_request_id(prefix)
    _request_id.set(rid)
    return rid


@contextmanager
def request_scope(prefix: str) -> Iterator[str]:
    """Tag records with a fresh id until the block exits, then restore the outer one."""
    token = _request_id.set(_new_request_id(prefix))
    try:
        yield _request_id.get() or ""
    finally:
        _request_id.reset(token)


def _add_request_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if rid := _request_id.get():
        event_dict["request_id"] = rid
    return event_dict


class ConsoleSuppressingFilter(logging.Filter):
    """Drops console records while the sync progress bar is live."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: ARG002
        from relnotes.core.progress import is_console_suppressed

        return not is_console_suppressed()


def _level(name: str) -> int:
    return logging.getLevelName(name.upper()) if name else logging.INFO


def _renderer(fmt: str, is_console: bool) -> structlog.types.Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=is_console and sys.stderr.isatty(),
        pad_event_to=0,
        pad_level=False,
    )


def _build_handler(
    output: LogOutputConfig,
    default_level: int,
    pre_chain: list[structlog.types.Processor],
) -> logging.Handler:
    is_console = output.destination in ("stderr", "stdout")
    handler: logging.Handler
    if is_console:
        handler = logging.StreamHandler(getattr(sys, output.destination))
        handler.addFilter(ConsoleSuppressingFilter())
    else:
        path = Path(output.destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")

    handler.setLevel(_level(output.level) if output.level else default_level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(output.format, is_console),
            foreign_pre_chain=pre_chain,
        )
    )
    return handler


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Route structlog through one handler per configured output.

    Without ``config`` a single stderr output is set up from ``json_format``
    and ``level``. Safe to call again; earlier file handlers are closed.
    """
    from relnotes.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level,  # type: ignore[arg-type]
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )
    default_level = _level(config.level)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _add_request_id,  # type: ignore[list-item]
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(default_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # reconfiguring (tests, --verbose) must take effect on existing loggers
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for old in root.handlers:
        if isinstance(old, logging.FileHandler):
            old.close()
    root.handlers.clear()
    root.setLevel(default_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for output in config.outputs:
        root.addHandler(_build_handler(output, default_level, pre_chain))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]
