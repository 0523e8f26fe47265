"""structlog configuration for recurdates.

Two output modes:
- Human (default): colored console output to stderr
- JSON (log_json): Structured JSON lines to stderr

Library modules log through ``logging.getLogger(__name__)``. Output is
opt-in: nothing is rendered until :func:`configure_logging` runs, either
called directly or through ``RuleSerializer.from_settings`` when
``setup_logging`` is set. Only the ``recurdates`` logger tree is touched;
the host application's root handlers are left alone.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from recurdates.config.settings import RecurSettings

PACKAGE_LOGGER = "recurdates"
_HANDLER_NAME = "recurdates-structlog"


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
) -> None:
    """Configure structlog processors and route ``recurdates`` records to stderr.

    Repeated calls replace the handler installed by the previous call.

    Args:
        verbose: Enable DEBUG-level output. When False, only WARNING+.
        log_json: Use JSON renderer instead of console renderer.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in [h for h in package_logger.handlers if h.get_name() == _HANDLER_NAME]:
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.propagate = False


def configure_from_settings(settings: RecurSettings) -> None:
    """Apply the ``verbose`` and ``log_json`` flags of *settings*."""
    configure_logging(verbose=settings.verbose, log_json=settings.log_json)
