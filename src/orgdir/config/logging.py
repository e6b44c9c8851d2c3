"""Log routing for the orgdir CLI.

The engines log through stdlib ``logging`` under ``orgdir.*``; the façade
emits one structlog ``directory.op`` event per call.  Both end up on a single
stderr handler so stdout stays reserved for results.  While a façade call
runs, its operation name is bound as ``op`` and appears on every record.
"""

from __future__ import annotations

import logging
import sys

import structlog

# Chatty third-party loggers held at WARNING even under --verbose.
_QUIET_LOGGERS = ("sqlalchemy", "pluggy")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
) -> None:
    """Route orgdir logging to stderr.

    Args:
        verbose: Show ``orgdir`` DEBUG records (engine steps, per-call
            timings). Otherwise only warnings, such as failed plugin hooks
            or a partially applied mutation.
        log_json: One JSON object per line instead of the console layout.
    """
    shared = _shared_processors()
    if log_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    logging.getLogger("orgdir").setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
