# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog + stdlib bridge for http-browse.

Everything goes to stderr: stdout is reserved for the fetched HTML.
Interactive runs get ConsoleRenderer, ``--log-json`` gets JSONRenderer.
Leaf module, safe to call before anything else is imported.
"""

from __future__ import annotations

import logging
import sys

import structlog

DEFAULT_LEVEL = "WARNING"


def configure(*, json_output: bool = False, level: str = DEFAULT_LEVEL) -> None:
    """Configure structlog and route stdlib loggers through it.

    Args:
        json_output: True for JSON lines, False for human-readable output.
        level: Root logger level name. Unknown names fall back to WARNING.
    """
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))

    # Playwright's asyncio transport is chatty at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)
