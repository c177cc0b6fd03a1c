# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Progress spinner for CLI output.

Drawn with ``rich`` on stderr, and only when stderr is a terminal: stdout
carries the HTML and must stay clean when piped.
"""

from __future__ import annotations

import contextlib
import sys
from collections.abc import Generator

from rich.console import Console


@contextlib.contextmanager
def status_spinner(msg: str, *, enabled: bool = True) -> Generator[None, None, None]:
    """Show a spinner with *msg* while the block runs."""
    if not enabled or not sys.stderr.isatty():
        yield
        return

    console = Console(stderr=True)
    with console.status(msg):
        yield
