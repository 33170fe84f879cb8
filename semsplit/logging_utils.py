"""
Logging helpers for semsplit.

Log records go to stderr while the screens and the final report are
drawn on stdout through rich, so -v output never interleaves with a
frame. Engine diagnostics are not logged here; the orchestrator prints
them dimmed through the console when verbose.
"""

from __future__ import annotations

import logging
import sys


def configure_logging(verbosity: int) -> None:
    """
    Configure the root logger based on a verbosity count.

    verbosity == 0 -> WARNING
    verbosity == 1 -> INFO
    verbosity >= 2 -> DEBUG
    """

    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )
    # basicConfig is a no-op once handlers exist; the level still applies.
    logging.getLogger().setLevel(level)
