"""Logging setup for the portfolio tracker sidecar.

``main()`` calls ``setup()`` once before opening the store. Stdout is
reserved for JSON-lines responses and live query notifications, so log
records always go to stderr (or another stream passed in) and never
interleave with the protocol.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

_LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def setup(*, verbose: bool = False, stream: TextIO | None = None) -> None:
    """Configure the root logger for the sidecar process.

    Args:
        verbose: DEBUG instead of INFO. DEBUG includes every commit,
            rollback and live query subscription.
        stream: Where records go; stderr when omitted. Must not be the
            protocol stream.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=_LOG_FORMAT,
        datefmt=_DATE_FORMAT,
        stream=stream if stream is not None else sys.stderr,
    )
