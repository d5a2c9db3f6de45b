"""Logging helpers for the pricing toolkit."""

from __future__ import annotations

import logging
from typing import Iterable


def configure_logging(
    level: int | str = logging.WARNING,
    handlers: Iterable[logging.Handler] | None = None,
) -> None:
    """Configure root logging for command-line sessions.

    The pricing engines only emit ``DEBUG`` diagnostics (goal caps, solved
    probabilities, renormalisations); raising the level to ``DEBUG`` is the
    way to see how a price was reached.
    """

    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=list(handlers) if handlers else None,
    )
