"""Shared logging helpers for payoutsync."""

from __future__ import annotations

import logging

# httpx logs every request URL at INFO, and signed partner URLs carry the access token.
_REQUEST_LOGGERS = ("httpx", "httpcore")


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger for scheduler output.

    Request logging from the HTTP stack is held at WARNING whatever ``level`` is.
    Pass ``force=True`` to reconfigure during tests.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=force,
    )
    for name in _REQUEST_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
