"""Logging configuration."""

import logging

from rich.logging import RichHandler


def setup_logging(level: str = "INFO") -> None:
    logger = logging.getLogger("slipledger")
    logger.setLevel(level.upper())

    # Avoid duplicate handlers (uvicorn reload, repeated CLI calls)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
