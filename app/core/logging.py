"""Logging setup shared by the API server and CLI scripts."""

import logging
import time


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with UTC timestamps; uvicorn access logs are reduced to warnings."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
        force=True,
    )
    for handler in logging.getLogger().handlers:
        if handler.formatter is not None:
            handler.formatter.converter = time.gmtime
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
