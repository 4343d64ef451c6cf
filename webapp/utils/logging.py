import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def configure_logging(level: str | None = None):
    """Configure root logging once; LOG_LEVEL decides verbosity."""
    name = (level or os.environ.get("LOG_LEVEL") or "info").upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)
    return logging.getLogger("tl")

__all__ = ["configure_logging"]
