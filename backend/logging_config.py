import logging

from backend.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install a stream handler on the root logger (no-op if one is already present)."""
    resolved = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
