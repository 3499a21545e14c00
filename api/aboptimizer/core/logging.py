import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Route application logs to stdout at ``level`` (falls back to INFO)."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
