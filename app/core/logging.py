import logging
from typing import Optional


def configure_logging(level: Optional[str] = None) -> None:
    """Configure structured logging defaults for the application."""
    logging.basicConfig(
        level=(level or "INFO").upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
