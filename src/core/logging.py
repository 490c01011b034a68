"""Logging setup."""
import logging

from src.core.config import settings


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once for the process."""

    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    # httpx logs full request URLs at INFO, which may include query secrets
    logging.getLogger("httpx").setLevel(logging.WARNING)
