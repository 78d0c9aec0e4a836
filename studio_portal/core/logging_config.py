"""Logging setup for the API process."""
import logging
from typing import Optional

from studio_portal.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once for the whole process.

    Modules only ever call ``logging.getLogger(__name__)``; handlers and levels
    are decided here from ``settings.LOG_LEVEL`` unless an explicit level is given.
    """
    resolved = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("studio_portal").setLevel(resolved)
