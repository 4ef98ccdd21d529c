"""
Logging setup shared by the sync engine entry points.
"""

import logging
from typing import Optional

from app.core.config import settings


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Install the default handler and level on the root logger."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )

    # The browser driver is chatty at DEBUG
    logging.getLogger("teachassist").setLevel(
        logging.DEBUG if settings.DEBUG else logging.INFO
    )
