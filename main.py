from __future__ import annotations

import logging
import os

from calendar_resolver.app import app

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

__all__ = ["app"]
