# src/careops/utils/logger.py
from __future__ import annotations

import logging
from typing import Optional

from src.careops.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Storage corruption, probe failures and swallowed telemetry errors land here
diagnostics = logging.getLogger("careops.diagnostics")

_configured = False


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    global _configured
    lvl = (level or settings.LOG_LEVEL or "INFO").upper()
    if not _configured:
        logging.basicConfig(level=lvl, format=LOG_FORMAT)
        _configured = True
    logging.getLogger().setLevel(lvl)
