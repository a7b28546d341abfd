"""Centralized logging configuration for the screening pipeline."""
from __future__ import annotations

import logging
import os
from typing import Optional

from resumescreen.env_loader import load_env

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Third-party loggers that drown the pipeline output at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "sentence_transformers", "urllib3")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once using env overrides."""
    load_env()
    if logging.getLogger().handlers:
        return

    log_level = (level or os.environ.get("RS_LOG_LEVEL", "INFO")).upper()
    log_format = os.environ.get("RS_LOG_FORMAT", DEFAULT_FORMAT)

    logging.basicConfig(level=log_level, format=log_format)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
