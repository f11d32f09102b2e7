"""Logging helpers for the braindump project."""

from __future__ import annotations

import logging
from typing import Optional

_LOGGER_CONFIGURED = False


def configure_logging(level: int = logging.INFO) -> None:
    """Configure basic logging once for the application."""

    global _LOGGER_CONFIGURED
    if _LOGGER_CONFIGURED:
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    _LOGGER_CONFIGURED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Convenience helper that ensures logging is configured."""

    configure_logging()
    return logging.getLogger(name or "braindump")


def mask_secret(secret: Optional[str]) -> str:
    """Return a display-safe form of a credential (only the last four characters)."""

    if not secret:
        return "<unset>"
    tail = secret[-4:] if len(secret) > 8 else ""
    return f"****{tail}"


__all__ = ["configure_logging", "get_logger", "mask_secret"]
