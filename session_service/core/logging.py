"""
Logging utilities for the FastAPI application and operational scripts.

Provides a consistent logging format and configuration.
"""

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # httpx logs every request line, including token endpoint calls.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def mask_session_id(session_id: str) -> str:
    """Shorten a session identifier so log lines cannot be replayed as cookies."""
    if len(session_id) <= 8:
        return "***"
    return f"{session_id[:8]}***"


__all__ = ["configure_logging", "mask_session_id"]
