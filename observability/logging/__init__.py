"""
JSON logging utilities that include trace & span IDs when available.

You can use:

    from observability.logging import get_json_logger

    logger = get_json_logger(__name__)
    logger.warning("request body capture failed", extra={"path": "/upload"})
"""

from .json_logger import JsonFormatter, get_json_logger

__all__ = ["JsonFormatter", "get_json_logger"]
