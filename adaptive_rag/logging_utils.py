"""Logging setup for applications embedding Adaptive RAG.

Library modules only create ``logging.getLogger(__name__)`` loggers. Handlers
and levels are the application's choice; this helper covers the common case.
"""

import logging
from typing import Optional, Union

from .config import AdaptiveRAGConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    level: Optional[Union[int, str]] = None,
    config: Optional[AdaptiveRAGConfig] = None
) -> int:
    """
    Configure root logging with the standard format.

    Args:
        level: Explicit level name or number
        config: Loaded configuration; its ``log_level`` is used when ``level`` is omitted

    Returns:
        The numeric level applied to the root logger
    """
    if level is None:
        level = config.log_level if config is not None else logging.INFO
    if isinstance(level, str):
        name = level.upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {name}")

    logging.basicConfig(level=level, format=LOG_FORMAT)
    # basicConfig is a no-op once handlers exist; the level still applies
    logging.getLogger().setLevel(level)
    return level
