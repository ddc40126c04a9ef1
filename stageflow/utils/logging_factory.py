"""Centralized logging setup for the ``stageflow`` logger hierarchy.

Usage:
    # Explicit initialization (optional - auto-initializes on first use)
    LoggingFactory.initialize(level=logging.DEBUG)

    logger = LoggingFactory.get_logger(__name__)
    logger.info("Workflow registered")

    # A stdlib logger satisfies the engine's Logger protocol
    workflow.execute(logger=get_logger("stageflow.run"))
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from ..config import get_config

ROOT_LOGGER = "stageflow"


class LoggingFactory:
    """Configures the ``stageflow`` loggers once per process.

    Class Attributes:
        _initialized: Flag to ensure single initialization
        _handlers: Handlers installed by ``initialize``
    """

    _initialized = False
    _handlers: List[logging.Handler] = []

    @classmethod
    def initialize(
        cls,
        level: Optional[int] = None,
        format_string: Optional[str] = None,
        log_file: Optional[Union[str, Path]] = None,
        handler: Optional[logging.Handler] = None,
    ) -> None:
        """Initialize logging for the ``stageflow`` hierarchy.

        Only the first call has an effect. Unset arguments come from
        ``EngineConfig`` (``STAGEFLOW_LOG_LEVEL``, ``STAGEFLOW_LOG_FORMAT``,
        ``STAGEFLOW_LOG_FILE``).

        Args:
            level: Logging level for the ``stageflow`` logger
            format_string: Format for the installed handlers
            log_file: Also write records to this file
            handler: Console handler to use instead of a plain StreamHandler
        """
        if cls._initialized:
            return

        config = get_config()
        if level is None:
            level = config.log_level_value
        if format_string is None:
            format_string = config.log_format
        if log_file is None:
            log_file = config.log_file

        formatter = logging.Formatter(format_string)
        handlers: List[logging.Handler] = [handler or logging.StreamHandler()]
        if log_file:
            path = Path(log_file)
            path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(path))

        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(level)
        for h in handlers:
            if h.formatter is None:
                h.setFormatter(formatter)
            root.addHandler(h)

        cls._handlers = handlers
        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger, initializing the hierarchy with defaults if needed."""
        if not cls._initialized:
            cls.initialize()
        return logging.getLogger(name)

    @classmethod
    def set_level(cls, name: str, level: int) -> None:
        logging.getLogger(name).setLevel(level)

    @classmethod
    def configure_verbose(cls, verbose: bool = False) -> None:
        """Switch the ``stageflow`` hierarchy between DEBUG and INFO."""
        logging.getLogger(ROOT_LOGGER).setLevel(logging.DEBUG if verbose else logging.INFO)

    @classmethod
    def reset(cls) -> None:
        """Remove installed handlers so ``initialize`` can run again."""
        root = logging.getLogger(ROOT_LOGGER)
        for h in cls._handlers:
            root.removeHandler(h)
            h.close()
        cls._handlers = []
        cls._initialized = False


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger for the given module name."""
    return LoggingFactory.get_logger(name)
