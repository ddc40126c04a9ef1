"""Engine configuration loaded from environment variables."""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Optional, Union

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_bool(value: Union[str, bool, None]) -> bool:
    """Parse boolean value from various formats."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return value.strip().lower() in ("true", "1", "yes", "on", "enabled")


def _getenv(key: str, default: str = "") -> str:
    return os.getenv(key, default)


def _getenv_int(key: str, default: int) -> int:
    """Get integer environment variable.

    Raises:
        ValueError: If value cannot be parsed as integer
    """
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"Invalid integer value for {key}='{value}'") from e


def _getenv_float(key: str, default: float) -> float:
    """Get float environment variable.

    Raises:
        ValueError: If value cannot be parsed as float
    """
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"Invalid float value for {key}='{value}'") from e


@dataclass
class EngineConfig:
    """Engine settings, each defaulting from a ``STAGEFLOW_*`` variable."""

    # ========== Logging ==========
    log_level: str = field(default_factory=lambda: _getenv("STAGEFLOW_LOG_LEVEL", "INFO").upper())
    log_format: str = field(default_factory=lambda: _getenv("STAGEFLOW_LOG_FORMAT", DEFAULT_LOG_FORMAT))
    log_file: Optional[str] = field(default_factory=lambda: _getenv("STAGEFLOW_LOG_FILE") or None)

    # ========== Execution ==========
    check_cancellation: bool = field(
        default_factory=lambda: _parse_bool(_getenv("STAGEFLOW_CHECK_CANCELLATION", "false"))
    )
    ignore_errors: bool = field(default_factory=lambda: _parse_bool(_getenv("STAGEFLOW_IGNORE_ERRORS", "false")))

    # ========== UI ==========
    rich_output: bool = field(default_factory=lambda: _parse_bool(_getenv("STAGEFLOW_RICH_OUTPUT", "true")))

    # ========== Retry wrapper defaults ==========
    retry_max_attempts: int = field(default_factory=lambda: _getenv_int("STAGEFLOW_RETRY_MAX_ATTEMPTS", 3))
    retry_base_delay: float = field(default_factory=lambda: _getenv_float("STAGEFLOW_RETRY_BASE_DELAY", 0.5))
    retry_max_delay: float = field(default_factory=lambda: _getenv_float("STAGEFLOW_RETRY_MAX_DELAY", 30.0))

    def validate(self) -> None:
        """Check values that cannot be enforced by parsing alone.

        Raises:
            ValueError: On an unknown log level or inconsistent retry bounds
        """
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level '{self.log_level}', expected one of {', '.join(_LOG_LEVELS)}")
        if self.retry_max_attempts < 1:
            raise ValueError("retry_max_attempts must be at least 1")
        if self.retry_base_delay < 0:
            raise ValueError("retry_base_delay must be non-negative")
        if self.retry_max_delay < self.retry_base_delay:
            raise ValueError("retry_max_delay must be >= retry_base_delay")

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level)


_config_instance: Optional[EngineConfig] = None
_config_lock = threading.Lock()


def _load_env_file() -> None:
    env_path = find_dotenv(usecwd=True)
    if env_path:
        load_dotenv(env_path, override=False)
        logger.debug(f"Loaded environment from {env_path}")


def get_config() -> EngineConfig:
    """Get global config instance (singleton pattern, thread-safe)."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _load_env_file()
                config = EngineConfig()
                config.validate()
                _config_instance = config
    return _config_instance


def reset_config() -> None:
    """Drop the cached config so the next ``get_config`` re-reads the environment."""
    global _config_instance
    with _config_lock:
        _config_instance = None
