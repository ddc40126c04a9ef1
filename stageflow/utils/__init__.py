from .logging_factory import LoggingFactory, get_logger
from .retry import RetryConfig, RetryExhaustedError, calculate_delay

__all__ = ["LoggingFactory", "RetryConfig", "RetryExhaustedError", "calculate_delay", "get_logger"]
