from .logger import get_logger, log_context, setup_logging, shutdown_logging

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "shutdown_logging",
]
