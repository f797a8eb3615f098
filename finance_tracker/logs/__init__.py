"""Structured logging package."""

from finance_tracker.logs.logger import LogEvent, configure_logging, get_logger

__all__ = ["LogEvent", "configure_logging", "get_logger"]
