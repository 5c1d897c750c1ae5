"""Utility modules for logging and request tracing."""

from onboarding_api.utils.logging import bind_request_context, configure_logging, get_logger

__all__ = ["bind_request_context", "configure_logging", "get_logger"]
