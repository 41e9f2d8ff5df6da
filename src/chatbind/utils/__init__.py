"""Utility functions for environment-driven configuration."""

from .config import (
    create_chat_request,
    create_function_dispatcher,
    get_default_model,
    get_default_models,
    load_environment,
)

__all__ = [
    "load_environment",
    "get_default_model",
    "get_default_models",
    "create_chat_request",
    "create_function_dispatcher",
]
