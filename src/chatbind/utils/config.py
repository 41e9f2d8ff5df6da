"""Configuration utilities for environment-based setup."""

import asyncio
import os
from collections.abc import Sequence
from typing import Any

from dotenv import load_dotenv

from chatbind.chat.request import DEFAULT_CHAT_MODEL, ChatPrompt, ChatRequest
from chatbind.functions.dispatcher import FunctionDispatcher
from chatbind.functions.registry import FunctionRegistry, get_default_registry

CHAT_MODEL_ENV_VAR = "CHATBIND_CHAT_MODEL"


def load_environment() -> None:
    """Load environment variables from .env file if it exists."""
    load_dotenv()


def get_default_model() -> str:
    """Get the chat model to use when a request does not name one.

    Returns:
        The value of ``CHATBIND_CHAT_MODEL``, or 'gpt-3.5-turbo' when unset
    """
    load_environment()
    return os.getenv(CHAT_MODEL_ENV_VAR) or DEFAULT_CHAT_MODEL


def get_default_models() -> dict[str, str]:
    """Get default models for each request kind.

    Returns:
        Dictionary mapping request kinds to default model names
    """
    return {"chat": get_default_model()}


def create_chat_request(
    messages: Sequence[ChatPrompt | dict[str, Any]],
    model: str | None = None,
    **kwargs: Any,
) -> ChatRequest:
    """Create a chat request using the environment's default model.

    Args:
        messages: Conversation turns to send
        model: Model name (if None, uses ``get_default_model()``)
        **kwargs: Optional sampling parameters forwarded to ``ChatRequest``

    Returns:
        Validated ChatRequest

    Raises:
        InvalidArgumentException: If the model is outside the supported family
        MissingArgumentException: If no messages are supplied
    """
    return ChatRequest(messages, model=model or get_default_model(), **kwargs)


def create_function_dispatcher(
    registry: FunctionRegistry | None = None,
    host_loop: asyncio.AbstractEventLoop | None = None,
) -> FunctionDispatcher:
    """Create a function dispatcher for the host application.

    Args:
        registry: Registry to resolve names against (if None, the shared default
            registry that ``Function(..., method=...)`` registers into)
        host_loop: Event loop owning host state; async dispatch runs there

    Returns:
        Configured FunctionDispatcher
    """
    return FunctionDispatcher(
        registry=registry if registry is not None else get_default_registry(),
        host_loop=host_loop,
    )
