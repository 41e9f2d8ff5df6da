"""Shared pytest configuration and fixtures for the test suite."""

from typing import Any

import pytest

from chatbind.chat.request import ChatPrompt
from chatbind.functions.dispatcher import FunctionDispatcher
from chatbind.functions.registry import FunctionRegistry


@pytest.fixture
def registry() -> FunctionRegistry:
    """Fresh registry so tests never share bindings."""
    return FunctionRegistry()


@pytest.fixture
def dispatcher(registry: FunctionRegistry) -> FunctionDispatcher:
    """Dispatcher resolving against the per-test registry."""
    return FunctionDispatcher(registry=registry)


@pytest.fixture
def sample_messages() -> list[ChatPrompt]:
    """Minimal two-turn conversation."""
    return [
        ChatPrompt(role="system", content="You are a helpful assistant."),
        ChatPrompt(role="user", content="What's the weather like in Paris?"),
    ]


@pytest.fixture
def weather_parameters() -> dict[str, Any]:
    """JSON schema for a weather lookup function."""
    return {
        "type": "object",
        "properties": {
            "location": {"type": "string", "description": "City name"},
            "unit": {"type": "string", "enum": ["celsius", "fahrenheit"]},
        },
        "required": ["location"],
    }


# Pytest configuration
pytest_plugins: list[str] = []
