"""Chat-completion request models."""

from .request import DEFAULT_CHAT_MODEL, ChatPrompt, ChatRequest, Role

__all__ = ["DEFAULT_CHAT_MODEL", "ChatPrompt", "ChatRequest", "Role"]
