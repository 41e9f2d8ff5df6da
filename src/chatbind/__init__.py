"""chatbind - Request models and function-call dispatch for chat-completion APIs."""

__version__ = "0.1.0"

# Request models
from .chat import DEFAULT_CHAT_MODEL, ChatPrompt, ChatRequest, Role

# Custom exceptions
from .exceptions import (
    ChatBindException,
    InvalidArgumentException,
    InvalidOperationException,
    MissingArgumentException,
)

# Function calling
from .functions import (
    CancellationToken,
    Function,
    FunctionBinding,
    FunctionDispatcher,
    FunctionRegistry,
    get_default_registry,
    serialize_result,
)

# Configuration utilities
from .utils import (
    create_chat_request,
    create_function_dispatcher,
    get_default_model,
    get_default_models,
    load_environment,
)

__all__ = [
    "__version__",
    "DEFAULT_CHAT_MODEL",
    "ChatPrompt",
    "ChatRequest",
    "Role",
    "CancellationToken",
    "Function",
    "FunctionBinding",
    "FunctionDispatcher",
    "FunctionRegistry",
    "get_default_registry",
    "serialize_result",
    "load_environment",
    "get_default_model",
    "get_default_models",
    "create_chat_request",
    "create_function_dispatcher",
    # Exceptions
    "ChatBindException",
    "InvalidArgumentException",
    "InvalidOperationException",
    "MissingArgumentException",
]
