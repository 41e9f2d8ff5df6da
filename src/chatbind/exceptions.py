"""Custom exceptions for chatbind."""

from typing import Any


class ChatBindException(Exception):
    """Base exception for chatbind.

    All custom exceptions in this package should inherit from this base class.
    """

    pass


class InvalidArgumentException(ChatBindException, ValueError):
    """Raised when a supplied value is malformed or unsupported.

    This exception is raised when:
    - A function name does not match the allowed naming pattern
    - A chat request names a model outside the supported family
    - Function arguments are not a JSON object, or are not valid JSON
    - An enum argument names no member of the target enumeration
    - A function declares parameters but no arguments were supplied

    Attributes:
        argument: Name of the offending argument or parameter
        value: The rejected value
    """

    def __init__(
        self,
        message: str,
        argument: str | None = None,
        value: Any | None = None,
    ):
        super().__init__(message)
        self.argument = argument
        self.value = value


class MissingArgumentException(InvalidArgumentException):
    """Raised when a required value is absent.

    This exception is raised when:
    - A chat request is built without any messages
    - A function parameter has no supplied argument and no default
    """

    pass


class InvalidOperationException(ChatBindException, RuntimeError):
    """Raised when an operation cannot be carried out in the current state.

    This exception is raised when:
    - A function name cannot be resolved to a module, class or member
    - An asynchronously dispatched function does not return an awaitable
    - A synchronously dispatched function returns an awaitable
    - Text is appended to a function value that was already parsed
    - The streaming flag of a chat request is set twice

    Attributes:
        function_name: The function being resolved or invoked, if any
    """

    def __init__(self, message: str, function_name: str | None = None):
        super().__init__(message)
        self.function_name = function_name
