"""Function calling: descriptors, the name registry and the dispatcher.

This package provides:
- ``Function`` descriptors assembled from streamed response fragments
- ``FunctionRegistry`` mapping function names to Python callables
- ``FunctionDispatcher`` binding JSON arguments and invoking callables,
  synchronously or on a host event loop
- ``CancellationToken`` for cooperative cancellation of dispatched calls
"""

from .cancellation import CancellationToken
from .dispatcher import FunctionDispatcher, serialize_result
from .function import NAME_PATTERN, Function, validate_function_name
from .registry import (
    FunctionBinding,
    FunctionRegistry,
    ParameterSpec,
    get_default_registry,
    resolve_qualified_name,
)

__all__ = [
    "CancellationToken",
    "Function",
    "FunctionBinding",
    "FunctionDispatcher",
    "FunctionRegistry",
    "NAME_PATTERN",
    "ParameterSpec",
    "get_default_registry",
    "resolve_qualified_name",
    "serialize_result",
    "validate_function_name",
]
