"""Registry mapping function names to invocable Python callables.

Callables enter the registry in one of two ways:

- Explicitly, through ``FunctionRegistry.register`` (or the ``function``
  decorator, or a ``Function`` built with a ``method``).
- Lazily, the first time an unknown name is resolved. The name is split at its
  last underscore: the prefix, with underscores read as dots, names a module
  (optionally followed by class attributes), and the suffix names the member.
  ``weathertools_Station_lookup`` resolves to ``weathertools.Station.lookup``.

Each callable is captured once as a ``FunctionBinding`` holding its parameters
and return shape, so dispatch never re-inspects the callable.
"""

from __future__ import annotations

import asyncio
import collections.abc
import importlib
import inspect
import logging
import threading
import typing
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from types import NoneType, UnionType
from typing import Any, TypeVar

from pydantic import BaseModel

from chatbind.exceptions import InvalidOperationException
from chatbind.functions.cancellation import CancellationToken

logger = logging.getLogger(__name__)

NAME_SEPARATOR = "_"

F = TypeVar("F", bound=Callable[..., Any])

_AWAITABLE_ORIGINS = (
    collections.abc.Awaitable,
    collections.abc.Coroutine,
    asyncio.Future,
    asyncio.Task,
)


def unwrap_optional(annotation: Any) -> Any:
    """Return ``X`` for ``X | None`` or ``Optional[X]``; other annotations unchanged."""
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is UnionType:
        members = [arg for arg in typing.get_args(annotation) if arg is not NoneType]
        if len(members) == 1:
            return members[0]
    return annotation


def _is_none_annotation(annotation: Any) -> bool:
    return annotation is None or annotation is NoneType or annotation == "None"


def _returns_value(annotation: Any) -> bool:
    """Whether a return annotation promises a value.

    Unannotated callables are assumed to return one. For awaitable annotations
    such as ``Coroutine[Any, Any, None]`` the awaited type decides.
    """
    if annotation is inspect.Signature.empty:
        return True
    if _is_none_annotation(annotation):
        return False
    if typing.get_origin(annotation) in _AWAITABLE_ORIGINS:
        args = typing.get_args(annotation)
        if args and _is_none_annotation(args[-1]):
            return False
    return True


def _type_hints(func: Callable[..., Any]) -> dict[str, Any]:
    target = func.__init__ if inspect.isclass(func) else func  # type: ignore[misc]
    try:
        return typing.get_type_hints(target)
    except (NameError, TypeError, AttributeError):
        # Unresolvable forward references or builtins: fall back to raw annotations
        return {}


@dataclass(frozen=True)
class ParameterSpec:
    """One formal parameter of a registered callable, captured as data."""

    name: str
    kind: inspect._ParameterKind
    annotation: Any = inspect.Parameter.empty
    default: Any = inspect.Parameter.empty

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty

    @property
    def is_variadic(self) -> bool:
        return self.kind in (
            inspect.Parameter.VAR_POSITIONAL,
            inspect.Parameter.VAR_KEYWORD,
        )

    @property
    def is_cancellation_token(self) -> bool:
        return unwrap_optional(self.annotation) is CancellationToken

    @property
    def enum_type(self) -> type[Enum] | None:
        target = unwrap_optional(self.annotation)
        if isinstance(target, type) and issubclass(target, Enum):
            return target
        return None

    @property
    def model_type(self) -> type[BaseModel] | None:
        target = unwrap_optional(self.annotation)
        if isinstance(target, type) and issubclass(target, BaseModel):
            return target
        return None


@dataclass(frozen=True)
class FunctionBinding:
    """A registry entry: the callable plus its parameters and return shape.

    Args:
        key: Registry key the binding is stored under.
        func: The callable to invoke.
        parameters: Formal parameters in declaration order.
        returns_value: False when the callable is declared to return nothing.
        is_async: True for coroutine functions.
    """

    key: str
    func: Callable[..., Any]
    parameters: tuple[ParameterSpec, ...]
    returns_value: bool = True
    is_async: bool = False

    @classmethod
    def from_callable(cls, key: str, func: Callable[..., Any]) -> FunctionBinding:
        """Capture *func*'s signature as a binding stored under *key*.

        Raises:
            InvalidOperationException: If *func* is not callable or its signature
                cannot be inspected.
        """
        if not callable(func):
            raise InvalidOperationException(
                f"Cannot bind {key}: {func!r} is not callable", function_name=key
            )
        try:
            signature = inspect.signature(func)
        except (TypeError, ValueError) as exc:
            raise InvalidOperationException(
                f"Failed to inspect the signature of {key}", function_name=key
            ) from exc

        hints = _type_hints(func)
        parameters = tuple(
            ParameterSpec(
                name=param.name,
                kind=param.kind,
                annotation=hints.get(param.name, param.annotation),
                default=param.default,
            )
            for param in signature.parameters.values()
        )
        if inspect.isclass(func):
            return_annotation: Any = func
        else:
            return_annotation = hints.get("return", signature.return_annotation)
        is_async = inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
            getattr(func, "__call__", None)
        )

        return cls(
            key=key,
            func=func,
            parameters=parameters,
            returns_value=_returns_value(return_annotation),
            is_async=is_async,
        )

    @property
    def qualified_name(self) -> str:
        """Dotted ``module.qualname`` of the callable, for log and error text."""
        module = getattr(self.func, "__module__", None) or "?"
        qualname = getattr(self.func, "__qualname__", None) or repr(self.func)
        return f"{module}.{qualname}"


def _import_qualifier(dotted: str) -> Any | None:
    """Import the longest importable module prefix of *dotted*, then walk attributes."""
    parts = dotted.split(".")
    if not all(parts):
        return None

    for index in range(len(parts), 0, -1):
        module_name = ".".join(parts[:index])
        try:
            owner: Any = importlib.import_module(module_name)
        except ImportError:
            continue
        for attribute in parts[index:]:
            owner = getattr(owner, attribute, None)
            if owner is None:
                return None
        return owner

    return None


def resolve_qualified_name(name: str) -> Callable[..., Any]:
    """Locate the callable a ``module_Type_member`` style function name refers to.

    Raises:
        InvalidOperationException: If *name* has no separator, or the owner or
            member it names cannot be found.
    """
    if NAME_SEPARATOR not in name:
        raise InvalidOperationException(
            f'Failed to lookup and invoke function "{name}"', function_name=name
        )

    qualifier, _, member = name.rpartition(NAME_SEPARATOR)
    owner = _import_qualifier(qualifier.replace(NAME_SEPARATOR, "."))
    if owner is None:
        raise InvalidOperationException(
            f"Failed to find a valid type for {name}", function_name=name
        )

    target = getattr(owner, member, None) if member else None
    if target is None or not callable(target):
        raise InvalidOperationException(
            f"Failed to find a valid method for {name}", function_name=name
        )
    return target


class FunctionRegistry:
    """Name-keyed cache of ``FunctionBinding`` objects.

    Keys are bare function names. Two different callables registered under the
    same name share one entry: the later registration replaces the earlier one
    and a warning is logged. Resolve-and-insert runs under a lock, so concurrent
    dispatches of an unresolved name settle on a single binding.

    Example::

        registry = FunctionRegistry()

        @registry.function()
        def get_weather(location: str, unit: str = "celsius") -> str:
            ...

        binding = registry.resolve("get_weather")
    """

    def __init__(self) -> None:
        self._bindings: dict[str, FunctionBinding] = {}
        self._lock = threading.RLock()

    def register(self, name: str, func: Callable[..., Any]) -> FunctionBinding:
        """Bind *name* to *func*, replacing any previous binding for *name*."""
        binding = FunctionBinding.from_callable(name, func)
        with self._lock:
            previous = self._bindings.get(name)
            if previous is not None and previous.func is not func:
                logger.warning(
                    "Function name %s rebound from %s to %s",
                    name,
                    previous.qualified_name,
                    binding.qualified_name,
                )
            self._bindings[name] = binding
        logger.debug("Registered function %s -> %s", name, binding.qualified_name)
        return binding

    def function(self, name: str | None = None) -> Callable[[F], F]:
        """Decorator registering the wrapped callable under *name* (or its own name)."""

        def decorator(func: F) -> F:
            self.register(name or func.__name__, func)
            return func

        return decorator

    def get(self, name: str) -> FunctionBinding | None:
        """Return the cached binding for *name* without resolving it."""
        with self._lock:
            return self._bindings.get(name)

    def unregister(self, name: str) -> bool:
        """Drop the binding for *name*; return whether one existed."""
        with self._lock:
            return self._bindings.pop(name, None) is not None

    def names(self) -> list[str]:
        with self._lock:
            return list(self._bindings)

    def resolve(self, name: str) -> FunctionBinding:
        """Return the binding for *name*, resolving and caching it on first use.

        Raises:
            InvalidOperationException: If *name* is not registered and cannot be
                resolved as a qualified name.
        """
        with self._lock:
            binding = self._bindings.get(name)
            if binding is not None:
                return binding

            func = resolve_qualified_name(name)
            binding = FunctionBinding.from_callable(name, func)
            self._bindings[name] = binding

        logger.debug("Resolved function %s -> %s", name, binding.qualified_name)
        return binding

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._bindings

    def __len__(self) -> int:
        with self._lock:
            return len(self._bindings)


_default_registry: FunctionRegistry | None = None
_default_registry_lock = threading.Lock()


def get_default_registry() -> FunctionRegistry:
    """Return the registry shared by descriptors that are not given one."""
    global _default_registry
    with _default_registry_lock:
        if _default_registry is None:
            _default_registry = FunctionRegistry()
        return _default_registry
