"""Dispatch of function descriptors to registered Python callables.

The dispatcher turns a ``Function`` (name plus JSON arguments) into a call:
it resolves the name through a ``FunctionRegistry``, binds the JSON arguments
to the callable's parameters, invokes it and serialises the result as
``{"result": <value>}``.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from pydantic_core import to_jsonable_python

from chatbind.exceptions import (
    InvalidArgumentException,
    InvalidOperationException,
    MissingArgumentException,
)
from chatbind.functions.cancellation import CancellationToken
from chatbind.functions.registry import (
    FunctionBinding,
    FunctionRegistry,
    ParameterSpec,
    get_default_registry,
)

if TYPE_CHECKING:
    from chatbind.functions.function import Function

logger = logging.getLogger(__name__)


def serialize_result(result: Any) -> str:
    """Wrap *result* as a compact ``{"result": ...}`` JSON string.

    ``None`` serialises to the empty string. Values ``json`` cannot encode
    (pydantic models, dataclasses, enums, datetimes) go through pydantic.
    """
    if result is None:
        return ""
    return json.dumps(
        {"result": result}, separators=(",", ":"), default=to_jsonable_python
    )


def _log_abandoned_failure(task: asyncio.Future[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Abandoned function call failed: %r", exc)


def _parse_enum(enum_type: type[Enum], text: str, parameter: str) -> Enum:
    if text in enum_type.__members__:
        return enum_type[text]
    try:
        return enum_type(text)
    except ValueError as exc:
        raise InvalidArgumentException(
            f"'{text}' is not a member of {enum_type.__name__} "
            f"for parameter '{parameter}'",
            argument=parameter,
            value=text,
        ) from exc


def _coerce(spec: ParameterSpec, value: Any) -> Any:
    enum_type = spec.enum_type
    if enum_type is not None and isinstance(value, str):
        return _parse_enum(enum_type, value, spec.name)

    model_type = spec.model_type
    if model_type is not None and isinstance(value, dict):
        try:
            return model_type.model_validate(value)
        except ValidationError as exc:
            raise InvalidArgumentException(
                f"Invalid value for parameter '{spec.name}': {exc}",
                argument=spec.name,
                value=value,
            ) from exc

    return value


class FunctionDispatcher:
    """Resolves, binds and invokes ``Function`` descriptors.

    Args:
        registry: Registry used to resolve function names. Defaults to the
            shared registry returned by ``get_default_registry``.
        host_loop: Event loop that owns host application state. Asynchronous
            dispatch always binds and invokes on this loop; when omitted the
            caller's running loop plays that role.
    """

    def __init__(
        self,
        registry: FunctionRegistry | None = None,
        host_loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.registry = registry if registry is not None else get_default_registry()
        self.host_loop = host_loop

    def bind_arguments(
        self,
        function: Function,
        cancellation_token: CancellationToken | None = None,
    ) -> tuple[FunctionBinding, list[Any], dict[str, Any]]:
        """Resolve *function* and build the positional and keyword call arguments.

        Returns:
            A tuple of (binding, args, kwargs).

        Raises:
            InvalidArgumentException: If parameters are declared but no arguments
                are set, the arguments are not a JSON object, or an enum value
                names no member.
            MissingArgumentException: If a parameter without a default has no
                supplied argument.
            InvalidOperationException: If the name cannot be resolved.
        """
        name = function.name
        if name is None:
            raise MissingArgumentException(
                "Cannot dispatch a function without a name", argument="name"
            )

        if function.parameters is not None and function.arguments is None:
            raise InvalidArgumentException(
                f"Function {name} has parameters but no arguments are set.",
                argument="arguments",
            )

        binding = self.registry.resolve(name)

        requested = function.arguments
        if requested is None:
            requested = {}
        elif not isinstance(requested, dict):
            raise InvalidArgumentException(
                f"Arguments for function {name} must be a JSON object, "
                f"got {type(requested).__name__}",
                argument="arguments",
                value=requested,
            )

        token = cancellation_token or CancellationToken.none()
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for spec in binding.parameters:
            if spec.is_variadic:
                continue

            if spec.is_cancellation_token:
                value = token
            elif spec.name in requested:
                value = _coerce(spec, requested[spec.name])
            elif spec.has_default:
                value = spec.default
            else:
                raise MissingArgumentException(
                    f"Missing argument for parameter '{spec.name}'",
                    argument=spec.name,
                )

            if spec.kind is inspect.Parameter.KEYWORD_ONLY:
                kwargs[spec.name] = value
            else:
                args.append(value)

        return binding, args, kwargs

    def invoke(
        self,
        function: Function,
        cancellation_token: CancellationToken | None = None,
    ) -> str:
        """Invoke *function* on the calling thread and return the JSON result.

        Returns:
            ``""`` when the callable returns ``None``, otherwise
            ``{"result": <value>}`` as compact JSON.

        Raises:
            InvalidOperationException: If the callable returns an awaitable.
        """
        binding, args, kwargs = self.bind_arguments(function, cancellation_token)
        if binding.is_async:
            raise InvalidOperationException(
                f"The function {function.name} is a coroutine function; "
                "use invoke_async instead.",
                function_name=function.name,
            )
        logger.debug("Invoking %s as %s", function.name, binding.qualified_name)

        result = binding.func(*args, **kwargs)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise InvalidOperationException(
                f"The function {function.name} returned an awaitable; "
                "use invoke_async instead.",
                function_name=function.name,
            )
        return serialize_result(result)

    async def invoke_async(
        self,
        function: Function,
        cancellation_token: CancellationToken | None = None,
    ) -> str:
        """Invoke *function* on the host loop and await its result.

        Binding and invocation always happen after switching to the host loop.
        Cancelling *cancellation_token* abandons the wait with
        ``asyncio.CancelledError``; the invoked coroutine keeps running unless
        it observes the token itself.

        Raises:
            InvalidOperationException: If the callable does not return an
                awaitable.
            asyncio.CancelledError: If the token is cancelled before the
                invoked coroutine completes.
        """
        token = cancellation_token or CancellationToken.none()
        running_loop = asyncio.get_running_loop()

        if self.host_loop is not None and self.host_loop is not running_loop:
            future = asyncio.run_coroutine_threadsafe(
                self._invoke_on_host(function, token), self.host_loop
            )
            return await asyncio.wrap_future(future)

        await asyncio.sleep(0)
        return await self._invoke_on_host(function, token)

    async def _invoke_on_host(self, function: Function, token: CancellationToken) -> str:
        binding, args, kwargs = self.bind_arguments(function, token)
        logger.debug("Invoking %s as %s", function.name, binding.qualified_name)

        pending = binding.func(*args, **kwargs)
        if not inspect.isawaitable(pending):
            raise InvalidOperationException(
                f"The function {function.name} did not return an awaitable.",
                function_name=function.name,
            )

        task = asyncio.ensure_future(pending)
        waiter = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            await asyncio.wait({waiter})

        if task not in done:
            task.add_done_callback(_log_abandoned_failure)
            raise asyncio.CancelledError(f"Waiting for {function.name} was cancelled")

        result = task.result()
        if not binding.returns_value:
            return ""
        return serialize_result(result)
