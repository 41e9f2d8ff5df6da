"""Function descriptors exchanged with the chat-completion API.

A ``Function`` describes a callable the model may ask the host to run: its
name, an optional description, a JSON-schema ``parameters`` object and the
JSON ``arguments`` for one call. Streamed responses deliver these pieces as
text fragments spread over several chunks, so ``parameters`` and ``arguments``
are kept as staged text until first read, then parsed once and cached.
"""

from __future__ import annotations

import inspect
import json
import re
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import create_model

from chatbind.exceptions import (
    InvalidArgumentException,
    InvalidOperationException,
    MissingArgumentException,
)
from chatbind.functions.cancellation import CancellationToken
from chatbind.functions.dispatcher import FunctionDispatcher
from chatbind.functions.registry import (
    FunctionBinding,
    FunctionRegistry,
    get_default_registry,
)

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")


def validate_function_name(name: Any) -> str:
    """Return *name* if it is a valid function name.

    Raises:
        InvalidArgumentException: If *name* is not a string matching
            ``NAME_PATTERN``.
    """
    if not isinstance(name, str) or NAME_PATTERN.fullmatch(name) is None:
        raise InvalidArgumentException(
            "The name of the function does not conform to naming standards: "
            f"{NAME_PATTERN.pattern}",
            argument="name",
            value=name,
        )
    return name


class _StagedJson:
    """A JSON value assembled from text fragments and parsed on first read.

    Once the value has been parsed, or was supplied already structured, it is
    final: appending more text raises ``InvalidOperationException``.
    """

    __slots__ = ("field", "_fragments", "_value", "_parsed")

    def __init__(self, field: str) -> None:
        self.field = field
        self._fragments: list[str] = []
        self._value: Any = None
        self._parsed = False

    def assign(self, value: Any) -> None:
        self._fragments = []
        self._value = None
        self._parsed = False
        if isinstance(value, str):
            self._fragments.append(value)
        elif value is not None:
            self._value = value
            self._parsed = True

    def append(self, text: str, owner: str | None) -> None:
        if self._parsed:
            raise InvalidOperationException(
                f"Cannot append {self.field} text to function {owner}: "
                "the value has already been parsed",
                function_name=owner,
            )
        self._fragments.append(text)

    def value(self, owner: str | None) -> Any:
        if self._parsed:
            return self._value

        text = "".join(self._fragments)
        if not text.strip():
            return None
        try:
            self._value = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidArgumentException(
                f"Function {owner} has invalid JSON {self.field}: {exc.msg}",
                argument=self.field,
                value=text,
            ) from exc
        self._parsed = True
        self._fragments = []
        return self._value

    def text(self) -> str | None:
        """Current text form, without forcing a parse."""
        if self._parsed:
            return json.dumps(self._value)
        text = "".join(self._fragments)
        return text if text.strip() else None


def build_parameters_schema(binding: FunctionBinding) -> dict[str, Any]:
    """Derive a JSON schema for *binding*'s parameters through pydantic.

    Cancellation-token and variadic parameters are left out; they are never
    supplied by the model.
    """
    fields: dict[str, Any] = {}
    for spec in binding.parameters:
        if spec.is_variadic or spec.is_cancellation_token:
            continue
        annotation = (
            Any if spec.annotation is inspect.Parameter.empty else spec.annotation
        )
        fields[spec.name] = (annotation, spec.default if spec.has_default else ...)

    model = create_model(f"{binding.key}_parameters", **fields)
    schema = model.model_json_schema()
    schema.pop("title", None)
    for property_schema in schema.get("properties", {}).values():
        property_schema.pop("title", None)
    return schema


class Function:
    """A function the chat model can call, and the arguments for one call.

    Args:
        name: Function name matching ``^[a-zA-Z0-9_-]{1,64}$``. Omit every
            argument to create an empty descriptor for delta assembly.
        description: What the function does; helps the model decide to call it.
        parameters: JSON schema for the arguments, structured or as JSON text.
        arguments: Arguments for this call, structured or as JSON text.
        method: Callable to register under *name* right away.
        registry: Registry receiving *method*; defaults to the shared registry.

    Raises:
        InvalidArgumentException: If *name* does not match the pattern.
        MissingArgumentException: If other fields are given without a name.

    Example::

        function = Function(
            "get_weather",
            "Current weather for a location",
            {"type": "object", "properties": {"location": {"type": "string"}}},
            method=get_weather,
        )
    """

    def __init__(
        self,
        name: str | None = None,
        description: str | None = None,
        parameters: Any | None = None,
        arguments: Any | None = None,
        method: Callable[..., Any] | None = None,
        registry: FunctionRegistry | None = None,
    ) -> None:
        self._name: str | None = None
        self._description: str | None = None
        self._parameters = _StagedJson("parameters")
        self._arguments = _StagedJson("arguments")

        if name is None:
            if any(
                field is not None
                for field in (description, parameters, arguments, method)
            ):
                raise MissingArgumentException(
                    "A function name is required", argument="name"
                )
            return

        self._name = validate_function_name(name)
        self._description = description
        self._parameters.assign(parameters)
        self._arguments.assign(arguments)

        if method is not None:
            target = registry if registry is not None else get_default_registry()
            target.register(self._name, method)

    @classmethod
    def from_peer(cls, other: Function) -> Function:
        """Create a descriptor holding a merged copy of *other*."""
        function = cls()
        function.copy_from(other)
        return function

    @classmethod
    def from_delta(cls, payload: Mapping[str, Any]) -> Function:
        """Build a descriptor from one inbound ``function_call`` fragment.

        Any key may be missing; text ``parameters`` and ``arguments`` stay
        unparsed so later fragments can be merged in with ``copy_from``.
        """
        function = cls()
        name = payload.get("name")
        if name:
            function._name = validate_function_name(name)
        function._description = payload.get("description") or None
        function._parameters.assign(payload.get("parameters"))
        function._arguments.assign(payload.get("arguments"))
        return function

    @classmethod
    def from_callable(
        cls,
        func: Callable[..., Any],
        name: str | None = None,
        description: str | None = None,
        registry: FunctionRegistry | None = None,
    ) -> Function:
        """Describe and register *func*, deriving its parameters schema.

        Args:
            func: Callable to expose to the model.
            name: Function name; defaults to ``func.__name__``.
            description: Defaults to the first line of ``func``'s docstring.
            registry: Registry receiving *func*; defaults to the shared registry.
        """
        name = validate_function_name(name or getattr(func, "__name__", None))
        parameters = build_parameters_schema(FunctionBinding.from_callable(name, func))
        if description is None:
            doc = inspect.getdoc(func)
            description = doc.splitlines()[0] if doc else None
        return cls(name, description, parameters, method=func, registry=registry)

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def description(self) -> str | None:
        return self._description

    @property
    def parameters(self) -> Any | None:
        """JSON schema of the parameters, parsed from staged text on first read."""
        return self._parameters.value(self._name)

    @property
    def arguments(self) -> Any | None:
        """Arguments for this call, parsed from staged text on first read."""
        return self._arguments.value(self._name)

    @arguments.setter
    def arguments(self, value: Any | None) -> None:
        self._arguments.assign(value)

    def copy_from(self, other: Function) -> None:
        """Merge *other* into this descriptor.

        Non-blank name and description replace this descriptor's own. The
        text of *other*'s arguments and parameters is appended to this
        descriptor's staged text, which is how a call spread over streamed
        chunks accumulates its full JSON.

        Raises:
            InvalidOperationException: If text must be appended to a value that
                has already been parsed.
        """
        if other._name and other._name.strip():
            self._name = other._name

        if other._description and other._description.strip():
            self._description = other._description

        arguments_text = other._arguments.text()
        if arguments_text is not None:
            self._arguments.append(arguments_text, self._name)

        parameters_text = other._parameters.text()
        if parameters_text is not None:
            self._parameters.append(parameters_text, self._name)

    def invoke(self, dispatcher: FunctionDispatcher | None = None) -> str:
        """Run this call synchronously; see ``FunctionDispatcher.invoke``."""
        return (dispatcher or FunctionDispatcher()).invoke(self)

    async def invoke_async(
        self,
        cancellation_token: CancellationToken | None = None,
        dispatcher: FunctionDispatcher | None = None,
    ) -> str:
        """Run this call on the host loop; see ``FunctionDispatcher.invoke_async``."""
        return await (dispatcher or FunctionDispatcher()).invoke_async(
            self, cancellation_token
        )

    def to_dict(self) -> dict[str, Any]:
        """Wire form: set fields only, with ``arguments`` as a JSON string."""
        payload: dict[str, Any] = {}
        if self._name is not None:
            payload["name"] = self._name
        if self._description is not None:
            payload["description"] = self._description
        parameters = self.parameters
        if parameters is not None:
            payload["parameters"] = parameters
        arguments = self._arguments.text()
        if arguments is not None:
            payload["arguments"] = arguments
        return payload

    def to_definition(self) -> dict[str, Any]:
        """Definition sent in a request's ``functions`` list."""
        definition: dict[str, Any] = {"name": self._name}
        if self._description is not None:
            definition["description"] = self._description
        parameters = self.parameters
        if parameters is not None:
            definition["parameters"] = parameters
        return definition

    def to_tool_schema(self) -> dict[str, Any]:
        """Definition wrapped in the ``{"type": "function", ...}`` tool envelope."""
        return {"type": "function", "function": self.to_definition()}

    def __repr__(self) -> str:
        return f"Function(name={self._name!r}, description={self._description!r})"

    def __str__(self) -> str:
        return json.dumps(self.to_dict())
