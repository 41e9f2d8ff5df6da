"""Unit tests for synchronous dispatch through FunctionDispatcher."""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any
from unittest.mock import Mock

import pytest
from pydantic import BaseModel

from chatbind.exceptions import (
    InvalidArgumentException,
    InvalidOperationException,
    MissingArgumentException,
)
from chatbind.functions.cancellation import CancellationToken
from chatbind.functions.dispatcher import FunctionDispatcher, serialize_result
from chatbind.functions.function import Function
from chatbind.functions.registry import FunctionRegistry


class Unit(Enum):
    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"


class Location(BaseModel):
    city: str
    country: str = "FR"


class TestSerializeResult:
    """Result shaping."""

    @pytest.mark.unit
    def test_none_is_empty_string(self) -> None:
        assert serialize_result(None) == ""

    @pytest.mark.unit
    def test_value_wrapped_compactly(self) -> None:
        assert serialize_result(42) == '{"result":42}'
        assert serialize_result({"temp": 21}) == '{"result":{"temp":21}}'
        assert serialize_result("sunny") == '{"result":"sunny"}'

    @pytest.mark.unit
    def test_pydantic_and_dataclass_values(self) -> None:
        @dataclass
        class Reading:
            day: date
            unit: Unit

        assert serialize_result(Location(city="Paris")) == (
            '{"result":{"city":"Paris","country":"FR"}}'
        )
        assert serialize_result(Reading(date(2024, 5, 1), Unit.CELSIUS)) == (
            '{"result":{"day":"2024-05-01","unit":"celsius"}}'
        )


class TestBindArguments:
    """Validation and binding before invocation."""

    @pytest.mark.unit
    def test_parameters_without_arguments_fail_before_resolution(
        self, weather_parameters: dict[str, Any]
    ) -> None:
        """Test that missing arguments are reported without touching the registry."""
        registry = Mock(spec=FunctionRegistry)
        dispatcher = FunctionDispatcher(registry=registry)
        function = Function("get_weather", parameters=weather_parameters)

        with pytest.raises(InvalidArgumentException, match="no arguments are set"):
            dispatcher.invoke(function)

        registry.resolve.assert_not_called()

    @pytest.mark.unit
    def test_nameless_function_rejected(self, dispatcher: FunctionDispatcher) -> None:
        with pytest.raises(MissingArgumentException):
            dispatcher.invoke(Function())

    @pytest.mark.unit
    def test_no_separator_fails_without_caching(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        with pytest.raises(InvalidOperationException):
            dispatcher.invoke(Function("getweather", arguments={}))

        assert "getweather" not in registry

    @pytest.mark.unit
    def test_non_object_arguments_rejected(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        registry.register("echo", lambda value: value)

        with pytest.raises(InvalidArgumentException, match="must be a JSON object"):
            dispatcher.invoke(Function("echo", arguments="[1, 2]"))

    @pytest.mark.unit
    def test_enum_bound_by_member_name(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        received: list[Unit] = []
        registry.register("convert", _record_unit(received))

        dispatcher.invoke(Function("convert", arguments={"unit": "FAHRENHEIT"}))

        assert received == [Unit.FAHRENHEIT]

    @pytest.mark.unit
    def test_enum_bound_by_value(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        received: list[Unit] = []
        registry.register("convert", _record_unit(received))

        dispatcher.invoke(Function("convert", arguments={"unit": "celsius"}))

        assert received == [Unit.CELSIUS]

    @pytest.mark.unit
    def test_enum_mismatch_fails(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        registry.register("convert", _record_unit([]))

        with pytest.raises(InvalidArgumentException, match="not a member of Unit") as exc_info:
            dispatcher.invoke(Function("convert", arguments={"unit": "kelvin"}))

        assert exc_info.value.argument == "unit"

    @pytest.mark.unit
    def test_default_bound_when_omitted(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        def forecast(location: str, days: int = 3) -> str:
            return f"{location}:{days}"

        registry.register("forecast", forecast)

        result = dispatcher.invoke(Function("forecast", arguments={"location": "Nice"}))

        assert result == '{"result":"Nice:3"}'

    @pytest.mark.unit
    def test_missing_required_argument(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        def forecast(location: str, days: int) -> str:
            return location

        registry.register("forecast", forecast)

        with pytest.raises(MissingArgumentException, match="'days'") as exc_info:
            dispatcher.invoke(Function("forecast", arguments={"location": "Nice"}))

        assert exc_info.value.argument == "days"

    @pytest.mark.unit
    def test_cancellation_token_bound_from_caller(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        """Test that the token comes from the caller, not the argument mapping."""
        seen: list[CancellationToken] = []

        def watch(token: CancellationToken) -> None:
            seen.append(token)

        registry.register("watch", watch)
        caller_token = CancellationToken()

        dispatcher.invoke(
            Function("watch", arguments={"token": "ignored"}), caller_token
        )

        assert seen == [caller_token]

    @pytest.mark.unit
    def test_fresh_token_when_none_supplied(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        seen: list[CancellationToken] = []

        def watch(token: CancellationToken) -> None:
            seen.append(token)

        registry.register("watch", watch)
        dispatcher.invoke(Function("watch"))

        assert isinstance(seen[0], CancellationToken)
        assert not seen[0].cancelled

    @pytest.mark.unit
    def test_pydantic_argument_validated(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        def locate(location: Location) -> str:
            return f"{location.city}, {location.country}"

        registry.register("locate", locate)

        result = dispatcher.invoke(
            Function("locate", arguments={"location": {"city": "Lyon"}})
        )

        assert result == '{"result":"Lyon, FR"}'

    @pytest.mark.unit
    def test_invalid_pydantic_argument(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        def locate(location: Location) -> str:
            return location.city

        registry.register("locate", locate)

        with pytest.raises(InvalidArgumentException, match="'location'"):
            dispatcher.invoke(Function("locate", arguments={"location": {"country": "FR"}}))

    @pytest.mark.unit
    def test_raw_values_passed_through(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        """Test that non-enum values are not coerced to the annotation."""
        received: list[Any] = []

        def count(limit: int) -> None:
            received.append(limit)

        registry.register("count", count)
        dispatcher.invoke(Function("count", arguments={"limit": "5"}))

        assert received == ["5"]

    @pytest.mark.unit
    def test_positional_keyword_and_variadic(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        def search(query: str, /, *args: Any, exact: bool = False, **extra: Any) -> str:
            return f"{query}|{args}|{exact}|{extra}"

        registry.register("search", search)

        binding, args, kwargs = dispatcher.bind_arguments(
            Function("search", arguments={"query": "rain", "exact": True, "extra": 1})
        )

        assert binding.func is search
        assert args == ["rain"]
        assert kwargs == {"exact": True}

    @pytest.mark.unit
    def test_extra_arguments_ignored(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        registry.register("ping", lambda: "pong")

        assert dispatcher.invoke(Function("ping", arguments={"unused": 1})) == (
            '{"result":"pong"}'
        )


class TestInvoke:
    """Synchronous invocation and result shaping."""

    @pytest.mark.unit
    def test_no_value_yields_empty_string(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        registry.register("noop", lambda: None)

        assert dispatcher.invoke(Function("noop")) == ""

    @pytest.mark.unit
    def test_value_yields_result_json(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        registry.register("answer", lambda: 42)

        assert dispatcher.invoke(Function("answer")) == '{"result":42}'

    @pytest.mark.unit
    def test_errors_propagate_unchanged(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        def explode() -> None:
            raise KeyError("boom")

        registry.register("explode", explode)

        with pytest.raises(KeyError, match="boom"):
            dispatcher.invoke(Function("explode"))

    @pytest.mark.unit
    def test_awaitable_result_rejected(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        async def later() -> int:
            return 1

        registry.register("later", later)

        with pytest.raises(InvalidOperationException, match="coroutine function"):
            dispatcher.invoke(Function("later"))

    @pytest.mark.unit
    def test_awaitable_from_plain_callable_rejected(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        """Test that a sync callable handing back a coroutine is rejected too."""
        async def later() -> int:
            return 1

        registry.register("deferred", lambda: later())

        with pytest.raises(InvalidOperationException, match="returned an awaitable"):
            dispatcher.invoke(Function("deferred"))

    @pytest.mark.unit
    def test_resolves_qualified_name(self, dispatcher: FunctionDispatcher) -> None:
        function = Function("weathertools_forecast", arguments={"location": "Paris"})

        assert dispatcher.invoke(function) == '{"result":"Paris: 21 celsius"}'

    @pytest.mark.unit
    def test_resolved_enum_parameter(self, dispatcher: FunctionDispatcher) -> None:
        function = Function(
            "weathertools_forecast",
            arguments={"location": "Paris", "unit": "FAHRENHEIT"},
        )

        assert dispatcher.invoke(function) == '{"result":"Paris: 21 fahrenheit"}'

    @pytest.mark.unit
    def test_resolves_class_member(self, dispatcher: FunctionDispatcher) -> None:
        function = Function("weathertools_Station_lookup", arguments={"code": "PAR"})

        assert dispatcher.invoke(function) == (
            '{"result":{"code":"PAR","name":"Paris-Montsouris"}}'
        )

    @pytest.mark.unit
    def test_same_name_shares_cached_binding(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        """Current behaviour: the cache is keyed by name alone."""
        first = Function("weathertools_forecast", arguments={"location": "A"})
        second = Function("weathertools_forecast", arguments={"location": "B"})

        dispatcher.invoke(first)
        binding = registry.get("weathertools_forecast")
        dispatcher.invoke(second)

        assert registry.get("weathertools_forecast") is binding
        assert dispatcher.bind_arguments(first)[0] is dispatcher.bind_arguments(second)[0]

    @pytest.mark.unit
    def test_function_invoke_uses_dispatcher(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        function = Function("answer", method=lambda: 42, registry=registry)

        assert function.invoke(dispatcher) == '{"result":42}'

    @pytest.mark.unit
    def test_streamed_call_dispatched(
        self, dispatcher: FunctionDispatcher, registry: FunctionRegistry
    ) -> None:
        """Test dispatching a call assembled from two streamed chunks."""
        registry.register("locate", lambda loc: loc.upper())
        call = Function()
        call.copy_from(Function.from_delta({"name": "locate", "arguments": '{"loc":"Par'}))
        call.copy_from(Function.from_delta({"arguments": 'is"}'}))

        assert dispatcher.invoke(call) == '{"result":"PARIS"}'


def _record_unit(received: list[Unit]) -> Any:
    def convert(unit: Unit) -> None:
        received.append(unit)

    return convert
