"""Outbound chat-completion request models."""

from collections.abc import Sequence
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    computed_field,
    field_validator,
)

from chatbind.exceptions import (
    InvalidArgumentException,
    InvalidOperationException,
    MissingArgumentException,
)
from chatbind.functions.function import Function

DEFAULT_CHAT_MODEL = "gpt-3.5-turbo"


class Role(str, Enum):
    """Author of a chat turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"


class ChatPrompt(BaseModel):
    """One turn of a conversation.

    Attributes:
        role: Who authored the turn
        content: Message text; may be empty on assistant turns that only carry
            a function call
        name: Function name on ``function`` turns
        function_call: Function-call directive on assistant turns, in wire form
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    role: Role
    content: str | None = None
    name: str | None = None
    function_call: dict[str, Any] | None = None

    @classmethod
    def from_function_result(cls, function: Function, result: str) -> "ChatPrompt":
        """Build the ``function`` turn that reports a dispatch result to the model."""
        return cls(role=Role.FUNCTION, name=function.name, content=result)


class ChatRequest(BaseModel):
    """Immutable chat-completion request.

    The model must belong to the ``gpt-3.5-turbo`` family; versioned variants
    such as ``gpt-3.5-turbo-0613`` are accepted. Sampling parameters are passed
    through unvalidated; their documented ranges are noted on each field.

    ``stream`` is owned by the transport: it starts ``False`` and may be turned
    on once through ``enable_streaming``.

    Example:
        ```python
        request = ChatRequest(
            [ChatPrompt(role="user", content="What's the weather in Paris?")],
            temperature=0.2,
        )
        payload = request.to_payload()
        ```

    Raises:
        InvalidArgumentException: If the model is outside the supported family.
        MissingArgumentException: If no messages are supplied.
    """

    model_config = ConfigDict(frozen=True)

    model: str = Field(description="ID of the model to use")
    messages: list[ChatPrompt] = Field(
        description="Conversation so far, in the chat format"
    )
    functions: list[dict[str, Any]] | None = Field(
        default=None, description="Functions the model may generate calls for"
    )
    function_call: str | dict[str, Any] | None = Field(
        default=None,
        description="'none', 'auto', or {'name': ...} to force a specific function",
    )
    temperature: float | None = Field(
        default=None, description="Sampling temperature between 0 and 2"
    )
    top_p: float | None = Field(
        default=None, description="Nucleus sampling probability mass"
    )
    n: int | None = Field(
        default=None, description="How many choices to generate per message"
    )
    stop: list[str] | None = Field(
        default=None, description="Up to 4 sequences that stop generation"
    )
    max_tokens: int | None = Field(
        default=None, description="Maximum number of tokens to generate"
    )
    presence_penalty: float | None = Field(
        default=None, description="Between -2.0 and 2.0; favours new topics"
    )
    frequency_penalty: float | None = Field(
        default=None, description="Between -2.0 and 2.0; discourages repetition"
    )
    logit_bias: dict[str, float] | None = Field(
        default=None, description="Token ID to bias between -100 and 100"
    )
    user: str | None = Field(
        default=None, description="Unique identifier of the end-user"
    )

    _stream: bool = PrivateAttr(default=False)

    def __init__(
        self,
        messages: Sequence[ChatPrompt | dict[str, Any]] | None = None,
        model: str | None = None,
        **data: Any,
    ) -> None:
        resolved_model = model or DEFAULT_CHAT_MODEL
        if DEFAULT_CHAT_MODEL not in resolved_model:
            raise InvalidArgumentException(
                f"{resolved_model} not supported", argument="model", value=model
            )
        prompts = list(messages) if messages is not None else []
        if not prompts:
            raise MissingArgumentException(
                "Missing required messages parameter", argument="messages"
            )
        super().__init__(model=resolved_model, messages=prompts, **data)

    @field_validator("functions", mode="before")
    @classmethod
    def _function_definitions(cls, value: Any) -> Any:
        if value is None:
            return None
        return [
            item.to_definition() if isinstance(item, Function) else item
            for item in value
        ]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def stream(self) -> bool:
        """Whether the response is streamed; set by the transport, never by callers."""
        return self._stream

    def enable_streaming(self) -> None:
        """Mark the request as streamed. For transport implementations only.

        Raises:
            InvalidOperationException: If streaming was already enabled.
        """
        if self._stream:
            raise InvalidOperationException("Streaming is already enabled")
        self._stream = True

    def to_payload(self) -> dict[str, Any]:
        """Wire record with unset optional fields omitted."""
        return self.model_dump(mode="json", exclude_none=True)

    def __str__(self) -> str:
        return self.model_dump_json(exclude_none=True)
