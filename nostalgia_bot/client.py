"""Structured model client.

One call to the language model per ``generate``: the conversation is sent in
JSON response mode with the target shape's schema (and the same schema as a
system hint), and the raw text answer is parsed and validated with pydantic
before anything is returned. Retries live in the executor, never here.
"""

import json
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_ai.direct import model_request
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelRequestPart,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models import Model, ModelRequestParameters
from pydantic_ai.output import OutputObjectDefinition
from pydantic_ai.settings import ModelSettings

from nostalgia_bot.config import DEFAULT_MODEL
from nostalgia_bot.exceptions import GenerationError, ValidationError, shape_name
from nostalgia_bot.logging import get_logger
from nostalgia_bot.models import Conversation, Role

log = get_logger("nostalgia_bot.client")

_JSON_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@lru_cache(maxsize=128)
def shape_adapter(shape: Any) -> TypeAdapter[Any]:
    return TypeAdapter(shape)


def describe_shape(shape: Any) -> str:
    """JSON schema of a target shape, as shown to the model."""
    return json.dumps(shape_adapter(shape).json_schema(), ensure_ascii=False)


def structured_output(shape: Any) -> ModelRequestParameters:
    """Request parameters that put the model in JSON response mode with the shape's schema."""
    return ModelRequestParameters(
        output_mode="native",
        output_object=OutputObjectDefinition(
            json_schema=shape_adapter(shape).json_schema(),
            name=re.sub(r"\W+", "_", shape_name(shape)).strip("_"),
        ),
    )


def schema_instruction(shape: Any, system_instruction: str | None = None) -> str:
    hint = (
        "Respond with JSON only, without commentary or markdown. "
        f"The JSON must match this schema: {describe_shape(shape)}"
    )
    if system_instruction:
        return f"{system_instruction.strip()}\n\n{hint}"
    return hint


def to_model_messages(conversation: Conversation, system_instruction: str) -> list[ModelMessage]:
    """Map conversation turns to pydantic-ai messages, system prompt first."""
    messages: list[ModelMessage] = []
    pending: list[ModelRequestPart] = [SystemPromptPart(content=system_instruction)]
    for turn in conversation.turns:
        if turn.role is Role.USER:
            pending.extend(UserPromptPart(content=part) for part in turn.parts)
            continue
        if pending:
            messages.append(ModelRequest(parts=pending))
            pending = []
        messages.append(ModelResponse(parts=[TextPart(content=part) for part in turn.parts]))
    if pending:
        messages.append(ModelRequest(parts=pending))
    return messages


def response_text(response: ModelResponse) -> str:
    return "".join(part.content for part in response.parts if isinstance(part, TextPart))


def parse_structured(text: str, shape: Any) -> Any:
    """Parse raw model text as JSON and validate it against ``shape``.

    Raises:
        ValidationError: When the text is not JSON or does not match the shape.
    """
    stripped = text.strip()
    fenced = _JSON_FENCE.match(stripped)
    if fenced:
        stripped = fenced.group(1)
    try:
        return shape_adapter(shape).validate_json(stripped)
    except PydanticValidationError as e:
        raise ValidationError(shape=shape, reason=str(e)) from e


def dump_structured(value: Any, shape: Any) -> str:
    """Serialise a validated value back to the JSON the model is expected to produce."""
    return shape_adapter(shape).dump_json(value, by_alias=True).decode()


@dataclass(frozen=True)
class StructuredModelClient:
    """Stateless wrapper around a single language-model endpoint."""

    model: Model | str
    model_settings: ModelSettings | None = None

    @property
    def model_name(self) -> str:
        return self.model if isinstance(self.model, str) else self.model.model_name

    async def generate(self, conversation: Conversation, shape: Any, *, system_instruction: str | None = None) -> Any:
        """Run one model request and return its output validated against ``shape``.

        Raises:
            GenerationError: When the request itself fails (network, auth, rate limit).
            ValidationError: When the answer cannot be parsed or violates the shape.
        """
        messages = to_model_messages(conversation, schema_instruction(shape, system_instruction))
        try:
            response = await model_request(
                self.model,
                messages,
                model_settings=self.model_settings,
                model_request_parameters=structured_output(shape),
            )
        except Exception as e:
            log.warning("client.request.failed", model=self.model_name, error=str(e))
            raise GenerationError(model=self.model_name, reason=str(e)) from e
        return parse_structured(response_text(response), shape)


@dataclass(frozen=True)
class ToolContext:
    """Handle threaded through every task call for one orchestration run."""

    client: StructuredModelClient


def create_model_client(model: Model | str = DEFAULT_MODEL) -> StructuredModelClient:
    """Uncached factory - use with FunctionModel or TestModel for tests."""
    return StructuredModelClient(model=model)


@lru_cache(maxsize=1)
def get_model_client(model: str = DEFAULT_MODEL) -> StructuredModelClient:
    """Cached getter for production."""
    return create_model_client(model)


def clear_client_cache() -> None:
    get_model_client.cache_clear()
