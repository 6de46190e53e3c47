"""LiteLLMTransport — a model transport backed by LiteLLM.

LiteLLM speaks OpenAI's chat format for every provider, so canonical
messages are converted to that format on the way out and responses are
parsed back from it.
"""

import json
from typing import Any

import litellm

from goalflow.core.interface.models import (
    CanonicalMessage,
    ConversationHistory,
    TextContent,
    ToolCall,
)
from goalflow.utils.telemetry import ATTR_MODEL, get_tracer

_tracer = get_tracer(__name__)


class LiteLLMTransport:
    """Async model transport over :func:`litellm.acompletion`.

    Satisfies the :class:`~goalflow.toolloop.models.ModelTransport` protocol.

    Usage::

        transport = LiteLLMTransport("openai/gpt-4o")
        reply = await transport.generate(history, tools=[tool.schema() for tool in tools])
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        api_base: str | None = None,
        **completion_kwargs: Any,
    ) -> None:
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.completion_kwargs = completion_kwargs

    async def generate(
        self,
        history: ConversationHistory,
        tools: list[dict[str, Any]] | None = None,
    ) -> CanonicalMessage:
        """Send *history* (and tool schemas) to the model and return its reply."""
        with _tracer.start_as_current_span("model.generate") as span:
            span.set_attribute(ATTR_MODEL, self.model)

            call_kwargs: dict[str, Any] = {
                "model": self.model,
                "messages": [_to_openai(m) for m in history],
                **self.completion_kwargs,
            }
            if self.api_key:
                call_kwargs["api_key"] = self.api_key
            if self.api_base:
                call_kwargs["api_base"] = self.api_base
            if tools:
                call_kwargs["tools"] = tools

            response = await litellm.acompletion(**call_kwargs)  # pyright: ignore[reportUnknownMemberType]
            return _parse_response(response)


def _to_openai(message: CanonicalMessage) -> dict[str, Any]:
    result: dict[str, Any] = {"role": message.role, "content": message.text or None}
    if message.role == "tool":
        result["tool_call_id"] = message.tool_call_id
        result["content"] = message.text
    if message.tool_calls:
        result["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
            }
            for tc in message.tool_calls
        ]
    return result


def _parse_response(response: Any) -> CanonicalMessage:
    choice = response.choices[0]
    message = choice.message

    content = [TextContent(text=message.content)] if message.content else []

    tool_calls: list[ToolCall] | None = None
    if message.tool_calls:
        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=_parse_arguments(tc.function.arguments),
            )
            for tc in message.tool_calls
        ]

    metadata: dict[str, Any] = {"finish_reason": choice.finish_reason}
    if getattr(response, "usage", None):
        metadata["usage"] = {
            "prompt_tokens": response.usage.prompt_tokens,
            "completion_tokens": response.usage.completion_tokens,
            "total_tokens": response.usage.total_tokens,
        }

    return CanonicalMessage(
        role="assistant",
        content=content,
        tool_calls=tool_calls,
        metadata=metadata,
    )


def _parse_arguments(raw: str | None) -> dict[str, Any]:
    """Decode JSON tool-call arguments; undecodable input is kept under ``raw``."""
    if not raw:
        return {}
    try:
        result = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {"raw": raw}
    if not isinstance(result, dict):
        return {"raw": raw}
    return result
