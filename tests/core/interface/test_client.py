"""Tests for LiteLLMTransport with mocked LiteLLM."""

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from goalflow.core.interface.client import LiteLLMTransport, _parse_arguments, _to_openai
from goalflow.core.interface.models import (
    CanonicalMessage,
    ConversationHistory,
    ToolCall,
    ToolResult,
)
from goalflow.toolloop.models import ModelTransport


def _make_mock_response(
    content: str | None = "Hello!",
    tool_calls: list[Any] | None = None,
    finish_reason: str = "stop",
) -> MagicMock:
    """Create a mock LiteLLM response object."""
    message = MagicMock()
    message.content = content
    message.tool_calls = tool_calls

    choice = MagicMock()
    choice.message = message
    choice.finish_reason = finish_reason

    usage = MagicMock()
    usage.prompt_tokens = 10
    usage.completion_tokens = 5
    usage.total_tokens = 15

    response = MagicMock()
    response.choices = [choice]
    response.usage = usage
    return response


def _mock_tool_call(call_id: str, name: str, arguments: str) -> MagicMock:
    tc = MagicMock()
    tc.id = call_id
    tc.function.name = name
    tc.function.arguments = arguments
    return tc


class TestLiteLLMTransport:
    @pytest.fixture
    def transport(self) -> LiteLLMTransport:
        return LiteLLMTransport("openai/gpt-4o", api_key="test-key", temperature=0)

    @pytest.fixture
    def history(self) -> ConversationHistory:
        return ConversationHistory(
            messages=[
                CanonicalMessage.system("You are helpful."),
                CanonicalMessage.user("Hello"),
            ]
        )

    def test_satisfies_transport_protocol(self, transport: LiteLLMTransport) -> None:
        assert isinstance(transport, ModelTransport)

    @patch("goalflow.core.interface.client.litellm")
    async def test_generate_text_response(
        self, mock_litellm: MagicMock, transport: LiteLLMTransport, history: ConversationHistory
    ) -> None:
        mock_litellm.acompletion = AsyncMock(return_value=_make_mock_response())

        result = await transport.generate(history)

        assert result.role == "assistant"
        assert result.text == "Hello!"
        assert result.tool_calls is None
        assert result.metadata["usage"]["total_tokens"] == 15
        assert result.metadata["finish_reason"] == "stop"

    @patch("goalflow.core.interface.client.litellm")
    async def test_generate_passes_settings(
        self, mock_litellm: MagicMock, transport: LiteLLMTransport, history: ConversationHistory
    ) -> None:
        mock_litellm.acompletion = AsyncMock(return_value=_make_mock_response())
        tools = [{"type": "function", "function": {"name": "f", "parameters": {}}}]

        await transport.generate(history, tools)

        kwargs = mock_litellm.acompletion.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o"
        assert kwargs["api_key"] == "test-key"
        assert kwargs["temperature"] == 0
        assert kwargs["tools"] == tools
        assert "api_base" not in kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "You are helpful."}

    @patch("goalflow.core.interface.client.litellm")
    async def test_generate_omits_empty_tools(
        self, mock_litellm: MagicMock, transport: LiteLLMTransport, history: ConversationHistory
    ) -> None:
        mock_litellm.acompletion = AsyncMock(return_value=_make_mock_response())
        await transport.generate(history, [])
        assert "tools" not in mock_litellm.acompletion.call_args.kwargs

    @patch("goalflow.core.interface.client.litellm")
    async def test_generate_tool_calls(
        self, mock_litellm: MagicMock, transport: LiteLLMTransport, history: ConversationHistory
    ) -> None:
        calls = [
            _mock_tool_call("c1", "search", '{"q": "weather"}'),
            _mock_tool_call("c2", "noop", ""),
        ]
        mock_litellm.acompletion = AsyncMock(
            return_value=_make_mock_response(
                content=None, tool_calls=calls, finish_reason="tool_calls"
            )
        )

        result = await transport.generate(history)

        assert result.content == []
        assert result.requests_tools
        assert [(c.id, c.name, c.arguments) for c in result.tool_calls] == [
            ("c1", "search", {"q": "weather"}),
            ("c2", "noop", {}),
        ]


class TestConversion:
    def test_assistant_tool_calls(self) -> None:
        call = ToolCall(id="c1", name="f", arguments={"x": 1})
        msg = CanonicalMessage.assistant(tool_calls=[call])
        converted = _to_openai(msg)
        assert converted["content"] is None
        assert converted["tool_calls"][0]["function"] == {
            "name": "f",
            "arguments": json.dumps({"x": 1}),
        }

    def test_tool_message(self) -> None:
        msg = CanonicalMessage.tool(ToolResult.from_text("c1", "result"))
        assert _to_openai(msg) == {"role": "tool", "content": "result", "tool_call_id": "c1"}


class TestParseArguments:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (None, {}),
            ("", {}),
            ('{"a": 1}', {"a": 1}),
            ("not json", {"raw": "not json"}),
            ("[1, 2]", {"raw": "[1, 2]"}),
        ],
    )
    def test_parse(self, raw: str | None, expected: dict[str, Any]) -> None:
        assert _parse_arguments(raw) == expected
