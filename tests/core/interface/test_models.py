"""Tests for canonical conversation models."""

import pytest
from pydantic import ValidationError

from goalflow.core.interface.models import (
    CanonicalMessage,
    ConversationHistory,
    TextContent,
    ToolCall,
    ToolResult,
)


class TestToolCall:
    def test_auto_id(self) -> None:
        tc = ToolCall(name="lookup", arguments={"sku": "A1"})
        assert len(tc.id) == 12
        assert tc.arguments == {"sku": "A1"}

    def test_default_empty_arguments(self) -> None:
        assert ToolCall(name="noop").arguments == {}

    def test_unique_ids(self) -> None:
        assert ToolCall(name="a").id != ToolCall(name="b").id


class TestToolResult:
    def test_from_text(self) -> None:
        result = ToolResult.from_text("call-1", "42")
        assert result.text == "42"
        assert result.content == [TextContent(text="42")]
        assert not result.is_error

    def test_error(self) -> None:
        result = ToolResult.from_text("call-1", "boom", is_error=True)
        assert result.is_error


class TestCanonicalMessage:
    def test_factories(self) -> None:
        assert CanonicalMessage.system("be brief").role == "system"
        assert CanonicalMessage.user("hi").text == "hi"

    def test_assistant_without_text(self) -> None:
        call = ToolCall(name="search")
        msg = CanonicalMessage.assistant(tool_calls=[call])
        assert msg.content == []
        assert msg.requests_tools

    def test_plain_assistant_does_not_request_tools(self) -> None:
        assert not CanonicalMessage.assistant("done").requests_tools

    def test_tool_message(self) -> None:
        msg = CanonicalMessage.tool(ToolResult.from_text("c1", "bad", is_error=True))
        assert msg.role == "tool"
        assert msg.tool_call_id == "c1"
        assert msg.text == "bad"
        assert msg.metadata["is_error"] is True

    def test_invalid_role(self) -> None:
        with pytest.raises(ValidationError):
            CanonicalMessage(role="narrator")  # type: ignore[arg-type]


class TestConversationHistory:
    def test_append_and_last(self) -> None:
        history = ConversationHistory()
        assert history.last is None
        history.append(CanonicalMessage.user("one"))
        history.extend([CanonicalMessage.assistant("two")])
        assert len(history) == 2
        assert history.last.text == "two"
        assert [m.role for m in history] == ["user", "assistant"]

    def test_json_roundtrip(self) -> None:
        history = ConversationHistory(
            messages=[
                CanonicalMessage.user("q"),
                CanonicalMessage.assistant(tool_calls=[ToolCall(id="t1", name="f")]),
            ]
        )
        restored = ConversationHistory.model_validate_json(history.model_dump_json())
        assert restored == history
