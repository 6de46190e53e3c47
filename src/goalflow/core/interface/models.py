"""Canonical messages exchanged between a tool loop and a model transport.

The tool loop only ever sees these types.  A transport converts them to and
from whatever its provider speaks.
"""

from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field


class TextContent(BaseModel):
    """Plain text content part."""

    type: Literal["text"] = "text"
    text: str


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    name: str
    arguments: dict[str, Any] = {}


class ToolResult(BaseModel):
    """What a tool call produced, sent back to the model as a tool message."""

    tool_call_id: str
    content: list[TextContent] = []
    is_error: bool = False

    @classmethod
    def from_text(cls, tool_call_id: str, text: str, *, is_error: bool = False) -> "ToolResult":
        return cls(tool_call_id=tool_call_id, content=[TextContent(text=text)], is_error=is_error)

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.content)


class CanonicalMessage(BaseModel):
    """A single conversation message.

    Roles:
    - system: instructions
    - user: human input
    - assistant: model output, possibly requesting tool calls
    - tool: the result of one tool call (``tool_call_id`` is required)
    """

    role: Literal["system", "user", "assistant", "tool"]
    content: list[TextContent] = []
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    metadata: dict[str, Any] = {}

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.content)

    @property
    def requests_tools(self) -> bool:
        return self.role == "assistant" and bool(self.tool_calls)

    @classmethod
    def system(cls, text: str, **metadata: Any) -> "CanonicalMessage":
        return cls(role="system", content=[TextContent(text=text)], metadata=metadata)

    @classmethod
    def user(cls, text: str, **metadata: Any) -> "CanonicalMessage":
        return cls(role="user", content=[TextContent(text=text)], metadata=metadata)

    @classmethod
    def assistant(
        cls,
        text: str = "",
        tool_calls: list[ToolCall] | None = None,
        **metadata: Any,
    ) -> "CanonicalMessage":
        content = [TextContent(text=text)] if text else []
        return cls(role="assistant", content=content, tool_calls=tool_calls, metadata=metadata)

    @classmethod
    def tool(cls, result: ToolResult, **metadata: Any) -> "CanonicalMessage":
        if result.is_error:
            metadata.setdefault("is_error", True)
        return cls(
            role="tool",
            content=list(result.content),
            tool_call_id=result.tool_call_id,
            metadata=metadata,
        )


class ConversationHistory(BaseModel):
    """Ordered messages of one conversation; the tool loop appends to it."""

    messages: list[CanonicalMessage] = []

    def append(self, message: CanonicalMessage) -> None:
        self.messages.append(message)

    def extend(self, messages: list[CanonicalMessage]) -> None:
        self.messages.extend(messages)

    @property
    def last(self) -> CanonicalMessage | None:
        return self.messages[-1] if self.messages else None

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):  # type: ignore[override]
        return iter(self.messages)
