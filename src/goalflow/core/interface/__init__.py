"""Model interface — canonical messages and the LiteLLM transport."""

from goalflow.core.interface.client import LiteLLMTransport
from goalflow.core.interface.models import (
    CanonicalMessage,
    ConversationHistory,
    TextContent,
    ToolCall,
    ToolResult,
)

__all__ = [
    "CanonicalMessage",
    "ConversationHistory",
    "LiteLLMTransport",
    "TextContent",
    "ToolCall",
    "ToolResult",
]
