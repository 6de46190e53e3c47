"""ToolDispatcher — routes tool calls to registered tools by name."""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from typing import TYPE_CHECKING, Any

from goalflow.toolloop.errors import ToolExecutionError, ToolNotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from concurrent.futures import Executor

    from goalflow.core.interface.models import ToolCall
    from goalflow.toolloop.models import Tool, ToolContext

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Maintains a name-to-tool map and invokes handlers.

    Usage::

        dispatcher = ToolDispatcher([search, fetch])
        schemas = dispatcher.all_tools()               # for the model
        value = await dispatcher.execute(call, context)
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Add *tool* to the routing table, replacing any tool of the same name."""
        if tool.name in self._tools:
            logger.warning("Replacing tool %s", tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """Return the tool called *name*.

        Raises:
            ToolNotFoundError: If no such tool is registered.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    @property
    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def all_tools(self) -> list[dict[str, Any]]:
        """Function schemas of every registered tool, in registration order."""
        return [tool.schema() for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def execute(
        self,
        call: ToolCall,
        context: ToolContext,
        *,
        executor: Executor | None = None,
    ) -> Any:
        """Invoke the handler for *call* and return its raw value.

        Sync handlers run on *executor* (the loop's default executor when
        ``None``).

        Raises:
            ToolNotFoundError: If the tool is not registered.
            ToolExecutionError: If the handler raises.
        """
        tool = self.get(call.name)
        logger.debug("Dispatching %s(%s)", call.name, call.arguments)
        try:
            if inspect.iscoroutinefunction(tool.handler):
                return await tool.handler(call.arguments, context)
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(
                executor, functools.partial(tool.handler, call.arguments, context)
            )
            if inspect.isawaitable(result):
                result = await result
            return result
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise ToolExecutionError(call.name, str(exc)) from exc
