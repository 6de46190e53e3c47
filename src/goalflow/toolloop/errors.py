"""Error types for the tool loop."""


class ToolLoopError(Exception):
    """Base error for tool-loop failures."""


class ToolNotFoundError(ToolLoopError):
    """The model asked for a tool that is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool not found: {name}")


class ToolExecutionError(ToolLoopError):
    """A tool handler raised."""

    def __init__(self, name: str, detail: str = "") -> None:
        self.name = name
        self.detail = detail
        super().__init__(f"Tool execution failed: {name}" + (f": {detail}" if detail else ""))


class ToolLoopIncompleteError(ToolLoopError):
    """A caller required a final answer but the loop ended another way."""

    def __init__(self, outcome: str, iterations: int) -> None:
        self.outcome = outcome
        self.iterations = iterations
        super().__init__(f"Tool loop ended with {outcome} after {iterations} iteration(s)")
