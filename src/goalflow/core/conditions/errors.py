"""Error types for the condition layer."""


class ConditionError(Exception):
    """Base error for condition evaluation and parsing failures."""


class ExpressionSyntaxError(ConditionError):
    """A logical expression could not be parsed."""

    def __init__(self, text: str, position: int, detail: str) -> None:
        self.text = text
        self.position = position
        self.detail = detail
        super().__init__(f"Invalid expression at {position}: {detail} in {text!r}")


class RuleSyntaxError(ConditionError):
    """A rule definition could not be parsed."""

    def __init__(self, line: str, detail: str) -> None:
        self.line = line
        self.detail = detail
        super().__init__(f"Invalid rule {line!r}: {detail}")
