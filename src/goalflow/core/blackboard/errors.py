"""Error types for the blackboard layer."""


class BlackboardError(Exception):
    """Base error for all blackboard failures."""


class BindingError(BlackboardError):
    """A binding could not be created or changed."""

    def __init__(self, name: str, detail: str = "") -> None:
        self.name = name
        self.detail = detail
        super().__init__(f"Invalid binding '{name}'" + (f": {detail}" if detail else ""))


class BindingTypeError(BlackboardError):
    """A bound value is not of the type the caller asked for."""

    def __init__(self, name: str, expected: type, actual: type) -> None:
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Binding '{name}' holds {actual.__name__}, expected {expected.__name__}"
        )
