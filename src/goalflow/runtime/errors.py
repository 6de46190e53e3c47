"""Error types for the execution runtime."""

from __future__ import annotations

from collections.abc import Sequence


class ProcessError(Exception):
    """Base error for agent-process failures."""


class ActionFailedError(ProcessError):
    """An action kept failing after its retries (and any recovery) ran out."""

    def __init__(self, action_name: str, error: BaseException, attempts: int) -> None:
        self.action_name = action_name
        self.error = error
        self.attempts = attempts
        super().__init__(
            f"Action {action_name} failed after {attempts} attempt(s): {error}"
        )


class NoPlanFoundError(ProcessError):
    """No sequence of actions reaches any goal and the stuck policy gave up."""

    def __init__(self, goals: Sequence[str], reason: str = "") -> None:
        self.goals = list(goals)
        self.reason = reason
        msg = f"No plan found for goals: {', '.join(self.goals) or '(none)'}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ActionBudgetExceededError(ProcessError):
    """The run executed more actions than its configured budget allows."""

    def __init__(self, max_actions: int) -> None:
        self.max_actions = max_actions
        super().__init__(f"Action budget of {max_actions} exceeded")


class ProcessNotFoundError(ProcessError):
    """No process with the given id is known to the platform."""

    def __init__(self, process_id: str) -> None:
        self.process_id = process_id
        super().__init__(f"Process not found: {process_id}")


class InvalidProcessStateError(ProcessError):
    """An operation is not allowed in the process's current status."""

    def __init__(self, process_id: str, status: str, operation: str) -> None:
        self.process_id = process_id
        self.status = status
        self.operation = operation
        super().__init__(f"Cannot {operation} process {process_id} while it is {status}")
