"""Error taxonomy for tool execution and turn processing.

Each error carries a ``kind`` string that is reported to the orchestrating
model in failure payloads, so the model can explain what went wrong instead
of seeing a raw traceback.
"""

from typing import Any


class TaskAssistantError(Exception):
    """Base class for every error raised by the assistant core."""

    kind: str = "internal_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        """Render the error as a failure payload for the orchestrator."""
        return {
            "success": False,
            "error": self.kind,
            "message": self.message,
            **self.details,
        }


class NotFoundError(TaskAssistantError):
    """A referenced entity does not exist or is outside the caller's scope."""

    kind = "not_found"


class ValidationFailure(TaskAssistantError):
    """Tool input broke a schema or business constraint; nothing was changed."""

    kind = "validation_error"


class ConfirmationRequired(TaskAssistantError):
    """A destructive or financial tool ran without its confirmation flag."""

    kind = "confirmation_required"


class UpstreamFailure(TaskAssistantError):
    """The datastore or another dependency failed during a tool call."""

    kind = "upstream_failure"


class StepBudgetExceeded(TaskAssistantError):
    """The orchestrator used more tool invocations than a turn allows."""

    kind = "step_budget_exceeded"


class DatastoreError(Exception):
    """Raised by datastore implementations for storage-level failures."""


__all__ = [
    "ConfirmationRequired",
    "DatastoreError",
    "NotFoundError",
    "StepBudgetExceeded",
    "TaskAssistantError",
    "UpstreamFailure",
    "ValidationFailure",
]
