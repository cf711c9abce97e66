from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..schemas.tasks import PipelineTask


class ParentPilotError(RuntimeError):
    """Base class for every error raised by the core."""

    category: str = "internal"


class MissingContextError(ParentPilotError):
    """Raised when child or user data required by an agent is unavailable."""

    category = "missing_context"


class UpstreamError(ParentPilotError):
    """Base class for failures originating in the completion service."""

    category = "upstream"


class CompletionError(UpstreamError):
    """Raised when a completion call fails or times out."""


class CompletionUnavailableError(CompletionError):
    """Raised when the circuit breaker refuses a completion call."""


class MalformedCompletionError(UpstreamError):
    """Raised when a completion must belong to a closed vocabulary and does not."""


class ConfigurationError(ParentPilotError):
    """Base class for caller or operator mistakes."""

    category = "configuration"


class UnknownAgentTypeError(ConfigurationError):
    """Raised when an agent type name has no registered constructor."""


class UnknownTaskTypeError(ConfigurationError):
    """Raised when a task-type tag is not handled by the agent."""


class UnknownBillingPlanError(ConfigurationError):
    """Raised when a billing plan id is not configured."""


class BudgetExceededError(ParentPilotError):
    """Raised when a user's monthly usage limit would be exceeded."""

    category = "budget"

    def __init__(self, user_id: str, estimated_cents: int) -> None:
        super().__init__(
            f"Monthly usage limit reached for user {user_id}; "
            f"a new task needs about {estimated_cents} cents."
        )
        self.user_id = user_id
        self.estimated_cents = estimated_cents


class RecordStoreError(ParentPilotError):
    """Raised when the record store cannot complete an operation."""

    category = "store"


class RecordNotFoundError(RecordStoreError):
    """Raised when a record id does not resolve."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class InvalidTransitionError(ParentPilotError):
    """Raised when a status change is not an allowed edge."""

    category = "configuration"


class TaskProcessingError(ParentPilotError):
    """Raised after a pipeline run failed and its Task was persisted as failed."""

    def __init__(self, task: "PipelineTask", message: str, *, stage: str, category: str) -> None:
        super().__init__(message)
        self.task = task
        self.stage = stage
        self.category = category


def error_category(exc: BaseException) -> str:
    if isinstance(exc, ParentPilotError):
        return exc.category
    return "internal"


__all__ = [
    "BudgetExceededError",
    "CompletionError",
    "CompletionUnavailableError",
    "ConfigurationError",
    "InvalidTransitionError",
    "MalformedCompletionError",
    "MissingContextError",
    "ParentPilotError",
    "RecordNotFoundError",
    "RecordStoreError",
    "TaskProcessingError",
    "UnknownAgentTypeError",
    "UnknownBillingPlanError",
    "UnknownTaskTypeError",
    "UpstreamError",
    "error_category",
]
