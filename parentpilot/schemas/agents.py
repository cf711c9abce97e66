from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from ..core.exceptions import InvalidTransitionError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class AgentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TRAINING = "training"


class AgentTaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ArtifactPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RecommendationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"


# Allowed lifecycle edges; anything else raises InvalidTransitionError.
_AGENT_TRANSITIONS: dict[AgentStatus, frozenset[AgentStatus]] = {
    AgentStatus.ACTIVE: frozenset({AgentStatus.INACTIVE, AgentStatus.TRAINING}),
    AgentStatus.INACTIVE: frozenset({AgentStatus.ACTIVE}),
    AgentStatus.TRAINING: frozenset({AgentStatus.ACTIVE, AgentStatus.INACTIVE}),
}

_RECOMMENDATION_TRANSITIONS: dict[RecommendationStatus, frozenset[RecommendationStatus]] = {
    RecommendationStatus.PENDING: frozenset({RecommendationStatus.ACCEPTED, RecommendationStatus.REJECTED}),
    RecommendationStatus.ACCEPTED: frozenset({RecommendationStatus.IMPLEMENTED}),
    RecommendationStatus.REJECTED: frozenset(),
    RecommendationStatus.IMPLEMENTED: frozenset(),
}


class Capability(BaseModel):
    name: str = Field(..., min_length=1)
    description: str
    enabled: bool = True


class UserProfile(BaseModel):
    id: str = Field(default_factory=_new_id)
    email: str = ""
    name: str
    subscription_plan: str = "starter"
    created_at: datetime = Field(default_factory=_utcnow)


class ChildProfile(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    name: str
    age: int = Field(..., ge=0)
    grade: str | None = None
    interests: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    challenges: list[str] = Field(default_factory=list)
    learning_style: str | None = None


class AgentTypeRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(..., min_length=1)
    description: str | None = None
    capabilities: list[str] = Field(default_factory=list)
    is_active: bool = True


class AgentRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    agent_type_id: str
    name: str = Field(..., min_length=1)
    description: str | None = None
    configuration: dict[str, Any] = Field(default_factory=dict)
    status: AgentStatus = AgentStatus.ACTIVE
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def transition(self, status: AgentStatus) -> None:
        if status not in _AGENT_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Agent {self.id} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        self.updated_at = _utcnow()


class AgentTask(BaseModel):
    id: str = Field(default_factory=_new_id)
    sub_agent_id: str
    child_id: str
    task_type: str | None = None
    title: str = Field(..., min_length=1)
    description: str | None = None
    status: AgentTaskStatus = AgentTaskStatus.PENDING
    priority: ArtifactPriority = ArtifactPriority.MEDIUM
    due_date: str | None = None
    completed_at: datetime | None = None
    result_data: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Insight(BaseModel):
    id: str = Field(default_factory=_new_id)
    sub_agent_id: str
    child_id: str
    insight_type: str
    title: str
    content: str
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)
    data_sources: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Recommendation(BaseModel):
    id: str = Field(default_factory=_new_id)
    sub_agent_id: str
    child_id: str
    recommendation_type: str
    title: str
    description: str
    action_items: list[str] = Field(default_factory=list)
    priority: ArtifactPriority = ArtifactPriority.MEDIUM
    status: RecommendationStatus = RecommendationStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def transition(self, status: RecommendationStatus) -> None:
        if status not in _RECOMMENDATION_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Recommendation {self.id} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        self.updated_at = _utcnow()


class ConversationMessage(BaseModel):
    role: str
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class ConversationRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    sub_agent_id: str
    user_id: str
    messages: list[ConversationMessage] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)


class AgentResponse(BaseModel):
    success: bool
    message: str
    data: Any = None
    tasks: list[AgentTask] = Field(default_factory=list)
    insights: list[Insight] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)

    @classmethod
    def failure(cls, message: str) -> "AgentResponse":
        return cls(success=False, message=message)


class RoutedResponse(BaseModel):
    agent_id: str
    response: AgentResponse


class CollaborationResult(BaseModel):
    participating_agents: list[str] = Field(default_factory=list)
    combined_response: AgentResponse


class AgentPerformanceMetrics(BaseModel):
    total_tasks: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    completion_rate: float = Field(0.0, ge=0.0, le=1.0)
    total_insights: int = 0
    total_recommendations: int = 0
    accepted_recommendations: int = 0
    last_activity: datetime | None = None


__all__ = [
    "AgentPerformanceMetrics",
    "AgentRecord",
    "AgentResponse",
    "AgentStatus",
    "AgentTask",
    "AgentTaskStatus",
    "AgentTypeRecord",
    "ArtifactPriority",
    "Capability",
    "ChildProfile",
    "CollaborationResult",
    "ConversationMessage",
    "ConversationRecord",
    "Insight",
    "Recommendation",
    "RecommendationStatus",
    "RoutedResponse",
    "UserProfile",
]
