from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from ..core.exceptions import InvalidTransitionError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskCategory(str, Enum):
    DEVELOPMENT_TRACKING = "development_tracking"
    LEARNING_ACTIVITIES = "learning_activities"
    BEHAVIOR_ANALYSIS = "behavior_analysis"
    HEALTH_WELLNESS = "health_wellness"
    SCHEDULING_PLANNING = "scheduling_planning"
    EMOTIONAL_SUPPORT = "emotional_support"
    SOCIAL_SKILLS = "social_skills"
    ACADEMIC_PLANNING = "academic_planning"
    CREATIVE_ACTIVITIES = "creative_activities"
    TECHNOLOGY_MANAGEMENT = "technology_management"


CATEGORY_DESCRIPTIONS: dict[TaskCategory, str] = {
    TaskCategory.DEVELOPMENT_TRACKING: "milestones, progress, growth",
    TaskCategory.LEARNING_ACTIVITIES: "educational activities, homework, skills",
    TaskCategory.BEHAVIOR_ANALYSIS: "behavior patterns, discipline, social skills",
    TaskCategory.HEALTH_WELLNESS: "nutrition, exercise, medical concerns",
    TaskCategory.SCHEDULING_PLANNING: "routines, appointments, time management",
    TaskCategory.EMOTIONAL_SUPPORT: "feelings, stress, mental health",
    TaskCategory.SOCIAL_SKILLS: "friendships, communication, group activities",
    TaskCategory.ACADEMIC_PLANNING: "school performance, curriculum, goals",
    TaskCategory.CREATIVE_ACTIVITIES: "arts, crafts, imagination",
    TaskCategory.TECHNOLOGY_MANAGEMENT: "screen time, digital learning",
}


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineStage(str, Enum):
    DISPATCHER = "dispatcher"
    ANALYST = "analyst"
    SCHEDULER = "scheduler"


class TaskInput(BaseModel):
    user_id: str = Field(..., min_length=1)
    raw_input: str = Field(..., min_length=1)
    child_id: str | None = None
    category: TaskCategory | None = None
    priority: Priority | None = None


class DispatcherResult(BaseModel):
    category: TaskCategory
    priority: Priority
    requires_analysis: bool
    requires_scheduling: bool
    estimated_processing_time: int = Field(..., ge=0, description="Milliseconds.")
    suggested_actions: list[str] = Field(default_factory=list)


class AnalystResult(BaseModel):
    insights: list[str] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    data_sources: list[str] = Field(default_factory=list)

    @classmethod
    def neutral(cls) -> "AnalystResult":
        """Stand-in used when the analysis stage was skipped."""
        return cls(confidence_score=0.0)


class ScheduledAction(BaseModel):
    action: str
    timeframe: str
    priority: Priority
    estimated_duration: int = Field(..., ge=0, description="Minutes.")


class TimelineEntry(BaseModel):
    date: str
    activities: list[str] = Field(default_factory=list)


class Reminder(BaseModel):
    type: str
    message: str
    due_date: str


class SchedulerResult(BaseModel):
    scheduled_actions: list[ScheduledAction] = Field(default_factory=list)
    timeline: list[TimelineEntry] = Field(default_factory=list)
    reminders: list[Reminder] = Field(default_factory=list)


class CostRecord(BaseModel):
    task_id: str
    user_id: str
    agent_name: str
    tokens_used: int = Field(..., ge=0)
    cost_cents: int = Field(..., ge=0)
    execution_time_ms: int = Field(..., ge=0)
    timestamp: datetime = Field(default_factory=_utcnow)


class PipelineTask(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    child_id: str | None = None
    raw_input: str
    category: TaskCategory | None = None
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PROCESSING
    dispatcher_result: DispatcherResult | None = None
    analyst_result: AnalystResult | None = None
    scheduler_result: SchedulerResult | None = None
    processing_time_ms: int | None = None
    total_cost_cents: int = Field(0, ge=0)
    message: str | None = None
    error: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status is not TaskStatus.PROCESSING

    def transition(self, status: TaskStatus) -> None:
        """Move out of ``processing``; terminal tasks never change status again."""
        if self.is_terminal or status is TaskStatus.PROCESSING:
            raise InvalidTransitionError(
                f"Task {self.id} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        self.updated_at = _utcnow()


__all__ = [
    "AnalystResult",
    "CATEGORY_DESCRIPTIONS",
    "CostRecord",
    "DispatcherResult",
    "PipelineStage",
    "PipelineTask",
    "Priority",
    "Reminder",
    "ScheduledAction",
    "SchedulerResult",
    "TaskCategory",
    "TaskInput",
    "TaskStatus",
    "TimelineEntry",
]
