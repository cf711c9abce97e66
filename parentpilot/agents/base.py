from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence

from pydantic import BaseModel

from ..core.exceptions import ParentPilotError, RecordStoreError
from ..core.logging import get_logger
from ..schemas.agents import (
    AgentRecord,
    AgentResponse,
    AgentTask,
    AgentTaskStatus,
    ArtifactPriority,
    Capability,
    ChildProfile,
    ConversationMessage,
    ConversationRecord,
    Insight,
    Recommendation,
    RecommendationStatus,
    UserProfile,
)
from ..services.llm import CompletionService
from ..services.records import RecordStore

logger = get_logger(name=__name__)


@dataclass
class AgentContext:
    """Execution context bound to an agent at construction time."""

    llm: CompletionService
    store: RecordStore
    user_id: str
    child_id: str | None = None
    child: ChildProfile | None = None
    user: UserProfile | None = None
    conversation_history: list[ConversationRecord] = field(default_factory=list)

    def describe(self) -> str:
        parts: list[str] = []
        if self.child is not None:
            parts.append(f"Child: {self.child.name} ({self.child.age} years old)")
            if self.child.interests:
                parts.append(f"Interests: {', '.join(self.child.interests)}")
            if self.child.strengths:
                parts.append(f"Strengths: {', '.join(self.child.strengths)}")
        if self.user is not None:
            parts.append(f"Parent: {self.user.name}")
        return ". ".join(parts)


class BaseAgent(Protocol):
    agent: AgentRecord
    context: AgentContext

    def get_capabilities(self) -> list[Capability]:
        ...

    def is_capability_enabled(self, name: str) -> bool:
        ...

    async def process_message(self, message: str) -> AgentResponse:
        ...

    async def generate_insights(self) -> list[Insight]:
        ...

    async def generate_recommendations(self) -> list[Recommendation]:
        ...

    async def execute_task(self, task_id: str) -> AgentResponse:
        ...


def _configured_toggles(agent: AgentRecord) -> dict[str, bool]:
    toggles = agent.configuration.get("capabilities", {})
    if not isinstance(toggles, dict):
        return {}
    return {str(name): bool(enabled) for name, enabled in toggles.items()}


class AgentSupport:
    """Shared plumbing for concrete agents: capabilities, persistence, conversation log."""

    capability_definitions: Sequence[tuple[str, str]] = ()

    def __init__(self, agent: AgentRecord, context: AgentContext) -> None:
        self.agent = agent
        self.context = context
        toggles = _configured_toggles(agent)
        self.capabilities = [
            Capability(name=name, description=description, enabled=toggles.get(name, True))
            for name, description in self.capability_definitions
        ]

    def get_capabilities(self) -> list[Capability]:
        return [capability.model_copy() for capability in self.capabilities]

    def is_capability_enabled(self, name: str) -> bool:
        return any(capability.name == name and capability.enabled for capability in self.capabilities)

    async def complete(self, prompt: str, *, system_prompt: str | None = None) -> str:
        return await self.context.llm.complete(prompt, system_prompt=system_prompt)

    async def create_task(
        self,
        *,
        task_type: str,
        title: str,
        description: str | None = None,
        priority: ArtifactPriority = ArtifactPriority.MEDIUM,
        due_date: str | None = None,
    ) -> AgentTask | None:
        if self.context.child_id is None:
            return None
        task = AgentTask(
            sub_agent_id=self.agent.id,
            child_id=self.context.child_id,
            task_type=task_type,
            title=title,
            description=description,
            priority=priority,
            due_date=due_date,
        )
        return await self.context.store.create_agent_task(task)

    async def create_insight(
        self,
        *,
        insight_type: str,
        title: str,
        content: str,
        confidence_score: float | None = None,
        data_sources: Sequence[str] = (),
    ) -> Insight | None:
        if self.context.child_id is None:
            return None
        insight = Insight(
            sub_agent_id=self.agent.id,
            child_id=self.context.child_id,
            insight_type=insight_type,
            title=title,
            content=content,
            confidence_score=confidence_score,
            data_sources=list(data_sources),
        )
        return await self.context.store.create_insight(insight)

    async def create_recommendation(
        self,
        *,
        recommendation_type: str,
        title: str,
        description: str,
        action_items: Sequence[str] = (),
        priority: ArtifactPriority = ArtifactPriority.MEDIUM,
    ) -> Recommendation | None:
        if self.context.child_id is None:
            return None
        recommendation = Recommendation(
            sub_agent_id=self.agent.id,
            child_id=self.context.child_id,
            recommendation_type=recommendation_type,
            title=title,
            description=description,
            action_items=list(action_items),
            priority=priority,
        )
        return await self.context.store.create_recommendation(recommendation)

    async def finish_task(
        self,
        task: AgentTask,
        *,
        status: AgentTaskStatus,
        result_data: dict[str, Any] | None = None,
    ) -> AgentTask:
        task.status = status
        task.result_data = result_data
        now = datetime.now(timezone.utc)
        task.updated_at = now
        if status is AgentTaskStatus.COMPLETED:
            task.completed_at = now
        return await self.context.store.update_agent_task(task)

    async def get_tasks(self, status: AgentTaskStatus | None = None) -> list[AgentTask]:
        return await self.context.store.get_agent_tasks(self.agent.id, status=status)

    async def get_insights(self, limit: int = 20) -> list[Insight]:
        return await self.context.store.get_insights(self.agent.id, child_id=self.context.child_id, limit=limit)

    async def get_recommendations(self, status: RecommendationStatus | None = None) -> list[Recommendation]:
        return await self.context.store.get_recommendations(
            self.agent.id,
            child_id=self.context.child_id,
            status=status,
        )

    async def log_conversation(self, user_message: str, agent_message: str, **context: Any) -> None:
        record = ConversationRecord(
            sub_agent_id=self.agent.id,
            user_id=self.context.user_id,
            messages=[
                ConversationMessage(role="user", content=user_message),
                ConversationMessage(role="assistant", content=agent_message),
            ],
            context=context,
        )
        try:
            await self.context.store.create_conversation(record)
        except RecordStoreError as exc:
            # A lost transcript never fails the turn that produced it.
            logger.warning(
                "conversation_log_failed",
                agent_id=self.agent.id,
                error=str(exc),
                error_category="store",
            )

    def history_prompt(self, limit: int = 5) -> str:
        lines: list[str] = []
        for record in self.context.conversation_history[:limit]:
            for message in record.messages:
                lines.append(f"{message.role}: {message.content}")
        return "\n".join(lines)


def stage_record(context: AgentContext, *, agent_id: str, name: str, description: str) -> AgentRecord:
    """Synthetic agent identity for pipeline stages, which have no stored record."""
    return AgentRecord(
        id=agent_id,
        user_id=context.user_id,
        agent_type_id=agent_id.removesuffix("-agent"),
        name=name,
        description=description,
    )


class StageAgent(AgentSupport):
    """Pipeline stage exposed through the agent contract.

    Stages produce structured results for the task processor and keep no
    artifacts of their own.
    """

    stage: str = ""

    async def run_message(self, message: str) -> BaseModel:
        raise NotImplementedError

    async def process_message(self, message: str) -> AgentResponse:
        try:
            result = await self.run_message(message)
        except ParentPilotError as exc:
            logger.warning(
                "stage_message_failed",
                stage=self.stage,
                agent_id=self.agent.id,
                error=str(exc),
                error_category=exc.category,
            )
            return AgentResponse.failure(f"{self.agent.name} could not process the message: {exc}")
        summary = f"{self.agent.name} processed the message."
        await self.log_conversation(message, summary, stage=self.stage)
        return AgentResponse(success=True, message=summary, data=result.model_dump(mode="json"))

    async def generate_insights(self) -> list[Insight]:
        return []

    async def generate_recommendations(self) -> list[Recommendation]:
        return []

    async def execute_task(self, task_id: str) -> AgentResponse:
        return AgentResponse.failure(f"{self.agent.name} does not execute tasks directly.")


__all__ = ["AgentContext", "AgentSupport", "BaseAgent", "StageAgent", "stage_record"]
