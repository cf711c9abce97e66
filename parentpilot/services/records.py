from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Protocol, TypeVar

from pydantic import BaseModel

from ..core.exceptions import RecordNotFoundError
from ..schemas.agents import (
    AgentRecord,
    AgentStatus,
    AgentTask,
    AgentTaskStatus,
    AgentTypeRecord,
    ChildProfile,
    ConversationRecord,
    Insight,
    Recommendation,
    RecommendationStatus,
    UserProfile,
)
from ..schemas.tasks import CostRecord, PipelineTask

ModelT = TypeVar("ModelT", bound=BaseModel)


class RecordStore(Protocol):
    """Typed record access by opaque id. Missing ids raise ``RecordNotFoundError``."""

    async def create_user(self, user: UserProfile) -> UserProfile: ...

    async def get_user_by_id(self, user_id: str) -> UserProfile: ...

    async def update_user(self, user: UserProfile) -> UserProfile: ...

    async def create_child(self, child: ChildProfile) -> ChildProfile: ...

    async def get_child_by_id(self, child_id: str) -> ChildProfile: ...

    async def create_agent_type(self, agent_type: AgentTypeRecord) -> AgentTypeRecord: ...

    async def get_agent_type_by_id(self, agent_type_id: str) -> AgentTypeRecord: ...

    async def get_agent_types(self, *, active_only: bool = True) -> list[AgentTypeRecord]: ...

    async def create_agent(self, agent: AgentRecord) -> AgentRecord: ...

    async def get_agent_by_id(self, agent_id: str) -> AgentRecord: ...

    async def update_agent(self, agent: AgentRecord) -> AgentRecord: ...

    async def get_user_agents(self, user_id: str, *, status: AgentStatus | None = None) -> list[AgentRecord]: ...

    async def create_task(self, task: PipelineTask) -> PipelineTask: ...

    async def update_task(self, task: PipelineTask) -> PipelineTask: ...

    async def get_task_by_id(self, task_id: str) -> PipelineTask: ...

    async def get_user_tasks(self, user_id: str, *, limit: int = 20) -> list[PipelineTask]: ...

    async def append_cost_record(self, record: CostRecord) -> CostRecord: ...

    async def get_cost_records(
        self,
        *,
        task_id: str | None = None,
        user_id: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[CostRecord]: ...

    async def create_agent_task(self, task: AgentTask) -> AgentTask: ...

    async def get_agent_task_by_id(self, task_id: str) -> AgentTask: ...

    async def update_agent_task(self, task: AgentTask) -> AgentTask: ...

    async def get_agent_tasks(self, agent_id: str, *, status: AgentTaskStatus | None = None) -> list[AgentTask]: ...

    async def create_insight(self, insight: Insight) -> Insight: ...

    async def get_insights(self, agent_id: str, *, child_id: str | None = None, limit: int | None = 20) -> list[Insight]: ...

    async def create_recommendation(self, recommendation: Recommendation) -> Recommendation: ...

    async def get_recommendation_by_id(self, recommendation_id: str) -> Recommendation: ...

    async def update_recommendation(self, recommendation: Recommendation) -> Recommendation: ...

    async def get_recommendations(
        self,
        agent_id: str,
        *,
        child_id: str | None = None,
        status: RecommendationStatus | None = None,
    ) -> list[Recommendation]: ...

    async def create_conversation(self, conversation: ConversationRecord) -> ConversationRecord: ...

    async def get_conversations(self, agent_id: str, *, limit: int = 10) -> list[ConversationRecord]: ...


class InMemoryRecordStore:
    """Dict-backed ``RecordStore`` used for local runs and tests.

    Records are copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._users: dict[str, UserProfile] = {}
        self._children: dict[str, ChildProfile] = {}
        self._agent_types: dict[str, AgentTypeRecord] = {}
        self._agents: dict[str, AgentRecord] = {}
        self._tasks: dict[str, PipelineTask] = {}
        self._cost_records: list[CostRecord] = []
        self._agent_tasks: dict[str, AgentTask] = {}
        self._insights: dict[str, Insight] = {}
        self._recommendations: dict[str, Recommendation] = {}
        self._conversations: dict[str, ConversationRecord] = {}

    async def _put(self, table: dict[str, ModelT], record: ModelT, record_id: str) -> ModelT:
        async with self._lock:
            table[record_id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def _replace(self, table: dict[str, ModelT], record: ModelT, record_id: str, kind: str) -> ModelT:
        async with self._lock:
            if record_id not in table:
                raise RecordNotFoundError(kind, record_id)
            table[record_id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    @staticmethod
    def _get(table: dict[str, ModelT], record_id: str, kind: str) -> ModelT:
        record = table.get(record_id)
        if record is None:
            raise RecordNotFoundError(kind, record_id)
        return record.model_copy(deep=True)

    async def create_user(self, user: UserProfile) -> UserProfile:
        return await self._put(self._users, user, user.id)

    async def get_user_by_id(self, user_id: str) -> UserProfile:
        return self._get(self._users, user_id, "User")

    async def update_user(self, user: UserProfile) -> UserProfile:
        return await self._replace(self._users, user, user.id, "User")

    async def create_child(self, child: ChildProfile) -> ChildProfile:
        return await self._put(self._children, child, child.id)

    async def get_child_by_id(self, child_id: str) -> ChildProfile:
        return self._get(self._children, child_id, "Child")

    async def create_agent_type(self, agent_type: AgentTypeRecord) -> AgentTypeRecord:
        return await self._put(self._agent_types, agent_type, agent_type.id)

    async def get_agent_type_by_id(self, agent_type_id: str) -> AgentTypeRecord:
        return self._get(self._agent_types, agent_type_id, "Agent type")

    async def get_agent_types(self, *, active_only: bool = True) -> list[AgentTypeRecord]:
        types = [item for item in self._agent_types.values() if item.is_active or not active_only]
        return [item.model_copy(deep=True) for item in sorted(types, key=lambda item: item.name)]

    async def create_agent(self, agent: AgentRecord) -> AgentRecord:
        return await self._put(self._agents, agent, agent.id)

    async def get_agent_by_id(self, agent_id: str) -> AgentRecord:
        return self._get(self._agents, agent_id, "Agent")

    async def update_agent(self, agent: AgentRecord) -> AgentRecord:
        return await self._replace(self._agents, agent, agent.id, "Agent")

    async def get_user_agents(self, user_id: str, *, status: AgentStatus | None = None) -> list[AgentRecord]:
        # Creation order; routing relies on "first active agent".
        agents = [
            agent
            for agent in self._agents.values()
            if agent.user_id == user_id and (status is None or agent.status is status)
        ]
        return [agent.model_copy(deep=True) for agent in agents]

    async def create_task(self, task: PipelineTask) -> PipelineTask:
        return await self._put(self._tasks, task, task.id)

    async def update_task(self, task: PipelineTask) -> PipelineTask:
        return await self._replace(self._tasks, task, task.id, "Task")

    async def get_task_by_id(self, task_id: str) -> PipelineTask:
        return self._get(self._tasks, task_id, "Task")

    async def get_user_tasks(self, user_id: str, *, limit: int = 20) -> list[PipelineTask]:
        tasks = [task for task in self._tasks.values() if task.user_id == user_id]
        tasks.sort(key=lambda task: task.created_at, reverse=True)
        return [task.model_copy(deep=True) for task in tasks[:limit]]

    async def append_cost_record(self, record: CostRecord) -> CostRecord:
        async with self._lock:
            self._cost_records.append(record.model_copy(deep=True))
        return record.model_copy(deep=True)

    async def get_cost_records(
        self,
        *,
        task_id: str | None = None,
        user_id: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[CostRecord]:
        records = []
        for record in self._cost_records:
            if task_id is not None and record.task_id != task_id:
                continue
            if user_id is not None and record.user_id != user_id:
                continue
            if since is not None and record.timestamp < since:
                continue
            if until is not None and record.timestamp > until:
                continue
            records.append(record.model_copy(deep=True))
        return records

    async def create_agent_task(self, task: AgentTask) -> AgentTask:
        return await self._put(self._agent_tasks, task, task.id)

    async def get_agent_task_by_id(self, task_id: str) -> AgentTask:
        return self._get(self._agent_tasks, task_id, "Agent task")

    async def update_agent_task(self, task: AgentTask) -> AgentTask:
        return await self._replace(self._agent_tasks, task, task.id, "Agent task")

    async def get_agent_tasks(self, agent_id: str, *, status: AgentTaskStatus | None = None) -> list[AgentTask]:
        tasks = [
            task
            for task in self._agent_tasks.values()
            if task.sub_agent_id == agent_id and (status is None or task.status is status)
        ]
        tasks.sort(key=lambda task: task.created_at, reverse=True)
        return [task.model_copy(deep=True) for task in tasks]

    async def create_insight(self, insight: Insight) -> Insight:
        return await self._put(self._insights, insight, insight.id)

    async def get_insights(self, agent_id: str, *, child_id: str | None = None, limit: int | None = 20) -> list[Insight]:
        insights = [
            insight
            for insight in self._insights.values()
            if insight.sub_agent_id == agent_id and (child_id is None or insight.child_id == child_id)
        ]
        insights.sort(key=lambda insight: insight.created_at, reverse=True)
        return [insight.model_copy(deep=True) for insight in insights[:limit]]

    async def create_recommendation(self, recommendation: Recommendation) -> Recommendation:
        return await self._put(self._recommendations, recommendation, recommendation.id)

    async def get_recommendation_by_id(self, recommendation_id: str) -> Recommendation:
        return self._get(self._recommendations, recommendation_id, "Recommendation")

    async def update_recommendation(self, recommendation: Recommendation) -> Recommendation:
        return await self._replace(self._recommendations, recommendation, recommendation.id, "Recommendation")

    async def get_recommendations(
        self,
        agent_id: str,
        *,
        child_id: str | None = None,
        status: RecommendationStatus | None = None,
    ) -> list[Recommendation]:
        recommendations = [
            item
            for item in self._recommendations.values()
            if item.sub_agent_id == agent_id
            and (child_id is None or item.child_id == child_id)
            and (status is None or item.status is status)
        ]
        recommendations.sort(key=lambda item: item.created_at, reverse=True)
        return [item.model_copy(deep=True) for item in recommendations]

    async def create_conversation(self, conversation: ConversationRecord) -> ConversationRecord:
        return await self._put(self._conversations, conversation, conversation.id)

    async def get_conversations(self, agent_id: str, *, limit: int = 10) -> list[ConversationRecord]:
        conversations = [item for item in self._conversations.values() if item.sub_agent_id == agent_id]
        conversations.sort(key=lambda item: item.created_at, reverse=True)
        return [item.model_copy(deep=True) for item in conversations[:limit]]


__all__ = ["InMemoryRecordStore", "RecordStore"]
