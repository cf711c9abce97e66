from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Sequence

from ..agents.base import AgentContext, BaseAgent
from ..agents.factory import AgentFactory, AgentType
from ..core.config import Settings
from ..core.exceptions import (
    InvalidTransitionError,
    MissingContextError,
    RecordNotFoundError,
    RecordStoreError,
    UnknownAgentTypeError,
    error_category,
)
from ..core.logging import get_logger
from ..core.metrics import increment_agent_error, observe_collaboration
from ..schemas.agents import (
    AgentPerformanceMetrics,
    AgentRecord,
    AgentResponse,
    AgentStatus,
    AgentTask,
    AgentTaskStatus,
    AgentTypeRecord,
    ArtifactPriority,
    Capability,
    CollaborationResult,
    ConversationRecord,
    Insight,
    Recommendation,
    RecommendationStatus,
    RoutedResponse,
)
from ..services.llm import CompletionService
from ..services.records import RecordStore
from .collaboration import combine_responses
from .routing import KeywordAgentRouter

logger = get_logger(name=__name__)

AGENT_UNAVAILABLE = "Agent not found or not accessible."
CHILD_NOT_FOUND = "Child not found."
USER_NOT_FOUND = "User not found."


class AgentManager:
    """Per-user agent service: lifecycle, artifacts, routing and fan-out.

    Missing agents, children or parents come back as soft ``success=False``
    responses. Configuration mistakes such as an unknown agent type raise.
    """

    def __init__(
        self,
        *,
        store: RecordStore,
        llm: CompletionService,
        settings: Settings,
        factory: AgentFactory | None = None,
        router: KeywordAgentRouter | None = None,
    ) -> None:
        self._store = store
        self._llm = llm
        self._settings = settings
        self._factory = factory or AgentFactory(settings)
        self._router = router or KeywordAgentRouter()

    # Agent records

    async def get_user_agents(self, user_id: str, *, status: AgentStatus | None = None) -> list[AgentRecord]:
        return await self._store.get_user_agents(user_id, status=status)

    async def get_available_agent_types(self) -> list[AgentTypeRecord]:
        return await self._store.get_agent_types(active_only=True)

    async def create_sub_agent(
        self,
        user_id: str,
        agent_type_id: str,
        name: str,
        *,
        description: str | None = None,
        configuration: dict[str, Any] | None = None,
    ) -> AgentRecord:
        await self._store.get_user_by_id(user_id)
        agent_type = await self._store.get_agent_type_by_id(agent_type_id)
        # Reject types the factory cannot build before anything is stored.
        AgentType.from_name(agent_type.name)
        agent = await self._store.create_agent(
            AgentRecord(
                user_id=user_id,
                agent_type_id=agent_type_id,
                name=name,
                description=description,
                configuration=configuration or {},
            )
        )
        logger.info("agent_created", agent_id=agent.id, user_id=user_id, agent_type=agent_type.name)
        return agent

    async def update_sub_agent(
        self,
        agent_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        configuration: dict[str, Any] | None = None,
    ) -> AgentRecord:
        agent = await self._store.get_agent_by_id(agent_id)
        updates: dict[str, Any] = {}
        if name is not None:
            updates["name"] = name
        if description is not None:
            updates["description"] = description
        if configuration is not None:
            updates["configuration"] = configuration
        if not updates:
            return agent
        updated = agent.model_copy(update={**updates, "updated_at": datetime.now(timezone.utc)})
        logger.info("agent_updated", agent_id=agent_id, fields=sorted(updates))
        return await self._store.update_agent(updated)

    async def _set_status(self, agent_id: str, status: AgentStatus) -> AgentRecord:
        agent = await self._store.get_agent_by_id(agent_id)
        previous = agent.status
        agent.transition(status)
        stored = await self._store.update_agent(agent)
        logger.info("agent_status_changed", agent_id=agent_id, previous=previous.value, status=status.value)
        return stored

    async def activate_agent(self, agent_id: str) -> AgentRecord:
        return await self._set_status(agent_id, AgentStatus.ACTIVE)

    async def deactivate_agent(self, agent_id: str) -> AgentRecord:
        return await self._set_status(agent_id, AgentStatus.INACTIVE)

    async def start_agent_training(self, agent_id: str) -> AgentRecord:
        return await self._set_status(agent_id, AgentStatus.TRAINING)

    async def complete_agent_training(self, agent_id: str) -> AgentRecord:
        agent = await self._store.get_agent_by_id(agent_id)
        if agent.status is not AgentStatus.TRAINING:
            raise InvalidTransitionError(f"Agent {agent_id} is not in training")
        return await self._set_status(agent_id, AgentStatus.ACTIVE)

    # Agent instances

    async def _owned_agent(self, agent_id: str, user_id: str) -> AgentRecord:
        try:
            agent = await self._store.get_agent_by_id(agent_id)
        except RecordNotFoundError as exc:
            raise MissingContextError(AGENT_UNAVAILABLE) from exc
        if agent.user_id != user_id:
            raise MissingContextError(AGENT_UNAVAILABLE)
        return agent

    async def _agent_type_name(self, agent: AgentRecord) -> str:
        try:
            agent_type = await self._store.get_agent_type_by_id(agent.agent_type_id)
        except RecordNotFoundError as exc:
            raise UnknownAgentTypeError(f"Unknown agent type id: {agent.agent_type_id}") from exc
        return agent_type.name

    async def _context(self, agent: AgentRecord, user_id: str, child_id: str) -> AgentContext:
        try:
            child = await self._store.get_child_by_id(child_id)
        except RecordNotFoundError as exc:
            raise MissingContextError(CHILD_NOT_FOUND) from exc
        if child.user_id != user_id:
            raise MissingContextError(CHILD_NOT_FOUND)
        try:
            user = await self._store.get_user_by_id(user_id)
        except RecordNotFoundError as exc:
            raise MissingContextError(USER_NOT_FOUND) from exc
        limit = self._settings.agents.conversation_history_limit
        history = await self._store.get_conversations(agent.id, limit=limit) if limit else []
        return AgentContext(
            llm=self._llm,
            store=self._store,
            user_id=user_id,
            child_id=child_id,
            child=child,
            user=user,
            conversation_history=history,
        )

    async def _instantiate(self, agent_id: str, user_id: str, child_id: str) -> BaseAgent:
        agent = await self._owned_agent(agent_id, user_id)
        type_name = await self._agent_type_name(agent)
        context = await self._context(agent, user_id, child_id)
        return self._factory.create_agent(agent, type_name, context)

    def _store_failure(self, event: str, agent_id: str, exc: RecordStoreError) -> None:
        increment_agent_error(agent="sub_agent", category=exc.category)
        logger.error(event, agent_id=agent_id, error=str(exc), error_category=exc.category)

    async def process_message_with_agent(
        self,
        agent_id: str,
        user_id: str,
        child_id: str,
        message: str,
    ) -> AgentResponse:
        try:
            instance = await self._instantiate(agent_id, user_id, child_id)
            return await instance.process_message(message)
        except MissingContextError as exc:
            logger.info("agent_context_missing", agent_id=agent_id, reason=str(exc), error_category=exc.category)
            return AgentResponse.failure(str(exc))
        except RecordStoreError as exc:
            self._store_failure("agent_message_failed", agent_id, exc)
            return AgentResponse.failure("Failed to process message with agent.")

    async def generate_agent_insights(self, agent_id: str, user_id: str, child_id: str) -> list[Insight]:
        try:
            instance = await self._instantiate(agent_id, user_id, child_id)
        except MissingContextError as exc:
            logger.info("agent_context_missing", agent_id=agent_id, reason=str(exc), error_category=exc.category)
            return []
        return await instance.generate_insights()

    async def generate_agent_recommendations(self, agent_id: str, user_id: str, child_id: str) -> list[Recommendation]:
        try:
            instance = await self._instantiate(agent_id, user_id, child_id)
        except MissingContextError as exc:
            logger.info("agent_context_missing", agent_id=agent_id, reason=str(exc), error_category=exc.category)
            return []
        return await instance.generate_recommendations()

    async def execute_agent_task(self, agent_id: str, task_id: str, user_id: str, child_id: str) -> AgentResponse:
        try:
            instance = await self._instantiate(agent_id, user_id, child_id)
            return await instance.execute_task(task_id)
        except MissingContextError as exc:
            logger.info("agent_context_missing", agent_id=agent_id, reason=str(exc), error_category=exc.category)
            return AgentResponse.failure(str(exc))
        except RecordStoreError as exc:
            self._store_failure("agent_task_execution_failed", agent_id, exc)
            return AgentResponse.failure("Failed to execute agent task.")

    async def get_agent_capabilities(self, agent_id: str) -> list[Capability]:
        agent = await self._store.get_agent_by_id(agent_id)
        type_name = await self._agent_type_name(agent)
        context = AgentContext(llm=self._llm, store=self._store, user_id=agent.user_id)
        return self._factory.create_agent(agent, type_name, context).get_capabilities()

    # Artifacts

    async def create_agent_task(
        self,
        agent_id: str,
        child_id: str,
        *,
        task_type: str,
        title: str,
        description: str | None = None,
        priority: ArtifactPriority = ArtifactPriority.MEDIUM,
        due_date: str | None = None,
    ) -> AgentTask:
        await self._store.get_agent_by_id(agent_id)
        task = await self._store.create_agent_task(
            AgentTask(
                sub_agent_id=agent_id,
                child_id=child_id,
                task_type=task_type,
                title=title,
                description=description,
                priority=priority,
                due_date=due_date,
            )
        )
        logger.info("agent_task_created", agent_id=agent_id, task_id=task.id, task_type=task_type)
        return task

    async def get_agent_tasks(self, agent_id: str, *, status: AgentTaskStatus | None = None) -> list[AgentTask]:
        return await self._store.get_agent_tasks(agent_id, status=status)

    async def get_agent_insights(
        self,
        agent_id: str,
        *,
        child_id: str | None = None,
        limit: int | None = None,
    ) -> list[Insight]:
        limit = self._settings.agents.insight_limit if limit is None else limit
        return await self._store.get_insights(agent_id, child_id=child_id, limit=limit)

    async def get_agent_recommendations(
        self,
        agent_id: str,
        *,
        child_id: str | None = None,
        status: RecommendationStatus | None = None,
    ) -> list[Recommendation]:
        return await self._store.get_recommendations(agent_id, child_id=child_id, status=status)

    async def update_recommendation_status(
        self,
        recommendation_id: str,
        status: RecommendationStatus,
    ) -> Recommendation:
        recommendation = await self._store.get_recommendation_by_id(recommendation_id)
        previous = recommendation.status
        recommendation.transition(status)
        stored = await self._store.update_recommendation(recommendation)
        logger.info(
            "recommendation_status_changed",
            recommendation_id=recommendation_id,
            previous=previous.value,
            status=status.value,
        )
        return stored

    async def get_agent_conversations(self, agent_id: str, limit: int = 50) -> list[ConversationRecord]:
        return await self._store.get_conversations(agent_id, limit=limit)

    async def get_agent_performance_metrics(self, agent_id: str) -> AgentPerformanceMetrics:
        tasks = await self._store.get_agent_tasks(agent_id)
        insights = await self._store.get_insights(agent_id, limit=None)
        recommendations = await self._store.get_recommendations(agent_id)

        completed = sum(1 for task in tasks if task.status is AgentTaskStatus.COMPLETED)
        failed = sum(1 for task in tasks if task.status is AgentTaskStatus.FAILED)
        accepted = sum(
            1
            for item in recommendations
            if item.status in (RecommendationStatus.ACCEPTED, RecommendationStatus.IMPLEMENTED)
        )
        timestamps = [
            *(task.updated_at for task in tasks),
            *(insight.updated_at for insight in insights),
            *(item.updated_at for item in recommendations),
        ]
        return AgentPerformanceMetrics(
            total_tasks=len(tasks),
            completed_tasks=completed,
            failed_tasks=failed,
            completion_rate=round(completed / len(tasks), 4) if tasks else 0.0,
            total_insights=len(insights),
            total_recommendations=len(recommendations),
            accepted_recommendations=accepted,
            last_activity=max(timestamps) if timestamps else None,
        )

    # Routing and fan-out

    async def route_message_to_best_agent(
        self,
        user_id: str,
        child_id: str,
        message: str,
    ) -> RoutedResponse | None:
        agents = await self._store.get_user_agents(user_id)
        decision = self._router.select(message, agents)
        if decision is None:
            return None
        response = await self.process_message_with_agent(decision.agent.id, user_id, child_id, message)
        return RoutedResponse(agent_id=decision.agent.id, response=response)

    async def collaborate_with_multiple_agents(
        self,
        user_id: str,
        child_id: str,
        message: str,
        agent_ids: Sequence[str],
    ) -> CollaborationResult:
        answered: list[tuple[str, AgentResponse]] = []
        for agent_id in agent_ids:
            try:
                response = await self.process_message_with_agent(agent_id, user_id, child_id, message)
            except Exception as exc:
                category = error_category(exc)
                increment_agent_error(agent="sub_agent", category=category)
                logger.warning(
                    "collaboration_agent_failed",
                    agent_id=agent_id,
                    error=str(exc),
                    error_category=category,
                )
                continue
            answered.append((agent_id, response))

        observe_collaboration(participants=len(answered))
        logger.info("collaboration_completed", requested=len(agent_ids), participants=len(answered))
        return CollaborationResult(
            participating_agents=[agent_id for agent_id, _ in answered],
            combined_response=combine_responses(answered),
        )


__all__ = ["AGENT_UNAVAILABLE", "AgentManager", "CHILD_NOT_FOUND", "USER_NOT_FOUND"]
