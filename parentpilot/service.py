from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .agents.factory import AgentFactory
from .core.config import Settings, get_settings
from .core.logging import configure_logging, get_logger
from .orchestration import AgentManager, TaskProcessor
from .schemas.agents import CollaborationResult, RoutedResponse
from .schemas.tasks import PipelineTask, Priority, TaskInput
from .services.cost_tracker import CostTracker
from .services.llm import CompletionService, LLMService
from .services.records import InMemoryRecordStore, RecordStore

logger = get_logger(name=__name__)


@dataclass
class ParentPilotCore:
    """Explicitly constructed bundle of the services behind the public call shapes."""

    settings: Settings
    store: RecordStore
    llm: CompletionService
    cost_tracker: CostTracker
    factory: AgentFactory
    processor: TaskProcessor
    manager: AgentManager

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        store: RecordStore | None = None,
        llm: CompletionService | None = None,
    ) -> "ParentPilotCore":
        settings = settings or get_settings()
        configure_logging(settings.observability.log_level, json_logs=settings.observability.json_logs)
        store = store if store is not None else InMemoryRecordStore()
        llm = llm if llm is not None else LLMService.from_settings(settings)
        factory = AgentFactory(settings)
        cost_tracker = CostTracker(store, settings)
        processor = TaskProcessor(
            store=store,
            llm=llm,
            settings=settings,
            cost_tracker=cost_tracker,
            factory=factory,
        )
        manager = AgentManager(store=store, llm=llm, settings=settings, factory=factory)
        logger.info("core_initialised", environment=settings.environment, model=settings.completion.model)
        return cls(
            settings=settings,
            store=store,
            llm=llm,
            cost_tracker=cost_tracker,
            factory=factory,
            processor=processor,
            manager=manager,
        )

    async def process_task(
        self,
        user_id: str,
        raw_input: str,
        *,
        child_id: str | None = None,
        priority: Priority | None = None,
    ) -> PipelineTask:
        task_input = TaskInput(user_id=user_id, raw_input=raw_input, child_id=child_id, priority=priority)
        return await self.processor.process_task(task_input)

    async def route_message(self, user_id: str, child_id: str, text: str) -> RoutedResponse | None:
        return await self.manager.route_message_to_best_agent(user_id, child_id, text)

    async def collaborate_agents(
        self,
        user_id: str,
        child_id: str,
        text: str,
        agent_ids: Sequence[str],
    ) -> CollaborationResult:
        return await self.manager.collaborate_with_multiple_agents(user_id, child_id, text, agent_ids)


__all__ = ["ParentPilotCore"]
