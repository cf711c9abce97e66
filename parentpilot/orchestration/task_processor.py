from __future__ import annotations

import time
from typing import Awaitable, Callable, TypeVar

from ..agents.base import AgentContext
from ..agents.factory import AgentFactory
from ..core.config import Settings
from ..core.exceptions import (
    BudgetExceededError,
    RecordNotFoundError,
    RecordStoreError,
    TaskProcessingError,
    error_category,
)
from ..core.logging import bind_log_context, get_logger
from ..core.metrics import (
    increment_agent_error,
    increment_budget_rejection,
    mark_pipeline_finished,
    mark_pipeline_started,
    mark_stage_skipped,
    observe_stage,
    record_stage_cost,
)
from ..schemas.tasks import (
    AnalystResult,
    CostRecord,
    PipelineStage,
    PipelineTask,
    Priority,
    TaskInput,
    TaskStatus,
)
from ..services.cost_tracker import CostTracker, StageCostModel
from ..services.llm import CompletionService
from ..services.records import RecordStore

logger = get_logger(name=__name__)

T = TypeVar("T")
Timer = Callable[[], float]

_FAILURE_MESSAGES = {
    "upstream": "the language model service failed or returned an unusable answer",
    "configuration": "the request or agent configuration is invalid",
    "missing_context": "required child or parent information is missing",
    "store": "task records could not be read or written",
    "budget": "the monthly usage limit was reached",
}


def failure_message(stage: PipelineStage, category: str) -> str:
    reason = _FAILURE_MESSAGES.get(category, "an unexpected error occurred")
    return f"Task failed during the {stage.value} stage: {reason}."


class TaskProcessor:
    """Runs the dispatcher → analyst → scheduler pipeline for one input.

    Every stage invocation, including a failing one, is charged exactly once,
    and the task total only ever includes cost records that were persisted.
    """

    def __init__(
        self,
        *,
        store: RecordStore,
        llm: CompletionService,
        settings: Settings,
        cost_tracker: CostTracker,
        factory: AgentFactory | None = None,
        timer: Timer = time.perf_counter,
    ) -> None:
        self._store = store
        self._llm = llm
        self._settings = settings
        self._cost_tracker = cost_tracker
        self._cost_model = StageCostModel(settings.costs)
        self._factory = factory or AgentFactory(settings)
        self._timer = timer

    async def _build_context(self, task_input: TaskInput) -> AgentContext:
        context = AgentContext(
            llm=self._llm,
            store=self._store,
            user_id=task_input.user_id,
            child_id=task_input.child_id,
        )
        try:
            context.user = await self._store.get_user_by_id(task_input.user_id)
        except RecordNotFoundError:
            logger.info("task_context_user_missing", user_id=task_input.user_id, error_category="missing_context")
        if task_input.child_id is not None:
            try:
                context.child = await self._store.get_child_by_id(task_input.child_id)
            except RecordNotFoundError:
                logger.info("task_context_child_missing", child_id=task_input.child_id, error_category="missing_context")
        return context

    async def _charge(self, task: PipelineTask, stage: PipelineStage, elapsed_ms: int) -> None:
        cents = self._cost_model.estimate(elapsed_ms, stage.value)
        record = CostRecord(
            task_id=task.id,
            user_id=task.user_id,
            agent_name=stage.value,
            tokens_used=self._cost_model.estimate_tokens(task.raw_input, stage.value),
            cost_cents=cents,
            execution_time_ms=elapsed_ms,
        )
        try:
            await self._store.append_cost_record(record)
        except RecordStoreError as exc:
            logger.error(
                "cost_record_persist_failed",
                stage=stage.value,
                cost_cents=cents,
                error=str(exc),
                error_category="store",
            )
            return
        task.total_cost_cents += cents
        record_stage_cost(stage=stage.value, cents=cents)
        try:
            await self._cost_tracker.record_usage(task.user_id, cents)
        except RecordStoreError as exc:
            logger.error(
                "usage_update_failed",
                error=str(exc),
                error_category="store",
            )

    async def _run_stage(self, task: PipelineTask, stage: PipelineStage, call: Callable[[], Awaitable[T]]) -> T:
        started = self._timer()
        event = "failed"
        try:
            result = await call()
            event = "completed"
            return result
        finally:
            elapsed = max(self._timer() - started, 0.0)
            observe_stage(stage=stage.value, latency=elapsed, event=event)
            await self._charge(task, stage, int(elapsed * 1000))

    async def _persist(self, task: PipelineTask) -> None:
        try:
            await self._store.update_task(task)
        except RecordStoreError as exc:
            logger.error(
                "task_persist_failed",
                status=task.status.value,
                error=str(exc),
                error_category="store",
            )

    async def process_task(self, task_input: TaskInput) -> PipelineTask:
        preflight = self._settings.costs.preflight_estimate_cents
        if not await self._cost_tracker.check_usage_limit(task_input.user_id, preflight):
            increment_budget_rejection()
            logger.warning("task_rejected_budget", user_id=task_input.user_id, error_category="budget")
            raise BudgetExceededError(task_input.user_id, preflight)

        context = await self._build_context(task_input)
        task = await self._store.create_task(
            PipelineTask(
                user_id=task_input.user_id,
                child_id=task_input.child_id,
                raw_input=task_input.raw_input,
                category=task_input.category,
                priority=task_input.priority or Priority.MEDIUM,
            )
        )
        with bind_log_context(task_id=task.id, user_id=task.user_id):
            return await self._run_pipeline(task, task_input, context)

    async def _run_pipeline(self, task: PipelineTask, task_input: TaskInput, context: AgentContext) -> PipelineTask:
        mark_pipeline_started()
        logger.info("task_started")
        started = self._timer()
        stage = PipelineStage.DISPATCHER

        try:
            dispatcher = self._factory.create_dispatcher(context)
            dispatcher_result = await self._run_stage(task, stage, lambda: dispatcher.process_task(task_input))
            task.dispatcher_result = dispatcher_result
            task.category = dispatcher_result.category
            task.priority = dispatcher_result.priority

            analyst_result: AnalystResult | None = None
            if dispatcher_result.requires_analysis:
                stage = PipelineStage.ANALYST
                analyst = self._factory.create_analyst(context)
                analyst_result = await self._run_stage(
                    task, stage, lambda: analyst.analyze_input(task_input, dispatcher_result)
                )
                task.analyst_result = analyst_result
            else:
                mark_stage_skipped(stage=PipelineStage.ANALYST.value)

            if dispatcher_result.requires_scheduling:
                stage = PipelineStage.SCHEDULER
                scheduler = self._factory.create_scheduler(context)
                prior = analyst_result or AnalystResult.neutral()
                task.scheduler_result = await self._run_stage(
                    task, stage, lambda: scheduler.schedule_actions(task_input, dispatcher_result, prior)
                )
            else:
                mark_stage_skipped(stage=PipelineStage.SCHEDULER.value)
        except Exception as exc:
            category = error_category(exc)
            task.transition(TaskStatus.FAILED)
            task.processing_time_ms = int((self._timer() - started) * 1000)
            task.message = failure_message(stage, category)
            task.error = {"stage": stage.value, "category": category, "message": str(exc)}
            await self._persist(task)
            mark_pipeline_finished(status=TaskStatus.FAILED.value)
            increment_agent_error(agent=stage.value, category=category)
            logger.error(
                "task_failed",
                stage=stage.value,
                total_cost_cents=task.total_cost_cents,
                error=str(exc),
                error_category=category,
            )
            raise TaskProcessingError(task, task.message, stage=stage.value, category=category) from exc

        task.transition(TaskStatus.COMPLETED)
        task.processing_time_ms = int((self._timer() - started) * 1000)
        await self._persist(task)
        mark_pipeline_finished(status=TaskStatus.COMPLETED.value)
        logger.info(
            "task_completed",
            category=task.category.value if task.category else None,
            processing_time_ms=task.processing_time_ms,
            total_cost_cents=task.total_cost_cents,
        )
        return task

    async def get_task_status(self, task_id: str) -> PipelineTask | None:
        try:
            return await self._store.get_task_by_id(task_id)
        except RecordNotFoundError:
            return None

    async def get_task_history(self, user_id: str, limit: int = 20) -> list[PipelineTask]:
        return await self._store.get_user_tasks(user_id, limit=limit)


__all__ = ["TaskProcessor", "failure_message"]
