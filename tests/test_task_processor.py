from __future__ import annotations

import asyncio

import pytest

from parentpilot.core.exceptions import BudgetExceededError, TaskProcessingError
from parentpilot.orchestration.task_processor import TaskProcessor
from parentpilot.schemas.tasks import Priority, TaskCategory, TaskInput, TaskStatus
from parentpilot.services.cost_tracker import CostTracker
from parentpilot.services.records import InMemoryRecordStore
from tests.helpers.stubs import (
    CATEGORY,
    INSIGHTS,
    PATTERNS,
    REMINDERS,
    FailingCostStore,
    StepTimer,
    make_settings,
    pipeline_llm,
    seed_family,
)

# With one simulated minute per stage: dispatcher 10, analyst 15, scheduler 12 cents.
MINUTE = 60.0


def _processor(llm, store, *, settings=None, step: float = MINUTE) -> tuple[TaskProcessor, CostTracker]:
    settings = settings or make_settings()
    tracker = CostTracker(store, settings)
    processor = TaskProcessor(
        store=store,
        llm=llm,
        settings=settings,
        cost_tracker=tracker,
        timer=StepTimer(step),
    )
    return processor, tracker


async def _cost_sum(store: InMemoryRecordStore, task_id: str) -> int:
    return sum(record.cost_cents for record in await store.get_cost_records(task_id=task_id))


@pytest.mark.asyncio
async def test_scheduling_task_skips_analysis_but_still_schedules() -> None:
    store = InMemoryRecordStore()
    user, child = await seed_family(store)
    llm = pipeline_llm(category="scheduling_planning", priority="medium")
    processor, _ = _processor(llm, store)

    task = await processor.process_task(
        TaskInput(user_id=user.id, child_id=child.id, raw_input="Plan the week around swim practice")
    )

    assert task.status is TaskStatus.COMPLETED
    assert task.dispatcher_result.requires_analysis is False
    assert task.dispatcher_result.requires_scheduling is True
    assert task.analyst_result is None
    assert task.scheduler_result is not None
    assert llm.count(INSIGHTS) == 0
    assert llm.count(PATTERNS) == 0
    assert [item.action for item in task.scheduler_result.scheduled_actions] == task.dispatcher_result.suggested_actions
    records = await store.get_cost_records(task_id=task.id)
    assert [record.agent_name for record in records] == ["dispatcher", "scheduler"]
    assert task.total_cost_cents == 22


@pytest.mark.asyncio
async def test_high_priority_runs_every_stage() -> None:
    store = InMemoryRecordStore()
    user, child = await seed_family(store)
    llm = pipeline_llm(category="creative_activities", priority="high")
    processor, _ = _processor(llm, store)

    task = await processor.process_task(TaskInput(user_id=user.id, child_id=child.id, raw_input="Art ideas"))

    assert task.category is TaskCategory.CREATIVE_ACTIVITIES
    assert task.priority is Priority.HIGH
    assert task.dispatcher_result.requires_analysis is True
    assert task.dispatcher_result.requires_scheduling is True
    assert task.analyst_result is not None
    # Suggested actions and analyst recommendations are scheduled without deduplication.
    assert len(task.scheduler_result.scheduled_actions) == (
        len(task.dispatcher_result.suggested_actions) + len(task.analyst_result.recommendations)
    )
    records = await store.get_cost_records(task_id=task.id)
    assert [record.agent_name for record in records] == ["dispatcher", "analyst", "scheduler"]
    assert [record.cost_cents for record in records] == [10, 15, 12]
    assert task.total_cost_cents == 37 == await _cost_sum(store, task.id)
    assert task.processing_time_ms == 7 * 60000


@pytest.mark.asyncio
async def test_completed_task_is_persisted() -> None:
    store = InMemoryRecordStore()
    user, _ = await seed_family(store)
    processor, _ = _processor(pipeline_llm(), store)

    task = await processor.process_task(TaskInput(user_id=user.id, raw_input="Hitting at daycare"))
    stored = await processor.get_task_status(task.id)

    assert stored is not None
    assert stored.status is TaskStatus.COMPLETED
    assert stored.total_cost_cents == task.total_cost_cents
    assert stored.analyst_result == task.analyst_result


@pytest.mark.asyncio
async def test_dispatcher_failure_marks_task_failed_with_single_charge() -> None:
    store = InMemoryRecordStore()
    user, child = await seed_family(store)
    llm = pipeline_llm(failures=(CATEGORY,))
    processor, _ = _processor(llm, store)

    with pytest.raises(TaskProcessingError) as excinfo:
        await processor.process_task(TaskInput(user_id=user.id, child_id=child.id, raw_input="Help"))

    failed = excinfo.value.task
    assert excinfo.value.stage == "dispatcher"
    assert excinfo.value.category == "upstream"
    assert failed.status is TaskStatus.FAILED
    records = await store.get_cost_records(task_id=failed.id)
    assert [record.agent_name for record in records] == ["dispatcher"]
    assert failed.total_cost_cents == records[0].cost_cents == 10
    assert failed.error["stage"] == "dispatcher"
    assert "language model" in failed.message
    assert "Traceback" not in failed.message

    stored = await processor.get_task_status(failed.id)
    assert stored.status is TaskStatus.FAILED
    assert stored.total_cost_cents == 10


@pytest.mark.asyncio
async def test_later_stage_failure_keeps_partial_results() -> None:
    store = InMemoryRecordStore()
    user, child = await seed_family(store)
    llm = pipeline_llm(category="behavior_analysis", priority="high", failures=(REMINDERS,))
    processor, _ = _processor(llm, store)

    with pytest.raises(TaskProcessingError) as excinfo:
        await processor.process_task(TaskInput(user_id=user.id, child_id=child.id, raw_input="Biting"))

    failed = excinfo.value.task
    assert excinfo.value.stage == "scheduler"
    assert failed.dispatcher_result is not None
    assert failed.analyst_result is not None
    assert failed.scheduler_result is None
    assert failed.total_cost_cents == 37 == await _cost_sum(store, failed.id)


@pytest.mark.asyncio
async def test_unpersisted_cost_records_are_not_counted() -> None:
    store = FailingCostStore(allowed=1)
    user, child = await seed_family(store)
    processor, tracker = _processor(pipeline_llm(priority="high"), store)

    task = await processor.process_task(TaskInput(user_id=user.id, child_id=child.id, raw_input="Tantrums"))

    assert task.status is TaskStatus.COMPLETED
    assert task.total_cost_cents == await _cost_sum(store, task.id) == 10
    assert await tracker.current_month_usage(user.id) == 10


@pytest.mark.asyncio
async def test_budget_gate_refuses_before_creating_task() -> None:
    store = InMemoryRecordStore()
    user, _ = await seed_family(store)
    llm = pipeline_llm()
    settings = make_settings(costs={"preflight_estimate_cents": 5000})
    processor, _ = _processor(llm, store, settings=settings)

    with pytest.raises(BudgetExceededError):
        await processor.process_task(TaskInput(user_id=user.id, raw_input="Anything"))

    assert await processor.get_task_history(user.id) == []
    assert await store.get_cost_records(user_id=user.id) == []
    assert llm.calls == []


@pytest.mark.asyncio
async def test_budget_gate_refuses_unknown_user() -> None:
    store = InMemoryRecordStore()
    processor, _ = _processor(pipeline_llm(), store)

    with pytest.raises(BudgetExceededError):
        await processor.process_task(TaskInput(user_id="ghost", raw_input="Anything"))


@pytest.mark.asyncio
async def test_budget_gate_counts_previous_runs() -> None:
    store = InMemoryRecordStore()
    user, _ = await seed_family(store)
    # Starter plan allows 1000 cents; a high priority run with minute-long stages costs 37.
    settings = make_settings(costs={"preflight_estimate_cents": 980})
    processor, tracker = _processor(pipeline_llm(priority="high"), store, settings=settings)

    await processor.process_task(TaskInput(user_id=user.id, raw_input="First"))
    assert await tracker.current_month_usage(user.id) == 37

    with pytest.raises(BudgetExceededError):
        await processor.process_task(TaskInput(user_id=user.id, raw_input="Second"))


@pytest.mark.asyncio
async def test_concurrent_runs_update_usage_without_losing_cents() -> None:
    store = InMemoryRecordStore()
    user, _ = await seed_family(store)
    processor, tracker = _processor(pipeline_llm(priority="high"), store, step=1.0)

    tasks = await asyncio.gather(
        *(processor.process_task(TaskInput(user_id=user.id, raw_input=f"Run {index}")) for index in range(5))
    )

    expected = sum(task.total_cost_cents for task in tasks)
    assert expected == sum(record.cost_cents for record in await store.get_cost_records(user_id=user.id))
    assert await tracker.current_month_usage(user.id) == expected


@pytest.mark.asyncio
async def test_task_history_and_missing_status() -> None:
    store = InMemoryRecordStore()
    user, _ = await seed_family(store)
    processor, _ = _processor(pipeline_llm(), store)

    created = [
        await processor.process_task(TaskInput(user_id=user.id, raw_input=f"Question {index}"))
        for index in range(3)
    ]

    history = await processor.get_task_history(user.id, limit=2)
    assert len(history) == 2
    assert {task.id for task in history} <= {task.id for task in created}
    assert len(await processor.get_task_history(user.id)) == 3
    assert await processor.get_task_status("missing") is None
