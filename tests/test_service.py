from __future__ import annotations

import pytest

from parentpilot.schemas.tasks import Priority, TaskStatus
from parentpilot.service import ParentPilotCore
from parentpilot.services.records import InMemoryRecordStore
from tests.helpers.stubs import StubCompletionService, make_settings, pipeline_llm, seed_agent, seed_family


@pytest.mark.asyncio
async def test_core_runs_the_pipeline_end_to_end() -> None:
    store = InMemoryRecordStore()
    user, child = await seed_family(store)
    core = ParentPilotCore.from_settings(make_settings(), store=store, llm=pipeline_llm())

    task = await core.process_task(user.id, "Meltdowns at bedtime", child_id=child.id, priority=Priority.HIGH)

    assert task.status is TaskStatus.COMPLETED
    assert task.priority is Priority.HIGH
    assert task.analyst_result is not None
    assert task.total_cost_cents >= 3
    usage = await core.cost_tracker.current_month_usage(user.id)
    assert usage == task.total_cost_cents
    assert (await core.processor.get_task_history(user.id))[0].id == task.id


@pytest.mark.asyncio
async def test_core_routes_and_collaborates_through_the_manager() -> None:
    store = InMemoryRecordStore()
    user, child = await seed_family(store)
    core = ParentPilotCore.from_settings(make_settings(), store=store, llm=StubCompletionService(default="Sounds good"))
    coach = await seed_agent(store, user, type_name="Learning Coach")

    routed = await core.route_message(user.id, child.id, "What should he study?")
    result = await core.collaborate_agents(user.id, child.id, "Weekend plans?", [coach.id])

    assert routed.agent_id == coach.id
    assert routed.response.message == "Sounds good"
    assert result.participating_agents == [coach.id]
    assert result.combined_response.message == f"[{coach.id}]: Sounds good"


@pytest.mark.asyncio
async def test_core_defaults_to_in_memory_store() -> None:
    core = ParentPilotCore.from_settings(make_settings(), llm=pipeline_llm(category="health_wellness"))
    user, _ = await seed_family(core.store)

    task = await core.process_task(user.id, "Picky eating")

    assert isinstance(core.store, InMemoryRecordStore)
    assert (await core.store.get_task_by_id(task.id)).status is TaskStatus.COMPLETED
