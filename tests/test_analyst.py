from __future__ import annotations

import pytest

from parentpilot.agents.analyst import AnalystAgent, confidence_score, data_sources
from parentpilot.core.config import AnalystSettings
from parentpilot.core.exceptions import CompletionError
from parentpilot.schemas.agents import ConversationMessage, ConversationRecord
from parentpilot.schemas.tasks import DispatcherResult, Priority, TaskCategory, TaskInput
from parentpilot.services.records import InMemoryRecordStore
from tests.helpers.stubs import INSIGHTS, PATTERNS, make_context, pipeline_llm, seed_family


def test_confidence_base_case_is_half() -> None:
    assert confidence_score([], [], "short") == 0.5


def test_confidence_maximal_case_is_capped_at_one() -> None:
    text = "x" * 201
    assert confidence_score(["i"] * 5, ["p"] * 3, text) == 1.0


def test_confidence_counts_items_and_length() -> None:
    # 0.5 + 0.2 insights + 0.1 pattern + 0.1 for >100 chars
    assert confidence_score(["a", "b"], ["c"], "y" * 150) == 0.9


@pytest.mark.parametrize("insights", [0, 1, 3, 8])
@pytest.mark.parametrize("patterns", [0, 2, 6])
@pytest.mark.parametrize("length", [0, 101, 250])
def test_confidence_stays_within_bounds(insights: int, patterns: int, length: int) -> None:
    score = confidence_score(["i"] * insights, ["p"] * patterns, "z" * length)
    assert 0.5 <= score <= 1.0


@pytest.mark.asyncio
async def test_data_sources_tags_profiles_and_keywords() -> None:
    store = InMemoryRecordStore()
    user, child = await seed_family(store)

    text = "My son keeps acting out at school and does not want to see his friend anymore"
    sources = data_sources(text, child=child, user=user)

    assert sources == [
        "child_profile",
        "parent_profile",
        "detailed_input",
        "behavioral_observation",
        "academic_data",
        "social_interaction_data",
    ]


def test_data_sources_without_context() -> None:
    assert data_sources("Quick question", child=None, user=None) == []


def _dispatcher_result() -> DispatcherResult:
    return DispatcherResult(
        category=TaskCategory.BEHAVIOR_ANALYSIS,
        priority=Priority.MEDIUM,
        requires_analysis=True,
        requires_scheduling=False,
        estimated_processing_time=4000,
    )


@pytest.mark.asyncio
async def test_analyze_input_builds_result() -> None:
    store = InMemoryRecordStore()
    user, child = await seed_family(store)
    llm = pipeline_llm()
    context = make_context(llm, store, user=user, child=child)
    agent = AnalystAgent(context, AnalystSettings())

    result = await agent.analyze_input(
        TaskInput(user_id=user.id, raw_input="Tantrums before dinner", child_id=child.id),
        _dispatcher_result(),
    )

    assert result.insights == ["Frustration peaks before dinner", "Transitions are hard"]
    assert result.patterns == ["Outbursts follow screen time"]
    assert result.recommendations == ["Use a visual timer", "Keep a calm-down corner"]
    assert result.confidence_score == 0.8
    assert result.data_sources == ["child_profile", "parent_profile"]
    insight_prompt = next(prompt for prompt, system in llm.calls if INSIGHTS in (system or ""))
    assert "Milo (6 years old)" in insight_prompt


@pytest.mark.asyncio
async def test_patterns_prompt_includes_conversation_history() -> None:
    store = InMemoryRecordStore()
    llm = pipeline_llm()
    context = make_context(llm, store)
    context.conversation_history = [
        ConversationRecord(
            sub_agent_id="agent-1",
            user_id="user-1",
            messages=[
                ConversationMessage(role="user", content="He hid under the table again"),
                ConversationMessage(role="assistant", content="Try a warning before transitions"),
            ],
        )
    ]
    agent = AnalystAgent(context, AnalystSettings())

    await agent.analyze_input(TaskInput(user_id="user-1", raw_input="Meltdown"), _dispatcher_result())

    pattern_prompt = next(prompt for prompt, system in llm.calls if PATTERNS in (system or ""))
    assert "He hid under the table again" in pattern_prompt
    assert "Try a warning before transitions" not in pattern_prompt


@pytest.mark.asyncio
async def test_analyst_propagates_upstream_failure() -> None:
    llm = pipeline_llm(failures=(PATTERNS,))
    agent = AnalystAgent(make_context(llm, InMemoryRecordStore()), AnalystSettings())

    with pytest.raises(CompletionError):
        await agent.analyze_input(TaskInput(user_id="user-1", raw_input="Meltdown"), _dispatcher_result())
