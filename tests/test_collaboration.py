from __future__ import annotations

from parentpilot.orchestration.collaboration import combine_responses
from parentpilot.orchestration.routing import KeywordAgentRouter
from parentpilot.schemas.agents import AgentRecord, AgentResponse, AgentStatus, AgentTask, Insight, Recommendation


def _insight(agent_id: str, title: str) -> Insight:
    return Insight(
        sub_agent_id=agent_id,
        child_id="child-1",
        insight_type="progress_analysis",
        title=title,
        content="Steady progress",
    )


def _recommendation(agent_id: str, title: str) -> Recommendation:
    return Recommendation(
        sub_agent_id=agent_id,
        child_id="child-1",
        recommendation_type="enrichment_activities",
        title=title,
        description="Try it daily",
    )


def test_combine_concatenates_artifacts_in_agent_order() -> None:
    first = AgentResponse(
        success=True,
        message="Tracker here",
        insights=[_insight("a-1", "Walking"), _insight("a-1", "Talking")],
    )
    second = AgentResponse(
        success=True,
        message="Coach here",
        insights=[_insight("a-2", "Reading")],
        recommendations=[_recommendation("a-2", "Library visit")],
        tasks=[AgentTask(sub_agent_id="a-2", child_id="child-1", title="Pick books")],
    )

    combined = combine_responses([("a-1", first), ("a-2", second)])

    assert combined.success is True
    assert [insight.title for insight in combined.insights] == ["Walking", "Talking", "Reading"]
    assert [item.title for item in combined.recommendations] == ["Library visit"]
    assert [task.title for task in combined.tasks] == ["Pick books"]
    assert combined.message == "[a-1]: Tracker here\n[a-2]: Coach here"


def test_combine_ignores_failed_responses() -> None:
    failed = AgentResponse(success=False, message="Failed to process", insights=[_insight("a-1", "Stale")])
    ok = AgentResponse(success=True, message="Fine", insights=[_insight("a-2", "Fresh")])

    combined = combine_responses([("a-1", failed), ("a-2", ok)])

    assert [insight.title for insight in combined.insights] == ["Fresh"]
    assert combined.message == "[a-2]: Fine"


def test_combine_without_artifacts_is_not_a_success() -> None:
    combined = combine_responses([("a-1", AgentResponse(success=True, message="Just chatting"))])

    assert combined.success is False
    assert combined.message == "[a-1]: Just chatting"
    assert combine_responses([]).message == ""


def _agent(name: str, *, status: AgentStatus = AgentStatus.ACTIVE) -> AgentRecord:
    return AgentRecord(user_id="user-1", agent_type_id="type-1", name=name, status=status)


def test_router_prefers_rule_order_and_active_agents() -> None:
    router = KeywordAgentRouter()
    paused = _agent("Paused Development Tracker", status=AgentStatus.INACTIVE)
    coach = _agent("My Learning Coach")
    tracker = _agent("My Development Tracker")

    decision = router.select("Any delay in his homework skills?", [paused, coach, tracker])

    assert decision.rule == "development"
    assert decision.agent is tracker


def test_router_falls_through_to_next_rule_then_fallback() -> None:
    router = KeywordAgentRouter()
    behavior = _agent("My Behavior Analyst")
    coach = _agent("My Learning Coach")

    assert router.select("Milestone check", [behavior, coach]).rule == "fallback"
    assert router.select("Milestone check", [behavior, coach]).agent is behavior
    learning = router.select("Milestone and study plan", [behavior, coach])
    assert (learning.rule, learning.agent) == ("learning", coach)


def test_router_returns_none_when_nothing_is_active() -> None:
    router = KeywordAgentRouter()

    assert router.select("milestones", [_agent("Development", status=AgentStatus.TRAINING)]) is None
    assert router.select("hello", []) is None
