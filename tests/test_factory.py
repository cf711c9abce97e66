from __future__ import annotations

import pytest

from parentpilot.agents.analyst import AnalystAgent
from parentpilot.agents.dispatcher import DispatcherAgent
from parentpilot.agents.factory import AgentFactory, AgentType
from parentpilot.agents.scheduler import SchedulerAgent
from parentpilot.agents.specialists import SpecialistAgent
from parentpilot.core.exceptions import UnknownAgentTypeError
from parentpilot.schemas.agents import AgentRecord
from parentpilot.services.records import InMemoryRecordStore
from tests.helpers.stubs import StubCompletionService, make_context, make_settings


def _record() -> AgentRecord:
    return AgentRecord(user_id="user-1", agent_type_id="type-1", name="Helper")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Development Tracker", AgentType.DEVELOPMENT_TRACKER),
        ("development tracker", AgentType.DEVELOPMENT_TRACKER),
        ("LEARNING_COACH", AgentType.LEARNING_COACH),
        ("  Social   Skills Mentor ", AgentType.SOCIAL_SKILLS_MENTOR),
        ("scheduler", AgentType.SCHEDULER),
    ],
)
def test_agent_type_lookup_is_case_insensitive(name: str, expected: AgentType) -> None:
    assert AgentType.from_name(name) is expected


@pytest.mark.parametrize(
    "name, expected_class",
    [
        ("Behavior Analyst", SpecialistAgent),
        ("Academic Advisor", SpecialistAgent),
        ("Dispatcher", DispatcherAgent),
        ("Analyst", AnalystAgent),
        ("Scheduler", SchedulerAgent),
    ],
)
def test_factory_builds_concrete_agents(name: str, expected_class: type) -> None:
    factory = AgentFactory(make_settings())
    context = make_context(StubCompletionService(), InMemoryRecordStore())

    agent = factory.create_agent(_record(), name, context)

    assert isinstance(agent, expected_class)
    assert agent.context is context


def test_specialist_gets_its_profile() -> None:
    factory = AgentFactory(make_settings())
    context = make_context(StubCompletionService(), InMemoryRecordStore())

    agent = factory.create_agent(_record(), "learning coach", context)

    assert agent.profile.kind == "Learning Coach"
    assert [capability.name for capability in agent.get_capabilities()] == [
        "activity_recommendations",
        "learning_optimization",
        "skill_assessment",
    ]


def test_unknown_agent_type_is_an_error() -> None:
    factory = AgentFactory(make_settings())
    context = make_context(StubCompletionService(), InMemoryRecordStore())

    with pytest.raises(UnknownAgentTypeError):
        factory.create_agent(_record(), "Generic Helper", context)


def test_every_type_has_a_constructor() -> None:
    assert set(AgentFactory(make_settings()).supported_types()) == set(AgentType)
