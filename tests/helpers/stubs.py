from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from parentpilot.agents.base import AgentContext
from parentpilot.core.config import Settings, get_settings
from parentpilot.core.exceptions import CompletionError, RecordStoreError
from parentpilot.schemas.agents import AgentRecord, AgentTypeRecord, ChildProfile, UserProfile
from parentpilot.services.records import InMemoryRecordStore

# System-prompt fragments that identify each stage call.
CATEGORY = "categorization expert"
PRIORITY = "priority assessment expert"
ACTIONS = "2-3 specific, actionable suggestions"
INSIGHTS = "child development analyst"
PATTERNS = "pattern recognition expert"
RECOMMENDATIONS = "actionable recommendations"
TIMELINE = "scheduling expert"
REMINDERS = "reminder generation expert"

Responder = Callable[[str, "str | None"], str]


@dataclass
class StubCompletionService:
    """Scripted stand-in for the LLM service.

    ``responses`` maps a fragment of the system prompt (or, failing that, the
    prompt) to the reply; the first matching fragment wins. ``failures``
    lists fragments whose calls raise ``CompletionError``.
    """

    responses: dict[str, str | Responder] = field(default_factory=dict)
    default: str = ""
    failures: Sequence[str] = ()
    calls: list[tuple[str, str | None]] = field(default_factory=list)

    async def complete(self, prompt: str, *, system_prompt: str | None = None) -> str:
        self.calls.append((prompt, system_prompt))
        haystack = f"{system_prompt or ''}\n{prompt}"
        for fragment in self.failures:
            if fragment in haystack:
                raise CompletionError(f"stubbed failure for {fragment!r}")
        for fragment, reply in self.responses.items():
            if fragment in haystack:
                return reply(prompt, system_prompt) if callable(reply) else reply
        return self.default

    def count(self, fragment: str) -> int:
        return sum(1 for prompt, system in self.calls if fragment in f"{system or ''}\n{prompt}")


def pipeline_llm(
    *,
    category: str = "behavior_analysis",
    priority: str = "medium",
    failures: Sequence[str] = (),
) -> StubCompletionService:
    return StubCompletionService(
        responses={
            CATEGORY: category,
            PRIORITY: priority,
            ACTIONS: "1. Stay calm during tantrums\n2. Offer two clear choices",
            INSIGHTS: "- Frustration peaks before dinner\n- Transitions are hard",
            PATTERNS: "- Outbursts follow screen time",
            RECOMMENDATIONS: "1. Use a visual timer\n2. Keep a calm-down corner",
            TIMELINE: "Today:\n- Set up the calm-down corner\nTomorrow:\n- Start the visual timer",
            REMINDERS: "daily: Check the timer routine - tomorrow\nweekly: Review progress - next week",
        },
        failures=failures,
    )


def make_settings(**overrides: Any) -> Settings:
    return get_settings({"environment": "test", **overrides})


class FailingCostStore(InMemoryRecordStore):
    """Store whose cost-record writes fail after ``allowed`` successes."""

    def __init__(self, allowed: int = 0) -> None:
        super().__init__()
        self.allowed = allowed

    async def append_cost_record(self, record):
        if self.allowed <= 0:
            raise RecordStoreError("cost table unavailable")
        self.allowed -= 1
        return await super().append_cost_record(record)


async def seed_family(
    store: InMemoryRecordStore,
    *,
    plan: str = "starter",
) -> tuple[UserProfile, ChildProfile]:
    user = await store.create_user(UserProfile(name="Dana", email="dana@example.com", subscription_plan=plan))
    child = await store.create_child(
        ChildProfile(
            user_id=user.id,
            name="Milo",
            age=6,
            grade="1st",
            interests=["dinosaurs", "drawing"],
            strengths=["curiosity"],
            challenges=["transitions"],
        )
    )
    return user, child


async def seed_agent(
    store: InMemoryRecordStore,
    user: UserProfile,
    *,
    type_name: str = "Development Tracker",
    name: str | None = None,
    configuration: dict[str, Any] | None = None,
) -> AgentRecord:
    agent_type = await store.create_agent_type(AgentTypeRecord(name=type_name, description=f"{type_name} agent"))
    return await store.create_agent(
        AgentRecord(
            user_id=user.id,
            agent_type_id=agent_type.id,
            name=name or f"My {type_name}",
            configuration=configuration or {},
        )
    )


def make_context(
    llm: StubCompletionService,
    store: InMemoryRecordStore,
    *,
    user: UserProfile | None = None,
    child: ChildProfile | None = None,
) -> AgentContext:
    return AgentContext(
        llm=llm,
        store=store,
        user_id=user.id if user else "user-1",
        child_id=child.id if child else None,
        child=child,
        user=user,
    )


class StepTimer:
    """Deterministic perf_counter replacement advancing ``step`` seconds per call."""

    def __init__(self, step: float = 1.0) -> None:
        self.step = step
        self.now = 0.0

    def __call__(self) -> float:
        self.now += self.step
        return self.now
