from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..core.logging import get_logger
from ..core.metrics import record_routing_decision
from ..schemas.agents import AgentRecord, AgentStatus

logger = get_logger(name=__name__)


@dataclass(slots=True, frozen=True)
class RoutingRule:
    name: str
    keywords: tuple[str, ...]
    agent_name_fragment: str

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)

    def pick(self, agents: Sequence[AgentRecord]) -> AgentRecord | None:
        for agent in agents:
            if agent.status is AgentStatus.ACTIVE and self.agent_name_fragment in agent.name.lower():
                return agent
        return None


@dataclass(slots=True)
class RoutingDecision:
    agent: AgentRecord
    rule: str


# Evaluated in order; a matching rule with no suitable agent falls through.
ROUTING_RULES: tuple[RoutingRule, ...] = (
    RoutingRule(
        name="development",
        keywords=("milestone", "development", "progress", "delay"),
        agent_name_fragment="development",
    ),
    RoutingRule(
        name="learning",
        keywords=("learn", "activity", "skill", "education", "study", "homework"),
        agent_name_fragment="learning",
    ),
)


class KeywordAgentRouter:
    """Best-effort keyword heuristic; ties resolve to the first agent in the given order."""

    def __init__(self, rules: Sequence[RoutingRule] = ROUTING_RULES) -> None:
        self.rules = tuple(rules)

    def select(self, text: str, agents: Sequence[AgentRecord]) -> RoutingDecision | None:
        lowered = text.lower()
        for rule in self.rules:
            if not rule.matches(lowered):
                continue
            agent = rule.pick(agents)
            if agent is not None:
                return self._decide(agent, rule.name)

        fallback = next((agent for agent in agents if agent.status is AgentStatus.ACTIVE), None)
        if fallback is None:
            record_routing_decision(rule="none")
            logger.info("routing_no_active_agent", candidates=len(agents))
            return None
        return self._decide(fallback, "fallback")

    def _decide(self, agent: AgentRecord, rule: str) -> RoutingDecision:
        record_routing_decision(rule=rule)
        logger.info("routing_decision", agent_id=agent.id, agent_name=agent.name, rule=rule)
        return RoutingDecision(agent=agent, rule=rule)


__all__ = ["KeywordAgentRouter", "ROUTING_RULES", "RoutingDecision", "RoutingRule"]
