from __future__ import annotations

from enum import Enum
from typing import Callable

from ..core.config import Settings
from ..core.exceptions import UnknownAgentTypeError
from ..core.logging import get_logger
from ..schemas.agents import AgentRecord
from .analyst import AnalystAgent
from .base import AgentContext, BaseAgent
from .dispatcher import DispatcherAgent
from .scheduler import SchedulerAgent
from .specialists import SPECIALIST_PROFILES, SpecialistAgent

logger = get_logger(name=__name__)


class AgentType(str, Enum):
    DEVELOPMENT_TRACKER = "Development Tracker"
    LEARNING_COACH = "Learning Coach"
    BEHAVIOR_ANALYST = "Behavior Analyst"
    SOCIAL_SKILLS_MENTOR = "Social Skills Mentor"
    ACADEMIC_ADVISOR = "Academic Advisor"
    DISPATCHER = "Dispatcher"
    ANALYST = "Analyst"
    SCHEDULER = "Scheduler"

    @classmethod
    def from_name(cls, name: str) -> "AgentType":
        wanted = " ".join(name.replace("_", " ").split()).lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        raise UnknownAgentTypeError(f"Unknown agent type: {name}")


AgentConstructor = Callable[[AgentRecord, AgentContext, Settings], BaseAgent]


def _specialist(kind: AgentType) -> AgentConstructor:
    profile = SPECIALIST_PROFILES[kind.value]

    def build(agent: AgentRecord, context: AgentContext, settings: Settings) -> BaseAgent:
        return SpecialistAgent(agent, context, profile)

    return build


_CONSTRUCTORS: dict[AgentType, AgentConstructor] = {
    AgentType.DEVELOPMENT_TRACKER: _specialist(AgentType.DEVELOPMENT_TRACKER),
    AgentType.LEARNING_COACH: _specialist(AgentType.LEARNING_COACH),
    AgentType.BEHAVIOR_ANALYST: _specialist(AgentType.BEHAVIOR_ANALYST),
    AgentType.SOCIAL_SKILLS_MENTOR: _specialist(AgentType.SOCIAL_SKILLS_MENTOR),
    AgentType.ACADEMIC_ADVISOR: _specialist(AgentType.ACADEMIC_ADVISOR),
    AgentType.DISPATCHER: lambda agent, context, settings: DispatcherAgent(context, settings.dispatcher, agent=agent),
    AgentType.ANALYST: lambda agent, context, settings: AnalystAgent(context, settings.analyst, agent=agent),
    AgentType.SCHEDULER: lambda agent, context, settings: SchedulerAgent(context, settings.scheduler, agent=agent),
}


class AgentFactory:
    """Resolves an agent type name to a concrete agent bound to a context."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def supported_types(self) -> list[AgentType]:
        return list(_CONSTRUCTORS)

    def create_agent(self, agent: AgentRecord, agent_type_name: str, context: AgentContext) -> BaseAgent:
        try:
            agent_type = AgentType.from_name(agent_type_name)
        except UnknownAgentTypeError as exc:
            logger.error(
                "agent_type_unknown",
                agent_id=agent.id,
                agent_type=agent_type_name,
                error_category=exc.category,
            )
            raise
        return _CONSTRUCTORS[agent_type](agent, context, self._settings)

    def create_dispatcher(self, context: AgentContext) -> DispatcherAgent:
        return DispatcherAgent(context, self._settings.dispatcher)

    def create_analyst(self, context: AgentContext) -> AnalystAgent:
        return AnalystAgent(context, self._settings.analyst)

    def create_scheduler(self, context: AgentContext) -> SchedulerAgent:
        return SchedulerAgent(context, self._settings.scheduler)


__all__ = ["AgentFactory", "AgentType"]
