from __future__ import annotations

from typing import Sequence

from ..core.config import AnalystSettings
from ..core.logging import get_logger
from ..schemas.agents import AgentRecord, ChildProfile, UserProfile
from ..schemas.tasks import AnalystResult, DispatcherResult, Priority, TaskCategory, TaskInput
from .base import AgentContext, StageAgent, stage_record
from .parsing import parse_list

logger = get_logger(name=__name__)

KEYWORD_SOURCES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("behavior", "acting"), "behavioral_observation"),
    (("learning", "school"), "academic_data"),
    (("social", "friend"), "social_interaction_data"),
)


def confidence_score(insights: Sequence[str], patterns: Sequence[str], text: str) -> float:
    """Deterministic confidence in [0.5, 1.0]."""
    score = 0.5
    score += min(len(insights) * 0.1, 0.3)
    score += min(len(patterns) * 0.1, 0.2)
    if len(text) > 100:
        score += 0.1
    if len(text) > 200:
        score += 0.1
    return round(min(score, 1.0), 2)


def data_sources(text: str, *, child: ChildProfile | None, user: UserProfile | None) -> list[str]:
    sources: list[str] = []
    if child is not None:
        sources.append("child_profile")
    if user is not None:
        sources.append("parent_profile")
    if len(text) > 50:
        sources.append("detailed_input")
    lowered = text.lower()
    for keywords, tag in KEYWORD_SOURCES:
        if any(keyword in lowered for keyword in keywords):
            sources.append(tag)
    return sources


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


class AnalystAgent(StageAgent):
    stage = "analyst"
    capability_definitions = (
        ("insight_extraction", "Extract meaningful insights from parenting situations"),
        ("pattern_recognition", "Identify recurring patterns in child behavior and development"),
        ("recommendation_generation", "Generate evidence-based recommendations"),
    )

    def __init__(
        self,
        context: AgentContext,
        settings: AnalystSettings,
        *,
        agent: AgentRecord | None = None,
    ) -> None:
        record = agent or stage_record(
            context,
            agent_id="analyst-agent",
            name="Data Analyst",
            description="Analyzes parenting situations for insights and patterns",
        )
        super().__init__(record, context)
        self.settings = settings

    async def extract_insights(self, text: str, context: AgentContext) -> list[str]:
        child = context.child
        lines = [
            "You are a child development analyst. Analyze this parenting situation and extract key insights:",
            "",
            f'Input: "{text}"',
            f"Child: {child.name} ({child.age} years old)" if child else "Child: No child data",
        ]
        if child is not None:
            lines.append(f"Child Interests: {', '.join(child.interests) or 'None'}")
            lines.append(f"Child Strengths: {', '.join(child.strengths) or 'None'}")
        lines += [
            "",
            "Provide 3-5 specific insights about:",
            "- Child development patterns",
            "- Parent-child interaction dynamics",
            "- Potential areas for growth",
            "- Immediate concerns or opportunities",
            "",
            "Format as a list of insights.",
        ]
        response = await self.complete(
            "\n".join(lines),
            system_prompt="You are a child development analyst. Provide specific, actionable insights.",
        )
        return parse_list(response, self.settings.max_insights)

    async def identify_patterns(self, text: str, history: Sequence[str]) -> list[str]:
        prompt = (
            "You are a pattern recognition expert for child development.\n"
            "Identify recurring patterns in this parenting situation:\n\n"
            f'Input: "{text}"\n'
        )
        if history:
            prompt += f"\nEarlier conversation:\n{_bullets(history)}\n"
        prompt += (
            "\nLook for patterns related to:\n"
            "- Behavioral patterns\n"
            "- Developmental milestones\n"
            "- Learning patterns\n"
            "- Social interaction patterns\n"
            "- Emotional response patterns\n\n"
            "Provide 2-3 specific patterns you can identify."
        )
        response = await self.complete(
            prompt,
            system_prompt="You are a pattern recognition expert. Identify specific, observable patterns.",
        )
        return parse_list(response, self.settings.max_patterns)

    async def generate_action_recommendations(self, insights: Sequence[str], patterns: Sequence[str]) -> list[str]:
        prompt = (
            "Based on these insights and patterns, generate 3-4 specific recommendations for the parent:\n\n"
            f"Insights:\n{_bullets(insights)}\n\n"
            f"Patterns:\n{_bullets(patterns)}\n\n"
            "Provide actionable, specific recommendations that the parent can implement "
            "immediately or in the near future."
        )
        response = await self.complete(
            prompt,
            system_prompt="You are a parenting expert. Provide specific, actionable recommendations.",
        )
        return parse_list(response, self.settings.max_recommendations)

    def _history_lines(self) -> list[str]:
        return [
            message.content
            for record in self.context.conversation_history
            for message in record.messages
            if message.role == "user"
        ]

    async def analyze_input(self, task: TaskInput, dispatcher_result: DispatcherResult) -> AnalystResult:
        insights = await self.extract_insights(task.raw_input, self.context)
        patterns = await self.identify_patterns(task.raw_input, self._history_lines())
        recommendations = await self.generate_action_recommendations(insights, patterns)
        result = AnalystResult(
            insights=insights,
            patterns=patterns,
            recommendations=recommendations,
            confidence_score=confidence_score(insights, patterns, task.raw_input),
            data_sources=data_sources(task.raw_input, child=self.context.child, user=self.context.user),
        )
        logger.info(
            "analyst_completed",
            user_id=task.user_id,
            category=dispatcher_result.category.value,
            insights=len(insights),
            patterns=len(patterns),
            recommendations=len(recommendations),
            confidence=result.confidence_score,
        )
        return result

    async def run_message(self, message: str) -> AnalystResult:
        task = TaskInput(user_id=self.context.user_id, raw_input=message, child_id=self.context.child_id)
        placeholder = DispatcherResult(
            category=TaskCategory.BEHAVIOR_ANALYSIS,
            priority=Priority.MEDIUM,
            requires_analysis=True,
            requires_scheduling=False,
            estimated_processing_time=3000,
        )
        return await self.analyze_input(task, placeholder)


__all__ = ["AnalystAgent", "KEYWORD_SOURCES", "confidence_score", "data_sources"]
