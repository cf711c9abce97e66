from __future__ import annotations

from ..core.config import DispatcherSettings
from ..core.exceptions import MalformedCompletionError
from ..core.logging import get_logger
from ..schemas.agents import AgentRecord
from ..schemas.tasks import (
    CATEGORY_DESCRIPTIONS,
    DispatcherResult,
    Priority,
    TaskCategory,
    TaskInput,
)
from .base import AgentContext, StageAgent, stage_record
from .parsing import normalize_category, parse_list, parse_priority

logger = get_logger(name=__name__)

ANALYSIS_CATEGORIES = frozenset(
    {TaskCategory.BEHAVIOR_ANALYSIS, TaskCategory.DEVELOPMENT_TRACKING, TaskCategory.EMOTIONAL_SUPPORT}
)
SCHEDULING_CATEGORIES = frozenset(
    {TaskCategory.SCHEDULING_PLANNING, TaskCategory.LEARNING_ACTIVITIES, TaskCategory.ACADEMIC_PLANNING}
)

_CATEGORY_SYSTEM_PROMPT = "You are a task categorization expert. Respond with only the category name."
_PRIORITY_SYSTEM_PROMPT = "You are a priority assessment expert. Respond with only: low, medium, or high."
_ACTIONS_SYSTEM_PROMPT = "You are a parenting expert. Provide 2-3 specific, actionable suggestions."


def requires_analysis(category: TaskCategory, priority: Priority) -> bool:
    return category in ANALYSIS_CATEGORIES or priority is Priority.HIGH


def requires_scheduling(category: TaskCategory, priority: Priority) -> bool:
    return category in SCHEDULING_CATEGORIES or priority is Priority.HIGH


def estimate_processing_time(category: TaskCategory, priority: Priority, settings: DispatcherSettings) -> int:
    """Milliseconds: base time for the category scaled by the priority multiplier."""
    base = settings.category_base_times_ms.get(category.value, settings.default_base_time_ms)
    multiplier = settings.priority_multipliers.get(priority.value, 1.0)
    return round(base * multiplier)


class DispatcherAgent(StageAgent):
    stage = "dispatcher"
    capability_definitions = (
        ("task_categorization", "Categorize incoming tasks into appropriate domains"),
        ("priority_assessment", "Determine task priority based on urgency and importance"),
        ("processing_estimation", "Estimate processing time for different task types"),
    )

    def __init__(
        self,
        context: AgentContext,
        settings: DispatcherSettings,
        *,
        agent: AgentRecord | None = None,
    ) -> None:
        record = agent or stage_record(
            context,
            agent_id="dispatcher-agent",
            name="Task Dispatcher",
            description="Categorizes and prioritizes incoming tasks",
        )
        super().__init__(record, context)
        self.settings = settings

    async def categorize(self, text: str) -> TaskCategory:
        listing = "\n".join(
            f"- {category.value} ({description})" for category, description in CATEGORY_DESCRIPTIONS.items()
        )
        prompt = (
            "You are a task categorization expert for a parenting AI system.\n"
            "Categorize the following input into one of these categories:\n\n"
            f"{listing}\n\n"
            f'Input: "{text}"\n\n'
            "Respond with only the category name."
        )
        response = await self.complete(prompt, system_prompt=_CATEGORY_SYSTEM_PROMPT)
        label = normalize_category(response, (category.value for category in TaskCategory))
        if label is None:
            logger.warning(
                "dispatcher_unknown_category",
                agent_id=self.agent.id,
                response=response[:200],
                error_category="upstream",
            )
            raise MalformedCompletionError(f"Categorization returned an unknown category: {response.strip()[:80]!r}")
        return TaskCategory(label)

    async def determine_priority(self, text: str, category: TaskCategory) -> Priority:
        prompt = (
            "You are a priority assessment expert for a parenting AI system.\n"
            "Determine the priority level (low, medium, high) for this task:\n\n"
            f"Category: {category.value}\n"
            f'Input: "{text}"\n\n'
            "Consider:\n"
            "- Urgency (immediate vs. long-term)\n"
            "- Impact on child's development\n"
            "- Parent's stress level\n"
            "- Time sensitivity\n\n"
            "Respond with only: low, medium, or high"
        )
        response = await self.complete(prompt, system_prompt=_PRIORITY_SYSTEM_PROMPT)
        return parse_priority(response)

    def estimate_processing_time(self, category: TaskCategory, priority: Priority) -> int:
        return estimate_processing_time(category, priority, self.settings)

    async def suggest_actions(self, text: str, category: TaskCategory, priority: Priority) -> list[str]:
        prompt = (
            "Based on this parenting task, suggest 2-3 immediate actions the parent could take:\n\n"
            f"Category: {category.value}\n"
            f"Priority: {priority.value}\n"
            f'Input: "{text}"\n\n'
            "Provide practical, actionable suggestions that are specific and helpful."
        )
        response = await self.complete(prompt, system_prompt=_ACTIONS_SYSTEM_PROMPT)
        return parse_list(response, self.settings.max_suggested_actions)

    async def process_task(self, task: TaskInput) -> DispatcherResult:
        """Classify the input and decide which later stages run.

        Category and priority supplied on the input are used as-is instead of
        asking the completion service.
        """
        category = task.category or await self.categorize(task.raw_input)
        priority = task.priority or await self.determine_priority(task.raw_input, category)
        result = DispatcherResult(
            category=category,
            priority=priority,
            requires_analysis=requires_analysis(category, priority),
            requires_scheduling=requires_scheduling(category, priority),
            estimated_processing_time=self.estimate_processing_time(category, priority),
            suggested_actions=await self.suggest_actions(task.raw_input, category, priority),
        )
        logger.info(
            "dispatcher_completed",
            user_id=task.user_id,
            category=category.value,
            priority=priority.value,
            requires_analysis=result.requires_analysis,
            requires_scheduling=result.requires_scheduling,
        )
        return result

    async def run_message(self, message: str) -> DispatcherResult:
        return await self.process_task(
            TaskInput(user_id=self.context.user_id, raw_input=message, child_id=self.context.child_id)
        )


__all__ = [
    "ANALYSIS_CATEGORIES",
    "DispatcherAgent",
    "SCHEDULING_CATEGORIES",
    "estimate_processing_time",
    "requires_analysis",
    "requires_scheduling",
]
