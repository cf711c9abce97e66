from __future__ import annotations

from typing import Sequence

from ..core.config import SchedulerSettings
from ..core.logging import get_logger
from ..schemas.agents import AgentRecord
from ..schemas.tasks import (
    AnalystResult,
    DispatcherResult,
    Priority,
    Reminder,
    ScheduledAction,
    SchedulerResult,
    TaskCategory,
    TaskInput,
    TimelineEntry,
)
from .base import AgentContext, StageAgent, stage_record
from .parsing import parse_reminders, parse_timeline

logger = get_logger(name=__name__)

# First matching rule wins.
TIMEFRAME_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("immediate", "today"), "today"),
    (("week", "daily"), "this week"),
    (("month", "long-term"), "this month"),
)
DEFAULT_ACTION_TIMEFRAME = "this week"

DURATION_RULES: tuple[tuple[tuple[str, ...], int], ...] = (
    (("quick", "simple"), 15),
    (("activity", "game"), 30),
    (("session", "lesson"), 45),
    (("project", "planning"), 60),
)
DEFAULT_DURATION_MINUTES = 30


def determine_timeframe_for_action(action: str) -> str:
    lowered = action.lower()
    for keywords, timeframe in TIMEFRAME_RULES:
        if any(keyword in lowered for keyword in keywords):
            return timeframe
    return DEFAULT_ACTION_TIMEFRAME


def estimate_duration(action: str) -> int:
    """Minutes for an action, from keyword hits."""
    lowered = action.lower()
    for keywords, minutes in DURATION_RULES:
        if any(keyword in lowered for keyword in keywords):
            return minutes
    return DEFAULT_DURATION_MINUTES


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


class SchedulerAgent(StageAgent):
    stage = "scheduler"
    capability_definitions = (
        ("timeline_creation", "Create structured timelines for activities"),
        ("action_scheduling", "Schedule specific actions with timeframes"),
        ("reminder_generation", "Generate appropriate reminders for tasks"),
    )

    def __init__(
        self,
        context: AgentContext,
        settings: SchedulerSettings,
        *,
        agent: AgentRecord | None = None,
    ) -> None:
        record = agent or stage_record(
            context,
            agent_id="scheduler-agent",
            name="Task Scheduler",
            description="Schedules actions and creates timelines",
        )
        super().__init__(record, context)
        self.settings = settings

    def determine_timeframe(self, category: TaskCategory) -> str:
        return self.settings.category_timeframes.get(category.value, self.settings.default_timeframe)

    def schedule(self, actions: Sequence[str], priority: Priority) -> list[ScheduledAction]:
        return [
            ScheduledAction(
                action=action,
                timeframe=determine_timeframe_for_action(action),
                priority=priority,
                estimated_duration=estimate_duration(action),
            )
            for action in actions
        ]

    async def create_timeline(self, actions: Sequence[str], timeframe: str) -> list[TimelineEntry]:
        prompt = (
            "You are a scheduling expert for parenting activities. Create a timeline for these actions:\n\n"
            f"Actions:\n{_bullets(actions)}\n\n"
            f"Timeframe: {timeframe}\n\n"
            "Create a structured timeline with specific dates and activities. Consider:\n"
            "- Child's age and development level\n"
            "- Parent's availability\n"
            "- Activity complexity and duration\n"
            "- Logical progression of activities\n\n"
            "Put each date on its own line and list its activities below it as '- ' bullets."
        )
        response = await self.complete(
            prompt,
            system_prompt="You are a scheduling expert. Create a structured timeline with dates and activities.",
        )
        return parse_timeline(response)

    async def generate_reminders(self, actions: Sequence[str], timeline: Sequence[TimelineEntry]) -> list[Reminder]:
        timeline_lines = "\n".join(f"- {entry.date}: {', '.join(entry.activities)}" for entry in timeline)
        prompt = (
            "Based on these actions and timeline, generate appropriate reminders:\n\n"
            f"Actions:\n{_bullets(actions)}\n\n"
            f"Timeline:\n{timeline_lines}\n\n"
            "Generate 2-3 specific reminders that would help the parent stay on track.\n"
            "Write one reminder per line as: type: message - due date"
        )
        response = await self.complete(
            prompt,
            system_prompt="You are a reminder generation expert. Create specific, helpful reminders.",
        )
        return parse_reminders(response, self.settings.max_reminders)

    async def schedule_actions(
        self,
        task: TaskInput,
        dispatcher_result: DispatcherResult,
        analyst_result: AnalystResult,
    ) -> SchedulerResult:
        # Duplicates between the two sources are kept.
        actions = [*dispatcher_result.suggested_actions, *analyst_result.recommendations]
        timeline = await self.create_timeline(actions, self.determine_timeframe(dispatcher_result.category))
        reminders = await self.generate_reminders(actions, timeline)
        result = SchedulerResult(
            scheduled_actions=self.schedule(actions, dispatcher_result.priority),
            timeline=timeline,
            reminders=reminders,
        )
        logger.info(
            "scheduler_completed",
            user_id=task.user_id,
            actions=len(actions),
            timeline_entries=len(timeline),
            reminders=len(reminders),
        )
        return result

    async def run_message(self, message: str) -> SchedulerResult:
        task = TaskInput(user_id=self.context.user_id, raw_input=message, child_id=self.context.child_id)
        dispatcher_result = DispatcherResult(
            category=TaskCategory.SCHEDULING_PLANNING,
            priority=Priority.MEDIUM,
            requires_analysis=False,
            requires_scheduling=True,
            estimated_processing_time=1500,
            suggested_actions=[message],
        )
        return await self.schedule_actions(task, dispatcher_result, AnalystResult.neutral())


__all__ = [
    "DURATION_RULES",
    "SchedulerAgent",
    "TIMEFRAME_RULES",
    "determine_timeframe_for_action",
    "estimate_duration",
]
