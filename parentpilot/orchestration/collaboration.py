from __future__ import annotations

from typing import Iterable

from ..schemas.agents import AgentResponse, AgentTask, Insight, Recommendation


def combine_responses(responses: Iterable[tuple[str, AgentResponse]]) -> AgentResponse:
    """Merge successful agent responses in the order given.

    Failed responses contribute nothing. The merged response succeeds only
    when at least one task, insight or recommendation came back.
    """
    tasks: list[AgentTask] = []
    insights: list[Insight] = []
    recommendations: list[Recommendation] = []
    messages: list[str] = []

    for agent_id, response in responses:
        if not response.success:
            continue
        tasks.extend(response.tasks)
        insights.extend(response.insights)
        recommendations.extend(response.recommendations)
        if response.message:
            messages.append(f"[{agent_id}]: {response.message}")

    return AgentResponse(
        success=bool(tasks or insights or recommendations),
        message="\n".join(messages),
        tasks=tasks,
        insights=insights,
        recommendations=recommendations,
    )


__all__ = ["combine_responses"]
