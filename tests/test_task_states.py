from __future__ import annotations

import pytest

from parentpilot.core.exceptions import InvalidTransitionError
from parentpilot.schemas.agents import AgentRecord, AgentStatus, Recommendation, RecommendationStatus
from parentpilot.schemas.tasks import PipelineTask, TaskStatus


@pytest.mark.parametrize("terminal", [TaskStatus.COMPLETED, TaskStatus.FAILED])
def test_task_leaves_processing_once(terminal: TaskStatus) -> None:
    task = PipelineTask(user_id="user-1", raw_input="Help")
    assert task.is_terminal is False

    task.transition(terminal)

    assert task.is_terminal is True
    for status in TaskStatus:
        with pytest.raises(InvalidTransitionError):
            task.transition(status)


def test_task_cannot_reenter_processing() -> None:
    with pytest.raises(InvalidTransitionError):
        PipelineTask(user_id="user-1", raw_input="Help").transition(TaskStatus.PROCESSING)


def test_recommendation_workflow() -> None:
    recommendation = Recommendation(
        sub_agent_id="a-1",
        child_id="c-1",
        recommendation_type="enrichment_activities",
        title="Museum day",
        description="Visit the dinosaur hall",
    )

    recommendation.transition(RecommendationStatus.ACCEPTED)
    recommendation.transition(RecommendationStatus.IMPLEMENTED)

    with pytest.raises(InvalidTransitionError):
        recommendation.transition(RecommendationStatus.REJECTED)


def test_agent_in_training_cannot_restart_training() -> None:
    agent = AgentRecord(user_id="user-1", agent_type_id="type-1", name="Coach")

    agent.transition(AgentStatus.TRAINING)

    assert agent.status is AgentStatus.TRAINING
    with pytest.raises(InvalidTransitionError):
        agent.transition(AgentStatus.TRAINING)
