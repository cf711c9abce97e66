"""
Orchestration Package

Coordinates agents on behalf of a user:
- Three-stage task pipeline (dispatcher, analyst, scheduler) with cost tracking
- Keyword routing of free-text messages to a user's sub-agents
- Fan-out of one message to several sub-agents with response merging
- Sub-agent lifecycle and artifact management
"""

from .agent_manager import AgentManager
from .collaboration import combine_responses
from .routing import ROUTING_RULES, KeywordAgentRouter, RoutingDecision, RoutingRule
from .task_processor import TaskProcessor, failure_message

__all__ = [
    # Pipeline
    "TaskProcessor",
    "failure_message",
    # Routing
    "KeywordAgentRouter",
    "ROUTING_RULES",
    "RoutingDecision",
    "RoutingRule",
    # Sub-agents
    "AgentManager",
    "combine_responses",
]
