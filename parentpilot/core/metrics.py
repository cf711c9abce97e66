from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

STAGE_LATENCY_SECONDS = Histogram(
    "parentpilot_stage_latency_seconds",
    "Latency of each pipeline stage invocation",
    labelnames=("stage",),
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, float("inf")),
)

STAGE_EVENTS_TOTAL = Counter(
    "parentpilot_stage_events_total",
    "Pipeline stage outcomes (completed/failed/skipped)",
    labelnames=("stage", "event"),
)

PIPELINE_RUNS_TOTAL = Counter(
    "parentpilot_pipeline_runs_total",
    "Pipeline runs grouped by terminal status",
    labelnames=("status",),
)

PIPELINE_RUNS_ACTIVE = Gauge(
    "parentpilot_pipeline_runs_active",
    "Pipeline runs currently in the processing state",
)

STAGE_COST_CENTS_TOTAL = Counter(
    "parentpilot_stage_cost_cents_total",
    "Cents charged per pipeline stage",
    labelnames=("stage",),
)

BUDGET_REJECTIONS_TOTAL = Counter(
    "parentpilot_budget_rejections_total",
    "Pipeline runs refused by the usage limit check",
)

ROUTING_DECISIONS_TOTAL = Counter(
    "parentpilot_routing_decisions_total",
    "Message routing outcomes grouped by the rule that matched",
    labelnames=("rule",),
)

COLLABORATION_PARTICIPANTS = Histogram(
    "parentpilot_collaboration_participants",
    "Number of agents that answered a collaboration request",
    buckets=(0, 1, 2, 3, 4, 5, 8),
)

AGENT_ERRORS_TOTAL = Counter(
    "parentpilot_agent_errors_total",
    "Agent failures grouped by error category",
    labelnames=("agent", "category"),
)


def observe_stage(*, stage: str, latency: float, event: str) -> None:
    STAGE_LATENCY_SECONDS.labels(stage=stage).observe(latency)
    STAGE_EVENTS_TOTAL.labels(stage=stage, event=event).inc()


def mark_stage_skipped(*, stage: str) -> None:
    STAGE_EVENTS_TOTAL.labels(stage=stage, event="skipped").inc()


def record_stage_cost(*, stage: str, cents: int) -> None:
    if cents:
        STAGE_COST_CENTS_TOTAL.labels(stage=stage).inc(cents)


def mark_pipeline_started() -> None:
    PIPELINE_RUNS_ACTIVE.inc()


def mark_pipeline_finished(*, status: str) -> None:
    PIPELINE_RUNS_ACTIVE.dec()
    PIPELINE_RUNS_TOTAL.labels(status=status).inc()


def increment_budget_rejection() -> None:
    BUDGET_REJECTIONS_TOTAL.inc()


def record_routing_decision(*, rule: str) -> None:
    ROUTING_DECISIONS_TOTAL.labels(rule=rule).inc()


def observe_collaboration(*, participants: int) -> None:
    COLLABORATION_PARTICIPANTS.observe(participants)


def increment_agent_error(*, agent: str, category: str) -> None:
    AGENT_ERRORS_TOTAL.labels(agent=agent, category=category).inc()
