from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CompletionSettings(BaseModel):
    host: str = Field("http://localhost", description="Base URL where the Ollama server is running.")
    port: int = Field(11434, ge=1, le=65535)
    model: str = Field("llama3", description="Chat model used for every agent completion.")
    temperature: float = Field(0.7, ge=0.0, le=1.0)
    max_output_tokens: int = Field(1000, ge=16)
    timeout_seconds: float = Field(60.0, gt=0.0, description="Per-call timeout before the call counts as failed.")
    circuit_breaker_threshold: int = Field(5, ge=1, description="Consecutive failures before calls are refused.")
    circuit_breaker_reset_seconds: float = Field(30.0, ge=1.0)
    default_system_prompt: str = Field(
        "You are ParentPilot, a supportive parenting assistant. Be practical, specific, and evidence-based.",
        min_length=8,
    )


class DispatcherSettings(BaseModel):
    category_base_times_ms: dict[str, int] = Field(
        default_factory=lambda: {
            "development_tracking": 2000,
            "learning_activities": 3000,
            "behavior_analysis": 4000,
            "health_wellness": 2500,
            "scheduling_planning": 1500,
            "emotional_support": 3500,
            "social_skills": 3000,
            "academic_planning": 3500,
            "creative_activities": 2000,
            "technology_management": 2500,
        },
        description="Base processing time per task category, in milliseconds.",
    )
    default_base_time_ms: int = Field(2500, ge=0)
    priority_multipliers: dict[str, float] = Field(
        default_factory=lambda: {"low": 0.7, "medium": 1.0, "high": 1.5},
    )
    max_suggested_actions: int = Field(3, ge=1)


class AnalystSettings(BaseModel):
    max_insights: int = Field(5, ge=1)
    max_patterns: int = Field(3, ge=1)
    max_recommendations: int = Field(4, ge=1)


class SchedulerSettings(BaseModel):
    category_timeframes: dict[str, str] = Field(
        default_factory=lambda: {
            "development_tracking": "1-2 weeks",
            "learning_activities": "1 week",
            "behavior_analysis": "2-3 weeks",
            "health_wellness": "1 week",
            "scheduling_planning": "1-2 weeks",
            "emotional_support": "1 week",
            "social_skills": "2-3 weeks",
            "academic_planning": "1 month",
            "creative_activities": "1 week",
            "technology_management": "1 week",
        },
    )
    default_timeframe: str = Field("1 week", min_length=1)
    max_reminders: int = Field(3, ge=1)


class BillingPlanSettings(BaseModel):
    name: str
    monthly_limit_cents: int = Field(..., ge=0)
    cost_per_token_usd: float = Field(..., ge=0.0)
    cost_per_minute_usd: float = Field(..., ge=0.0)


def _default_plans() -> dict[str, BillingPlanSettings]:
    return {
        "starter": BillingPlanSettings(
            name="Starter Plan",
            monthly_limit_cents=1000,
            cost_per_token_usd=0.001,
            cost_per_minute_usd=0.1,
        ),
        "pro": BillingPlanSettings(
            name="Pro Plan",
            monthly_limit_cents=5000,
            cost_per_token_usd=0.0005,
            cost_per_minute_usd=0.05,
        ),
        "enterprise": BillingPlanSettings(
            name="Enterprise Plan",
            monthly_limit_cents=50000,
            cost_per_token_usd=0.0002,
            cost_per_minute_usd=0.02,
        ),
    }


class CostSettings(BaseModel):
    base_cost_per_minute: float = Field(0.1, ge=0.0, description="Dollars charged per minute of stage execution.")
    stage_multipliers: dict[str, float] = Field(
        default_factory=lambda: {"dispatcher": 1.0, "analyst": 1.5, "scheduler": 1.2},
    )
    minimum_stage_cost_cents: int = Field(1, ge=0)
    token_multipliers: dict[str, float] = Field(
        default_factory=lambda: {"dispatcher": 1.0, "analyst": 2.0, "scheduler": 1.5},
    )
    chars_per_token: int = Field(4, ge=1)
    preflight_estimate_cents: int = Field(
        3,
        ge=0,
        description="Cost reserved by the budget gate before a pipeline run starts.",
    )
    default_plan: str = Field("starter", min_length=1)
    plans: dict[str, BillingPlanSettings] = Field(default_factory=_default_plans)


class AgentSettings(BaseModel):
    conversation_history_limit: int = Field(10, ge=0)
    insight_limit: int = Field(20, ge=1)


class ObservabilitySettings(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_logs: bool = Field(True, description="Render JSON lines; false switches to the console renderer.")


class Settings(BaseSettings):
    environment: Literal["local", "test", "production"] = Field("local")

    completion: CompletionSettings = Field(default_factory=CompletionSettings)  # type: ignore[arg-type]
    dispatcher: DispatcherSettings = Field(default_factory=DispatcherSettings)  # type: ignore[arg-type]
    analyst: AnalystSettings = Field(default_factory=AnalystSettings)  # type: ignore[arg-type]
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)  # type: ignore[arg-type]
    costs: CostSettings = Field(default_factory=CostSettings)  # type: ignore[arg-type]
    agents: AgentSettings = Field(default_factory=AgentSettings)  # type: ignore[arg-type]
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)  # type: ignore[arg-type]

    model_config = SettingsConfigDict(
        env_prefix="PARENTPILOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def _get_cached_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def get_settings(overrides: Mapping[str, Any] | None = None) -> Settings:
    """Return settings, using cached defaults unless overrides are provided."""
    if overrides:
        return Settings(**dict(overrides))
    return _get_cached_settings()
