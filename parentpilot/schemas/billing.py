from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class BillingPlan(BaseModel):
    id: str
    name: str
    monthly_limit_cents: int = Field(..., ge=0)
    cost_per_token_usd: float = Field(..., ge=0.0)
    cost_per_minute_usd: float = Field(..., ge=0.0)


class UserBilling(BaseModel):
    user_id: str
    plan_id: str
    current_usage_cents: int = Field(..., ge=0)
    monthly_limit_cents: int = Field(..., ge=0)
    reset_date: datetime

    @property
    def remaining_cents(self) -> int:
        return max(0, self.monthly_limit_cents - self.current_usage_cents)


class CostAnalytics(BaseModel):
    total_cost_cents: int = 0
    total_tokens: int = 0
    total_execution_time_ms: int = 0
    cost_by_agent: dict[str, int] = Field(default_factory=dict)
    cost_by_day: dict[str, int] = Field(default_factory=dict)
    record_count: int = 0
    task_count: int = 0
    average_cost_per_task: float = 0.0


__all__ = ["BillingPlan", "CostAnalytics", "UserBilling"]
