from __future__ import annotations

import asyncio
import math
from datetime import datetime, timezone
from typing import Callable

from ..core.config import CostSettings, Settings
from ..core.exceptions import RecordNotFoundError, UnknownBillingPlanError
from ..core.logging import get_logger
from ..schemas.billing import BillingPlan, CostAnalytics, UserBilling
from .records import RecordStore

logger = get_logger(name=__name__)

TimestampFactory = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def next_reset_date(now: datetime | None = None) -> datetime:
    """First instant of the month after ``now``."""
    moment = now or _utcnow()
    if moment.month == 12:
        return _month_start(moment).replace(year=moment.year + 1, month=1)
    return _month_start(moment).replace(month=moment.month + 1)


class StageCostModel:
    """Execution-time pricing for pipeline stages."""

    def __init__(self, settings: CostSettings) -> None:
        self._settings = settings

    def estimate(self, execution_ms: int, stage: str) -> int:
        minutes = max(execution_ms, 0) / 60000
        multiplier = self._settings.stage_multipliers.get(stage, 1.0)
        cents = round(minutes * self._settings.base_cost_per_minute * multiplier * 100)
        return max(self._settings.minimum_stage_cost_cents, int(cents))

    def estimate_tokens(self, text: str, stage: str) -> int:
        base = math.ceil(len(text) / self._settings.chars_per_token)
        return int(base * self._settings.token_multipliers.get(stage, 1.0))


class CostTracker:
    """Plan-based pricing and the per-user monthly usage counter.

    The counter for a user is seeded from the store's cost records the first
    time the user is seen in a given month; afterwards it only moves through
    ``record_usage``, which holds a per-user lock for the read-modify-write.
    """

    def __init__(
        self,
        store: RecordStore,
        settings: Settings,
        *,
        now: TimestampFactory | None = None,
    ) -> None:
        self._store = store
        self._settings = settings.costs
        self._now: TimestampFactory = now or _utcnow
        self._usage: dict[str, tuple[datetime, int]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._plans = {
            plan_id: BillingPlan(id=plan_id, **plan.model_dump())
            for plan_id, plan in self._settings.plans.items()
        }
        if self._settings.default_plan not in self._plans:
            raise UnknownBillingPlanError(f"Default billing plan {self._settings.default_plan!r} is not configured")

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        return self._locks.setdefault(user_id, asyncio.Lock())

    def _plan(self, plan_id: str | None) -> BillingPlan:
        resolved = plan_id or self._settings.default_plan
        plan = self._plans.get(resolved)
        if plan is None:
            raise UnknownBillingPlanError(f"Invalid plan: {resolved}")
        return plan

    async def _seeded_usage(self, user_id: str) -> int:
        month = _month_start(self._now())
        cached = self._usage.get(user_id)
        if cached is not None and cached[0] == month:
            return cached[1]
        records = await self._store.get_cost_records(user_id=user_id, since=month)
        total = sum(record.cost_cents for record in records)
        self._usage[user_id] = (month, total)
        return total

    async def current_month_usage(self, user_id: str) -> int:
        async with self._lock_for(user_id):
            return await self._seeded_usage(user_id)

    async def record_usage(self, user_id: str, cents: int) -> int:
        async with self._lock_for(user_id):
            month = _month_start(self._now())
            cached = self._usage.get(user_id)
            if cached is None:
                current = await self._seeded_usage(user_id)
            elif cached[0] == month:
                current = cached[1]
            else:
                # New month starts empty; the caller's record may already be in the store.
                current = 0
            updated = current + max(cents, 0)
            self._usage[user_id] = (month, updated)
        logger.debug("usage_recorded", user_id=user_id, cost_cents=cents, month_usage_cents=updated)
        return updated

    def calculate_cost(self, tokens_used: int, execution_ms: int, plan_id: str | None = None) -> int:
        plan = self._plan(plan_id)
        token_cost = tokens_used * plan.cost_per_token_usd
        time_cost = (execution_ms / 60000) * plan.cost_per_minute_usd
        return int(round((token_cost + time_cost) * 100))

    async def track_cost(self, user_id: str, tokens_used: int, execution_ms: int) -> int:
        try:
            user = await self._store.get_user_by_id(user_id)
            plan_id = user.subscription_plan if user.subscription_plan in self._plans else None
        except RecordNotFoundError:
            plan_id = None
        cost = self.calculate_cost(tokens_used, execution_ms, plan_id)
        await self.record_usage(user_id, cost)
        logger.info(
            "cost_tracked",
            user_id=user_id,
            tokens_used=tokens_used,
            execution_ms=execution_ms,
            cost_cents=cost,
        )
        return cost

    async def get_user_billing(self, user_id: str) -> UserBilling | None:
        try:
            user = await self._store.get_user_by_id(user_id)
        except RecordNotFoundError:
            return None
        plan_id = user.subscription_plan if user.subscription_plan in self._plans else self._settings.default_plan
        plan = self._plans[plan_id]
        return UserBilling(
            user_id=user_id,
            plan_id=plan_id,
            current_usage_cents=await self.current_month_usage(user_id),
            monthly_limit_cents=plan.monthly_limit_cents,
            reset_date=next_reset_date(self._now()),
        )

    async def check_usage_limit(self, user_id: str, estimated_cents: int) -> bool:
        billing = await self.get_user_billing(user_id)
        if billing is None:
            logger.warning("usage_check_unknown_user", user_id=user_id, error_category="budget")
            return False
        allowed = billing.current_usage_cents + estimated_cents <= billing.monthly_limit_cents
        if not allowed:
            logger.info(
                "usage_limit_reached",
                user_id=user_id,
                current_usage_cents=billing.current_usage_cents,
                estimated_cents=estimated_cents,
                monthly_limit_cents=billing.monthly_limit_cents,
                error_category="budget",
            )
        return allowed

    async def get_cost_analytics(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> CostAnalytics:
        records = await self._store.get_cost_records(user_id=user_id, since=start, until=end)
        analytics = CostAnalytics()
        task_ids: set[str] = set()
        for record in records:
            analytics.total_cost_cents += record.cost_cents
            analytics.total_tokens += record.tokens_used
            analytics.total_execution_time_ms += record.execution_time_ms
            analytics.cost_by_agent[record.agent_name] = (
                analytics.cost_by_agent.get(record.agent_name, 0) + record.cost_cents
            )
            day = record.timestamp.date().isoformat()
            analytics.cost_by_day[day] = analytics.cost_by_day.get(day, 0) + record.cost_cents
            task_ids.add(record.task_id)
        analytics.record_count = len(records)
        analytics.task_count = len(task_ids)
        if task_ids:
            analytics.average_cost_per_task = analytics.total_cost_cents / len(task_ids)
        return analytics

    def get_billing_plans(self) -> list[BillingPlan]:
        return list(self._plans.values())

    async def upgrade_plan(self, user_id: str, plan_id: str) -> UserBilling:
        if plan_id not in self._plans:
            raise UnknownBillingPlanError(f"Invalid plan: {plan_id}")
        user = await self._store.get_user_by_id(user_id)
        user.subscription_plan = plan_id
        await self._store.update_user(user)
        logger.info("billing_plan_changed", user_id=user_id, plan_id=plan_id)
        return UserBilling(
            user_id=user_id,
            plan_id=plan_id,
            current_usage_cents=await self.current_month_usage(user_id),
            monthly_limit_cents=self._plans[plan_id].monthly_limit_cents,
            reset_date=next_reset_date(self._now()),
        )

    def next_reset_date(self) -> datetime:
        return next_reset_date(self._now())


__all__ = ["CostTracker", "StageCostModel", "next_reset_date"]
