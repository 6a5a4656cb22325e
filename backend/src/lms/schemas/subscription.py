"""Pydantic schemas for subscription status, plan assignment and sweeps."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from lms.schemas.plan import Plan
from lms.schemas.user import UsageCounters


class PlanAssignment(BaseModel):
    """Administrative plan change for a teacher."""

    plan_id: UUID = Field(..., description="Plan to assign")


class SubscriptionStatusResponse(BaseModel):
    """Entitlement of a user to act as an active teacher."""

    user_id: UUID | None
    is_active: bool
    reason: str
    message: str
    plan: Plan | None = None
    subscription_end_date: datetime | None = None
    usage: UsageCounters | None = None


class SweepResult(BaseModel):
    """Outcome of an expired-subscription sweep."""

    success: bool
    message: str
    deactivated_count: int = 0
    cleared_count: int = 0
    skipped_count: int = 0
    errors: int = 0
