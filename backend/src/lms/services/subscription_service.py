"""Subscription service: entitlement checks and plan assignment for teachers."""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lms.metrics import subscription_checks_total
from lms.models.plan import DURATION_DAYS, Plan, PlanDuration
from lms.models.user import User, UserRole

logger = structlog.get_logger(__name__)


class StatusReason(str, Enum):
    """Why a subscription check came out the way it did."""

    ACTIVE = "active"
    NOT_REQUIRED = "not_required"
    INVALID_USER_ID = "invalid_user_id"
    USER_NOT_FOUND = "user_not_found"
    NO_PLAN = "no_plan"
    PLAN_INACTIVE = "plan_inactive"
    EXPIRED = "expired"
    MISSING_END_DATE = "missing_end_date"
    INTERNAL_ERROR = "internal_error"


class AssignmentTargetNotFoundError(ValueError):
    """The user or plan of a plan assignment does not exist."""


# Misconfigured data rather than an ordinary refusal
INTEGRITY_FAULTS = frozenset({StatusReason.NO_PLAN, StatusReason.MISSING_END_DATE})


@dataclass
class SubscriptionStatus:
    """Result of :meth:`SubscriptionService.check_subscription_status`."""

    is_active: bool
    message: str
    reason: StatusReason
    plan: Plan | None = None
    user: User | None = None
    error: str | None = None

    @property
    def is_integrity_fault(self) -> bool:
        return self.reason in INTEGRITY_FAULTS


def compute_subscription_end(plan: Plan, start: datetime) -> datetime | None:
    """Return the end of one billing period of ``plan`` starting at ``start``."""
    if plan.duration == PlanDuration.INDEFINITE:
        return None
    return start + timedelta(days=DURATION_DAYS[plan.duration])


class SubscriptionService:
    """Service layer for subscription operations."""

    def __init__(self, db: AsyncSession):
        """Initialize subscription service with database session."""
        self.db = db

    async def get_user_with_plan(self, user_id: UUID) -> User | None:
        """
        Get user with eager-loaded plan.

        Args:
            user_id: User UUID

        Returns:
            User with plan or None
        """
        result = await self.db.execute(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.plan))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def check_subscription_status(
        self,
        user_id: Any,
        now: datetime | None = None,
    ) -> SubscriptionStatus:
        """
        Decide whether a user may currently act as an active teacher.

        Never raises: store failures come back as an inactive status with
        reason ``internal_error`` so callers always get a decidable answer.

        Args:
            user_id: User identifier (UUID or its string form)
            now: Reference time, defaults to the current UTC time

        Returns:
            SubscriptionStatus
        """
        status = await self._evaluate(user_id, now or datetime.utcnow())

        subscription_checks_total.labels(reason=status.reason.value).inc()
        if status.is_integrity_fault:
            logger.error(
                "subscription_integrity_fault",
                user_id=str(user_id),
                reason=status.reason.value,
                message=status.message,
            )
        elif not status.is_active:
            logger.info("subscription_inactive", user_id=str(user_id), reason=status.reason.value)

        return status

    async def _evaluate(self, user_id: Any, now: datetime) -> SubscriptionStatus:
        try:
            user_uuid = user_id if isinstance(user_id, UUID) else UUID(str(user_id))
        except (TypeError, ValueError):
            return SubscriptionStatus(False, "Invalid user ID.", StatusReason.INVALID_USER_ID)

        try:
            user = await self.get_user_with_plan(user_uuid)
        except Exception as e:
            logger.exception("subscription_check_failed", user_id=str(user_uuid), exc_info=e)
            return SubscriptionStatus(
                False,
                "Internal error while checking the subscription.",
                StatusReason.INTERNAL_ERROR,
                error=str(e),
            )

        if user is None:
            return SubscriptionStatus(False, "User not found.", StatusReason.USER_NOT_FOUND)

        if user.role != UserRole.TEACHER:
            return SubscriptionStatus(
                True, "No plan is required for this type of user.", StatusReason.NOT_REQUIRED, user=user
            )

        plan = user.plan
        if plan is None:
            return SubscriptionStatus(
                False, "The teacher has no plan assigned.", StatusReason.NO_PLAN, user=user
            )

        if not plan.is_active:
            return SubscriptionStatus(
                False,
                f'The plan "{plan.name.value}" assigned to the teacher is not active. Contact the administrator.',
                StatusReason.PLAN_INACTIVE,
                plan=plan,
                user=user,
            )

        if plan.duration != PlanDuration.INDEFINITE:
            end_date = user.subscription_end_date
            if end_date is None:
                return SubscriptionStatus(
                    False,
                    f'The subscription to the plan "{plan.name.value}" has no end date defined.',
                    StatusReason.MISSING_END_DATE,
                    plan=plan,
                    user=user,
                )
            if end_date < now:
                return SubscriptionStatus(
                    False,
                    f'The subscription to the plan "{plan.name.value}" expired on {end_date.date().isoformat()}.',
                    StatusReason.EXPIRED,
                    plan=plan,
                    user=user,
                )

        return SubscriptionStatus(True, "The subscription is active.", StatusReason.ACTIVE, plan=plan, user=user)

    async def assign_plan(self, user_id: UUID, plan_id: UUID, now: datetime | None = None) -> User:
        """
        Move a teacher onto a plan, starting a new billing period.

        Usage counters are kept as they are.

        Args:
            user_id: Teacher UUID
            plan_id: Plan UUID
            now: Start of the new period, defaults to the current UTC time

        Returns:
            Updated user with plan loaded

        Raises:
            AssignmentTargetNotFoundError: If the user or plan is missing
            ValueError: If the user is not a teacher or the plan is inactive
        """
        user = await self.get_user_with_plan(user_id)
        if not user:
            raise AssignmentTargetNotFoundError(f"User {user_id} not found")
        if user.role != UserRole.TEACHER:
            raise ValueError(f"Only teachers can be assigned a plan; user {user_id} is {user.role.value}")

        plan = await self.db.get(Plan, plan_id)
        if not plan:
            raise AssignmentTargetNotFoundError(f"Plan {plan_id} not found")
        if not plan.is_active:
            raise ValueError(f"Plan {plan_id} is inactive")

        old_plan_id = user.plan_id
        user.plan_id = plan.id
        user.plan = plan
        user.subscription_end_date = compute_subscription_end(plan, now or datetime.utcnow())

        await self.db.flush()

        logger.info(
            "plan_assigned",
            user_id=str(user.id),
            old_plan_id=str(old_plan_id) if old_plan_id else None,
            new_plan_id=str(plan.id),
            subscription_end_date=user.subscription_end_date.isoformat() if user.subscription_end_date else None,
        )
        return user
