"""Usage-limit enforcement for teacher-owned resources."""
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lms.metrics import quota_refusals_total, quota_reservations_total
from lms.models.group import Group, GroupMembership, MembershipStatus
from lms.models.user import User, UserRole

logger = structlog.get_logger(__name__)


class QuotaKind(str, Enum):
    """Resource kinds limited by a running usage counter."""

    GROUP = "group"
    LEARNING_PATH = "learning_path"
    RESOURCE = "resource"
    ACTIVITY = "activity"


@dataclass(frozen=True)
class QuotaField:
    counter: str
    limit: str
    label: str


QUOTA_FIELDS = {
    QuotaKind.GROUP: QuotaField("groups_created", "max_groups", "groups"),
    QuotaKind.LEARNING_PATH: QuotaField("routes_created", "max_routes", "learning paths"),
    QuotaKind.RESOURCE: QuotaField("resources_generated", "max_resources", "resources"),
    QuotaKind.ACTIVITY: QuotaField("activities_generated", "max_activities", "activities"),
}


@dataclass
class QuotaDecision:
    """Outcome of a quota check."""

    allowed: bool
    message: str
    kind: str
    limit: int | None = None
    current: int | None = None
    integrity_fault: bool = False
    error: str | None = None


def _internal_error(kind: str, exc: Exception) -> QuotaDecision:
    return QuotaDecision(
        False,
        "Internal error while checking the plan limits.",
        kind,
        error=str(exc),
    )


class UsageService:
    """Service layer for plan limit enforcement."""

    def __init__(self, db: AsyncSession):
        """Initialize usage service with database session."""
        self.db = db

    async def check_and_reserve_quota(self, user: User, kind: QuotaKind) -> QuotaDecision:
        """
        Reserve one unit of ``kind`` for ``user`` if the plan limit allows it.

        The check and the increment are a single conditional UPDATE, so two
        concurrent requests cannot both pass at ``limit - 1``. The caller
        inserts the resource in the same transaction.

        Args:
            user: User with ``plan`` loaded
            kind: Resource kind being created

        Returns:
            QuotaDecision; a refusal leaves the counter untouched
        """
        if user.role != UserRole.TEACHER:
            return QuotaDecision(True, "No quota applies to this type of user.", kind.value)

        plan = user.plan
        if plan is None:
            logger.error("quota_check_without_plan", user_id=str(user.id), kind=kind.value)
            return QuotaDecision(
                False,
                "Your plan limits could not be verified.",
                kind.value,
                integrity_fault=True,
            )

        field = QUOTA_FIELDS[kind]
        limit = getattr(plan, field.limit)
        counter = getattr(User, field.counter)

        try:
            result = await self.db.execute(
                update(User)
                .where(User.id == user.id, counter < limit)
                .values({field.counter: counter + 1})
                .execution_options(synchronize_session=False)
            )
            await self.db.refresh(user, attribute_names=[field.counter])
        except SQLAlchemyError as e:
            logger.exception("quota_check_failed", user_id=str(user.id), kind=kind.value, exc_info=e)
            return _internal_error(kind.value, e)

        current = getattr(user, field.counter)

        if result.rowcount == 0:
            quota_refusals_total.labels(kind=kind.value).inc()
            logger.info(
                "quota_refused",
                user_id=str(user.id),
                kind=kind.value,
                limit=limit,
                current=current,
                plan=plan.name.value,
            )
            return QuotaDecision(
                False,
                f'Limit of {limit} {field.label} reached for plan "{plan.name.value}".',
                kind.value,
                limit=limit,
                current=current,
            )

        quota_reservations_total.labels(kind=kind.value).inc()
        logger.debug("quota_reserved", user_id=str(user.id), kind=kind.value, limit=limit, current=current)
        return QuotaDecision(True, "Quota reserved.", kind.value, limit=limit, current=current)

    async def release_quota(self, user_id: UUID, kind: QuotaKind) -> bool:
        """
        Give back one unit of ``kind``; the counter never goes below zero.

        Args:
            user_id: Owner UUID
            kind: Resource kind that was removed

        Returns:
            True if a unit was released
        """
        field = QUOTA_FIELDS[kind]
        counter = getattr(User, field.counter)

        result = await self.db.execute(
            update(User)
            .where(User.id == user_id, counter > 0)
            .values({field.counter: counter - 1})
            .execution_options(synchronize_session=False)
        )
        released = result.rowcount > 0
        logger.info("quota_released", user_id=str(user_id), kind=kind.value, released=released)
        return released

    async def count_approved_members(self, group_id: UUID) -> int:
        """Count approved memberships of a group."""
        result = await self.db.execute(
            select(func.count())
            .select_from(GroupMembership)
            .where(
                GroupMembership.group_id == group_id,
                GroupMembership.status == MembershipStatus.APPROVED,
            )
        )
        return result.scalar() or 0

    async def check_group_capacity(self, approver: User, group: Group) -> QuotaDecision:
        """
        Check whether one more student can be approved into ``group``.

        Unlike the counter-based kinds, the student cap is recomputed from
        the approved memberships on every call, against the plan of the
        group's owner. The group row is locked for the rest of the
        transaction where the backend supports it.

        Args:
            approver: User approving the request
            group: Target group

        Returns:
            QuotaDecision
        """
        kind = "student"
        if approver.role == UserRole.ADMINISTRATOR:
            return QuotaDecision(True, "Administrators are not limited.", kind)

        try:
            await self.db.execute(select(Group.id).where(Group.id == group.id).with_for_update())
            result = await self.db.execute(
                select(User)
                .where(User.id == group.teacher_id)
                .options(selectinload(User.plan))
                .execution_options(populate_existing=True)
            )
            owner = result.scalar_one_or_none()
            current = await self.count_approved_members(group.id)
        except SQLAlchemyError as e:
            logger.exception("quota_check_failed", group_id=str(group.id), kind=kind, exc_info=e)
            return _internal_error(kind, e)

        if owner is None or owner.plan is None:
            logger.error("group_capacity_without_plan", group_id=str(group.id))
            return QuotaDecision(
                False,
                "The group owner's plan limits could not be verified.",
                kind,
                integrity_fault=True,
            )

        limit = owner.plan.max_students_per_group

        if current >= limit:
            quota_refusals_total.labels(kind=kind).inc()
            logger.info(
                "group_capacity_reached",
                group_id=str(group.id),
                owner_id=str(owner.id),
                limit=limit,
                current=current,
            )
            return QuotaDecision(
                False,
                f'Limit of {limit} students per group reached for plan "{owner.plan.name.value}".',
                kind,
                limit=limit,
                current=current,
            )

        return QuotaDecision(True, "Capacity available.", kind, limit=limit, current=current)
