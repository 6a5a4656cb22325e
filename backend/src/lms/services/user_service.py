"""User service: account creation with default plan assignment."""
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.models.user import User, UserRole
from lms.schemas.user import UserCreate
from lms.services.plan_service import PlanService
from lms.services.subscription_service import compute_subscription_end

logger = structlog.get_logger(__name__)


class DefaultPlanMissingError(RuntimeError):
    """No active default free plan is configured."""


class UserService:
    """Service layer for user accounts."""

    def __init__(self, db: AsyncSession):
        """Initialize user service with database session."""
        self.db = db

    async def register_user(self, user_data: UserCreate, now: datetime | None = None) -> User:
        """
        Create an account.

        Teachers start on the active default free plan. When that plan has a
        finite duration the first period starts now.

        Args:
            user_data: Account data
            now: Registration time, defaults to the current UTC time

        Returns:
            Created user

        Raises:
            ValueError: If the email is already registered
            DefaultPlanMissingError: If a teacher registers while no active
                default free plan exists
        """
        existing = await self.db.scalar(select(User.id).where(User.email == user_data.email))
        if existing is not None:
            raise ValueError(f"A user with email {user_data.email} already exists")

        user = User(email=user_data.email, name=user_data.name, role=user_data.role)

        if user_data.role == UserRole.TEACHER:
            plan = await PlanService(self.db).get_default_free_plan()
            if plan is None:
                logger.critical("default_free_plan_missing", context="teacher_registration")
                raise DefaultPlanMissingError("No active default free plan is configured")
            user.plan_id = plan.id
            user.subscription_end_date = compute_subscription_end(plan, now or datetime.utcnow())

        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)

        logger.info(
            "user_registered",
            user_id=str(user.id),
            role=user.role.value,
            plan_id=str(user.plan_id) if user.plan_id else None,
        )
        return user

    async def get_user(self, user_id: UUID) -> User | None:
        """
        Get user by ID.

        Args:
            user_id: User UUID

        Returns:
            User or None if not found
        """
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()
