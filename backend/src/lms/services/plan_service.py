"""Plan registry: storage and validation of subscription tiers."""
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.models.plan import Plan, PlanName
from lms.schemas.plan import PlanCreate, PlanUpdate

logger = structlog.get_logger(__name__)

LIMIT_FIELDS = (
    "max_groups",
    "max_students_per_group",
    "max_routes",
    "max_resources",
    "max_activities",
)


class PlanValidationError(ValueError):
    """Plan data violates a registry rule."""


class PlanNotFoundError(ValueError):
    """No plan exists with the requested ID."""


class PlanService:
    """Service layer for plan operations."""

    def __init__(self, db: AsyncSession):
        """Initialize plan service with database session."""
        self.db = db

    async def create_plan(self, plan_data: PlanCreate) -> Plan:
        """
        Create a new plan.

        Args:
            plan_data: Plan creation data

        Returns:
            Created plan

        Raises:
            PlanValidationError: If the name is taken or a second default free
                plan would be created
        """
        await self._ensure_name_available(plan_data.name)
        if plan_data.is_default_free:
            await self._ensure_single_default_free(exclude_id=None)

        plan = Plan(
            name=plan_data.name,
            duration=plan_data.duration,
            price=plan_data.price,
            is_default_free=plan_data.is_default_free,
            is_active=plan_data.is_active,
            **plan_data.limits.model_dump(),
        )

        self.db.add(plan)
        await self.db.flush()
        await self.db.refresh(plan)

        logger.info(
            "plan_created",
            plan_id=str(plan.id),
            name=plan.name.value,
            duration=plan.duration.value,
            is_default_free=plan.is_default_free,
        )
        return plan

    async def get_plan(self, plan_id: UUID) -> Plan | None:
        """
        Get plan by ID.

        Args:
            plan_id: Plan UUID

        Returns:
            Plan or None if not found
        """
        result = await self.db.execute(select(Plan).where(Plan.id == plan_id))
        return result.scalar_one_or_none()

    async def update_plan(self, plan_id: UUID, update_data: PlanUpdate) -> Plan:
        """
        Update plan.

        Limits are merged with the stored ones. The merged plan is validated
        with the same rules as a new plan.

        Args:
            plan_id: Plan UUID
            update_data: Update data

        Returns:
            Updated plan

        Raises:
            PlanNotFoundError: If plan not found
            PlanValidationError: If the merged plan is invalid
        """
        plan = await self.get_plan(plan_id)
        if not plan:
            raise PlanNotFoundError(f"Plan {plan_id} not found")

        # price is the only nullable field; an explicit null elsewhere means "unchanged"
        update_dict = {
            field: value
            for field, value in update_data.model_dump(exclude_unset=True).items()
            if value is not None or field == "price"
        }
        limits = update_dict.pop("limits", None) or {}

        new_name = update_dict.get("name", plan.name)
        if new_name != plan.name:
            await self._ensure_name_available(new_name)

        new_price = update_dict.get("price", plan.price)
        if new_price is None and new_name != PlanName.FREE:
            raise PlanValidationError(f"price is required for the {new_name.value} plan")

        if update_dict.get("is_default_free"):
            await self._ensure_single_default_free(exclude_id=plan.id)

        for field, value in update_dict.items():
            setattr(plan, field, value)
        for field, value in limits.items():
            if value is not None:
                setattr(plan, field, value)

        await self.db.flush()
        await self.db.refresh(plan)

        logger.info("plan_updated", plan_id=str(plan.id), fields=sorted([*update_dict, *limits]))
        return plan

    async def list_plans(
        self,
        page: int = 1,
        page_size: int = 100,
        active_only: bool = False,
    ) -> tuple[list[Plan], int]:
        """
        List plans with pagination.

        Args:
            page: Page number (1-indexed)
            page_size: Items per page
            active_only: Filter to active plans only

        Returns:
            Tuple of (plans, total_count)
        """
        query = select(Plan)

        if active_only:
            query = query.where(Plan.is_active == True)  # noqa: E712

        count_query = select(func.count()).select_from(query.subquery())
        total = await self.db.scalar(count_query)

        query = query.order_by(Plan.created_at.asc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await self.db.execute(query)
        plans = result.scalars().all()

        return list(plans), total or 0

    async def get_default_free_plan(self) -> Plan | None:
        """
        Get the active default free plan.

        Returns:
            The plan flagged ``is_default_free`` if it is active, otherwise None
        """
        result = await self.db.execute(
            select(Plan).where(
                Plan.is_default_free == True,  # noqa: E712
                Plan.is_active == True,  # noqa: E712
            )
        )
        return result.scalars().first()

    async def _ensure_name_available(self, name: PlanName) -> None:
        existing = await self.db.scalar(select(Plan.id).where(Plan.name == name))
        if existing is not None:
            raise PlanValidationError(f'A plan named "{name.value}" already exists')

    async def _ensure_single_default_free(self, exclude_id: UUID | None) -> None:
        query = select(Plan).where(Plan.is_default_free == True)  # noqa: E712
        if exclude_id is not None:
            query = query.where(Plan.id != exclude_id)
        existing = (await self.db.execute(query)).scalars().first()
        if existing is not None:
            logger.warning(
                "second_default_free_plan_rejected",
                existing_plan_id=str(existing.id),
                existing_plan_name=existing.name.value,
            )
            raise PlanValidationError(
                f'Plan "{existing.name.value}" is already the default free plan; only one is allowed'
            )
