"""Plan API endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.api.deps import get_current_user, get_db
from lms.auth.rbac import Role, require_roles
from lms.cache import plan_cache
from lms.schemas.plan import Plan, PlanCreate, PlanList, PlanUpdate
from lms.services.plan_service import PlanNotFoundError, PlanService

router = APIRouter(prefix="/plans", tags=["Plans"])


@router.post("", response_model=Plan, status_code=status.HTTP_201_CREATED)
@require_roles(Role.ADMINISTRATOR)
async def create_plan(
    plan_data: PlanCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Plan:
    """
    Create a subscription tier.

    - **name**: Free, Basic or Premium (unique)
    - **duration**: monthly, quarterly, annual or indefinite
    - **price**: Price in cents, required unless the tier is Free
    - **limits**: Groups, students per group, learning paths, resources, activities
    - **is_default_free**: At most one plan may carry this flag
    """
    service = PlanService(db)

    try:
        plan = await service.create_plan(plan_data)
        await db.commit()
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    await plan_cache.invalidate()
    return Plan.model_validate(plan)


@router.get("/{plan_id}", response_model=Plan)
async def get_plan(
    plan_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> Plan:
    """Get plan by ID."""
    cached = await plan_cache.get_plan(plan_id)
    if cached:
        return Plan.model_validate(cached)

    service = PlanService(db)
    plan = await service.get_plan(plan_id)

    if not plan:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Plan {plan_id} not found",
        )

    plan_schema = Plan.model_validate(plan)
    await plan_cache.store_plan(plan_id, plan_schema.model_dump(mode="json"))

    return plan_schema


@router.get("", response_model=PlanList)
async def list_plans(
    page: int = 1,
    page_size: int = 100,
    active_only: bool = False,
    db: AsyncSession = Depends(get_db),
) -> PlanList:
    """
    List plans with pagination.

    - **page**: Page number (1-indexed, default: 1)
    - **page_size**: Items per page (default: 100, max: 1000)
    - **active_only**: Filter to active plans only (default: false)
    """
    if page < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Page must be >= 1")

    if page_size < 1 or page_size > 1000:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Page size must be between 1 and 1000"
        )

    cached = await plan_cache.get_page(page, page_size, active_only)
    if cached:
        return PlanList.model_validate(cached)

    service = PlanService(db)
    plans, total = await service.list_plans(page, page_size, active_only)

    result = PlanList(
        items=[Plan.model_validate(plan) for plan in plans],
        total=total,
        page=page,
        page_size=page_size,
    )

    await plan_cache.store_page(page, page_size, active_only, result.model_dump(mode="json"))

    return result


@router.patch("/{plan_id}", response_model=Plan)
@require_roles(Role.ADMINISTRATOR)
async def update_plan(
    plan_id: UUID,
    update_data: PlanUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Plan:
    """
    Update a plan.

    All fields are optional; omitted limits keep their stored value. The
    merged plan must pass the same checks as a new one. Assigned teachers
    see new limits on their next request.
    """
    service = PlanService(db)

    try:
        plan = await service.update_plan(plan_id, update_data)
        await db.commit()
    except PlanNotFoundError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    await plan_cache.invalidate(plan_id)

    return Plan.model_validate(plan)
