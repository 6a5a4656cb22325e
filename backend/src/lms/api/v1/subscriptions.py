"""Subscription status, plan assignment and expiry sweep endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.api.deps import current_user_id, get_current_user, get_db
from lms.auth.rbac import Role, require_roles
from lms.schemas.plan import Plan
from lms.schemas.subscription import PlanAssignment, SubscriptionStatusResponse, SweepResult
from lms.schemas.user import UsageCounters, User
from lms.services.subscription_service import (
    AssignmentTargetNotFoundError,
    StatusReason,
    SubscriptionService,
    SubscriptionStatus,
)
from lms.workers.subscription_expiry import deactivate_expired_subscriptions

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


def _status_response(result: SubscriptionStatus) -> SubscriptionStatusResponse:
    user = result.user
    return SubscriptionStatusResponse(
        user_id=user.id if user else None,
        is_active=result.is_active,
        reason=result.reason.value,
        message=result.message,
        plan=Plan.model_validate(result.plan) if result.plan else None,
        subscription_end_date=user.subscription_end_date if user else None,
        usage=UsageCounters.model_validate(user) if user else None,
    )


async def _check(db: AsyncSession, user_id: str) -> SubscriptionStatusResponse:
    result = await SubscriptionService(db).check_subscription_status(user_id)

    if result.reason == StatusReason.INVALID_USER_ID:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
    if result.reason == StatusReason.USER_NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.message)
    if result.reason == StatusReason.INTERNAL_ERROR:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result.message)

    return _status_response(result)


@router.get("/me", response_model=SubscriptionStatusResponse)
async def get_my_subscription_status(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> SubscriptionStatusResponse:
    """Subscription status, plan and usage of the authenticated user."""
    return await _check(db, str(current_user_id(current_user)))


@router.get("/{user_id}/status", response_model=SubscriptionStatusResponse)
@require_roles(Role.ADMINISTRATOR)
async def get_subscription_status(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> SubscriptionStatusResponse:
    """Subscription status of any user."""
    return await _check(db, user_id)


@router.put("/{user_id}/plan", response_model=User)
@require_roles(Role.ADMINISTRATOR)
async def assign_plan(
    user_id: UUID,
    assignment: PlanAssignment,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> User:
    """
    Assign a plan to a teacher.

    The subscription end date restarts from now according to the plan
    duration. Usage counters are kept.
    """
    service = SubscriptionService(db)

    try:
        user = await service.assign_plan(user_id, assignment.plan_id)
        await db.commit()
    except AssignmentTargetNotFoundError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    return User.model_validate(user)


@router.post("/expiry-sweep", response_model=SweepResult)
@require_roles(Role.ADMINISTRATOR)
async def run_expiry_sweep(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> SweepResult:
    """
    Run the expired-subscription sweep now.

    Same job as the daily scheduled run.
    """
    result = await deactivate_expired_subscriptions(db=db)
    return SweepResult(**result)
