"""User administration endpoints."""
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.api.deps import get_current_user, get_db
from lms.auth.rbac import Role, require_roles
from lms.schemas.user import User, UserCreate
from lms.services.user_service import DefaultPlanMissingError, UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=User, status_code=status.HTTP_201_CREATED)
@require_roles(Role.ADMINISTRATOR)
async def create_user(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> User:
    """
    Create an account.

    Teachers are placed on the default free plan.
    """
    service = UserService(db)

    try:
        user = await service.register_user(user_data)
        await db.commit()
    except DefaultPlanMissingError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return User.model_validate(user)


@router.get("/{user_id}", response_model=User)
@require_roles(Role.ADMINISTRATOR)
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> User:
    """Get user by ID."""
    user = await UserService(db).get_user(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")
    return User.model_validate(user)
