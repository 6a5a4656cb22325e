"""Learning path, resource and activity endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.api.deps import current_user_id, get_current_user, get_db
from lms.auth.rbac import Role, require_roles
from lms.schemas.content import (
    Activity,
    ActivityCreate,
    LearningPath,
    LearningPathCreate,
    Resource,
    ResourceCreate,
)
from lms.services.content_service import ContentService

router = APIRouter(tags=["Content"])


@router.post("/learning-paths", response_model=LearningPath, status_code=status.HTTP_201_CREATED)
@require_roles(Role.TEACHER)
async def create_learning_path(
    path_data: LearningPathCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> LearningPath:
    """Create a learning path in one of the caller's groups."""
    learning_path = await ContentService(db).create_learning_path(current_user_id(current_user), path_data)
    return LearningPath.model_validate(learning_path)


@router.post("/content/resources", response_model=Resource, status_code=status.HTTP_201_CREATED)
@require_roles(Role.TEACHER)
async def create_resource(
    resource_data: ResourceCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Resource:
    """Add a resource to the caller's content bank."""
    resource = await ContentService(db).create_resource(current_user_id(current_user), resource_data)
    return Resource.model_validate(resource)


@router.post("/content/activities", response_model=Activity, status_code=status.HTTP_201_CREATED)
@require_roles(Role.TEACHER)
async def create_activity(
    activity_data: ActivityCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Activity:
    """Add an activity to the caller's content bank."""
    activity = await ContentService(db).create_activity(current_user_id(current_user), activity_data)
    return Activity.model_validate(activity)


@router.delete("/learning-paths/{learning_path_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_roles(Role.TEACHER)
async def delete_learning_path(
    learning_path_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> None:
    """Delete a learning path from one of the caller's groups."""
    await ContentService(db).delete_learning_path(current_user_id(current_user), learning_path_id)
