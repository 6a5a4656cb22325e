"""Group and membership endpoints.

Entitlement refusals, missing groups and state conflicts raised by
ContentService are turned into 403/404/409 responses by the handlers in
``lms.main``.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.api.deps import current_user_id, get_current_user, get_db
from lms.auth.rbac import Role, require_roles
from lms.schemas.content import Group, GroupCreate, JoinRequest, JoinResponse, Membership
from lms.services.content_service import ContentService

router = APIRouter(prefix="/groups", tags=["Groups"])


@router.post("", response_model=Group, status_code=status.HTTP_201_CREATED)
@require_roles(Role.TEACHER)
async def create_group(
    group_data: GroupCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Group:
    """
    Create a group with a fresh access code.

    Requires an active subscription and a free group slot in the plan.
    """
    group = await ContentService(db).create_group(current_user_id(current_user), group_data)
    return Group.model_validate(group)


@router.post("/{group_id}/archive", response_model=Group)
@require_roles(Role.TEACHER)
async def archive_group(
    group_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Group:
    """Archive a group. The group slot stays used."""
    group = await ContentService(db).archive_group(current_user_id(current_user), group_id)
    return Group.model_validate(group)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_roles(Role.ADMINISTRATOR)
async def delete_group(
    group_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> None:
    """Delete a group permanently and give the slot back to its owner."""
    await ContentService(db).delete_group_as_admin(group_id)


@router.post("/join", response_model=Membership, status_code=status.HTTP_201_CREATED)
@require_roles(Role.STUDENT)
async def request_to_join(
    join_request: JoinRequest,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Membership:
    """Ask to join a group by its access code."""
    membership = await ContentService(db).request_to_join(
        current_user_id(current_user), join_request.access_code
    )
    return Membership.model_validate(membership)


@router.post("/memberships/{membership_id}/respond", response_model=Membership)
@require_roles(Role.TEACHER)
async def respond_to_join_request(
    membership_id: UUID,
    response: JoinResponse,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Membership:
    """
    Approve or reject a pending join request.

    Approval fails once the group holds as many approved students as the
    owner's plan allows.
    """
    membership = await ContentService(db).respond_to_join_request(
        current_user_id(current_user), membership_id, response.approve
    )
    return Membership.model_validate(membership)
