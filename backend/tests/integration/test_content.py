"""Integration tests for gated group and content operations."""
import string
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.models.content import ActivityType, LearningPath, ResourceType
from lms.models.group import Group, GroupMembership, MembershipStatus
from lms.models.user import UserRole
from lms.schemas.content import ActivityCreate, GroupCreate, LearningPathCreate, ResourceCreate
from lms.schemas.error import ErrorCode
from lms.services import content_service as content_module
from lms.services.content_service import (
    ContentConflictError,
    ContentNotFoundError,
    ContentService,
    EntitlementError,
    generate_access_code,
)

from utils.factories import days_from_now


async def count_rows(db: AsyncSession, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


def test_access_code_format() -> None:
    """Codes are six upper-case letters or digits."""
    allowed = set(string.ascii_uppercase + string.digits)
    for _ in range(50):
        code = generate_access_code()
        assert len(code) == 6
        assert set(code) <= allowed


@pytest.mark.asyncio
async def test_create_group_reserves_quota(db_session: AsyncSession, teacher) -> None:
    """Creating a group consumes one unit of the plan's group limit."""
    service = ContentService(db_session)

    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await db_session.commit()

    assert group.teacher_id == teacher.id
    assert len(group.access_code) == 6
    assert group.is_archived is False
    assert teacher.groups_created == 1


@pytest.mark.asyncio
async def test_create_group_over_limit(db_session: AsyncSession, teacher) -> None:
    """The free plan allows one group; the second is refused without side effects."""
    service = ContentService(db_session)
    await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await db_session.commit()

    with pytest.raises(EntitlementError) as exc_info:
        await service.create_group(teacher.id, GroupCreate(name="Biology 102"))

    assert exc_info.value.code == ErrorCode.QUOTA_EXCEEDED
    assert exc_info.value.message == 'Cannot create the group: Limit of 1 groups reached for plan "Free".'
    assert await count_rows(db_session, Group) == 1
    assert teacher.groups_created == 1


@pytest.mark.asyncio
async def test_expired_teacher_refused_before_quota(db_session: AsyncSession, premium_plan, make_user) -> None:
    """An expired subscription is refused at the subscription stage; usage is untouched."""
    teacher = await make_user(plan_id=premium_plan.id, subscription_end_date=days_from_now(-1))
    service = ContentService(db_session)

    with pytest.raises(EntitlementError) as exc_info:
        await service.create_resource(
            teacher.id, ResourceCreate(title="Cell diagram", type=ResourceType.CONTENT)
        )

    assert exc_info.value.code == ErrorCode.SUBSCRIPTION_INACTIVE
    assert "subscription" in exc_info.value.message
    await db_session.refresh(teacher)
    assert teacher.resources_generated == 0


@pytest.mark.asyncio
async def test_teacher_without_plan_reported_as_misconfigured(db_session: AsyncSession, make_user) -> None:
    """A missing plan surfaces as an integrity fault, not a quota refusal."""
    teacher = await make_user(plan_id=None)

    with pytest.raises(EntitlementError) as exc_info:
        await ContentService(db_session).create_activity(
            teacher.id, ActivityCreate(title="Quiz 1", type=ActivityType.QUIZ)
        )

    assert exc_info.value.code == ErrorCode.SUBSCRIPTION_MISCONFIGURED


@pytest.mark.asyncio
async def test_unknown_user(db_session: AsyncSession) -> None:
    """Creation by an unknown user is a not-found error."""
    with pytest.raises(ContentNotFoundError):
        await ContentService(db_session).create_group(uuid4(), GroupCreate(name="Ghost"))


@pytest.mark.asyncio
async def test_resource_and_activity_creation(db_session: AsyncSession, teacher) -> None:
    """Content bank items are stored and counted."""
    service = ContentService(db_session)

    resource = await service.create_resource(
        teacher.id, ResourceCreate(title="Intro video", type=ResourceType.VIDEO, body="https://example.com/v")
    )
    activity = await service.create_activity(
        teacher.id, ActivityCreate(title="Chapter quiz", type=ActivityType.QUIZ, description="Ten questions")
    )
    await db_session.commit()

    assert resource.teacher_id == teacher.id
    assert resource.type == ResourceType.VIDEO
    assert activity.description == "Ten questions"
    assert teacher.resources_generated == 1
    assert teacher.activities_generated == 1


@pytest.mark.asyncio
async def test_archive_keeps_group_quota(db_session: AsyncSession, teacher) -> None:
    """Archiving a group does not give its slot back."""
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await db_session.commit()

    archived = await service.archive_group(teacher.id, group.id)
    await db_session.commit()

    assert archived.is_archived is True
    with pytest.raises(EntitlementError):
        await service.create_group(teacher.id, GroupCreate(name="Biology 102"))


@pytest.mark.asyncio
async def test_archive_requires_ownership(db_session: AsyncSession, teacher, make_user, free_plan) -> None:
    """Teachers can only archive their own groups."""
    other = await make_user(plan_id=free_plan.id)
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await db_session.commit()

    with pytest.raises(EntitlementError) as exc_info:
        await service.archive_group(other.id, group.id)

    assert exc_info.value.code == ErrorCode.INSUFFICIENT_PERMISSIONS


@pytest.mark.asyncio
async def test_admin_delete_releases_group_quota(db_session: AsyncSession, teacher) -> None:
    """Permanent deletion frees the owner's group slot."""
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await service.create_learning_path(teacher.id, LearningPathCreate(name="Unit 1", group_id=group.id))
    await db_session.commit()
    group_id = group.id

    await service.delete_group_as_admin(group_id)
    await db_session.commit()

    assert await db_session.get(Group, group_id) is None
    assert await count_rows(db_session, LearningPath) == 0

    replacement = await service.create_group(teacher.id, GroupCreate(name="Biology 102"))
    assert replacement.id != group_id


@pytest.mark.asyncio
async def test_delete_unknown_group(db_session: AsyncSession) -> None:
    """Deleting a missing group is a not-found error."""
    with pytest.raises(ContentNotFoundError):
        await ContentService(db_session).delete_group_as_admin(uuid4())


@pytest.mark.asyncio
async def test_learning_path_limit(db_session: AsyncSession, teacher) -> None:
    """The free plan allows one learning path."""
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await db_session.commit()

    path = await service.create_learning_path(
        teacher.id, LearningPathCreate(name="Unit 1", description="Cells", group_id=group.id)
    )
    await db_session.commit()

    with pytest.raises(EntitlementError) as exc_info:
        await service.create_learning_path(teacher.id, LearningPathCreate(name="Unit 2", group_id=group.id))

    assert path.group_id == group.id
    assert exc_info.value.code == ErrorCode.QUOTA_EXCEEDED
    assert "learning paths" in exc_info.value.message
    assert teacher.routes_created == 1


@pytest.mark.asyncio
async def test_learning_path_in_foreign_group(db_session: AsyncSession, teacher, make_user, free_plan) -> None:
    """Ownership is checked before any quota is reserved."""
    other = await make_user(plan_id=free_plan.id)
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await db_session.commit()

    with pytest.raises(EntitlementError) as exc_info:
        await service.create_learning_path(other.id, LearningPathCreate(name="Unit 1", group_id=group.id))

    assert exc_info.value.code == ErrorCode.INSUFFICIENT_PERMISSIONS
    await db_session.refresh(other)
    assert other.routes_created == 0


@pytest.mark.asyncio
async def test_deleting_learning_path_frees_a_unit(db_session: AsyncSession, teacher) -> None:
    """After deleting its only learning path a free teacher can create another."""
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    path = await service.create_learning_path(teacher.id, LearningPathCreate(name="Unit 1", group_id=group.id))
    await db_session.commit()
    path_id = path.id

    await service.delete_learning_path(teacher.id, path_id)
    await db_session.commit()

    assert await db_session.get(LearningPath, path_id) is None
    await db_session.refresh(teacher)
    assert teacher.routes_created == 0

    replacement = await service.create_learning_path(
        teacher.id, LearningPathCreate(name="Unit 1 (revised)", group_id=group.id)
    )
    await db_session.commit()

    assert replacement.id != path_id
    assert teacher.routes_created == 1


@pytest.mark.asyncio
async def test_admin_deleting_learning_path_releases_owner_unit(db_session: AsyncSession, teacher, admin) -> None:
    """The unit goes back to the group owner, not to the administrator."""
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    path = await service.create_learning_path(teacher.id, LearningPathCreate(name="Unit 1", group_id=group.id))
    await db_session.commit()

    await service.delete_learning_path(admin.id, path.id)
    await db_session.commit()

    await db_session.refresh(teacher)
    assert teacher.routes_created == 0


@pytest.mark.asyncio
async def test_learning_path_deletion_checks_ownership(
    db_session: AsyncSession, teacher, make_user, free_plan
) -> None:
    """Another teacher cannot delete the path and nobody's counter moves."""
    other = await make_user(plan_id=free_plan.id)
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    path = await service.create_learning_path(teacher.id, LearningPathCreate(name="Unit 1", group_id=group.id))
    await db_session.commit()

    with pytest.raises(EntitlementError) as exc_info:
        await service.delete_learning_path(other.id, path.id)

    assert exc_info.value.code == ErrorCode.INSUFFICIENT_PERMISSIONS
    assert await count_rows(db_session, LearningPath) == 1
    await db_session.refresh(teacher)
    assert teacher.routes_created == 1

    with pytest.raises(ContentNotFoundError):
        await service.delete_learning_path(teacher.id, uuid4())


@pytest.mark.asyncio
async def test_access_code_retries_exhausted(
    db_session: AsyncSession, premium_plan, make_user, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Group creation fails when no unused code can be found."""
    teacher = await make_user(plan_id=premium_plan.id, subscription_end_date=days_from_now(10))
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await db_session.commit()

    taken_code = group.access_code
    monkeypatch.setattr(content_module, "generate_access_code", lambda: taken_code)

    with pytest.raises(ContentConflictError, match="unique access code"):
        await service.create_group(teacher.id, GroupCreate(name="Biology 102"))

    # The reservation made before the conflict goes away with the transaction
    await db_session.rollback()
    await db_session.refresh(teacher)
    assert teacher.groups_created == 1
    assert await count_rows(db_session, Group) == 1


@pytest.mark.asyncio
async def test_store_failure_while_reserving_is_internal_error(
    db_session: AsyncSession, teacher, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A database error in the quota step surfaces as an internal-error refusal."""

    async def failing_refresh(self, instance, attribute_names=None, **kwargs):
        raise OperationalError("SELECT users", {}, Exception("disk I/O error"))

    service = ContentService(db_session)
    monkeypatch.setattr(AsyncSession, "refresh", failing_refresh)

    with pytest.raises(EntitlementError) as exc_info:
        await service.create_group(teacher.id, GroupCreate(name="Biology 101"))

    assert exc_info.value.code == ErrorCode.INTERNAL_ERROR
    assert "Internal error while checking the plan limits." in exc_info.value.message
    assert await count_rows(db_session, Group) == 0


@pytest.mark.asyncio
async def test_join_and_approve(db_session: AsyncSession, teacher, student) -> None:
    """A student joins by code and the owner approves."""
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await db_session.commit()

    membership = await service.request_to_join(student.id, group.access_code.lower())
    await db_session.commit()
    assert membership.status == MembershipStatus.PENDING

    approved = await service.respond_to_join_request(teacher.id, membership.id, approve=True)
    await db_session.commit()

    assert approved.status == MembershipStatus.APPROVED


@pytest.mark.asyncio
async def test_duplicate_join_request(db_session: AsyncSession, teacher, student) -> None:
    """A pending request cannot be filed twice."""
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await service.request_to_join(student.id, group.access_code)
    await db_session.commit()

    with pytest.raises(ContentConflictError, match="pending"):
        await service.request_to_join(student.id, group.access_code)


@pytest.mark.asyncio
async def test_join_unknown_or_archived_group(db_session: AsyncSession, teacher, student) -> None:
    """Archived groups cannot be joined."""
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await service.archive_group(teacher.id, group.id)
    await db_session.commit()

    with pytest.raises(ContentNotFoundError):
        await service.request_to_join(student.id, group.access_code)
    with pytest.raises(ContentNotFoundError):
        await service.request_to_join(student.id, "ZZZZZZ")


@pytest.mark.asyncio
async def test_rejected_student_may_request_again(db_session: AsyncSession, teacher, student) -> None:
    """A rejection reopens the door for a new request."""
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    membership = await service.request_to_join(student.id, group.access_code)
    await service.respond_to_join_request(teacher.id, membership.id, approve=False)
    await db_session.commit()

    again = await service.request_to_join(student.id, group.access_code)

    assert again.id == membership.id
    assert again.status == MembershipStatus.PENDING


@pytest.mark.asyncio
async def test_answered_request_cannot_be_answered_again(db_session: AsyncSession, teacher, student) -> None:
    """Only pending requests can be approved or rejected."""
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    membership = await service.request_to_join(student.id, group.access_code)
    await service.respond_to_join_request(teacher.id, membership.id, approve=True)
    await db_session.commit()

    with pytest.raises(ContentConflictError):
        await service.respond_to_join_request(teacher.id, membership.id, approve=False)


@pytest.mark.asyncio
async def test_approval_respects_group_capacity(db_session: AsyncSession, teacher, make_user) -> None:
    """The free plan admits two students per group; the third approval is refused."""
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await db_session.commit()

    memberships = []
    for _ in range(3):
        student = await make_user(role=UserRole.STUDENT)
        memberships.append(await service.request_to_join(student.id, group.access_code))
    await db_session.commit()

    for membership in memberships[:2]:
        await service.respond_to_join_request(teacher.id, membership.id, approve=True)
    await db_session.commit()

    with pytest.raises(EntitlementError) as exc_info:
        await service.respond_to_join_request(teacher.id, memberships[2].id, approve=True)

    assert exc_info.value.code == ErrorCode.QUOTA_EXCEEDED
    assert "students per group" in exc_info.value.message

    # Rejecting is always possible
    rejected = await service.respond_to_join_request(teacher.id, memberships[2].id, approve=False)
    assert rejected.status == MembershipStatus.REJECTED

    approved_count = await db_session.scalar(
        select(func.count())
        .select_from(GroupMembership)
        .where(GroupMembership.status == MembershipStatus.APPROVED)
    )
    assert approved_count == 2


@pytest.mark.asyncio
async def test_expired_owner_cannot_approve(
    db_session: AsyncSession, premium_plan, make_user, student
) -> None:
    """Approval runs the subscription check for the owner."""
    teacher = await make_user(plan_id=premium_plan.id, subscription_end_date=days_from_now(10))
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    membership = await service.request_to_join(student.id, group.access_code)
    teacher.subscription_end_date = days_from_now(-2)
    await db_session.commit()

    with pytest.raises(EntitlementError) as exc_info:
        await service.respond_to_join_request(teacher.id, membership.id, approve=True)

    assert exc_info.value.code == ErrorCode.SUBSCRIPTION_INACTIVE


@pytest.mark.asyncio
async def test_no_approvals_into_archived_group(db_session: AsyncSession, teacher, student) -> None:
    """A request pending when the group was archived can be rejected but not approved."""
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    membership = await service.request_to_join(student.id, group.access_code)
    await service.archive_group(teacher.id, group.id)
    await db_session.commit()

    with pytest.raises(ContentConflictError, match="archived"):
        await service.respond_to_join_request(teacher.id, membership.id, approve=True)

    rejected = await service.respond_to_join_request(teacher.id, membership.id, approve=False)
    assert rejected.status == MembershipStatus.REJECTED


@pytest.mark.asyncio
async def test_only_students_join_groups(db_session: AsyncSession, teacher, admin, make_user, free_plan) -> None:
    """Teachers and administrators cannot file join requests."""
    other_teacher = await make_user(plan_id=free_plan.id)
    service = ContentService(db_session)
    group = await service.create_group(teacher.id, GroupCreate(name="Biology 101"))
    await db_session.commit()

    for user in (admin, other_teacher):
        with pytest.raises(EntitlementError, match="Only students"):
            await service.request_to_join(user.id, group.access_code)

    with pytest.raises(ContentNotFoundError):
        await service.request_to_join(uuid4(), group.access_code)
    assert await count_rows(db_session, GroupMembership) == 0
