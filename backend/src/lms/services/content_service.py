"""Content service: groups and teaching content behind the subscription gate."""
import secrets
import string
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.models.content import Activity, LearningPath, Resource
from lms.models.group import Group, GroupMembership, MembershipStatus
from lms.models.user import User, UserRole
from lms.schemas.content import ActivityCreate, GroupCreate, LearningPathCreate, ResourceCreate
from lms.schemas.error import ErrorCode
from lms.services.subscription_service import StatusReason, SubscriptionService
from lms.services.usage_service import QuotaDecision, QuotaKind, UsageService

logger = structlog.get_logger(__name__)

ACCESS_CODE_ALPHABET = string.ascii_uppercase + string.digits
ACCESS_CODE_LENGTH = 6
ACCESS_CODE_ATTEMPTS = 10


class EntitlementError(Exception):
    """The actor may not perform the operation (inactive plan, limit reached, not the owner)."""

    def __init__(self, message: str, code: str = ErrorCode.INSUFFICIENT_PERMISSIONS):
        super().__init__(message)
        self.message = message
        self.code = code


class ContentNotFoundError(ValueError):
    """Referenced user, group or membership does not exist."""


class ContentConflictError(ValueError):
    """Operation conflicts with the current state."""


def generate_access_code(length: int = ACCESS_CODE_LENGTH) -> str:
    """Return a random upper-case alphanumeric code."""
    return "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(length))


class ContentService:
    """Service layer for groups, learning paths, resources and activities."""

    def __init__(
        self,
        db: AsyncSession,
        subscriptions: SubscriptionService | None = None,
        usage: UsageService | None = None,
    ):
        """Initialize content service with database session and gate services."""
        self.db = db
        self.subscriptions = subscriptions or SubscriptionService(db)
        self.usage = usage or UsageService(db)

    async def _require_active_subscription(self, user_id: UUID, action: str) -> User:
        status = await self.subscriptions.check_subscription_status(user_id)
        if status.reason == StatusReason.USER_NOT_FOUND:
            raise ContentNotFoundError(status.message)
        if not status.is_active:
            if status.reason == StatusReason.INTERNAL_ERROR:
                code = ErrorCode.INTERNAL_ERROR
            elif status.is_integrity_fault:
                code = ErrorCode.SUBSCRIPTION_MISCONFIGURED
            else:
                code = ErrorCode.SUBSCRIPTION_INACTIVE
            raise EntitlementError(f"Cannot {action}: {status.message}", code)
        return status.user

    def _raise_refusal(self, decision: QuotaDecision, action: str) -> None:
        if decision.error is not None:
            code = ErrorCode.INTERNAL_ERROR
        elif decision.integrity_fault:
            code = ErrorCode.SUBSCRIPTION_MISCONFIGURED
        else:
            code = ErrorCode.QUOTA_EXCEEDED
        raise EntitlementError(f"Cannot {action}: {decision.message}", code)

    async def _gate(self, user_id: UUID, kind: QuotaKind, action: str) -> User:
        """Run the subscription check, then reserve one unit of ``kind``."""
        user = await self._require_active_subscription(user_id, action)
        decision = await self.usage.check_and_reserve_quota(user, kind)
        if not decision.allowed:
            self._raise_refusal(decision, action)
        return user

    async def _get_group(self, group_id: UUID) -> Group:
        group = await self.db.get(Group, group_id)
        if group is None:
            raise ContentNotFoundError(f"Group {group_id} not found")
        return group

    def _ensure_owner(self, user: User, group: Group) -> None:
        if user.role != UserRole.ADMINISTRATOR and group.teacher_id != user.id:
            raise EntitlementError("The group does not belong to you.")

    async def _unique_access_code(self) -> str:
        for _ in range(ACCESS_CODE_ATTEMPTS):
            code = generate_access_code()
            taken = await self.db.scalar(select(Group.id).where(Group.access_code == code))
            if taken is None:
                return code
        logger.error("access_code_generation_exhausted", attempts=ACCESS_CODE_ATTEMPTS)
        raise ContentConflictError("Could not generate a unique access code for the group. Please try again.")

    async def create_group(self, user_id: UUID, group_data: GroupCreate) -> Group:
        """
        Create a group owned by ``user_id``.

        Raises:
            EntitlementError: If the subscription is inactive or the group limit is reached
        """
        user = await self._gate(user_id, QuotaKind.GROUP, "create the group")

        group = Group(
            name=group_data.name,
            access_code=await self._unique_access_code(),
            teacher_id=user.id,
        )
        self.db.add(group)
        await self.db.flush()
        await self.db.refresh(group)

        logger.info("group_created", group_id=str(group.id), teacher_id=str(user.id))
        return group

    async def archive_group(self, user_id: UUID, group_id: UUID) -> Group:
        """
        Archive a group.

        Archiving keeps the group's quota unit consumed.
        """
        user = await self._require_active_subscription(user_id, "archive the group")
        group = await self._get_group(group_id)
        self._ensure_owner(user, group)

        group.is_archived = True
        await self.db.flush()

        logger.info("group_archived", group_id=str(group.id), by_user_id=str(user.id))
        return group

    async def delete_group_as_admin(self, group_id: UUID) -> None:
        """
        Permanently delete a group with its memberships and learning paths.

        This is the only removal that gives the owner's group quota back.
        """
        group = await self._get_group(group_id)
        owner_id = group.teacher_id

        await self.db.delete(group)
        await self.db.flush()

        owner = await self.db.get(User, owner_id)
        if owner is not None and owner.role == UserRole.TEACHER:
            await self.usage.release_quota(owner_id, QuotaKind.GROUP)

        logger.info("group_deleted_by_admin", group_id=str(group_id), owner_id=str(owner_id))

    async def create_learning_path(self, user_id: UUID, path_data: LearningPathCreate) -> LearningPath:
        """
        Create a learning path in one of the user's groups.

        Raises:
            ContentNotFoundError: If the group does not exist
            EntitlementError: If the group is not the user's, the subscription
                is inactive or the learning path limit is reached
        """
        action = "create the learning path"
        user = await self._require_active_subscription(user_id, action)
        group = await self._get_group(path_data.group_id)
        self._ensure_owner(user, group)

        decision = await self.usage.check_and_reserve_quota(user, QuotaKind.LEARNING_PATH)
        if not decision.allowed:
            self._raise_refusal(decision, action)

        learning_path = LearningPath(
            name=path_data.name,
            description=path_data.description,
            group_id=group.id,
        )
        self.db.add(learning_path)
        await self.db.flush()
        await self.db.refresh(learning_path)

        logger.info("learning_path_created", learning_path_id=str(learning_path.id), group_id=str(group.id))
        return learning_path

    async def delete_learning_path(self, user_id: UUID, learning_path_id: UUID) -> None:
        """
        Delete a learning path and give one learning path unit back to the group owner.

        Raises:
            ContentNotFoundError: If the learning path does not exist
            EntitlementError: If the group is not the user's or the subscription is inactive
        """
        user = await self._require_active_subscription(user_id, "delete the learning path")
        learning_path = await self.db.get(LearningPath, learning_path_id)
        if learning_path is None:
            raise ContentNotFoundError(f"Learning path {learning_path_id} not found")
        group = await self._get_group(learning_path.group_id)
        self._ensure_owner(user, group)
        owner_id = group.teacher_id

        await self.db.delete(learning_path)
        await self.db.flush()

        owner = user if user.id == owner_id else await self.db.get(User, owner_id)
        if owner is not None and owner.role == UserRole.TEACHER:
            await self.usage.release_quota(owner_id, QuotaKind.LEARNING_PATH)

        logger.info("learning_path_deleted", learning_path_id=str(learning_path_id), owner_id=str(owner_id))

    async def create_resource(self, user_id: UUID, resource_data: ResourceCreate) -> Resource:
        """Create a resource in the user's content bank."""
        user = await self._gate(user_id, QuotaKind.RESOURCE, "create the resource")

        resource = Resource(
            title=resource_data.title,
            type=resource_data.type,
            body=resource_data.body,
            teacher_id=user.id,
        )
        self.db.add(resource)
        await self.db.flush()
        await self.db.refresh(resource)

        logger.info("resource_created", resource_id=str(resource.id), teacher_id=str(user.id))
        return resource

    async def create_activity(self, user_id: UUID, activity_data: ActivityCreate) -> Activity:
        """Create an activity in the user's content bank."""
        user = await self._gate(user_id, QuotaKind.ACTIVITY, "create the activity")

        activity = Activity(
            title=activity_data.title,
            type=activity_data.type,
            description=activity_data.description,
            teacher_id=user.id,
        )
        self.db.add(activity)
        await self.db.flush()
        await self.db.refresh(activity)

        logger.info("activity_created", activity_id=str(activity.id), type=activity.type.value)
        return activity

    async def request_to_join(self, student_id: UUID, access_code: str) -> GroupMembership:
        """
        File a pending join request for the group with ``access_code``.

        A rejected request may be filed again; a pending or approved one may not.

        Raises:
            ContentNotFoundError: If the student or an active group with the code does not exist
            ContentConflictError: If the student already has a pending or approved membership
            EntitlementError: If the user is not a student
        """
        student = await self.db.get(User, student_id)
        if student is None:
            raise ContentNotFoundError(f"User {student_id} not found")
        if student.role != UserRole.STUDENT:
            raise EntitlementError("Only students can join groups.")

        result = await self.db.execute(
            select(Group).where(Group.access_code == access_code.upper(), Group.is_archived == False)  # noqa: E712
        )
        group = result.scalar_one_or_none()
        if group is None:
            raise ContentNotFoundError("No group found with that access code")

        result = await self.db.execute(
            select(GroupMembership).where(
                GroupMembership.group_id == group.id,
                GroupMembership.student_id == student_id,
            )
        )
        membership = result.scalar_one_or_none()

        if membership is not None:
            if membership.status == MembershipStatus.APPROVED:
                raise ContentConflictError("You are already a member of this group.")
            if membership.status == MembershipStatus.PENDING:
                raise ContentConflictError("You already sent a request to this group and it is pending approval.")
            membership.status = MembershipStatus.PENDING
        else:
            membership = GroupMembership(group_id=group.id, student_id=student_id)
            self.db.add(membership)

        await self.db.flush()
        await self.db.refresh(membership)

        logger.info("join_requested", group_id=str(group.id), student_id=str(student_id))
        return membership

    async def respond_to_join_request(self, user_id: UUID, membership_id: UUID, approve: bool) -> GroupMembership:
        """
        Approve or reject a pending join request.

        Approval runs the subscription check for the responding user and the
        per-group student cap of the owner's plan.

        Raises:
            ContentNotFoundError: If the membership does not exist
            ContentConflictError: If the request was already answered or the
                group is archived
            EntitlementError: If the group is not the user's, the subscription
                is inactive or the group is full
        """
        membership = await self.db.get(GroupMembership, membership_id)
        if membership is None:
            raise ContentNotFoundError(f"Membership request {membership_id} not found")
        if membership.status != MembershipStatus.PENDING:
            raise ContentConflictError(f"This request was already {membership.status.value}")

        action = "approve the request" if approve else "reject the request"
        user = await self._require_active_subscription(user_id, action)
        group = await self._get_group(membership.group_id)
        self._ensure_owner(user, group)

        if approve:
            if group.is_archived:
                raise ContentConflictError("The group is archived.")
            decision = await self.usage.check_group_capacity(user, group)
            if not decision.allowed:
                self._raise_refusal(decision, action)
            membership.status = MembershipStatus.APPROVED
        else:
            membership.status = MembershipStatus.REJECTED

        await self.db.flush()

        logger.info(
            "join_request_answered",
            membership_id=str(membership.id),
            group_id=str(group.id),
            status=membership.status.value,
        )
        return membership
