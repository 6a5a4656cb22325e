"""SQLAlchemy ORM models for the LMS backend."""
# Import all models here to ensure they are registered with Alembic

from lms.models.base import Base
from lms.models.plan import Plan, PlanName, PlanDuration, DURATION_DAYS
from lms.models.user import User, UserRole
from lms.models.group import Group, GroupMembership, MembershipStatus
from lms.models.content import LearningPath, Resource, ResourceType, Activity, ActivityType

__all__ = [
    "Base",
    "Plan",
    "PlanName",
    "PlanDuration",
    "DURATION_DAYS",
    "User",
    "UserRole",
    "Group",
    "GroupMembership",
    "MembershipStatus",
    "LearningPath",
    "Resource",
    "ResourceType",
    "Activity",
    "ActivityType",
]
