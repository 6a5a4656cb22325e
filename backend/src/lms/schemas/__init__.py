"""Pydantic schemas for API request/response validation."""

from lms.schemas.content import (
    Activity,
    ActivityCreate,
    Group,
    GroupCreate,
    JoinRequest,
    JoinResponse,
    LearningPath,
    LearningPathCreate,
    Membership,
    Resource,
    ResourceCreate,
)
from lms.schemas.error import ErrorCode, ErrorDetail, ErrorResponse
from lms.schemas.plan import Plan, PlanCreate, PlanLimits, PlanLimitsUpdate, PlanList, PlanUpdate
from lms.schemas.subscription import PlanAssignment, SubscriptionStatusResponse, SweepResult
from lms.schemas.user import UsageCounters, User, UserCreate

__all__ = [
    "Activity",
    "ActivityCreate",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "Group",
    "GroupCreate",
    "JoinRequest",
    "JoinResponse",
    "LearningPath",
    "LearningPathCreate",
    "Membership",
    "Plan",
    "PlanAssignment",
    "PlanCreate",
    "PlanLimits",
    "PlanLimitsUpdate",
    "PlanList",
    "PlanUpdate",
    "Resource",
    "ResourceCreate",
    "SubscriptionStatusResponse",
    "SweepResult",
    "UsageCounters",
    "User",
    "UserCreate",
]
