"""Pydantic schemas for groups and teaching content."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from lms.models.content import ActivityType, ResourceType
from lms.models.group import MembershipStatus


class GroupCreate(BaseModel):
    """Schema for creating a group."""

    name: str = Field(..., min_length=1, max_length=255)


class Group(BaseModel):
    """Schema for returning group data."""

    id: UUID
    name: str
    access_code: str
    teacher_id: UUID
    is_archived: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class JoinRequest(BaseModel):
    """A student's request to join a group by access code."""

    access_code: str = Field(..., min_length=6, max_length=6)


class JoinResponse(BaseModel):
    """Teacher decision on a pending join request."""

    approve: bool


class Membership(BaseModel):
    """Schema for returning membership data."""

    id: UUID
    group_id: UUID
    student_id: UUID
    status: MembershipStatus

    model_config = ConfigDict(from_attributes=True)


class LearningPathCreate(BaseModel):
    """Schema for creating a learning path in a group."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    group_id: UUID


class LearningPath(BaseModel):
    """Schema for returning learning path data."""

    id: UUID
    name: str
    description: str | None
    group_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ResourceCreate(BaseModel):
    """Schema for creating a resource."""

    title: str = Field(..., min_length=1, max_length=255)
    type: ResourceType
    body: str | None = None


class Resource(BaseModel):
    """Schema for returning resource data."""

    id: UUID
    title: str
    type: ResourceType
    body: str | None
    teacher_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActivityCreate(BaseModel):
    """Schema for creating an activity."""

    title: str = Field(..., min_length=1, max_length=255)
    type: ActivityType
    description: str | None = None


class Activity(BaseModel):
    """Schema for returning activity data."""

    id: UUID
    title: str
    type: ActivityType
    description: str | None
    teacher_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
