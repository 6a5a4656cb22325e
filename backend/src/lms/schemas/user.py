"""Pydantic schemas for users and their usage counters."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from lms.models.user import UserRole


class UserCreate(BaseModel):
    """Schema for creating an account."""

    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    role: UserRole = UserRole.STUDENT


class UsageCounters(BaseModel):
    """Running counters of live teacher-owned resources."""

    groups_created: int
    routes_created: int
    resources_generated: int
    activities_generated: int

    model_config = ConfigDict(from_attributes=True)


class User(BaseModel):
    """Schema for returning user data."""

    id: UUID
    email: str
    name: str
    role: UserRole
    is_active: bool
    plan_id: UUID | None
    subscription_end_date: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
