"""Pydantic schemas for Plan model."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lms.models.plan import PlanDuration, PlanName


class PlanLimits(BaseModel):
    """Resource limits granted by a plan."""

    max_groups: int = Field(default=0, ge=0, description="Groups a teacher may own")
    max_students_per_group: int = Field(default=0, ge=0, description="Approved students per group")
    max_routes: int = Field(default=0, ge=0, description="Learning paths a teacher may create")
    max_resources: int = Field(default=0, ge=0, description="Resources in the content bank")
    max_activities: int = Field(default=0, ge=0, description="Activities in the content bank")


class PlanLimitsUpdate(BaseModel):
    """Partial limits update; omitted limits keep their current value."""

    max_groups: int | None = Field(default=None, ge=0)
    max_students_per_group: int | None = Field(default=None, ge=0)
    max_routes: int | None = Field(default=None, ge=0)
    max_resources: int | None = Field(default=None, ge=0)
    max_activities: int | None = Field(default=None, ge=0)


class PlanBase(BaseModel):
    """Base plan schema with common fields."""

    name: PlanName = Field(..., description="Tier name (Free, Basic or Premium)")
    duration: PlanDuration = Field(default=PlanDuration.INDEFINITE, description="Billing duration")
    price: int | None = Field(default=None, ge=0, description="Price in cents, required unless the tier is Free")
    limits: PlanLimits = Field(default_factory=PlanLimits)
    is_default_free: bool = Field(default=False, description="Plan assigned when a subscription lapses")
    is_active: bool = Field(default=True, description="Whether the plan can be assigned")


class PlanCreate(PlanBase):
    """Schema for creating a new plan.

    Examples:
        Default free tier:
            ```json
            {
                "name": "Free",
                "duration": "indefinite",
                "limits": {"max_groups": 1, "max_students_per_group": 10, "max_routes": 1,
                           "max_resources": 5, "max_activities": 5},
                "is_default_free": true
            }
            ```
    """

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "name": "Free",
                    "duration": "indefinite",
                    "limits": {
                        "max_groups": 1,
                        "max_students_per_group": 10,
                        "max_routes": 1,
                        "max_resources": 5,
                        "max_activities": 5,
                    },
                    "is_default_free": True,
                },
                {
                    "name": "Basic",
                    "duration": "monthly",
                    "price": 1000,
                    "limits": {
                        "max_groups": 5,
                        "max_students_per_group": 30,
                        "max_routes": 3,
                        "max_resources": 30,
                        "max_activities": 30,
                    },
                },
            ]
        }
    )

    @model_validator(mode="after")
    def validate_price(self) -> "PlanCreate":
        """Require a price for every tier except Free."""
        if self.price is None and self.name != PlanName.FREE:
            raise ValueError(f"price is required for the {self.name.value} plan")
        return self


class PlanUpdate(BaseModel):
    """Schema for updating a plan (all fields optional)."""

    name: PlanName | None = None
    duration: PlanDuration | None = None
    price: int | None = Field(default=None, ge=0)
    limits: PlanLimitsUpdate | None = None
    is_default_free: bool | None = None
    is_active: bool | None = None


class Plan(BaseModel):
    """Schema for returning plan data."""

    id: UUID
    name: PlanName
    duration: PlanDuration
    price: int | None
    limits: PlanLimits
    is_default_free: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def collect_limits(cls, data):
        """Group the flat ORM limit columns into ``limits``."""
        if isinstance(data, dict):
            return data
        return {
            "id": data.id,
            "name": data.name,
            "duration": data.duration,
            "price": data.price,
            "limits": PlanLimits(
                max_groups=data.max_groups,
                max_students_per_group=data.max_students_per_group,
                max_routes=data.max_routes,
                max_resources=data.max_resources,
                max_activities=data.max_activities,
            ),
            "is_default_free": data.is_default_free,
            "is_active": data.is_active,
            "created_at": data.created_at,
            "updated_at": data.updated_at,
        }


class PlanList(BaseModel):
    """Schema for paginated plan list."""

    items: list[Plan]
    total: int
    page: int
    page_size: int
