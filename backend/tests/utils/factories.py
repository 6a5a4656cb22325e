"""Test data factories using Faker for generating realistic test data."""
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from faker import Faker

from lms.models.plan import PlanDuration, PlanName
from lms.models.user import UserRole

fake = Faker()


class PlanFactory:
    """Factory for creating test plan data."""

    @staticmethod
    def create(overrides: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Create plan test data (ORM column names, flat limits).

        Args:
            overrides: Optional field overrides

        Returns:
            dict: Plan data
        """
        data = {
            "id": uuid4(),
            "name": PlanName.PREMIUM,
            "duration": PlanDuration.MONTHLY,
            "price": fake.random_int(min=500, max=5000),
            "max_groups": 10,
            "max_students_per_group": 30,
            "max_routes": 10,
            "max_resources": 50,
            "max_activities": 50,
            "is_default_free": False,
            "is_active": True,
        }
        if overrides:
            data.update(overrides)
        return data


class UserFactory:
    """Factory for creating test user data."""

    @staticmethod
    def create(overrides: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Create user test data.

        Args:
            overrides: Optional field overrides

        Returns:
            dict: User data
        """
        data = {
            "id": uuid4(),
            "email": fake.unique.email(),
            "name": fake.name(),
            "role": UserRole.TEACHER,
            "is_active": True,
            "plan_id": None,
            "subscription_end_date": None,
            "groups_created": 0,
            "resources_generated": 0,
            "activities_generated": 0,
            "routes_created": 0,
        }
        if overrides:
            data.update(overrides)
        return data


def days_from_now(days: int) -> datetime:
    """Naive UTC timestamp ``days`` away from now (negative for the past)."""
    return datetime.utcnow() + timedelta(days=days)
