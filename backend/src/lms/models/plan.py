"""Plan model for subscription tiers and their resource limits."""
from sqlalchemy import Boolean, Column, Index, Integer, text, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from lms.models.base import Base


class PlanName(str, enum.Enum):
    """Tier names offered by the platform."""

    FREE = "Free"
    BASIC = "Basic"
    PREMIUM = "Premium"


class PlanDuration(str, enum.Enum):
    """Billing duration of a plan."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"
    INDEFINITE = "indefinite"


# Length of one billing period; indefinite plans never expire
DURATION_DAYS = {
    PlanDuration.MONTHLY: 30,
    PlanDuration.QUARTERLY: 90,
    PlanDuration.ANNUAL: 365,
}


class Plan(Base):
    """
    Subscription tier with numeric resource limits.

    Exactly one plan may carry ``is_default_free``; teachers whose paid
    subscription lapses are moved onto it by the expiry sweep.
    """

    __tablename__ = "plans"
    __table_args__ = (
        Index(
            "uq_plans_single_default_free",
            "is_default_free",
            unique=True,
            postgresql_where=text("is_default_free"),
            sqlite_where=text("is_default_free = 1"),
        ),
    )

    name = Column(SQLEnum(PlanName), nullable=False, unique=True)
    duration = Column(SQLEnum(PlanDuration), nullable=False, default=PlanDuration.INDEFINITE)
    price = Column(Integer, nullable=True)  # Amount in cents, NULL for the Free tier

    max_groups = Column(Integer, nullable=False, default=0)
    max_students_per_group = Column(Integer, nullable=False, default=0)
    max_routes = Column(Integer, nullable=False, default=0)
    max_resources = Column(Integer, nullable=False, default=0)
    max_activities = Column(Integer, nullable=False, default=0)

    is_default_free = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    users = relationship("User", back_populates="plan")

    @property
    def is_indefinite(self) -> bool:
        return self.duration == PlanDuration.INDEFINITE

    def __repr__(self) -> str:
        """String representation."""
        return f"<Plan(id={self.id}, name={self.name.value}, duration={self.duration.value})>"
