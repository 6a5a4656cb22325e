"""User model with the subscription-relevant fields of teacher accounts."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from lms.models.base import Base


class UserRole(str, enum.Enum):
    """Platform roles. Only teachers are subject to plans and quotas."""

    STUDENT = "Student"
    TEACHER = "Teacher"
    ADMINISTRATOR = "Administrator"


class User(Base):
    """
    Platform account.

    Teachers reference a plan and carry running usage counters. The
    counters track live resources: archiving does not decrement them.
    """

    __tablename__ = "users"

    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.STUDENT, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    plan_id = Column(Uuid(as_uuid=True), ForeignKey("plans.id"), nullable=True, index=True)
    subscription_end_date = Column(DateTime, nullable=True, index=True)

    # Usage counters
    groups_created = Column(Integer, nullable=False, default=0)
    resources_generated = Column(Integer, nullable=False, default=0)
    activities_generated = Column(Integer, nullable=False, default=0)
    routes_created = Column(Integer, nullable=False, default=0)

    plan = relationship("Plan", back_populates="users")
    groups = relationship("Group", back_populates="teacher")

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER

    @property
    def is_administrator(self) -> bool:
        return self.role == UserRole.ADMINISTRATOR

    def __repr__(self) -> str:
        """String representation."""
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"
