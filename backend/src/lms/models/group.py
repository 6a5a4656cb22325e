"""Group and membership models."""
from sqlalchemy import Boolean, Column, ForeignKey, String, UniqueConstraint, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from lms.models.base import Base


class MembershipStatus(str, enum.Enum):
    """Join request state of a student in a group."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Group(Base):
    """Class group owned by a teacher; students join with the access code."""

    __tablename__ = "groups"

    name = Column(String, nullable=False)
    access_code = Column(String(6), nullable=False, unique=True, index=True)
    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    is_archived = Column(Boolean, nullable=False, default=False)

    teacher = relationship("User", back_populates="groups")
    memberships = relationship("GroupMembership", back_populates="group", cascade="all, delete-orphan")
    learning_paths = relationship("LearningPath", back_populates="group", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Group(id={self.id}, name={self.name}, archived={self.is_archived})>"


class GroupMembership(Base):
    """A student's membership (or request for it) in a group."""

    __tablename__ = "group_memberships"
    __table_args__ = (UniqueConstraint("group_id", "student_id", name="uq_membership_group_student"),)

    group_id = Column(Uuid(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(SQLEnum(MembershipStatus), nullable=False, default=MembershipStatus.PENDING)

    group = relationship("Group", back_populates="memberships")

    def __repr__(self) -> str:
        """String representation."""
        return f"<GroupMembership(group_id={self.group_id}, student_id={self.student_id}, status={self.status.value})>"
