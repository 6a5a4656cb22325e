"""Teaching content: learning paths, resources and activities."""
from sqlalchemy import Column, ForeignKey, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from lms.models.base import Base


class ResourceType(str, enum.Enum):
    """Kind of study resource."""

    CONTENT = "content"
    LINK = "link"
    VIDEO = "video"


class ActivityType(str, enum.Enum):
    """Kind of graded activity."""

    QUIZ = "quiz"
    QUESTIONNAIRE = "questionnaire"
    ASSIGNMENT = "assignment"


class LearningPath(Base):
    """Learning path (route) attached to a group."""

    __tablename__ = "learning_paths"

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)

    group = relationship("Group", back_populates="learning_paths")


class Resource(Base):
    """Resource in a teacher's content bank."""

    __tablename__ = "resources"

    title = Column(String, nullable=False)
    type = Column(SQLEnum(ResourceType), nullable=False)
    body = Column(Text, nullable=True)  # Text, URL or video link depending on type
    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)


class Activity(Base):
    """Activity in a teacher's content bank."""

    __tablename__ = "activities"

    title = Column(String, nullable=False)
    type = Column(SQLEnum(ActivityType), nullable=False)
    description = Column(Text, nullable=True)
    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
