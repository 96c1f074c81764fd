"""
ActivityLog database model
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Enum, DateTime, ForeignKey, Text, JSON
from app.core.database import Base
from app.models.enums import ActivityType


class ActivityLog(Base):
    """
    Audit trail entry for a state-changing action.

    Actor identity is copied into the row so entries stay readable after
    the actor or the subject (e.g. a cancelled request) is deleted.
    """
    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    type = Column(
        Enum(ActivityType, values_callable=lambda e: [m.value for m in e]),
        default=ActivityType.DOCUMENT,
        nullable=False,
    )
    changes = Column(JSON, nullable=True)
    user_id = Column(String(36), ForeignKey("citizens.id", ondelete="SET NULL"), nullable=True, index=True)
    user_email = Column(String(255), nullable=False)
    user_name = Column(String(255), nullable=False)
    user_role = Column(String(100), nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<ActivityLog(id={self.id}, title={self.title})>"
