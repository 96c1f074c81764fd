"""
Activity log Pydantic schemas
"""
from datetime import datetime
from typing import Any, List, Optional
from app.models.enums import ActivityType
from app.schemas.base import CamelModel


class ActivityLogResponse(CamelModel):
    id: str
    title: str
    description: str
    type: ActivityType
    changes: Optional[Any] = None
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    user_role: Optional[str] = None
    timestamp: datetime


class ActivityLogListEnvelope(CamelModel):
    success: bool = True
    data: List[ActivityLogResponse]
