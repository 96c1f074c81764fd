"""Activity log service."""

from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity_log import ActivityLog
from app.models.citizen import Citizen
from app.models.enums import ActivityType, UserRole


def record_activity(
    db: AsyncSession,
    actor: Citizen,
    title: str,
    description: str,
    type: ActivityType = ActivityType.DOCUMENT,
    changes: Optional[Any] = None,
) -> ActivityLog:
    """Add an activity log entry to the session.

    The entry is committed together with the change it describes.

    Args:
        db: Database session
        actor: Citizen or admin performing the action
        title: Short event title
        description: Human-readable description
        type: Activity category
        changes: JSON-serializable details

    Returns:
        The pending ActivityLog
    """
    entry = ActivityLog(
        title=title,
        description=description,
        type=type,
        changes=changes,
        user_id=actor.id,
        user_email=actor.email,
        user_name=actor.full_name or actor.email,
        user_role=(actor.role or UserRole.CITIZEN).value,
    )
    db.add(entry)
    return entry


async def list_activity_logs(db: AsyncSession, limit: int = 100, offset: int = 0) -> List[ActivityLog]:
    result = await db.execute(
        select(ActivityLog)
        .order_by(ActivityLog.timestamp.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())
