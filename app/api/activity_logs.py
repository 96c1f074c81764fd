"""Activity log API endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.api.deps import require_admin
from app.core.database import get_db
from app.models.citizen import Citizen
from app.schemas.activity_log import ActivityLogListEnvelope, ActivityLogResponse
from app.services.activity_service import list_activity_logs

router = APIRouter()


@router.get("", response_model=ActivityLogListEnvelope)
async def get_activity_logs(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: Citizen = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Newest-first audit entries"""
    entries = await list_activity_logs(db, limit=limit, offset=offset)
    return ActivityLogListEnvelope(data=[ActivityLogResponse.model_validate(e) for e in entries])
