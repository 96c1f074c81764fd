"""
Shared API dependencies: caller identity and the workflow service
"""
from typing import Optional
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.database import get_db
from app.models.citizen import Citizen
from app.services.document_workflow import DocumentWorkflowService


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
) -> Citizen:
    """
    Resolve the caller from the X-User-Id header.

    Raises:
        HTTPException 401: If the header is missing or names no citizen
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    citizen = await db.get(Citizen, x_user_id)
    if not citizen:
        raise HTTPException(status_code=401, detail="User not found")
    return citizen


async def require_admin(current_user: Citizen = Depends(get_current_user)) -> Citizen:
    """
    Raises:
        HTTPException 403: If the caller is not an admin
    """
    if not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user


def get_workflow(request: Request) -> DocumentWorkflowService:
    return request.app.state.workflow
