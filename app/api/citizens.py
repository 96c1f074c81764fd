"""
Citizen API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.api.deps import get_current_user
from app.core.database import get_db
from app.models.citizen import Citizen
from app.models.enums import ActivityType
from app.schemas.citizen import CitizenCreate, CitizenResponse, ProfileUpdate
from app.services.activity_service import record_activity
from app.services.profile_service import apply_profile_update, refresh_profile_flag

router = APIRouter()


@router.post("", response_model=CitizenResponse, status_code=201)
async def create_citizen(
    citizen_data: CitizenCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a citizen or admin.

    Args:
        citizen_data: Email, role and optional profile fields
        db: Database session

    Returns:
        CitizenResponse with the created citizen

    Raises:
        HTTPException 409: If a citizen with the same email already exists
    """
    email = citizen_data.email.lower()
    result = await db.execute(
        select(Citizen).where(Citizen.email == email)
    )
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=409,
            detail=f"Citizen with email {citizen_data.email} already exists"
        )

    citizen = Citizen(**citizen_data.model_dump(exclude={"email"}), email=email)
    refresh_profile_flag(citizen)

    db.add(citizen)
    await db.commit()
    await db.refresh(citizen)

    return citizen


@router.get("/me", response_model=CitizenResponse)
async def get_me(current_user: Citizen = Depends(get_current_user)):
    return current_user


@router.patch("/me/profile", response_model=CitizenResponse)
async def update_my_profile(
    update: ProfileUpdate,
    current_user: Citizen = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Update the caller's profile.

    Only fields present in the body change. The completeness flag is
    recomputed and the change is recorded in the activity log.
    """
    diff = apply_profile_update(current_user, update.model_dump(exclude_unset=True))
    if diff:
        record_activity(
            db,
            current_user,
            "Profile Updated",
            f"{current_user.full_name or current_user.email} updated their profile.",
            type=ActivityType.PROFILE,
            changes=diff,
        )
    await db.commit()
    await db.refresh(current_user)

    return current_user
