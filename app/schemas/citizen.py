"""
Citizen Pydantic schemas
"""
from datetime import date, datetime
from typing import Optional
from pydantic import EmailStr, Field
from app.models.enums import UserRole
from app.schemas.base import CamelModel


class CitizenCreate(CamelModel):
    """Schema for registering a citizen (or an admin)"""
    email: EmailStr = Field(..., description="Login email address")
    role: UserRole = Field(UserRole.CITIZEN, description="citizen or admin")
    first_name: Optional[str] = Field(None, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    suffix: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    phone_number: Optional[str] = Field(None, max_length=20)
    street_number: Optional[str] = Field(None, max_length=50)
    street_name: Optional[str] = Field(None, max_length=255)
    house_number: Optional[str] = Field(None, max_length=50, description="Legacy street number field")
    street: Optional[str] = Field(None, max_length=255, description="Legacy street name field")
    barangay: Optional[str] = None
    city: Optional[str] = None


class ProfileUpdate(CamelModel):
    """
    Profile fields a citizen may change.

    Only fields present in the body are applied; an explicit null clears
    the field. Unknown fields are rejected.
    """
    first_name: Optional[str] = Field(None, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    suffix: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    phone_number: Optional[str] = Field(None, max_length=20)
    street_number: Optional[str] = Field(None, max_length=50)
    street_name: Optional[str] = Field(None, max_length=255)
    house_number: Optional[str] = Field(None, max_length=50)
    street: Optional[str] = Field(None, max_length=255)
    barangay: Optional[str] = None
    city: Optional[str] = None

    class Config:
        extra = "forbid"


class CitizenSummary(CamelModel):
    """Citizen fields shown next to a request in admin lists"""
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: str = ""
    phone_number: Optional[str] = None


class CitizenResponse(CitizenSummary):
    """Schema for citizen response"""
    role: UserRole
    middle_name: Optional[str] = None
    suffix: Optional[str] = None
    date_of_birth: Optional[date] = None
    street_number: Optional[str] = None
    street_name: Optional[str] = None
    house_number: Optional[str] = None
    street: Optional[str] = None
    barangay: Optional[str] = None
    city: Optional[str] = None
    is_profile_complete: bool = Field(..., description="Cached completeness flag (display only)")
    created_at: datetime
    updated_at: datetime
