"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication endpoints.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional
from edrive.app.models.enums import UserRole


class UserRegister(BaseModel):
    """
    Schema for user registration.

    Used by POST /auth/register endpoint.
    Default role is PASSENGER; drivers register first and onboard afterwards.
    """
    email: EmailStr = Field(..., description="User email address")
    full_name: str = Field(..., min_length=2, max_length=150, description="Display name shown to the other party")
    password: str = Field(..., min_length=6, description="Password (min 6 characters)")
    phone_number: Optional[str] = Field(default=None, max_length=30)
    city: Optional[str] = Field(default="Hafizabad", max_length=100)
    role: UserRole = Field(default=UserRole.PASSENGER, description="PASSENGER or DRIVER")

    class Config:
        extra = "forbid"


class UserLogin(BaseModel):
    """
    Schema for user login.

    Used by POST /auth/login endpoint.
    """
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., description="Password")

    class Config:
        extra = "forbid"


class TokenResponse(BaseModel):
    """
    Schema for JWT token response.

    Returned by successful login/register operations.
    """
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user_id: int = Field(..., description="User ID")
    email: str = Field(..., description="Email address")
    full_name: str
    role: UserRole = Field(..., description="User role")


class UserResponse(BaseModel):
    """
    Schema for user information response.

    Used by GET /auth/me endpoint.
    """
    id: int
    email: str
    full_name: str
    phone_number: Optional[str] = None
    city: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: datetime
    rating: float = 5.0
    rating_count: int = 0

    class Config:
        from_attributes = True
