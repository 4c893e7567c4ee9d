"""
Pydantic schemas for authentication.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    token: str
    expiresAt: datetime
    role: str


class LogoutResponse(BaseModel):
    success: bool = True
