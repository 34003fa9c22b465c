# app/schemas/user.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr

from app.models.enums import UserRole
from app.schemas.buyer import CamelModel


class MagicLinkRequest(BaseModel):
    """
    Тело запроса ссылки для входа.
    """
    email: EmailStr


class MagicLinkSent(BaseModel):
    success: bool = True
    message: str


class UserResponse(CamelModel):
    """
    Пользователь в ответах API
    """
    id: str
    name: Optional[str] = None
    email: str
    role: UserRole
    email_verified: Optional[datetime] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class RoleUpdate(BaseModel):
    role: UserRole
