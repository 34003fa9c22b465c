# app/models/user.py

import uuid

from sqlalchemy import Column, Integer, String, DateTime, Enum
from app.models.enums import UserRole
from app.utils.database import Base, utc_now


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=True)
    email = Column(String, unique=True, nullable=False, index=True)
    role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.USER)
    email_verified = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class VerificationToken(Base):
    """Одноразовый токен magic link; хранится только его хэш."""
    __tablename__ = "verification_tokens"

    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String, nullable=False, index=True)   # email, на который ушла ссылка
    token_hash = Column(String, nullable=False)
    expires = Column(DateTime(timezone=True), nullable=False)
