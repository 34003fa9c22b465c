# app/services/identity.py

"""
Провайдер идентификации: кто текущий пользователь.

Два способа входа:
  - magic link: в базе хранится хэш токена с ограниченным сроком, ссылка уходит
    на почту; переход по ссылке выполняет вход (при первом входе создаётся аккаунт);
  - демо-вход: упрощение для разработки, находит или создаёт демо-админа.
    Он создаёт данные как побочный эффект, поэтому отделён от обычной
    проверки токена и может быть отключён.
Оба заканчиваются выдачей JWT токена доступа.
"""

import secrets
from datetime import timedelta
from typing import List, Optional
from urllib.parse import urlencode

from fastapi import Request
from sqlalchemy import delete
from sqlalchemy.future import select

from app.config import settings
from app.models.enums import UserRole
from app.models.user import User, VerificationToken
from app.services import email as email_service
from app.utils.database import utc_now
from app.utils.errors import NotFound, Unauthorized
from app.utils.security import create_access_token, hash_token, verify_token


def normalize_email(email: str) -> str:
    return email.strip().lower()


def issue_access_token(user: User) -> dict:
    token = create_access_token({"sub": user.id, "role": user.role.value})
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": user,
    }


async def read_user_service(user_id: str, request: Request) -> Optional[User]:
    db = request.state.db
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def read_user_by_email(email: str, request: Request) -> Optional[User]:
    db = request.state.db
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


# ────────────── Magic link ──────────────
async def request_magic_link_service(email: str, request: Request) -> None:
    db = request.state.db
    log = request.app.state.log
    email = normalize_email(email)

    token = secrets.token_urlsafe(32)
    db.add(VerificationToken(
        identifier=email,
        token_hash=hash_token(token),
        expires=utc_now() + timedelta(minutes=settings.MAGIC_LINK_EXPIRE_MINUTES),
    ))
    await db.commit()

    url = f"{settings.APP_BASE_URL.rstrip('/')}/auth/verify?{urlencode({'email': email, 'token': token})}"
    await email_service.send_magic_link_email(email, url, request)
    await log.log_info("auth", "Magic link выдан", {"email": email})


async def verify_magic_link_service(email: str, token: str, request: Request) -> User:
    db = request.state.db
    log = request.app.state.log
    email = normalize_email(email)
    now = utc_now()

    # просроченные токены этого адреса не нужны, удаляем их сразу
    await db.execute(
        delete(VerificationToken).where(
            VerificationToken.identifier == email,
            VerificationToken.expires < now,
        )
    )
    result = await db.execute(select(VerificationToken).where(VerificationToken.identifier == email))
    match = next((t for t in result.scalars().all() if verify_token(token, t.token_hash)), None)
    if match is None:
        await db.commit()
        await log.log_warning("auth", "Ссылка для входа недействительна или просрочена", {"email": email})
        raise Unauthorized(details="The sign-in link is invalid or has expired.")

    await db.delete(match)

    user = await read_user_by_email(email, request)
    if user is None:
        user = User(email=email, role=UserRole.USER)
        db.add(user)
    user.email_verified = now
    await db.commit()
    await db.refresh(user)

    await log.log_info("auth", "Вход по magic link", {"user_id": user.id})
    return user


# ────────────── Демо-вход ──────────────
async def provision_demo_user(request: Request) -> User:
    """
    Демо-вход: возвращает демо-админа, создавая его при первом обращении.
    """
    if not settings.DEMO_LOGIN_ENABLED:
        raise NotFound(details="Demo login is disabled.")

    db = request.state.db
    log = request.app.state.log
    email = normalize_email(settings.DEMO_USER_EMAIL)

    user = await read_user_by_email(email, request)
    if user is None:
        user = User(
            email=email,
            name=settings.DEMO_USER_NAME,
            role=UserRole.ADMIN,
            email_verified=utc_now(),
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        await log.log_info("auth", "Демо-пользователь создан", {"user_id": user.id})

    await log.log_info("auth", "Демо-вход", {"user_id": user.id})
    return user


# ────────────── Пользователи (админ) ──────────────
async def read_users_service(request: Request) -> List[User]:
    db = request.state.db
    result = await db.execute(select(User).order_by(User.created_at))
    return result.scalars().all()


async def update_user_role_service(user_id: str, role: UserRole, request: Request) -> User:
    db = request.state.db
    log = request.app.state.log

    user = await read_user_service(user_id, request)
    if user is None:
        raise NotFound(details="User not found")

    user.role = role
    await db.commit()
    await db.refresh(user)
    await log.log_info("auth", "Роль пользователя изменена", {"user_id": user.id, "role": role})
    return user
