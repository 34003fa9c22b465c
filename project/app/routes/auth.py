# app/routes/auth.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import ExpiredSignatureError, InvalidTokenError

from app.models.user import User
from app.schemas.user import MagicLinkRequest, MagicLinkSent, RoleUpdate, TokenResponse, UserResponse
from app.services.identity import (
    issue_access_token,
    provision_demo_user,
    read_user_service,
    read_users_service,
    request_magic_link_service,
    update_user_role_service,
    verify_magic_link_service,
)
from app.utils.errors import ApiError, Forbidden, Unauthorized, as_api_error
from app.utils.security import decode_access_token

router = APIRouter()

# ────────────── JWT ──────────────
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> User:
    """
    Проверяет bearer JWT и возвращает пользователя из токена.

    **Статусы:**
    - 401 Unauthorized: токена нет, он просрочен, невалиден или пользователь удалён
    """
    log = request.app.state.log
    if credentials is None:
        raise Unauthorized(details="Authentication required", headers={"WWW-Authenticate": "Bearer"})

    try:
        payload = decode_access_token(credentials.credentials)
    except ExpiredSignatureError:
        await log.log_warning("auth", "Токен просрочен")
        raise Unauthorized(details="Token expired", headers={"WWW-Authenticate": "Bearer"})
    except InvalidTokenError:
        await log.log_warning("auth", "Невалидный токен")
        raise Unauthorized(details="Token invalid", headers={"WWW-Authenticate": "Bearer"})

    user_id = payload.get("sub")
    user = await read_user_service(user_id, request) if user_id else None
    if user is None:
        await log.log_warning("auth", "Пользователь из токена не найден", {"sub": user_id})
        raise Unauthorized(details="User not found", headers={"WWW-Authenticate": "Bearer"})
    return user


async def admin_required(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise Forbidden(details="Admin access required")
    return current_user


# ────────────── MAGIC LINK ──────────────
@router.post(
    "/magic-link",
    response_model=MagicLinkSent,
    status_code=status.HTTP_200_OK,
    summary="Запросить ссылку для входа",
    responses={
        200: {"description": "Ссылка отправлена (или записана в лог в консольном режиме)"},
        400: {"description": "Некорректный email"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def request_magic_link(body: MagicLinkRequest, request: Request):
    """
    Отправляет на адрес одноразовую ссылку для входа.

    **Вход (JSON):**
    - `email`: str

    Ссылка ведёт на `/auth/verify?email=...&token=...` и истекает через
    `MAGIC_LINK_EXPIRE_MINUTES`.
    """
    try:
        await request_magic_link_service(body.email, request)
        return {"success": True, "message": "Check your email for a sign-in link."}
    except ApiError:
        raise
    except Exception as e:
        await request.app.state.log.log_error("auth", f"Ошибка при отправке ссылки для входа: {e}", {"email": body.email})
        raise as_api_error(e) from e


@router.get(
    "/verify",
    response_model=TokenResponse,
    summary="Вход по magic link",
    responses={
        200: {
            "description": "Токен выдан. Возвращает access_token, token_type и пользователя.",
            "content": {
                "application/json": {
                    "example": {
                        "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                        "token_type": "bearer",
                        "user": {
                            "id": "6f1c2a8e-0d3b-4c55-9a61-2f0e4b7d9c10",
                            "name": None,
                            "email": "agent@example.com",
                            "role": "USER",
                            "emailVerified": "2025-01-01T10:00:00Z",
                        },
                    }
                }
            },
        },
        401: {"description": "Ссылка недействительна или просрочена"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def verify_magic_link(
    request: Request,
    email: str = Query(...),
    token: str = Query(...),
):
    try:
        user = await verify_magic_link_service(email, token, request)
        return issue_access_token(user)
    except ApiError:
        raise
    except Exception as e:
        await request.app.state.log.log_error("auth", f"Ошибка при проверке ссылки для входа: {e}", {"email": email})
        raise as_api_error(e) from e


# ────────────── DEMO ──────────────
@router.post(
    "/demo",
    response_model=TokenResponse,
    summary="Демо-вход (для разработки)",
    responses={
        200: {"description": "Токен демо-админа"},
        404: {"description": "Демо-вход отключён"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def demo_login(request: Request):
    """
    Вход под демо-админом; аккаунт создаётся при первом обращении.
    Доступно только при включённом `DEMO_LOGIN_ENABLED`.
    """
    try:
        user = await provision_demo_user(request)
        return issue_access_token(user)
    except ApiError:
        raise
    except Exception as e:
        await request.app.state.log.log_error("auth", f"Ошибка демо-входа: {e}")
        raise as_api_error(e) from e


# ────────────── ME ──────────────
@router.get(
    "/me",
    response_model=UserResponse,
    summary="Текущий пользователь",
    responses={
        200: {"description": "Вошедший пользователь"},
        401: {"description": "Токен отсутствует или некорректен"},
    },
)
async def read_me(current_user: User = Depends(get_current_user)):
    return current_user


# ────────────── USERS (admin) ──────────────
@router.get(
    "/users",
    response_model=List[UserResponse],
    summary="Список пользователей (только админ)",
    responses={
        200: {"description": "Список пользователей"},
        401: {"description": "Токен отсутствует или некорректен"},
        403: {"description": "Нет прав администратора"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def read_users(request: Request, _: User = Depends(admin_required)):
    try:
        return await read_users_service(request)
    except ApiError:
        raise
    except Exception as e:
        await request.app.state.log.log_error("auth", f"Ошибка при получении списка пользователей: {e}")
        raise as_api_error(e) from e


@router.patch(
    "/users/{user_id}/role",
    response_model=UserResponse,
    summary="Изменить роль пользователя (только админ)",
    responses={
        200: {"description": "Роль обновлена"},
        400: {"description": "Неизвестная роль"},
        401: {"description": "Токен отсутствует или некорректен"},
        403: {"description": "Нет прав администратора"},
        404: {"description": "Пользователь не найден"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def update_user_role(
    user_id: str,
    body: RoleUpdate,
    request: Request,
    current_user: User = Depends(admin_required),
):
    try:
        user = await update_user_role_service(user_id, body.role, request)
        await request.app.state.log.log_info("auth", "Роль изменена администратором", {"admin_id": current_user.id, "user_id": user_id})
        return user
    except ApiError:
        raise
    except Exception as e:
        await request.app.state.log.log_error("auth", f"Ошибка при смене роли: {e}", {"user_id": user_id})
        raise as_api_error(e) from e
