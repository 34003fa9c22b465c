# app/utils/security.py

"""
Токены доступа (JWT) и хэширование токенов magic link.
Используем passlib с sha256_crypt, чтобы избежать проблем bcrypt на Windows.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jwt import encode, decode
from passlib.context import CryptContext

from app.config import settings

ALGORITHM = "HS256"

# токены magic link длинные и случайные, минимального числа раундов достаточно
token_context = CryptContext(
    schemes=["sha256_crypt"],
    deprecated="auto",
    sha256_crypt__default_rounds=1000,
)


def hash_token(token: str) -> str:
    """
    Хэширует токен magic link перед сохранением.

    :param token: токен в открытом виде из письма
    :return: строка хэша
    """
    return token_context.hash(token)


def verify_token(plain_token: str, token_hash: str) -> bool:
    """
    Проверяет токен из ссылки входа по сохранённому хэшу.

    :param plain_token: токен из ссылки
    :param token_hash: хэш из базы
    :return: True при совпадении
    """
    return token_context.verify(plain_token, token_hash)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Создаёт JWT из переданных claims (например {"sub": user_id, "role": "USER"}).
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.AUTH_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return encode(to_encode, settings.AUTH_SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Бросает jwt.ExpiredSignatureError / jwt.InvalidTokenError для плохих токенов."""
    return decode(token, settings.AUTH_SECRET_KEY, algorithms=[ALGORITHM])
