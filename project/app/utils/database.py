# app/utils/database.py

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool
from app.config import settings

# ────────────── Base для моделей ──────────────
Base = declarative_base()

# ────────────── URL базы данных ──────────────
SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

# соединения SQLite не должны переживать event loop, в котором открыты
engine_options = {"poolclass": NullPool} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}

# ────────────── Асинхронный движок ──────────────
engine = create_async_engine(
    SQLALCHEMY_DATABASE_URL,
    echo=False,  # True можно включить для отладки SQL
    **engine_options
)

# ────────────── Асинхронная сессия ──────────────
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ────────────── Инициализация базы данных ──────────────
async def init_db():
    """
    Создаёт недостающие таблицы.
    Модели импортируются здесь, чтобы их metadata попала в Base.
    """
    from app.models import user, buyer  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
