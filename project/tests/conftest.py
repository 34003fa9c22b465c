# tests/conftest.py

import asyncio
import os
import tempfile
from types import SimpleNamespace

import pytest

# settings are read at import time, so the environment comes first
_TMP = tempfile.mkdtemp(prefix="buyer-lead-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["LOG_DIR"] = os.path.join(_TMP, "log")
os.environ["LOG_PRINT"] = "0"
os.environ["AUTH_SECRET_KEY"] = "test-secret"
os.environ["EMAIL_SERVER_HOST"] = ""

from fastapi.testclient import TestClient  # noqa: E402

from app.main import app  # noqa: E402
from app.models.enums import UserRole  # noqa: E402
from app.models.user import User  # noqa: E402
from app.utils.database import AsyncSessionLocal, Base, engine  # noqa: E402
from app.utils.security import create_access_token  # noqa: E402


async def _reset_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def db_schema():
    asyncio.run(_reset_schema())
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def create_user(email: str, name: str, role: UserRole = UserRole.USER) -> SimpleNamespace:
    async def _create():
        async with AsyncSessionLocal() as db:
            user = User(email=email, name=name, role=role)
            db.add(user)
            await db.commit()
            await db.refresh(user)
            return user.id

    user_id = asyncio.run(_create())
    token = create_access_token({"sub": user_id, "role": role.value})
    return SimpleNamespace(
        id=user_id,
        email=email,
        name=name,
        headers={"Authorization": f"Bearer {token}"},
    )


@pytest.fixture
def owner():
    return create_user("owner@example.com", "Owner Agent")


@pytest.fixture
def other():
    return create_user("other@example.com", "Other Agent")


@pytest.fixture
def admin():
    return create_user("admin@example.com", "Admin", UserRole.ADMIN)


def buyer_payload(**overrides) -> dict:
    payload = {
        "fullName": "John Doe",
        "email": "john@example.com",
        "phone": "9876543210",
        "city": "Chandigarh",
        "propertyType": "Plot",
        "purpose": "Buy",
        "budgetMin": 2000000,
        "budgetMax": 5000000,
        "timeline": "ZeroToThreeMonths",
        "source": "Website",
        "notes": "",
        "tags": "",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_payload():
    return buyer_payload
