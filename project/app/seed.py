# app/seed.py
# Демо-данные: python -m app.seed

import asyncio

from sqlalchemy.future import select

from app.config import settings
from app.models.buyer import Buyer
from app.models.enums import BHK, City, PropertyType, Purpose, Source, Status, Timeline, UserRole
from app.models.user import User
from app.services.history import created_payload, plain_values, record_history
from app.utils.database import AsyncSessionLocal, init_db, utc_now
from app.utils.log import Log

SAMPLE_BUYERS = [
    {
        "full_name": "John Doe",
        "email": "john.doe@example.com",
        "phone": "9876543210",
        "city": City.Chandigarh,
        "property_type": PropertyType.Apartment,
        "bhk": BHK.Two,
        "purpose": Purpose.Buy,
        "budget_min": 5000000,
        "budget_max": 8000000,
        "timeline": Timeline.ThreeToSixMonths,
        "source": Source.Website,
        "notes": "Looking for a spacious apartment in a gated community",
        "tags": "serious buyer,ready to move",
        "status": Status.New,
    },
    {
        "full_name": "Jane Smith",
        "email": "jane.smith@example.com",
        "phone": "8765432109",
        "city": City.Mohali,
        "property_type": PropertyType.Villa,
        "bhk": BHK.Three,
        "purpose": Purpose.Buy,
        "budget_min": 10000000,
        "budget_max": 15000000,
        "timeline": Timeline.ZeroToThreeMonths,
        "source": Source.Referral,
        "notes": "Interested in premium villas with garden",
        "tags": "premium,garden",
        "status": Status.Contacted,
    },
    {
        "full_name": "Ravi Kumar",
        "email": "ravi@example.com",
        "phone": "7654321098",
        "city": City.Zirakpur,
        "property_type": PropertyType.Plot,
        "bhk": None,
        "purpose": Purpose.Buy,
        "budget_min": 2000000,
        "budget_max": 5000000,
        "timeline": Timeline.MoreThanSixMonths,
        "source": Source.WalkIn,
        "notes": "Looking for investment opportunity",
        "tags": "investor",
        "status": Status.Qualified,
    },
]


async def seed(log: Log) -> None:
    await init_db()

    async with AsyncSessionLocal() as db:
        email = settings.DEMO_USER_EMAIL.strip().lower()
        demo = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if demo is None:
            demo = User(email=email, name=settings.DEMO_USER_NAME, role=UserRole.ADMIN, email_verified=utc_now())
            db.add(demo)
            await db.flush()
            log.log_info_sync("seed", "Демо-пользователь создан", {"email": email})

        for values in SAMPLE_BUYERS:
            exists = await db.execute(
                select(Buyer.id).where(Buyer.owner_id == demo.id, Buyer.phone == values["phone"])
            )
            if exists.first() is not None:
                continue
            buyer = Buyer(owner_id=demo.id, **values)
            db.add(buyer)
            record_history(db, buyer, demo.id, created_payload(plain_values(values)))
            log.log_info_sync("seed", "Покупатель создан", {"full_name": values["full_name"]})

        await db.commit()


def main():
    log = Log()
    log.log_info_sync("seed", "Заполнение базы демо-данными", is_console=True)
    asyncio.run(seed(log))
    log.log_info_sync("seed", "Заполнение завершено", is_console=True)


if __name__ == "__main__":
    main()
