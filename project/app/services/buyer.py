# app/services/buyer.py

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Tuple

from fastapi import Request
from sqlalchemy import func, or_
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.config import settings
from app.models.buyer import Buyer, BuyerHistory
from app.models.enums import City, PropertyType, Status, Timeline
from app.models.user import User
from app.services.history import (
    compute_changes,
    created_payload,
    plain_values,
    record_history,
    snapshot,
    updated_payload,
)
from app.services.rate_limit import client_address
from app.services.validation import validate_buyer_form
from app.utils.database import utc_now
from app.utils.errors import STALE_RECORD_MESSAGE, Conflict, Forbidden, NotFound, ValidationFailed

# значения sortBy для списка и экспорта
SORTABLE_FIELDS = {
    "fullName": Buyer.full_name,
    "email": Buyer.email,
    "phone": Buyer.phone,
    "city": Buyer.city,
    "propertyType": Buyer.property_type,
    "purpose": Buyer.purpose,
    "budgetMin": Buyer.budget_min,
    "budgetMax": Buyer.budget_max,
    "timeline": Buyer.timeline,
    "source": Buyer.source,
    "status": Buyer.status,
    "createdAt": Buyer.created_at,
    "updatedAt": Buyer.updated_at,
}


@dataclass
class BuyerFilters:
    search: Optional[str] = None
    city: Optional[City] = None
    property_type: Optional[PropertyType] = None
    status: Optional[Status] = None
    timeline: Optional[Timeline] = None
    sort_by: str = "updatedAt"
    sort_order: str = "desc"


def filtered_buyers_query(filters: BuyerFilters):
    """SELECT покупателей по фильтрам, без сортировки и пагинации."""
    stmt = select(Buyer)

    search = (filters.search or "").strip()
    if search:
        stmt = stmt.where(or_(
            Buyer.full_name.icontains(search, autoescape=True),
            Buyer.email.icontains(search, autoescape=True),
            Buyer.phone.icontains(search, autoescape=True),
        ))

    if filters.city:
        stmt = stmt.where(Buyer.city == filters.city)
    if filters.property_type:
        stmt = stmt.where(Buyer.property_type == filters.property_type)
    if filters.status:
        stmt = stmt.where(Buyer.status == filters.status)
    if filters.timeline:
        stmt = stmt.where(Buyer.timeline == filters.timeline)
    return stmt


def order_by_clause(filters: BuyerFilters):
    column = SORTABLE_FIELDS.get(filters.sort_by)
    if column is None:
        raise ValidationFailed(details={"sortBy": [f"Cannot sort by '{filters.sort_by}'"]})
    return column.asc() if filters.sort_order == "asc" else column.desc()


def ensure_can_modify(buyer: Buyer, user: User, action: str = "edit") -> None:
    if buyer.owner_id != user.id and not user.is_admin:
        raise Forbidden(details=f"You don't have permission to {action} this buyer record")


def same_instant(a: datetime, b: datetime) -> bool:
    """Сравнивает метки времени; naive значения считаются UTC."""
    def as_utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return as_utc(a) == as_utc(b)


# ────────────── LIST ──────────────
async def read_buyers_service(request: Request, filters: BuyerFilters, page: int = 1, limit: int = 10) -> dict:
    """
    Страница покупателей по фильтрам, с владельцами и данными пагинации.
    """
    db = request.state.db
    log = request.app.state.log

    query = filtered_buyers_query(filters)
    order = order_by_clause(filters)

    total_count = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()

    result = await db.execute(
        query.options(selectinload(Buyer.owner))
        .order_by(order, Buyer.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    buyers = result.scalars().all()

    total_pages = math.ceil(total_count / limit) if limit else 0
    await log.log_info("buyer", f"{len(buyers)} покупателей загружено", {"page": page, "total": total_count})
    return {
        "buyers": buyers,
        "pagination": {
            "page": page,
            "limit": limit,
            "total_count": total_count,
            "total_pages": total_pages,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        },
    }


async def read_all_buyers_service(request: Request, filters: BuyerFilters) -> List[Buyer]:
    """Все покупатели по фильтрам; используется для экспорта CSV."""
    db = request.state.db
    result = await db.execute(filtered_buyers_query(filters).order_by(order_by_clause(filters), Buyer.id))
    return result.scalars().all()


# ────────────── READ ONE ──────────────
async def read_buyer_service(id: str, request: Request) -> Buyer:
    db = request.state.db
    log = request.app.state.log

    result = await db.execute(select(Buyer).where(Buyer.id == id))
    buyer = result.scalar_one_or_none()
    if buyer is None:
        await log.log_warning("buyer", "Покупатель не найден", {"id": id})
        raise NotFound(details="Buyer not found")
    return buyer


async def read_buyer_detail_service(id: str, request: Request) -> Tuple[Buyer, List[BuyerHistory]]:
    """Покупатель с владельцем и последними записями истории, новые первыми."""
    db = request.state.db
    log = request.app.state.log

    result = await db.execute(select(Buyer).options(selectinload(Buyer.owner)).where(Buyer.id == id))
    buyer = result.scalar_one_or_none()
    if buyer is None:
        await log.log_warning("buyer", "Покупатель не найден", {"id": id})
        raise NotFound(details="Buyer not found")

    history = await db.execute(
        select(BuyerHistory)
        .options(selectinload(BuyerHistory.changed_by))
        .where(BuyerHistory.buyer_id == id)
        .order_by(BuyerHistory.changed_at.desc(), BuyerHistory.id.desc())
        .limit(settings.HISTORY_DISPLAY_LIMIT)
    )
    return buyer, history.scalars().all()


# ────────────── CREATE ──────────────
async def create_buyer_service(payload: Mapping[str, Any], user: User, request: Request) -> Buyer:
    db = request.state.db
    log = request.app.state.log

    request.app.state.rate_limiter.hit(user.id)
    form = validate_buyer_form(payload)

    values = form.field_values()
    values["status"] = form.status or Status.New

    buyer = Buyer(owner_id=user.id, **values)
    db.add(buyer)
    record_history(db, buyer, user.id, created_payload(plain_values(values)))
    await db.commit()
    await db.refresh(buyer)

    await log.log_info("buyer", "Покупатель создан", {"id": buyer.id, "owner_id": user.id})
    return buyer


# ────────────── UPDATE ──────────────
async def update_buyer_service(id: str, payload: Mapping[str, Any], user: User, request: Request) -> Buyer:
    """
    Оптимистичное обновление: клиент может прислать последний увиденный updatedAt;
    если запись с тех пор изменилась, обновление отклоняется с Conflict.
    Запись идёт с условием на прочитанный updated_at, поэтому из двух
    параллельных обновлений с одним токеном проходит только одно.
    """
    db = request.state.db
    log = request.app.state.log

    buyer = await read_buyer_service(id, request)
    ensure_can_modify(buyer, user, "edit")
    request.app.state.rate_limiter.hit(f"{user.id}:{client_address(request)}")
    form = validate_buyer_form(payload)

    if form.updated_at is not None and not same_instant(form.updated_at, buyer.updated_at):
        await log.log_warning("buyer", "Устаревшее обновление отклонено", {"id": id, "user_id": user.id})
        raise Conflict(details=STALE_RECORD_MESSAGE)

    before = snapshot(buyer)
    values = form.field_values()
    values["status"] = form.status or buyer.status or Status.New
    changes = compute_changes(before, plain_values(values))

    for key, value in values.items():
        setattr(buyer, key, value)
    buyer.updated_at = utc_now()

    if changes:
        record_history(db, buyer, user.id, updated_payload(changes))

    try:
        await db.commit()
    except StaleDataError as e:
        await db.rollback()
        await log.log_warning("buyer", "Устаревшее обновление отклонено", {"id": id, "user_id": user.id})
        raise Conflict(details=STALE_RECORD_MESSAGE) from e
    await db.refresh(buyer)

    await log.log_info("buyer", "Покупатель обновлён", {"id": id, "changed": list(changes)})
    return buyer


# ────────────── DELETE ──────────────
async def delete_buyer_service(id: str, user: User, request: Request) -> None:
    db = request.state.db
    log = request.app.state.log

    buyer = await read_buyer_service(id, request)
    ensure_can_modify(buyer, user, "delete")

    await db.delete(buyer)
    await db.commit()
    await log.log_info("buyer", "Покупатель удалён", {"id": id, "user_id": user.id})
