# app/services/history.py

import enum
import json
from typing import Any, Dict, Mapping

from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.buyer import Buyer, BuyerHistory

# атрибуты покупателя, участвующие в diff изменений
TRACKED_FIELDS = (
    "full_name",
    "email",
    "phone",
    "city",
    "property_type",
    "bhk",
    "purpose",
    "budget_min",
    "budget_max",
    "timeline",
    "source",
    "status",
    "notes",
    "tags",
)


def plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    return value


def plain_values(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Значения атрибутов snake_case -> ключи camelCase с простыми JSON-значениями."""
    return {to_camel(key): plain(value) for key, value in values.items() if key in TRACKED_FIELDS}


def snapshot(buyer: Buyer) -> Dict[str, Any]:
    return plain_values({field: getattr(buyer, field) for field in TRACKED_FIELDS})


def compute_changes(before: Mapping[str, Any], after: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Поля из обоих словарей с разными значениями, в виде {field: {old, new}}."""
    changes = {}
    for key, new in after.items():
        if key in before and before[key] != new:
            changes[key] = {"old": before[key], "new": new}
    return changes


# ────────────── Содержимое записей ──────────────
def created_payload(fields: Mapping[str, Any]) -> Dict[str, Any]:
    return {"action": "created", "fields": dict(fields)}


def imported_payload(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {"action": "created", "source": "bulk_import", "fields": dict(row)}


def updated_payload(changes: Mapping[str, Any]) -> Dict[str, Any]:
    return {"action": "updated", "changes": dict(changes)}


def record_history(db: AsyncSession, buyer: Buyer, user_id: str, payload: Mapping[str, Any]) -> BuyerHistory:
    """
    Добавляет запись истории в сессию; она пишется коммитом вызывающего кода
    вместе с изменением покупателя, которое описывает.
    """
    entry = BuyerHistory(
        buyer=buyer,
        changed_by_id=user_id,
        diff=json.dumps(payload, ensure_ascii=False, default=str),
    )
    db.add(entry)
    return entry
