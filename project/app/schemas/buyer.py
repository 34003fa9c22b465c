# app/schemas/buyer.py

from datetime import datetime
import json
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.enums import City, PropertyType, BHK, Purpose, Timeline, Source, Status


def normalize_tags(value: Optional[str]) -> str:
    """
    "a, b,,a " -> "a,b": обрезает метки, убирает пустые и повторы.
    Повторное применение даёт ту же строку.
    """
    if not value:
        return ""
    tags: List[str] = []
    for part in value.split(","):
        tag = part.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return ",".join(tags)


class CamelModel(BaseModel):
    """В API ключи camelCase, в коде python имена snake_case."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ────────────── Форма (тело create / update) ──────────────
class BuyerForm(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    full_name: str = Field(..., min_length=2, max_length=80)
    email: Optional[EmailStr] = None
    phone: str = Field(..., min_length=10, max_length=15)
    city: City
    property_type: PropertyType
    bhk: Optional[BHK] = None
    purpose: Purpose
    budget_min: Optional[int] = Field(None, gt=0)
    budget_max: Optional[int] = Field(None, gt=0)
    timeline: Timeline
    source: Source
    notes: Optional[str] = Field(None, max_length=1000)
    tags: str = ""
    status: Optional[Status] = None           # определяется в сервисе
    updated_at: Optional[datetime] = None     # токен версии от клиента

    @field_validator("email", "bhk", "notes", "budget_min", "budget_max", "status", mode="before")
    @classmethod
    def blank_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def tags_to_canonical(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return normalize_tags(value)
        return value

    def field_values(self) -> dict:
        """Значения для сохранения с ключами по атрибутам модели."""
        return self.model_dump(exclude={"updated_at"})


# ────────────── Ответы ──────────────
class UserSummary(CamelModel):
    id: str
    name: Optional[str] = None
    email: str


class BuyerOut(CamelModel):
    id: str
    full_name: str
    email: Optional[str] = None
    phone: str
    city: City
    property_type: PropertyType
    bhk: Optional[BHK] = None
    purpose: Purpose
    budget_min: Optional[int] = None
    budget_max: Optional[int] = None
    timeline: Timeline
    source: Source
    status: Status
    notes: Optional[str] = None
    tags: str = ""
    owner_id: str
    created_at: datetime
    updated_at: datetime


class BuyerListItem(BuyerOut):
    owner: Optional[UserSummary] = None


class HistoryOut(CamelModel):
    id: int
    changed_at: datetime
    changed_by: Optional[UserSummary] = None
    diff: dict

    @field_validator("diff", mode="before")
    @classmethod
    def parse_diff(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value)
        return value


class BuyerDetail(BuyerOut):
    owner: UserSummary
    history: List[HistoryOut] = []


class Pagination(CamelModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class BuyerListResponse(CamelModel):
    buyers: List[BuyerListItem]
    pagination: Pagination


class DeleteResult(BaseModel):
    success: bool = True


class ImportResult(BaseModel):
    success: bool
    message: str
    count: int
