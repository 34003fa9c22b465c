# app/models/buyer.py

import uuid

from sqlalchemy import Column, Integer, BigInteger, String, Text, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from app.models.enums import City, PropertyType, BHK, Purpose, Timeline, Source, Status
from app.models.user import User
from app.utils.database import Base, utc_now


class Buyer(Base):
    __tablename__ = "buyers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    full_name     = Column(String(80), nullable=False)
    email         = Column(String, nullable=True, index=True)
    phone         = Column(String(15), nullable=False, index=True)
    city          = Column(Enum(City, name="city"), nullable=False)
    property_type = Column(Enum(PropertyType, name="property_type"), nullable=False)
    bhk           = Column(Enum(BHK, name="bhk"), nullable=True)
    purpose       = Column(Enum(Purpose, name="purpose"), nullable=False)
    budget_min    = Column(BigInteger, nullable=True)
    budget_max    = Column(BigInteger, nullable=True)
    timeline      = Column(Enum(Timeline, name="timeline"), nullable=False)
    source        = Column(Enum(Source, name="source"), nullable=False)
    status        = Column(Enum(Status, name="buyer_status"), nullable=False, default=Status.New)
    notes         = Column(Text, nullable=True)
    tags          = Column(String, nullable=False, default="")   # метки через запятую

    owner_id   = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)  # токен оптимистичной блокировки

    # UPDATE и DELETE идут с "WHERE updated_at = <загруженное значение>"; новое значение ставит сервис
    __mapper_args__ = {"version_id_col": updated_at, "version_id_generator": False}

    owner = relationship(User)
    history = relationship(
        "BuyerHistory",
        back_populates="buyer",
        cascade="all, delete-orphan",
        order_by="BuyerHistory.changed_at.desc()",
    )


class BuyerHistory(Base):
    __tablename__ = "buyer_history"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(String(36), ForeignKey("buyers.id", ondelete="CASCADE"), nullable=False, index=True)
    changed_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    changed_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    diff = Column(Text, nullable=False)   # JSON, хранится текстом

    buyer = relationship(Buyer, back_populates="history")
    changed_by = relationship(User)
