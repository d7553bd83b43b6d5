# src/pm_store/infrastructure/db_models.py
"""SQLAlchemy ORM models for the durable store.

The models define the schema only; reads and writes use raw SQL in
``persistence.py``.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Float, Integer, SmallInteger, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import Mapped, mapped_column

from src.pm_common.database import Base


class WalletORM(Base):
    __tablename__ = "wallets"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    balance: Mapped[float] = mapped_column(Float, nullable=False)
    held_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    suspended: Mapped[bool] = mapped_column(nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class OrderORM(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    match_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    market_id: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    option_label: Mapped[str] = mapped_column(String(128), nullable=False)
    side: Mapped[str] = mapped_column(String(3), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    price: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    shares: Mapped[float] = mapped_column(Float, nullable=False)
    position_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class PositionORM(Base):
    __tablename__ = "positions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    match_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    market_id: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    option_label: Mapped[str] = mapped_column(String(128), nullable=False)
    side: Mapped[str] = mapped_column(String(3), nullable=False)
    shares: Mapped[float] = mapped_column(Float, nullable=False)
    shares_remaining: Mapped[float] = mapped_column(Float, nullable=False)
    stake: Mapped[float] = mapped_column(Float, nullable=False)
    stake_remaining: Mapped[float] = mapped_column(Float, nullable=False)
    avg_price: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="open")
    outcome: Mapped[str | None] = mapped_column(String(10), nullable=True)
    payout: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class SettlementORM(Base):
    __tablename__ = "match_settlements"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    match_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    winner_code: Mapped[str] = mapped_column(String(32), nullable=False)
    winner_full: Mapped[str] = mapped_column(String(128), nullable=False)
    settled_by: Mapped[str] = mapped_column(String(64), nullable=False)
    position_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    settled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class AuditORM(Base):
    __tablename__ = "audits"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class PricePointORM(Base):
    __tablename__ = "price_history"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    market_key: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    price: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create any missing store tables. Existing tables are left untouched."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
