"""
Relational schema.

SQLAlchemy Core tables on a single MetaData. Identifiers are UUID strings
so the same schema runs on PostgreSQL and SQLite. Invariants that the
database can enforce are declared here as constraints.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()


def _id_column() -> Column:
    return Column("id", String(36), primary_key=True)


def _timestamps() -> list[Column]:
    return [
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=True),
    ]


users = Table(
    "users",
    metadata,
    _id_column(),
    Column("email", String(255), nullable=False, unique=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("plan_type", String(20), nullable=False, default="free"),
    Column("ln_markets_api_key", Text, nullable=True),
    Column("ln_markets_api_secret", Text, nullable=True),
    Column("ln_markets_passphrase", Text, nullable=True),
    Column("ln_markets_testnet", Boolean, nullable=False, default=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("is_admin", Boolean, nullable=False, default=False),
    Column("session_expires_at", DateTime(timezone=True), nullable=True),
    Column("last_activity_at", DateTime(timezone=True), nullable=True),
    *_timestamps(),
)

coupons = Table(
    "coupons",
    metadata,
    _id_column(),
    Column("code", String(64), nullable=False, unique=True),
    Column("plan_type", String(20), nullable=False),
    Column("usage_limit", Integer, nullable=False, default=1),
    Column("used_count", Integer, nullable=False, default=0),
    Column("expires_at", DateTime(timezone=True), nullable=True),
    Column("description", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

coupon_redemptions = Table(
    "coupon_redemptions",
    metadata,
    _id_column(),
    Column("coupon_id", String(36), ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("used_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("coupon_id", "user_id", name="uq_coupon_redemption_user"),
)

payments = Table(
    "payments",
    metadata,
    _id_column(),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("plan_type", String(20), nullable=False),
    Column("amount_sats", BigInteger, nullable=False),
    Column("status", String(20), nullable=False),
    Column("provider", String(32), nullable=False),
    Column("payment_hash", String(128), nullable=False, unique=True),
    Column("payment_request", Text, nullable=False),
    Column("description", Text, nullable=True),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("paid_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_payments_user_id", "user_id"),
)

automations = Table(
    "automations",
    metadata,
    _id_column(),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("type", String(20), nullable=False),
    Column("config", JSON, nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    *_timestamps(),
    Index("ix_automations_user_type", "user_id", "type"),
)

# At most one active automation per user and type
Index(
    "uq_automations_active_user_type",
    automations.c.user_id,
    automations.c.type,
    unique=True,
    postgresql_where=automations.c.is_active.is_(True),
    sqlite_where=automations.c.is_active.is_(True),
)

trade_logs = Table(
    "trade_logs",
    metadata,
    _id_column(),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("automation_id", String(36), ForeignKey("automations.id", ondelete="SET NULL"), nullable=True),
    Column("trade_id", String(64), nullable=True),
    Column("action", String(32), nullable=False),
    Column("status", String(16), nullable=False),
    Column("message", Text, nullable=True),
    Column("pnl", BigInteger, nullable=True),
    Column("price", Numeric(18, 2), nullable=True),
    Column("details", JSON, nullable=False, default=dict),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_trade_logs_user_created", "user_id", "created_at"),
)

notifications = Table(
    "notifications",
    metadata,
    _id_column(),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("type", String(32), nullable=False),
    Column("title", String(200), nullable=False),
    Column("message", Text, nullable=False),
    Column("is_read", Boolean, nullable=False, default=False),
    Column("metadata", JSON, nullable=False, default=dict),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_notifications_user_read", "user_id", "is_read"),
)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite returns naive datetimes; every stored timestamp is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_uuid(value: Optional[str]) -> Optional[UUID]:
    return UUID(value) if value is not None else None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
