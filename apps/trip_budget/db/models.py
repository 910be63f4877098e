from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from apps.trip_budget.db import Base

PKBigInt = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class MessageCounter(Base):
    __tablename__ = "user_message_counters"
    __table_args__ = (
        CheckConstraint("message_count >= 0", name="ck_user_message_counters_non_negative"),
    )

    id: Mapped[int] = mapped_column(PKBigInt, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "messageCount": self.message_count,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class Referral(Base):
    __tablename__ = "user_referrals"

    id: Mapped[int] = mapped_column(PKBigInt, primary_key=True, autoincrement=True)
    referrer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    referee_email: Mapped[str | None] = mapped_column(String(320))
    referral_code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    is_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "referrerId": self.referrer_id,
            "refereeEmail": self.referee_email,
            "referralCode": self.referral_code,
            "isUsed": self.is_used,
            "usedAt": self.used_at.isoformat() if self.used_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
