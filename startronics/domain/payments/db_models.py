from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from startronics.domain.lifecycle import statuses
from startronics.infra.db import UUID_TYPE, Base, utcnow
from startronics.shared.money import cents_to_decimal


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(UUID_TYPE, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID_TYPE, nullable=False, index=True)
    quote_id: Mapped[uuid.UUID] = mapped_column(
        UUID_TYPE, ForeignKey("quotes.id", ondelete="RESTRICT"), nullable=False, unique=True
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    provider: Mapped[str] = mapped_column(
        String(32), nullable=False, default=statuses.PAYMENT_PROVIDER_SIMULATED
    )
    provider_ref: Mapped[str | None] = mapped_column(String(255))
    method: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=statuses.PAYMENT_SUCCEEDED)
    captured_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def amount(self) -> Decimal:
        return cents_to_decimal(self.amount_cents)


class SavedCard(Base):
    __tablename__ = "saved_cards"

    id: Mapped[uuid.UUID] = mapped_column(UUID_TYPE, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID_TYPE, nullable=False, index=True)
    card_last4: Mapped[str] = mapped_column(String(4), nullable=False)
    card_brand: Mapped[str] = mapped_column(String(32), nullable=False)
    card_holder_name: Mapped[str] = mapped_column(String(255), nullable=False)
    expiry_month: Mapped[str] = mapped_column(String(2), nullable=False)
    expiry_year: Mapped[str] = mapped_column(String(2), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index(
            "uq_saved_cards_one_default_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )
