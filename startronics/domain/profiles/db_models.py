from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from startronics.domain.lifecycle.statuses import Role
from startronics.infra.db import UUID_TYPE, Base, utcnow


class UserProfile(Base):
    """Profile row provisioned by the auth provider; id equals the token subject."""

    __tablename__ = "user_profiles"

    id: Mapped[uuid.UUID] = mapped_column(UUID_TYPE, primary_key=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=Role.customer.value, index=True)
    display_name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
