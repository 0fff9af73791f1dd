# app/db/models/ussd_session.py

from __future__ import annotations

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base


class UssdSessionRecord(Base):
    __tablename__ = "ussd_sessions"
    __table_args__ = (
        sa.Index("ix_ussd_sessions_expires_at", "expires_at"),
        sa.Index("ix_ussd_sessions_phone_number", "phone_number"),
    )

    # Gateway-assigned identity
    session_id: Mapped[str] = mapped_column(sa.String(128), primary_key=True)
    phone_number: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    service_code: Mapped[str | None] = mapped_column(sa.String(32))
    network_code: Mapped[str | None] = mapped_column(sa.String(16))

    # Authentication, set once login or registration succeeds
    user_id: Mapped[str | None] = mapped_column(sa.String(64))
    user_name: Mapped[str | None] = mapped_column(sa.String(120))

    # Menu state
    current_menu: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="main_menu")
    step: Mapped[str | None] = mapped_column(sa.String(32))
    data: Mapped[dict] = mapped_column(sa.JSON, nullable=False, default=dict)
    history: Mapped[list] = mapped_column(sa.JSON, nullable=False, default=list)

    # Replay detection and optimistic concurrency
    turn: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="0")
    last_text: Mapped[str | None] = mapped_column(sa.Text)
    last_response: Mapped[str | None] = mapped_column(sa.Text)
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="0")

    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.true())
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    last_activity: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
