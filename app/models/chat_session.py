"""Chat session database model."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.clock import utcnow
from app.core.database import Base
from app.models.chat_message import ChatMessage
from app.models.user import User


class ChatSession(Base):
    """Conversation between exactly one model and one client.

    The per-role counters mirror the message log and are incremented in the
    same unit of work that inserts each message. ``version`` guards every
    update with optimistic concurrency.
    """

    __tablename__ = "chat_sessions"
    __table_args__ = (
        Index("ix_chat_sessions_model_client_status", "model_id", "client_id", "status"),
        Index("ix_chat_sessions_status", "status"),
        Index("ix_chat_sessions_expires_at", "expires_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    model_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    client_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    client_message_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    model_message_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    system_message_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    last_message_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_client_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_model_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    blocked_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    block_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="none"
    )
    payment_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    payment_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    model: Mapped[User] = relationship(foreign_keys=[model_id], lazy="selectin")
    client: Mapped[User] = relationship(foreign_keys=[client_id], lazy="selectin")
    messages: Mapped[list[ChatMessage]] = relationship(
        order_by=ChatMessage.id,
        lazy="raise",
        passive_deletes=True,
    )

    __mapper_args__ = {"version_id_col": version}
