"""create chat_sessions and chat_messages tables

Revision ID: 207e161c145e
Revises: 4292d1e26dc7
Create Date: 2026-02-07

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "207e161c145e"
down_revision: str | Sequence[str] | None = "4292d1e26dc7"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create chat_sessions and chat_messages tables."""
    op.create_table(
        "chat_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("model_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("message_count", sa.Integer(), nullable=False),
        sa.Column("client_message_count", sa.Integer(), nullable=False),
        sa.Column("model_message_count", sa.Integer(), nullable=False),
        sa.Column("system_message_count", sa.Integer(), nullable=False),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_client_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_model_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_paid", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("blocked_by_id", sa.Integer(), nullable=True),
        sa.Column("block_reason", sa.String(255), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False),
        sa.Column("payment_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_id", sa.String(255), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["model_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["client_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["blocked_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_chat_sessions_model_client_status",
        "chat_sessions",
        ["model_id", "client_id", "status"],
        unique=False,
    )
    op.create_index(
        op.f("ix_chat_sessions_client_id"),
        "chat_sessions",
        ["client_id"],
        unique=False,
    )
    op.create_index(
        "ix_chat_sessions_status", "chat_sessions", ["status"], unique=False
    )
    op.create_index(
        "ix_chat_sessions_expires_at", "chat_sessions", ["expires_at"], unique=False
    )

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("sender_id", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["session_id"], ["chat_sessions.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_chat_messages_session_id"),
        "chat_messages",
        ["session_id"],
        unique=False,
    )


def downgrade() -> None:
    """Drop chat_messages and chat_sessions tables."""
    op.drop_index(op.f("ix_chat_messages_session_id"), table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_index("ix_chat_sessions_expires_at", table_name="chat_sessions")
    op.drop_index("ix_chat_sessions_status", table_name="chat_sessions")
    op.drop_index(op.f("ix_chat_sessions_client_id"), table_name="chat_sessions")
    op.drop_index("ix_chat_sessions_model_client_status", table_name="chat_sessions")
    op.drop_table("chat_sessions")
