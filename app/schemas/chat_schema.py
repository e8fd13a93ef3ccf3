"""Chat session request and response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.services.chat_policy import ChatStatus


class StartChatRequest(BaseModel):
    """Request to open (or resume) a chat with a model."""

    model_config = ConfigDict(protected_namespaces=())

    model_id: int = Field(..., ge=1, description="User id of the model")


class SendMessageRequest(BaseModel):
    """Request to append a text message.

    Blank or oversized content is refused by the chat service.
    """

    content: str


class ToggleBlockRequest(BaseModel):
    """Block (reason required) or unblock (reason ignored) a chat."""

    reason: str | None = Field(default=None, max_length=255)


class RecordPaymentRequest(BaseModel):
    """Payment confirmation relayed by the payment integration."""

    payment_id: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    status: Literal["pending", "completed", "failed"]


class ParticipantResponse(BaseModel):
    """Display data for one side of a chat."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    username: str
    profile_photo: str | None = None


class MessageResponse(BaseModel):
    """Single message within a chat."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    session_id: int
    sender_id: int
    content: str
    type: Literal["text", "system"]
    created_at: datetime
    read_at: datetime | None = None


class ChatSummary(BaseModel):
    """Chat entry in the list response (messages excluded)."""

    model_config = ConfigDict(frozen=True)

    id: int
    model: ParticipantResponse
    client: ParticipantResponse
    status: ChatStatus
    message_count: int
    client_message_count: int
    model_message_count: int
    last_message_at: datetime
    is_paid: bool
    remaining_free_messages: int | None = None
    expires_at: datetime
    blocked_by_id: int | None = None
    block_reason: str | None = None
    payment_status: str
    created_at: datetime


class ChatDetail(ChatSummary):
    """Chat with its full message log."""

    system_message_count: int
    last_client_message_at: datetime | None = None
    last_model_message_at: datetime | None = None
    payment_amount: Decimal
    payment_id: str | None = None
    messages: list[MessageResponse]


class ChatListResponse(BaseModel):
    """Chats of the current user."""

    model_config = ConfigDict(frozen=True)

    count: int
    chats: list[ChatSummary]
