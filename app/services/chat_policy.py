"""Access and quota rules for chat sessions.

Everything here is pure: decisions depend only on the session fields passed
in and the supplied clock value, so they can be evaluated before any write.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from app.core.clock import as_utc, utcnow
from app.core.config import settings
from app.models.chat_session import ChatSession

EXPIRED_REASON = "Chat expirado"
QUOTA_REASON = "Limite de mensagens atingido. Faça um pagamento para continuar."
ACCESS_DENIED_REASON = "Acesso negado a este chat"


class ChatStatus(StrEnum):
    ACTIVE = "active"
    BLOCKED = "blocked"
    EXPIRED = "expired"
    CLOSED = "closed"


class ParticipantRole(StrEnum):
    MODEL = "model"
    CLIENT = "client"


class Refusal(StrEnum):
    """Why a message was refused."""

    EXPIRED = "expired"
    NOT_ACTIVE = "not_active"
    QUOTA = "quota"
    ACCESS = "access"


@dataclass(frozen=True)
class SendDecision:
    """Outcome of ``can_send_message``."""

    allowed: bool
    reason: str | None = None
    refusal: Refusal | None = None


ALLOWED = SendDecision(allowed=True)


def resolve_role(session: ChatSession, user_id: int) -> ParticipantRole | None:
    """Return the participant role held by ``user_id``, if any."""
    if user_id == session.model_id:
        return ParticipantRole.MODEL
    if user_id == session.client_id:
        return ParticipantRole.CLIENT
    return None


def can_access(session: ChatSession, user_id: int) -> bool:
    """Only the two participants may read a session."""
    return resolve_role(session, user_id) is not None


def is_past_expiry(session: ChatSession, now: datetime | None = None) -> bool:
    """True once the session's lifetime has elapsed."""
    now = now or utcnow()
    return as_utc(now) > as_utc(session.expires_at)


def effective_status(session: ChatSession, now: datetime | None = None) -> ChatStatus:
    """Status as observed by readers.

    An ``active`` session past ``expires_at`` is reported as ``expired`` even
    before a write has flipped the stored column.
    """
    status = ChatStatus(session.status)
    if status is ChatStatus.ACTIVE and is_past_expiry(session, now):
        return ChatStatus.EXPIRED
    return status


def can_send_message(
    session: ChatSession, user_id: int, now: datetime | None = None
) -> SendDecision:
    """Decide whether ``user_id`` may append a text message right now.

    Expiry is checked before status so that a blocked session past its
    lifetime reports the expiry, and before quota so that paid sessions
    expire too.
    """
    if is_past_expiry(session, now):
        return SendDecision(False, EXPIRED_REASON, Refusal.EXPIRED)

    if session.status != ChatStatus.ACTIVE:
        return SendDecision(False, f"Chat {session.status}", Refusal.NOT_ACTIVE)

    role = resolve_role(session, user_id)
    if role is ParticipantRole.MODEL:
        return ALLOWED
    if role is ParticipantRole.CLIENT:
        quota = settings.chat.free_client_messages
        if not session.is_paid and session.client_message_count >= quota:
            return SendDecision(False, QUOTA_REASON, Refusal.QUOTA)
        return ALLOWED

    return SendDecision(False, ACCESS_DENIED_REASON, Refusal.ACCESS)


def remaining_free_messages(session: ChatSession) -> int | None:
    """Free messages left for the client, or None when the chat is paid."""
    if session.is_paid:
        return None
    quota = settings.chat.free_client_messages
    return max(quota - session.client_message_count, 0)
