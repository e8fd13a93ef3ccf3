"""Chat session policy configuration."""

from datetime import timedelta

from pydantic import BaseModel


class ChatConfig(BaseModel, frozen=True):
    """Chat quota and retention settings."""

    free_client_messages: int
    session_ttl_days: int
    max_message_length: int

    @property
    def session_ttl(self) -> timedelta:
        """Lifetime of a chat session before it expires."""
        return timedelta(days=self.session_ttl_days)
