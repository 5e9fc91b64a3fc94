"""
Chat message types shared by the intake queue, history buffer and audit trail.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ChatMessage:
    """A raw chat message as delivered by the chat transport.

    Attributes:
        message_id: Transport-assigned message id (used by delete_message).
        channel: Channel (login) the message was posted in.
        user_login: Lowercase login of the author, used for identity resolution.
        display_name: Author name as shown in chat, used for skip-list checks and prompts.
        text: Message body.
        received_at: UTC time the message entered the pipeline.
    """

    message_id: str
    channel: str
    user_login: str
    display_name: str
    text: str
    received_at: datetime = field(default_factory=_utcnow)

    @property
    def author(self) -> str:
        return self.display_name or self.user_login


@dataclass(slots=True)
class HistoryEntry:
    """One line of recent chat history shown to the model."""

    username: str
    text: str
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_message(cls, message: ChatMessage) -> "HistoryEntry":
        return cls(username=message.author, text=message.text, timestamp=message.received_at)
