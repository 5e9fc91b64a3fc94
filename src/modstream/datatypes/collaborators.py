"""
Contracts for the external systems the moderation pipeline talks to.

The pipeline depends only on these protocols; concrete implementations live in
``modstream.ai.openai_oracle``, ``modstream.twitch.helix_client``,
``modstream.database.mod_actions`` and ``modstream.ui.console``. Every method is
a coroutine and signals failure by raising.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from modstream.datatypes.moderation_datatypes import ModAction
from modstream.datatypes.oracle_datatypes import OracleRequest, OracleResponse


@dataclass(slots=True)
class ChatSettings:
    """Partial chat settings update; ``None`` fields are left unchanged."""

    emote_mode: Optional[bool] = None
    follower_mode: Optional[bool] = None
    follower_mode_duration: Optional[int] = None
    slow_mode: Optional[bool] = None
    slow_mode_wait_time: Optional[int] = None
    subscriber_mode: Optional[bool] = None

    def to_payload(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@runtime_checkable
class Oracle(Protocol):
    """Language model that answers a decision request with at most one tool call."""

    @property
    def model_name(self) -> str: ...

    async def complete(self, request: OracleRequest) -> OracleResponse: ...


@runtime_checkable
class IdentityResolver(Protocol):
    """Resolves a login name to a stable user id; raises ``UserNotFound``."""

    async def resolve_user_id(self, login: str) -> str: ...


class EnforcementClient(Protocol):
    """Moderation API operations. Each returns the raw response body."""

    async def ban_user(self, user_id: str, duration: int, reason: str) -> bytes: ...

    async def unban_user(self, user_id: str) -> bytes: ...

    async def delete_message(self, message_id: str) -> bytes: ...

    async def clear_chat(self) -> bytes: ...

    async def update_chat_settings(self, settings: ChatSettings) -> bytes: ...

    async def add_moderator(self, user_id: str) -> bytes: ...

    async def remove_moderator(self, user_id: str) -> bytes: ...

    async def add_vip(self, user_id: str) -> bytes: ...

    async def remove_vip(self, user_id: str) -> bytes: ...

    async def create_poll(self, title: str, choices: List[str], duration: int) -> bytes: ...

    async def end_poll(self, poll_id: str, status: str) -> bytes: ...

    async def create_prediction(self, title: str, outcomes: List[str], duration: int) -> bytes: ...

    async def resolve_prediction(self, prediction_id: str, winning_outcome_id: str) -> bytes: ...

    async def cancel_prediction(self, prediction_id: str) -> bytes: ...

    async def send_announcement(self, message: str, color: str) -> bytes: ...

    async def send_shoutout(self, to_broadcaster_id: str) -> bytes: ...


@runtime_checkable
class ChatTransport(Protocol):
    """Outgoing chat; used only for warnings."""

    async def send(self, channel: str, text: str) -> None: ...


@runtime_checkable
class AuditStore(Protocol):
    """Write-only sink for audit records; returns the stored record id."""

    async def append(self, action: ModAction) -> str: ...
