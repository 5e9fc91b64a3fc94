"""
Pytest configuration and fixtures for Modstream tests.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from modstream.datatypes.chat_datatypes import ChatMessage  # noqa: E402
from modstream.datatypes.oracle_datatypes import OracleResponse, OracleToolCall  # noqa: E402


class FakeOracle:
    """Oracle returning queued responses (or raising queued exceptions) in order."""

    def __init__(self, *responses, model_name: str = "test-model") -> None:
        self._responses = list(responses)
        self._model_name = model_name
        self.requests = []

    @property
    def model_name(self) -> str:
        return self._model_name

    def queue(self, *responses) -> None:
        self._responses.extend(responses)

    async def complete(self, request):
        self.requests.append(request)
        response = self._responses.pop(0) if self._responses else OracleResponse()
        if isinstance(response, BaseException):
            raise response
        return response


class FakeAuditStore:
    """Audit store keeping records in memory."""

    def __init__(self) -> None:
        self.records = []

    async def append(self, action) -> str:
        self.records.append(action)
        return action.id


def tool_response(name: str, arguments: str = "") -> OracleResponse:
    """Build an oracle response carrying a single tool call."""
    return OracleResponse(tool_calls=[OracleToolCall(name=name, arguments=arguments)])


@pytest.fixture
def make_message():
    """Factory for chat messages with sensible defaults."""
    counter = {"n": 0}

    def _make(text: str, user: str = "chatter42", message_id: str | None = None, channel: str = "soypetetech"):
        counter["n"] += 1
        return ChatMessage(
            message_id=message_id or f"msg-{counter['n']}",
            channel=channel,
            user_login=user.lower(),
            display_name=user,
            text=text,
        )

    return _make


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def audit_store():
    return FakeAuditStore()


@pytest.fixture
def enforcement():
    """Enforcement client double; every operation returns a small JSON body."""
    client = AsyncMock()
    for name in (
        "ban_user",
        "unban_user",
        "delete_message",
        "clear_chat",
        "update_chat_settings",
        "add_moderator",
        "remove_moderator",
        "add_vip",
        "remove_vip",
        "create_poll",
        "end_poll",
        "create_prediction",
        "resolve_prediction",
        "cancel_prediction",
        "send_announcement",
        "send_shoutout",
    ):
        getattr(client, name).return_value = b'{"data":[]}'
    return client


@pytest.fixture
def identity():
    resolver = AsyncMock()
    resolver.resolve_user_id.return_value = "12345"
    return resolver


@pytest.fixture
def transport():
    return AsyncMock()
