"""
Twitch Helix API client.

Implements the enforcement and identity-resolution contracts used by the
action dispatcher, and posts warnings to chat through ``send``. Requests are made with ``requests`` in a worker thread so
the event loop stays responsive while Twitch answers.

Every enforcement call returns the raw response body. Non-2xx answers raise
``EnforcementCallFailed`` carrying the body, which ends up verbatim in the
audit trail.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import requests

from modstream.datatypes.collaborators import ChatSettings
from modstream.moderation.errors import EnforcementCallFailed, IdentityResolutionFailed, TransportError, UserNotFound
from modstream.util.logger import get_logger

logger = get_logger("helix_client")

HELIX_BASE_URL = "https://api.twitch.tv/helix"
REQUEST_TIMEOUT_SECONDS = 30


class HelixClient:
    """Async wrapper around the Helix moderation, chat and user endpoints.

    Args:
        client_id: Twitch application client id.
        access_token: User access token with the moderation scopes.
        broadcaster_id: Id of the moderated channel.
        moderator_id: Id of the account acting as moderator (often the broadcaster).
    """

    def __init__(
        self,
        client_id: str,
        access_token: str,
        broadcaster_id: str,
        moderator_id: str,
        base_url: str = HELIX_BASE_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.client_id = client_id
        self.broadcaster_id = broadcaster_id
        self.moderator_id = moderator_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._access_token = access_token

    def update_token(self, access_token: str) -> None:
        """Swap in a refreshed access token for subsequent requests."""
        self._access_token = access_token
        logger.info("[HELIX] Access token updated")

    def _headers(self, has_body: bool) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Client-Id": self.client_id,
        }
        if has_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _moderation_query(self, **extra: str) -> Dict[str, str]:
        return {"broadcaster_id": self.broadcaster_id, "moderator_id": self.moderator_id, **extra}

    def _send(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]],
        body: Optional[Dict[str, Any]],
    ) -> bytes:
        """Perform one blocking request. Runs in a worker thread."""
        url = self.base_url + endpoint
        data = json.dumps(body) if body is not None else None
        logger.debug("[HELIX] %s %s", method, endpoint)

        try:
            response = requests.request(
                method,
                url,
                params=params,
                data=data,
                headers=self._headers(body is not None),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise EnforcementCallFailed(f"request failed: {exc}") from exc

        content = response.content or b""
        if not 200 <= response.status_code < 300:
            text = content.decode("utf-8", errors="replace")
            logger.error("[HELIX] API error on %s %s: status %d, body: %s", method, endpoint, response.status_code, text)
            raise EnforcementCallFailed(
                f"API error: status {response.status_code}, body: {text}",
                response=content,
            )
        return content

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> bytes:
        return await asyncio.to_thread(self._send, method, endpoint, params, body)

    # ---------- identity ----------

    async def get_users(self, logins: List[str]) -> bytes:
        return await self._request("GET", "/users", params={"login": list(logins)})

    async def resolve_user_id(self, login: str) -> str:
        """Return the user id for ``login``.

        Raises:
            UserNotFound: Twitch has no user with that login.
            IdentityResolutionFailed: The lookup request failed.
        """
        try:
            body = await self.get_users([login])
        except EnforcementCallFailed as exc:
            raise IdentityResolutionFailed(f"failed to look up user {login}: {exc}", response=exc.response) from exc

        try:
            payload = json.loads(body or b"{}")
        except json.JSONDecodeError as exc:
            raise IdentityResolutionFailed(f"failed to parse user response: {exc}", response=body) from exc

        try:
            users = payload.get("data") or []
            if not users:
                raise UserNotFound(login)
            return str(users[0]["id"])
        except (KeyError, AttributeError, TypeError, IndexError) as exc:
            raise IdentityResolutionFailed(f"unexpected user response for {login}: {exc!r}", response=body) from exc

    # ---------- moderation ----------

    async def ban_user(self, user_id: str, duration: int, reason: str) -> bytes:
        """Ban ``user_id``; a positive ``duration`` (seconds) makes it a timeout."""
        data: Dict[str, Any] = {"user_id": user_id, "reason": reason}
        if duration > 0:
            data["duration"] = duration
        return await self._request("POST", "/moderation/bans", self._moderation_query(), {"data": data})

    async def unban_user(self, user_id: str) -> bytes:
        return await self._request("DELETE", "/moderation/bans", self._moderation_query(user_id=user_id))

    async def delete_message(self, message_id: str) -> bytes:
        return await self._request("DELETE", "/moderation/chat", self._moderation_query(message_id=message_id))

    async def clear_chat(self) -> bytes:
        return await self._request("DELETE", "/moderation/chat", self._moderation_query())

    async def update_chat_settings(self, settings: ChatSettings) -> bytes:
        return await self._request("PATCH", "/chat/settings", self._moderation_query(), settings.to_payload())

    # ---------- roles (broadcaster token) ----------

    async def add_moderator(self, user_id: str) -> bytes:
        params = {"broadcaster_id": self.broadcaster_id, "user_id": user_id}
        return await self._request("POST", "/moderation/moderators", params)

    async def remove_moderator(self, user_id: str) -> bytes:
        params = {"broadcaster_id": self.broadcaster_id, "user_id": user_id}
        return await self._request("DELETE", "/moderation/moderators", params)

    async def add_vip(self, user_id: str) -> bytes:
        params = {"broadcaster_id": self.broadcaster_id, "user_id": user_id}
        return await self._request("POST", "/channels/vips", params)

    async def remove_vip(self, user_id: str) -> bytes:
        params = {"broadcaster_id": self.broadcaster_id, "user_id": user_id}
        return await self._request("DELETE", "/channels/vips", params)

    # ---------- polls and predictions (broadcaster token) ----------

    async def create_poll(self, title: str, choices: List[str], duration: int) -> bytes:
        body = {
            "broadcaster_id": self.broadcaster_id,
            "title": title,
            "choices": [{"title": choice} for choice in choices],
            "duration": duration,
        }
        return await self._request("POST", "/polls", body=body)

    async def end_poll(self, poll_id: str, status: str) -> bytes:
        params = {"broadcaster_id": self.broadcaster_id, "id": poll_id, "status": status.upper()}
        return await self._request("PATCH", "/polls", params)

    async def create_prediction(self, title: str, outcomes: List[str], duration: int) -> bytes:
        body = {
            "broadcaster_id": self.broadcaster_id,
            "title": title,
            "outcomes": [{"title": outcome} for outcome in outcomes],
            "prediction_window": duration,
        }
        return await self._request("POST", "/predictions", body=body)

    async def resolve_prediction(self, prediction_id: str, winning_outcome_id: str) -> bytes:
        params = {
            "broadcaster_id": self.broadcaster_id,
            "id": prediction_id,
            "status": "RESOLVED",
            "winning_outcome_id": winning_outcome_id,
        }
        return await self._request("PATCH", "/predictions", params)

    async def cancel_prediction(self, prediction_id: str) -> bytes:
        params = {"broadcaster_id": self.broadcaster_id, "id": prediction_id, "status": "CANCELED"}
        return await self._request("PATCH", "/predictions", params)

    # ---------- chat ----------

    async def send_announcement(self, message: str, color: str) -> bytes:
        body: Dict[str, Any] = {"message": message}
        if color:
            body["color"] = color
        return await self._request("POST", "/chat/announcements", self._moderation_query(), body)

    async def send_shoutout(self, to_broadcaster_id: str) -> bytes:
        params = {
            "from_broadcaster_id": self.broadcaster_id,
            "to_broadcaster_id": to_broadcaster_id,
            "moderator_id": self.moderator_id,
        }
        return await self._request("POST", "/chat/shoutouts", params)

    async def send(self, channel: str, text: str) -> None:
        """Post ``text`` to the broadcaster's chat as the moderator account.

        ``channel`` is only used for logging; the client is bound to one broadcaster.

        Raises:
            TransportError: The request failed or Twitch dropped the message.
        """
        body = {"broadcaster_id": self.broadcaster_id, "sender_id": self.moderator_id, "message": text}
        try:
            content = await self._request("POST", "/chat/messages", body=body)
        except EnforcementCallFailed as exc:
            raise TransportError(f"failed to send chat message: {exc}", response=exc.response) from exc

        try:
            result = json.loads(content)["data"][0]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise TransportError(f"unexpected chat message response: {exc!r}", response=content) from exc

        if not result.get("is_sent", False):
            drop_reason = result.get("drop_reason") or {}
            reason = drop_reason.get("message") if isinstance(drop_reason, dict) else drop_reason
            raise TransportError(f"chat message dropped: {reason or 'no reason given'}", response=content)
        logger.info("[HELIX] #%s <- %s", channel, text)
