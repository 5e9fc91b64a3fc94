from typing import Any, Dict


class TwitchSettings:
    """Typed accessors for the Twitch connection section of the app config."""

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @property
    def client_id(self) -> str:
        return str(self.data.get("client_id") or "")

    @property
    def access_token(self) -> str:
        return str(self.data.get("access_token") or "")

    @property
    def broadcaster_id(self) -> str:
        return str(self.data.get("broadcaster_id") or "")

    @property
    def moderator_id(self) -> str:
        # Defaults to the broadcaster when moderating with the broadcaster token
        return str(self.data.get("moderator_id") or self.broadcaster_id)

    @property
    def channel_name(self) -> str:
        return str(self.data.get("channel_name") or "")

    @property
    def chat_transport(self) -> str:
        """``helix`` posts warnings to Twitch chat; ``console`` only prints them locally."""
        return str(self.data.get("chat_transport") or "helix").lower()
