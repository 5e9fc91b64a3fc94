from typing import Any, Dict


class AISettings:
    """Helper exposing typed accessors for the language model configuration.

    This class intentionally provides a minimal, explicit API (`get`,
    `as_dict`, and convenience properties) rather than the full mapping
    protocol.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        """Return the underlying mapping (shallow copy recommended by callers)."""
        return self.data

    @property
    def base_url(self) -> str:
        return str(self.data.get("base_url") or "http://localhost:8000/v1")

    @property
    def api_key(self) -> str:
        return str(self.data.get("api_key") or "not-needed")

    @property
    def model_name(self) -> str:
        return str(self.data.get("model_name") or "")

    @property
    def temperature(self) -> float:
        return float(self.data.get("temperature", 0.3))

    @property
    def max_tokens(self) -> int:
        return int(self.data.get("max_tokens", 500))

    @property
    def system_prompt(self) -> str:
        return str(self.data.get("system_prompt") or "")
