"""Request and response shapes exchanged with the decision oracle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True, slots=True)
class OracleToolCall:
    """One tool selection returned by the oracle; ``arguments`` is a raw JSON string."""

    name: str
    arguments: str = ""


@dataclass(slots=True)
class OracleRequest:
    """A single decision request.

    Attributes:
        system_prompt: Moderation instructions with rules and sensitivity injected.
        user_prompt: Recent-history transcript plus the candidate message.
        tools: Allowed tools in OpenAI function-tool format.
    """

    system_prompt: str
    user_prompt: str
    tools: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class OracleResponse:
    """The oracle's reply: free text, tool selections, or both."""

    content: str = ""
    tool_calls: List[OracleToolCall] = field(default_factory=list)
    model: Optional[str] = None

    @property
    def first_tool_call(self) -> Optional[OracleToolCall]:
        return self.tool_calls[0] if self.tool_calls else None
