"""
Data structures that flow through one pass of the moderation pipeline.

- `EvaluationContext`: everything the decision engine needs for one message.
- `Decision`: the parsed oracle output.
- `ExecutionResult`: the normalized outcome of an attempted action.
- `ModAction`: the audit row persisted for each no-action or attempted decision.

Only `ModAction` outlives the pass that created it.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from modstream.datatypes.chat_datatypes import ChatMessage, HistoryEntry
from modstream.tools.tool_catalog import ToolName
from modstream.tools.tool_params import NoActionParams, ToolParams


@dataclass(slots=True)
class EvaluationContext:
    """Per-message input to the decision engine. Never persisted.

    Attributes:
        message: The candidate chat message.
        recent_messages: Snapshot of the recent-history buffer (includes the candidate).
        channel_rules: Free-text channel rules injected into the instructions.
        channel_id: Broadcaster id of the monitored channel.
        channel_name: Login of the monitored channel.
        sensitivity_level: Sensitivity label passed through to the prompt.
    """

    message: ChatMessage
    recent_messages: List[HistoryEntry]
    channel_rules: List[str]
    channel_id: str
    channel_name: str
    sensitivity_level: str = "moderate"


@dataclass(slots=True)
class Decision:
    """The oracle's decision for one message.

    Attributes:
        should_act: False for ``no_action`` decisions.
        tool_name: Wire name of the chosen tool.
        parameters: Raw argument mapping as returned by the oracle (audited verbatim).
        params: Typed, schema-validated view of ``parameters``.
        reasoning: Free-text justification, taken from the ``reason`` argument.
        target_user_id: Filled in by the dispatcher once identity resolution succeeds.
        target_username: The username the action was aimed at, when it has one.
    """

    should_act: bool
    tool_name: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    params: Optional[ToolParams] = None
    reasoning: str = ""
    target_user_id: str = ""
    target_username: str = ""

    @classmethod
    def no_action(cls, reasoning: str) -> "Decision":
        """Build the decision used when the oracle declines to pick a tool."""
        return cls(
            should_act=False,
            tool_name=ToolName.NO_ACTION.value,
            parameters={"reason": reasoning},
            params=NoActionParams(reason=reasoning),
            reasoning=reasoning,
        )


@dataclass(slots=True)
class ExecutionResult:
    """Normalized outcome of an attempted action.

    Attributes:
        success: Whether the action was carried out (dry runs count as success).
        response: Raw enforcement API response body, if any.
        target_user_id: Resolved user id of the action target, if any.
        error_message: Failure detail, or the dry-run marker.
    """

    success: bool
    response: Optional[bytes] = None
    target_user_id: str = ""
    error_message: str = ""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(slots=True)
class ModAction:
    """Append-only audit record of a moderation decision.

    Created once per message that reaches evaluation and either receives a
    no-action decision or has its chosen action attempted.
    """

    trigger_message_id: str
    trigger_username: str
    trigger_message_content: str
    llm_model: str
    llm_reasoning: str
    tool_call_name: str
    tool_call_params: Dict[str, Any]
    target_username: str
    target_user_id: str
    api_response: Optional[bytes]
    success: bool
    error_message: str
    channel_id: str
    channel_name: str
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def params_json(self) -> str:
        return json.dumps(self.tool_call_params or {}, separators=(",", ":"), default=str)

    @property
    def api_response_text(self) -> Optional[str]:
        if self.api_response is None:
            return None
        return self.api_response.decode("utf-8", errors="replace")

    @classmethod
    def from_decision(
        cls,
        message: ChatMessage,
        decision: Decision,
        *,
        model_name: str,
        channel_id: str,
        channel_name: str,
        result: Optional[ExecutionResult] = None,
    ) -> "ModAction":
        """Build the audit row for a decision and (optionally) its execution result.

        Without a result the row records a no-action decision, which always
        counts as successful.
        """
        if result is None:
            result = ExecutionResult(success=True)

        target_username = decision.target_username
        if not target_username:
            username = decision.parameters.get("username")
            target_username = username if isinstance(username, str) and username else message.author

        return cls(
            trigger_message_id=message.message_id,
            trigger_username=message.author,
            trigger_message_content=message.text,
            llm_model=model_name,
            llm_reasoning=decision.reasoning,
            tool_call_name=decision.tool_name,
            tool_call_params=dict(decision.parameters),
            target_username=target_username,
            target_user_id=result.target_user_id or decision.target_user_id,
            api_response=result.response,
            success=result.success,
            error_message=result.error_message,
            channel_id=channel_id,
            channel_name=channel_name,
        )
