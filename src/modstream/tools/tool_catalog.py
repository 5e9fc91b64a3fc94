"""
Catalog of moderation tools offered to the language model.

Each tool is a named function the model may call, with a description and a
JSON schema for its arguments. The tool names are a stable wire contract
with the model and with the audit trail, so they never change once released.

Two views of the catalog exist:
- ``ALL_TOOLS``: every declared tool.
- ``CORE_TOOLS``: the subset a moderator token can execute. Moderator/VIP
  management, polls, predictions, announcements and shoutouts need
  broadcaster-level privileges and are left out.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Sequence

from modstream.moderation.errors import MalformedToolCall, UnknownTool


class ToolName(str, Enum):
    """Enumeration of every moderation tool the model can call."""

    NO_ACTION = "no_action"
    WARN_USER = "warn_user"
    TIMEOUT_USER = "timeout_user"
    BAN_USER = "ban_user"
    UNBAN_USER = "unban_user"
    ADD_MODERATOR = "add_moderator"
    REMOVE_MODERATOR = "remove_moderator"
    ADD_VIP = "add_vip"
    REMOVE_VIP = "remove_vip"
    DELETE_MESSAGE = "delete_message"
    CLEAR_CHAT = "clear_chat"
    EMOTE_ONLY_MODE = "emote_only_mode"
    SUBSCRIBER_ONLY_MODE = "subscriber_only_mode"
    FOLLOWER_ONLY_MODE = "follower_only_mode"
    SLOW_MODE = "slow_mode"
    CREATE_POLL = "create_poll"
    END_POLL = "end_poll"
    CREATE_PREDICTION = "create_prediction"
    RESOLVE_PREDICTION = "resolve_prediction"
    CANCEL_PREDICTION = "cancel_prediction"
    SEND_ANNOUNCEMENT = "send_announcement"
    SHOUTOUT = "shoutout"

    def __str__(self) -> str:
        return self.value


TIMEOUT_MAX_SECONDS = 1_209_600
FOLLOWER_MODE_MAX_MINUTES = 129_600
SLOW_MODE_MIN_SECONDS = 3
SLOW_MODE_MAX_SECONDS = 120
ANNOUNCEMENT_COLORS = ("blue", "green", "orange", "purple", "primary")
POLL_END_STATUSES = ("terminated", "archived")


@dataclass(frozen=True, slots=True)
class Tool:
    """A single catalog entry.

    Attributes:
        name: Wire name of the tool.
        description: Human-readable description shown to the model.
        parameters: JSON schema of the tool's argument object.
    """

    name: ToolName
    description: str
    parameters: Dict[str, Any]

    @property
    def required(self) -> List[str]:
        return list(self.parameters.get("required", []))

    def to_openai_tool(self) -> Dict[str, Any]:
        """Render the entry in the OpenAI function-tool format."""
        return {
            "type": "function",
            "function": {
                "name": self.name.value,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A raw tool call returned by the model, with arguments decoded to a mapping."""

    name: str
    args: Dict[str, Any]


# --------------------------
# Schema helpers
# --------------------------
def _string(description: str, **extra: Any) -> Dict[str, Any]:
    return {"type": "string", "description": description, **extra}


def _integer(description: str, minimum: int, maximum: int) -> Dict[str, Any]:
    return {"type": "integer", "description": description, "minimum": minimum, "maximum": maximum}


def _boolean(description: str) -> Dict[str, Any]:
    return {"type": "boolean", "description": description}


def _string_list(description: str, min_items: int, max_items: int, max_length: int) -> Dict[str, Any]:
    return {
        "type": "array",
        "description": description,
        "items": {"type": "string", "maxLength": max_length},
        "minItems": min_items,
        "maxItems": max_items,
    }


def _object(properties: Dict[str, Any], required: Sequence[str] = ()) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = list(required)
    return schema


def _username_tool(name: ToolName, description: str, subject: str) -> Tool:
    return Tool(
        name=name,
        description=description,
        parameters=_object({"username": _string(f"The username of the {subject}")}, ["username"]),
    )


def _mode_tool(name: ToolName, description: str, mode: str, **extra: Any) -> Tool:
    properties = {"enabled": _boolean(f"Whether to enable (true) or disable (false) {mode}")}
    properties.update(extra)
    return Tool(name=name, description=description, parameters=_object(properties, ["enabled"]))


# --------------------------
# Catalog
# --------------------------
NO_ACTION_TOOL = Tool(
    name=ToolName.NO_ACTION,
    description="Take no moderation action. Use this when the message does not require any moderation.",
    parameters=_object({"reason": _string("Brief explanation of why no action is needed")}, ["reason"]),
)

WARN_USER_TOOL = Tool(
    name=ToolName.WARN_USER,
    description="Send a warning message to a user in chat. Use for minor first-time violations.",
    parameters=_object(
        {
            "username": _string("The username of the user to warn"),
            "message": _string("The warning message to send"),
        },
        ["username", "message"],
    ),
)

TIMEOUT_USER_TOOL = Tool(
    name=ToolName.TIMEOUT_USER,
    description="Temporarily ban a user from chat. Use for moderate violations or repeated minor violations.",
    parameters=_object(
        {
            "username": _string("The username of the user to timeout"),
            "duration_seconds": _integer(
                "Duration of the timeout in seconds (1-1209600, max 2 weeks)", 1, TIMEOUT_MAX_SECONDS
            ),
            "reason": _string("The reason for the timeout"),
        },
        ["username", "duration_seconds", "reason"],
    ),
)

BAN_USER_TOOL = Tool(
    name=ToolName.BAN_USER,
    description=(
        "Permanently ban a user from chat. Use only for severe violations like hate speech, "
        "harassment, or spam bots."
    ),
    parameters=_object(
        {
            "username": _string("The username of the user to ban"),
            "reason": _string("The reason for the ban"),
        },
        ["username", "reason"],
    ),
)

UNBAN_USER_TOOL = _username_tool(
    ToolName.UNBAN_USER,
    "Remove a ban or timeout from a user. Use to reverse a previous moderation action.",
    "user to unban",
)

ADD_MODERATOR_TOOL = _username_tool(
    ToolName.ADD_MODERATOR, "Promote a user to moderator status. Use with extreme caution.", "user to promote"
)
REMOVE_MODERATOR_TOOL = _username_tool(
    ToolName.REMOVE_MODERATOR, "Remove moderator status from a user. Use with extreme caution.", "moderator to demote"
)
ADD_VIP_TOOL = _username_tool(ToolName.ADD_VIP, "Add VIP status to a user.", "user to give VIP status")
REMOVE_VIP_TOOL = _username_tool(ToolName.REMOVE_VIP, "Remove VIP status from a user.", "VIP to demote")

DELETE_MESSAGE_TOOL = Tool(
    name=ToolName.DELETE_MESSAGE,
    description=(
        "Delete a specific message from chat. Use for messages that violate rules but don't warrant a timeout."
    ),
    parameters=_object({"message_id": _string("The ID of the message to delete")}, ["message_id"]),
)

CLEAR_CHAT_TOOL = Tool(
    name=ToolName.CLEAR_CHAT,
    description="Clear all messages from chat. Use only in extreme situations like raids or mass spam.",
    parameters=_object({}),
)

EMOTE_ONLY_MODE_TOOL = _mode_tool(
    ToolName.EMOTE_ONLY_MODE,
    "Enable or disable emote-only mode. Users can only send emotes when enabled.",
    "emote-only mode",
)

SUBSCRIBER_ONLY_MODE_TOOL = _mode_tool(
    ToolName.SUBSCRIBER_ONLY_MODE,
    "Enable or disable subscriber-only mode. Only subscribers can chat when enabled.",
    "subscriber-only mode",
)

FOLLOWER_ONLY_MODE_TOOL = _mode_tool(
    ToolName.FOLLOWER_ONLY_MODE,
    "Enable or disable follower-only mode. Only followers can chat when enabled.",
    "follower-only mode",
    duration_minutes=_integer(
        "Minimum follow time in minutes (0-129600). Only required when enabling.", 0, FOLLOWER_MODE_MAX_MINUTES
    ),
)

SLOW_MODE_TOOL = _mode_tool(
    ToolName.SLOW_MODE,
    "Enable or disable slow mode. Limits how often users can send messages.",
    "slow mode",
    delay_seconds=_integer(
        "Time between messages in seconds (3-120). Only required when enabling.",
        SLOW_MODE_MIN_SECONDS,
        SLOW_MODE_MAX_SECONDS,
    ),
)

CREATE_POLL_TOOL = Tool(
    name=ToolName.CREATE_POLL,
    description="Create a poll for viewers to vote on. Requires broadcaster token.",
    parameters=_object(
        {
            "title": _string("The poll question (max 60 characters)", maxLength=60),
            "choices": _string_list("Poll options (2-5 choices, max 25 characters each)", 2, 5, 25),
            "duration_seconds": _integer("How long the poll runs in seconds (15-1800)", 15, 1800),
        },
        ["title", "choices", "duration_seconds"],
    ),
)

END_POLL_TOOL = Tool(
    name=ToolName.END_POLL,
    description="End an active poll. Requires broadcaster token.",
    parameters=_object(
        {
            "poll_id": _string("The ID of the poll to end"),
            "status": _string(
                "How to end the poll: 'terminated' shows results, 'archived' hides results",
                enum=list(POLL_END_STATUSES),
            ),
        },
        ["poll_id", "status"],
    ),
)

CREATE_PREDICTION_TOOL = Tool(
    name=ToolName.CREATE_PREDICTION,
    description="Create a prediction for viewers to bet channel points on. Requires broadcaster token.",
    parameters=_object(
        {
            "title": _string("The prediction question (max 45 characters)", maxLength=45),
            "outcomes": _string_list("Possible outcomes (2-10 outcomes, max 25 characters each)", 2, 10, 25),
            "duration_seconds": _integer("How long users can make predictions in seconds (30-1800)", 30, 1800),
        },
        ["title", "outcomes", "duration_seconds"],
    ),
)

RESOLVE_PREDICTION_TOOL = Tool(
    name=ToolName.RESOLVE_PREDICTION,
    description="Resolve a prediction with a winning outcome. Requires broadcaster token.",
    parameters=_object(
        {
            "prediction_id": _string("The ID of the prediction to resolve"),
            "winning_outcome_id": _string("The ID of the winning outcome"),
        },
        ["prediction_id", "winning_outcome_id"],
    ),
)

CANCEL_PREDICTION_TOOL = Tool(
    name=ToolName.CANCEL_PREDICTION,
    description="Cancel a prediction and refund all channel points. Requires broadcaster token.",
    parameters=_object({"prediction_id": _string("The ID of the prediction to cancel")}, ["prediction_id"]),
)

SEND_ANNOUNCEMENT_TOOL = Tool(
    name=ToolName.SEND_ANNOUNCEMENT,
    description="Send a highlighted announcement message to chat.",
    parameters=_object(
        {
            "message": _string("The announcement message (max 500 characters)", maxLength=500),
            "color": _string("The color of the announcement", enum=list(ANNOUNCEMENT_COLORS)),
        },
        ["message"],
    ),
)

SHOUTOUT_TOOL = _username_tool(
    ToolName.SHOUTOUT,
    "Give a shoutout to another streamer, showing their channel info in chat.",
    "streamer to shoutout",
)


ALL_TOOLS: tuple[Tool, ...] = (
    NO_ACTION_TOOL,
    WARN_USER_TOOL,
    TIMEOUT_USER_TOOL,
    BAN_USER_TOOL,
    UNBAN_USER_TOOL,
    ADD_MODERATOR_TOOL,
    REMOVE_MODERATOR_TOOL,
    ADD_VIP_TOOL,
    REMOVE_VIP_TOOL,
    DELETE_MESSAGE_TOOL,
    CLEAR_CHAT_TOOL,
    EMOTE_ONLY_MODE_TOOL,
    SUBSCRIBER_ONLY_MODE_TOOL,
    FOLLOWER_ONLY_MODE_TOOL,
    SLOW_MODE_TOOL,
    CREATE_POLL_TOOL,
    END_POLL_TOOL,
    CREATE_PREDICTION_TOOL,
    RESOLVE_PREDICTION_TOOL,
    CANCEL_PREDICTION_TOOL,
    SEND_ANNOUNCEMENT_TOOL,
    SHOUTOUT_TOOL,
)

CORE_TOOLS: tuple[Tool, ...] = (
    NO_ACTION_TOOL,
    WARN_USER_TOOL,
    TIMEOUT_USER_TOOL,
    BAN_USER_TOOL,
    UNBAN_USER_TOOL,
    DELETE_MESSAGE_TOOL,
    CLEAR_CHAT_TOOL,
    EMOTE_ONLY_MODE_TOOL,
    SUBSCRIBER_ONLY_MODE_TOOL,
    FOLLOWER_ONLY_MODE_TOOL,
    SLOW_MODE_TOOL,
)

TOOLS_BY_NAME: Dict[ToolName, Tool] = {tool.name: tool for tool in ALL_TOOLS}


def get_all_tools() -> List[Tool]:
    """Return every declared tool, used to advertise the full capability set."""
    return list(ALL_TOOLS)


def get_core_tools() -> List[Tool]:
    """Return the tools executable with a moderator token, ``no_action`` first."""
    return list(CORE_TOOLS)


def is_known_tool(name: str) -> bool:
    """Return True when ``name`` is the wire name of a catalog entry."""
    try:
        ToolName(name)
    except ValueError:
        return False
    return True


def get_tool(name: str | ToolName) -> Tool:
    """Look up a catalog entry by wire name.

    Raises:
        UnknownTool: If the name is not in the catalog.
    """
    if not is_known_tool(str(name)):
        raise UnknownTool(str(name))
    return TOOLS_BY_NAME[ToolName(name)]


def filter_tools(tools: Iterable[Tool], allowed_names: Sequence[str]) -> List[Tool]:
    """Restrict ``tools`` to an allow-list, always keeping ``no_action``.

    An empty allow-list permits every tool. ``no_action`` is appended when the
    allow-list filtered it out, so the model can always decline to act.
    """
    candidates = list(tools)
    if not allowed_names:
        filtered = candidates
    else:
        allowed = set(allowed_names)
        filtered = [tool for tool in candidates if tool.name.value in allowed]

    if not any(tool.name is ToolName.NO_ACTION for tool in filtered):
        filtered.append(NO_ACTION_TOOL)
    return filtered


def parse_tool_call(name: str, arguments: str) -> ToolCall:
    """Decode a raw tool call's JSON argument string into a generic mapping.

    An empty (or whitespace-only) argument string is valid and yields an empty
    mapping.

    Raises:
        MalformedToolCall: If the arguments are not valid JSON or not a JSON object.
    """
    if not arguments or not arguments.strip():
        return ToolCall(name=name, args={})

    try:
        args = json.loads(arguments)
    except json.JSONDecodeError as exc:
        raise MalformedToolCall(name, f"invalid JSON arguments: {exc}") from exc

    if args is None:
        return ToolCall(name=name, args={})
    if not isinstance(args, dict):
        raise MalformedToolCall(name, f"arguments must be a JSON object, got {type(args).__name__}")

    return ToolCall(name=name, args=args)
