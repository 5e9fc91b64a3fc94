"""Strictly-typed parameter variants for each moderation tool.

The model returns arguments as a loosely-typed JSON object. ``parse_tool_params``
validates that object against the tool's schema and converts it into one frozen
dataclass per tool, so action handlers never inspect raw dictionaries.

Presence rules are declared by the dataclasses themselves: a field without a
default must be present in the arguments. Fields the action handlers can fill
in (durations, reasons, the target of an author-directed action) default to
``None`` even when the advertised schema lists them as required, because small
models routinely omit them.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional, Union

import jsonschema
from jsonschema import Draft7Validator

from modstream.moderation.errors import MalformedToolCall, UnknownTool
from modstream.tools.tool_catalog import ALL_TOOLS, ToolCall, ToolName, is_known_tool


@dataclass(frozen=True, slots=True)
class NoActionParams:
    reason: str = ""


@dataclass(frozen=True, slots=True)
class WarnUserParams:
    username: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TimeoutUserParams:
    username: Optional[str] = None
    duration_seconds: Optional[int] = None
    reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class BanUserParams:
    username: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class UnbanUserParams:
    username: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AddModeratorParams:
    username: str


@dataclass(frozen=True, slots=True)
class RemoveModeratorParams:
    username: str


@dataclass(frozen=True, slots=True)
class AddVIPParams:
    username: str


@dataclass(frozen=True, slots=True)
class RemoveVIPParams:
    username: str


@dataclass(frozen=True, slots=True)
class DeleteMessageParams:
    message_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ClearChatParams:
    pass


@dataclass(frozen=True, slots=True)
class EmoteOnlyModeParams:
    enabled: bool = False


@dataclass(frozen=True, slots=True)
class SubscriberOnlyModeParams:
    enabled: bool = False


@dataclass(frozen=True, slots=True)
class FollowerOnlyModeParams:
    enabled: bool = False
    duration_minutes: Optional[int] = None


@dataclass(frozen=True, slots=True)
class SlowModeParams:
    enabled: bool = False
    delay_seconds: Optional[int] = None


@dataclass(frozen=True, slots=True)
class CreatePollParams:
    title: str
    choices: List[str]
    duration_seconds: int


@dataclass(frozen=True, slots=True)
class EndPollParams:
    poll_id: str
    status: str


@dataclass(frozen=True, slots=True)
class CreatePredictionParams:
    title: str
    outcomes: List[str]
    duration_seconds: int


@dataclass(frozen=True, slots=True)
class ResolvePredictionParams:
    prediction_id: str
    winning_outcome_id: str


@dataclass(frozen=True, slots=True)
class CancelPredictionParams:
    prediction_id: str


@dataclass(frozen=True, slots=True)
class SendAnnouncementParams:
    message: str
    color: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ShoutoutParams:
    username: str


ToolParams = Union[
    NoActionParams,
    WarnUserParams,
    TimeoutUserParams,
    BanUserParams,
    UnbanUserParams,
    AddModeratorParams,
    RemoveModeratorParams,
    AddVIPParams,
    RemoveVIPParams,
    DeleteMessageParams,
    ClearChatParams,
    EmoteOnlyModeParams,
    SubscriberOnlyModeParams,
    FollowerOnlyModeParams,
    SlowModeParams,
    CreatePollParams,
    EndPollParams,
    CreatePredictionParams,
    ResolvePredictionParams,
    CancelPredictionParams,
    SendAnnouncementParams,
    ShoutoutParams,
]

PARAMS_BY_TOOL: Dict[ToolName, type] = {
    ToolName.NO_ACTION: NoActionParams,
    ToolName.WARN_USER: WarnUserParams,
    ToolName.TIMEOUT_USER: TimeoutUserParams,
    ToolName.BAN_USER: BanUserParams,
    ToolName.UNBAN_USER: UnbanUserParams,
    ToolName.ADD_MODERATOR: AddModeratorParams,
    ToolName.REMOVE_MODERATOR: RemoveModeratorParams,
    ToolName.ADD_VIP: AddVIPParams,
    ToolName.REMOVE_VIP: RemoveVIPParams,
    ToolName.DELETE_MESSAGE: DeleteMessageParams,
    ToolName.CLEAR_CHAT: ClearChatParams,
    ToolName.EMOTE_ONLY_MODE: EmoteOnlyModeParams,
    ToolName.SUBSCRIBER_ONLY_MODE: SubscriberOnlyModeParams,
    ToolName.FOLLOWER_ONLY_MODE: FollowerOnlyModeParams,
    ToolName.SLOW_MODE: SlowModeParams,
    ToolName.CREATE_POLL: CreatePollParams,
    ToolName.END_POLL: EndPollParams,
    ToolName.CREATE_PREDICTION: CreatePredictionParams,
    ToolName.RESOLVE_PREDICTION: ResolvePredictionParams,
    ToolName.CANCEL_PREDICTION: CancelPredictionParams,
    ToolName.SEND_ANNOUNCEMENT: SendAnnouncementParams,
    ToolName.SHOUTOUT: ShoutoutParams,
}


def _relaxed_validator(schema: Dict[str, Any]) -> Draft7Validator:
    """Build a validator that checks types and bounds but not field presence."""
    relaxed = copy.deepcopy(schema)
    relaxed.pop("required", None)
    return Draft7Validator(relaxed)


_VALIDATORS: Dict[ToolName, Draft7Validator] = {
    tool.name: _relaxed_validator(tool.parameters) for tool in ALL_TOOLS
}

_INTEGER_FIELDS = ("duration_seconds", "duration_minutes", "delay_seconds")


def parse_tool_params(call: ToolCall) -> ToolParams:
    """Validate a decoded tool call and convert it into its typed variant.

    Unknown extra arguments are ignored; the model is free to add commentary
    fields. ``null`` values are treated as absent.

    Raises:
        UnknownTool: If the call names a tool outside the catalog.
        MalformedToolCall: If the arguments violate the tool's schema or a
            field without a default is missing.
    """
    if not is_known_tool(call.name):
        raise UnknownTool(call.name)

    tool_name = ToolName(call.name)
    params_cls = PARAMS_BY_TOOL[tool_name]
    args = {key: value for key, value in call.args.items() if value is not None}

    try:
        _VALIDATORS[tool_name].validate(args)
    except jsonschema.ValidationError as exc:
        raise MalformedToolCall(call.name, exc.message) from exc

    known = {field.name for field in fields(params_cls)}
    values = {key: value for key, value in args.items() if key in known}
    for key in _INTEGER_FIELDS:
        if key in values:
            values[key] = int(values[key])

    try:
        return params_cls(**values)
    except TypeError as exc:
        raise MalformedToolCall(call.name, f"missing required argument: {exc}") from exc
