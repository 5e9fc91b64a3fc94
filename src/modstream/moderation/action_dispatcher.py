"""
Admission control and execution of moderation decisions.

``ActionDispatcher.execute`` checks, in order:

1. the per-minute action budget (``AdmissionDenied`` with ``rate_limited``),
2. the tool allow-list (``AdmissionDenied`` with ``tool_not_allowed``),
3. handler availability (``UnknownTool`` for broadcaster tools when disabled),
4. dry-run mode (synthetic success, nothing is enforced),

and then routes the decision's typed parameters to exactly one handler.

Handlers that fail raise a ``ModerationExecutionError`` subclass; ``execute``
turns those, and any other collaborator exception, into an unsuccessful
``ExecutionResult`` so the attempt can still be audited.
"""

from __future__ import annotations

from modstream.configuration.moderation_config import ModerationConfig
from modstream.datatypes.chat_datatypes import ChatMessage
from modstream.datatypes.collaborators import ChatSettings, ChatTransport, EnforcementClient, IdentityResolver
from modstream.datatypes.moderation_datatypes import Decision, ExecutionResult
from modstream.moderation.errors import (
    AdmissionDenied,
    EnforcementCallFailed,
    ModerationExecutionError,
    TransportError,
    UnknownTool,
)
from modstream.moderation.rate_limiter import ActionRateLimiter
from modstream.tools.tool_catalog import CORE_TOOLS, ToolCall
from modstream.tools.tool_params import (
    AddModeratorParams,
    AddVIPParams,
    BanUserParams,
    CancelPredictionParams,
    ClearChatParams,
    CreatePollParams,
    CreatePredictionParams,
    DeleteMessageParams,
    EmoteOnlyModeParams,
    EndPollParams,
    FollowerOnlyModeParams,
    NoActionParams,
    RemoveModeratorParams,
    RemoveVIPParams,
    ResolvePredictionParams,
    SendAnnouncementParams,
    ShoutoutParams,
    SlowModeParams,
    SubscriberOnlyModeParams,
    TimeoutUserParams,
    ToolParams,
    UnbanUserParams,
    WarnUserParams,
    parse_tool_params,
)
from modstream.util.logger import get_logger

logger = get_logger("action_dispatcher")

DRY_RUN_MESSAGE = "dry run - no action taken"

DEFAULT_WARNING_MESSAGE = "Please follow the channel rules."
DEFAULT_TIMEOUT_SECONDS = 60
DEFAULT_TIMEOUT_REASON = "Violation of channel rules"
DEFAULT_BAN_REASON = "Severe violation of channel rules"
DEFAULT_FOLLOWER_MINUTES = 0
DEFAULT_SLOW_MODE_SECONDS = 30
DEFAULT_ANNOUNCEMENT_COLOR = "primary"

_CORE_TOOL_NAMES = frozenset(tool.name.value for tool in CORE_TOOLS)


class ActionDispatcher:
    """Executes admitted decisions against the chat and enforcement collaborators.

    Args:
        config: Moderation policy (allow-list, dry run, broadcaster tools, warning suffix).
        rate_limiter: Per-minute action budget.
        enforcement: Moderation API client.
        identity: Username to user id resolver.
        transport: Outgoing chat, used for warnings.
        channel_name: Channel warnings are posted to.
    """

    def __init__(
        self,
        config: ModerationConfig,
        rate_limiter: ActionRateLimiter,
        enforcement: EnforcementClient,
        identity: IdentityResolver,
        transport: ChatTransport,
        channel_name: str,
    ) -> None:
        self._config = config
        self._rate_limiter = rate_limiter
        self._enforcement = enforcement
        self._identity = identity
        self._transport = transport
        self._channel_name = channel_name

    @property
    def rate_limiter(self) -> ActionRateLimiter:
        return self._rate_limiter

    def _check_admission(self, decision: Decision, message: ChatMessage) -> None:
        if not self._rate_limiter.try_acquire():
            logger.warning(
                "[DISPATCH] Rate limit exceeded, skipping %s for %s",
                decision.tool_name,
                message.author,
            )
            raise AdmissionDenied(decision.tool_name, AdmissionDenied.RATE_LIMITED)

        if not self._config.is_tool_allowed(decision.tool_name):
            logger.warning(
                "[DISPATCH] Tool %s not in allowed list, skipping action for %s",
                decision.tool_name,
                message.author,
            )
            raise AdmissionDenied(decision.tool_name, AdmissionDenied.TOOL_NOT_ALLOWED)

    async def execute(self, decision: Decision, message: ChatMessage) -> ExecutionResult:
        """Admit and carry out ``decision`` for the trigger ``message``.

        Returns:
            The execution result. Failed attempts come back with
            ``success=False`` rather than raising.

        Raises:
            AdmissionDenied: The rate limit or allow-list refused the action.
            UnknownTool: No handler exists for the decision's tool.
        """
        self._check_admission(decision, message)
        self._check_handler(decision)

        if self._config.dry_run:
            logger.info(
                "[DISPATCH] DRY RUN: would execute %s %s for %s",
                decision.tool_name,
                decision.parameters,
                message.author,
            )
            return ExecutionResult(success=True, error_message=DRY_RUN_MESSAGE)

        params = decision.params
        if params is None:
            params = parse_tool_params(ToolCall(name=decision.tool_name, args=decision.parameters))

        try:
            response = await self._route(params, decision, message)
        except UnknownTool:
            raise
        except ModerationExecutionError as exc:
            logger.error(
                "[DISPATCH] Failed to execute %s for %s: %s",
                decision.tool_name,
                message.author,
                exc,
            )
            return ExecutionResult(
                success=False,
                response=exc.response,
                target_user_id=decision.target_user_id,
                error_message=str(exc),
            )
        except Exception as exc:
            logger.exception(
                "[DISPATCH] Unexpected error executing %s for %s",
                decision.tool_name,
                message.author,
            )
            error = EnforcementCallFailed(f"unexpected error: {exc!r}")
            return ExecutionResult(
                success=False,
                target_user_id=decision.target_user_id,
                error_message=str(error),
            )

        logger.info(
            "[DISPATCH] Executed %s for %s (%s)",
            decision.tool_name,
            message.author,
            decision.reasoning or "no reason given",
        )
        return ExecutionResult(success=True, response=response, target_user_id=decision.target_user_id)

    def _check_handler(self, decision: Decision) -> None:
        if decision.tool_name not in _CORE_TOOL_NAMES and not self._config.broadcaster_tools:
            logger.warning("[DISPATCH] No handler for %s without broadcaster tools enabled", decision.tool_name)
            raise UnknownTool(decision.tool_name)

    async def _route(self, params: ToolParams, decision: Decision, message: ChatMessage) -> bytes | None:
        match params:
            case NoActionParams():
                return None
            case WarnUserParams():
                await self._warn_user(params, decision, message)
                return None
            case TimeoutUserParams():
                user_id = await self._resolve(message.user_login, decision)
                duration = params.duration_seconds or DEFAULT_TIMEOUT_SECONDS
                return await self._enforcement.ban_user(user_id, duration, params.reason or DEFAULT_TIMEOUT_REASON)
            case BanUserParams():
                user_id = await self._resolve(message.user_login, decision)
                return await self._enforcement.ban_user(user_id, 0, params.reason or DEFAULT_BAN_REASON)
            case UnbanUserParams():
                user_id = await self._resolve(params.username or message.user_login, decision)
                return await self._enforcement.unban_user(user_id)
            case DeleteMessageParams():
                decision.target_username = message.author
                return await self._enforcement.delete_message(params.message_id or message.message_id)
            case ClearChatParams():
                return await self._enforcement.clear_chat()
            case EmoteOnlyModeParams():
                return await self._enforcement.update_chat_settings(ChatSettings(emote_mode=params.enabled))
            case SubscriberOnlyModeParams():
                return await self._enforcement.update_chat_settings(ChatSettings(subscriber_mode=params.enabled))
            case FollowerOnlyModeParams():
                settings = ChatSettings(follower_mode=params.enabled)
                if params.enabled:
                    settings.follower_mode_duration = (
                        params.duration_minutes if params.duration_minutes is not None else DEFAULT_FOLLOWER_MINUTES
                    )
                return await self._enforcement.update_chat_settings(settings)
            case SlowModeParams():
                settings = ChatSettings(slow_mode=params.enabled)
                if params.enabled:
                    settings.slow_mode_wait_time = params.delay_seconds or DEFAULT_SLOW_MODE_SECONDS
                return await self._enforcement.update_chat_settings(settings)
            case AddModeratorParams():
                return await self._enforcement.add_moderator(await self._resolve(params.username, decision))
            case RemoveModeratorParams():
                return await self._enforcement.remove_moderator(await self._resolve(params.username, decision))
            case AddVIPParams():
                return await self._enforcement.add_vip(await self._resolve(params.username, decision))
            case RemoveVIPParams():
                return await self._enforcement.remove_vip(await self._resolve(params.username, decision))
            case CreatePollParams():
                return await self._enforcement.create_poll(params.title, list(params.choices), params.duration_seconds)
            case EndPollParams():
                return await self._enforcement.end_poll(params.poll_id, params.status)
            case CreatePredictionParams():
                return await self._enforcement.create_prediction(
                    params.title, list(params.outcomes), params.duration_seconds
                )
            case ResolvePredictionParams():
                return await self._enforcement.resolve_prediction(params.prediction_id, params.winning_outcome_id)
            case CancelPredictionParams():
                return await self._enforcement.cancel_prediction(params.prediction_id)
            case SendAnnouncementParams():
                return await self._enforcement.send_announcement(
                    params.message, params.color or DEFAULT_ANNOUNCEMENT_COLOR
                )
            case ShoutoutParams():
                return await self._enforcement.send_shoutout(await self._resolve(params.username, decision))
            case _:
                logger.warning("[DISPATCH] Unknown moderation tool %s", decision.tool_name)
                raise UnknownTool(decision.tool_name)

    async def _resolve(self, login: str, decision: Decision) -> str:
        """Resolve ``login`` and record it as the decision's target."""
        decision.target_username = login
        user_id = await self._identity.resolve_user_id(login)
        decision.target_user_id = user_id
        return user_id

    async def _warn_user(self, params: WarnUserParams, decision: Decision, message: ChatMessage) -> None:
        text = f"@{message.author} {params.message or DEFAULT_WARNING_MESSAGE}"
        if self._config.warning_suffix:
            text = f"{text} {self._config.warning_suffix}"

        decision.target_username = message.author
        try:
            await self._transport.send(self._channel_name, text)
        except ModerationExecutionError:
            raise
        except Exception as exc:
            raise TransportError(f"failed to send warning: {exc}") from exc
