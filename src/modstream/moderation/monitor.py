"""
Per-channel moderation monitor.

The monitor owns a bounded intake queue and a single consumer task that runs
the whole pipeline for one message before taking the next:

    received -> [disabled | unmoderated channel | skip-listed user]
             -> history updated -> [filtered out]
             -> evaluated -> [no_action: audited]
             -> [rate limited | tool not allowed: dropped]
             -> [dry run | executed | failed: audited]

Evaluation errors end processing of the message without an audit record, so a
broken oracle never results in an action. Admission denials are logged but not
audited.
"""

from __future__ import annotations

import asyncio
import contextlib
from enum import Enum
from typing import List, Optional, Sequence

from modstream.ai.decision_engine import DecisionEngine, build_allowed_tools
from modstream.configuration.moderation_config import ModerationConfig
from modstream.datatypes.chat_datatypes import ChatMessage, HistoryEntry
from modstream.datatypes.collaborators import AuditStore
from modstream.datatypes.moderation_datatypes import Decision, EvaluationContext, ExecutionResult, ModAction
from modstream.moderation.action_dispatcher import ActionDispatcher
from modstream.moderation.errors import (
    AdmissionDenied,
    MalformedToolCall,
    OracleCallFailed,
    UnknownTool,
)
from modstream.moderation.history_buffer import RecentHistoryBuffer
from modstream.moderation.quick_filter import (
    DEFAULT_EMOTE_PREFIXES,
    DEFAULT_SKIP_USERS,
    needs_evaluation,
    should_skip_user,
)
from modstream.telemetry import metrics as metric_names
from modstream.telemetry.metrics import MetricsSink, NullMetrics
from modstream.tools.tool_catalog import Tool
from modstream.util.logger import get_logger

logger = get_logger("monitor")

INTAKE_QUEUE_SIZE = 100


class MessageOutcome(str, Enum):
    """Terminal state reached by one message."""

    DISABLED = "disabled"
    UNMODERATED_CHANNEL = "unmoderated_channel"
    SKIPPED_USER = "skipped_user"
    FILTERED_OUT = "filtered_out"
    EVALUATION_FAILED = "evaluation_failed"
    NO_ACTION = "no_action"
    DENIED = "denied"
    UNKNOWN_TOOL = "unknown_tool"
    DRY_RUN = "dry_run"
    EXECUTED = "executed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class Monitor:
    """Moderates one channel's chat through a single consumer task.

    Args:
        config: Moderation policy, fixed for the lifetime of the monitor.
        engine: Decision engine wrapping the oracle.
        dispatcher: Admission control and action execution.
        audit: Audit store receiving one record per audited outcome.
        channel_id: Broadcaster id of the channel.
        channel_name: Login of the channel.
        history: Recent-history buffer; a 20-entry buffer is created when omitted.
        metrics: Counter sink; events are discarded when omitted.
        emote_prefixes: Prefixes identifying channel emotes for the quick filter.
        queue_size: Capacity of the intake queue.
    """

    def __init__(
        self,
        config: ModerationConfig,
        engine: DecisionEngine,
        dispatcher: ActionDispatcher,
        audit: AuditStore,
        channel_id: str,
        channel_name: str,
        history: Optional[RecentHistoryBuffer] = None,
        metrics: Optional[MetricsSink] = None,
        emote_prefixes: Sequence[str] = DEFAULT_EMOTE_PREFIXES,
        queue_size: int = INTAKE_QUEUE_SIZE,
    ) -> None:
        self._config = config
        self._engine = engine
        self._dispatcher = dispatcher
        self._audit = audit
        self._channel_id = channel_id
        self._channel_name = channel_name
        self._history = history if history is not None else RecentHistoryBuffer()
        self._metrics = metrics if metrics is not None else NullMetrics()
        self._emote_prefixes = tuple(emote_prefixes)
        self._skip_users = (*DEFAULT_SKIP_USERS, *config.skip_users)
        self._allowed_tools: List[Tool] = build_allowed_tools(config)

        self._queue: asyncio.Queue[ChatMessage] = asyncio.Queue(maxsize=queue_size)
        self._task: Optional[asyncio.Task[None]] = None
        self._stopping = False
        self._in_flight = False

    # ---------- inspection ----------

    @property
    def config(self) -> ModerationConfig:
        return self._config

    @property
    def channel_name(self) -> str:
        return self._channel_name

    @property
    def history(self) -> RecentHistoryBuffer:
        return self._history

    @property
    def dispatcher(self) -> ActionDispatcher:
        return self._dispatcher

    @property
    def allowed_tools(self) -> List[Tool]:
        return list(self._allowed_tools)

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ---------- intake ----------

    def submit(self, message: ChatMessage) -> bool:
        """Enqueue ``message`` without blocking; returns False when the queue is full."""
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self._metrics.incr(metric_names.MESSAGES_DROPPED)
            logger.warning("[MONITOR] Intake queue full, dropping message %s", message.message_id)
            return False
        return True

    # ---------- lifecycle ----------

    def start(self) -> asyncio.Task[None]:
        """Start the consumer task. Must be called from a running event loop."""
        if self.is_running:
            logger.warning("[MONITOR] start() called but the monitor is already running")
            return self._task  # type: ignore[return-value]

        self._stopping = False
        self._task = asyncio.create_task(self.run(), name=f"monitor-{self._channel_name}")
        logger.info(
            "[MONITOR] Moderation monitor started for #%s (enabled=%s, dry_run=%s)",
            self._channel_name,
            self._config.enabled,
            self._config.dry_run,
        )
        return self._task

    async def stop(self) -> None:
        """Stop the consumer, letting a message already in flight finish first."""
        task = self._task
        if task is None:
            return

        self._stopping = True
        if not self._in_flight:
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._task = None
        logger.info("[MONITOR] Moderation monitor for #%s shut down", self._channel_name)

    async def run(self) -> None:
        """Consume the intake queue until stopped."""
        while not self._stopping:
            message = await self._queue.get()
            self._in_flight = True
            try:
                await self.process_message(message)
            except Exception:
                logger.exception("[MONITOR] Unexpected error while processing message %s", message.message_id)
            finally:
                self._in_flight = False
                self._queue.task_done()

    # ---------- pipeline ----------

    async def process_message(self, message: ChatMessage) -> MessageOutcome:
        """Run the full moderation pipeline for one message and return where it ended."""
        if not self._config.enabled:
            return MessageOutcome.DISABLED

        if not self._config.is_channel_moderated(self._channel_name):
            return MessageOutcome.UNMODERATED_CHANNEL

        if should_skip_user(message.author, self._skip_users):
            return MessageOutcome.SKIPPED_USER

        self._history.add(HistoryEntry.from_message(message))

        if not needs_evaluation(message.text, self._emote_prefixes):
            logger.debug("[MONITOR] Message from %s skipped by quick filter", message.author)
            return MessageOutcome.FILTERED_OUT

        logger.debug("[MONITOR] Evaluating message %s from %s", message.message_id, message.author)
        context = EvaluationContext(
            message=message,
            recent_messages=self._history.snapshot(),
            channel_rules=list(self._config.channel_rules),
            channel_id=self._channel_id,
            channel_name=self._channel_name,
            sensitivity_level=self._config.sensitivity_level,
        )

        try:
            decision = await self._engine.evaluate(context, self._allowed_tools)
        except (OracleCallFailed, MalformedToolCall, UnknownTool) as exc:
            self._metrics.incr(metric_names.ORACLE_FAILURE)
            logger.error("[MONITOR] Failed to evaluate message from %s: %s", message.author, exc)
            return MessageOutcome.EVALUATION_FAILED

        self._metrics.incr(metric_names.ORACLE_SUCCESS)
        logger.debug(
            "[MONITOR] Decision for %s: tool=%s should_act=%s reasoning=%s",
            message.author,
            decision.tool_name,
            decision.should_act,
            decision.reasoning,
        )

        if not decision.should_act:
            await self._record(message, decision, None)
            return MessageOutcome.NO_ACTION

        try:
            result = await self._dispatcher.execute(decision, message)
        except AdmissionDenied:
            self._metrics.incr(metric_names.ACTIONS_DENIED)
            return MessageOutcome.DENIED
        except UnknownTool as exc:
            logger.warning("[MONITOR] %s", exc)
            return MessageOutcome.UNKNOWN_TOOL

        await self._record(message, decision, result)

        if not result.success:
            self._metrics.incr(metric_names.ACTIONS_FAILED)
            return MessageOutcome.FAILED

        self._metrics.incr(metric_names.ACTIONS_EXECUTED)
        return MessageOutcome.DRY_RUN if self._config.dry_run else MessageOutcome.EXECUTED

    async def _record(self, message: ChatMessage, decision: Decision, result: Optional[ExecutionResult]) -> None:
        action = ModAction.from_decision(
            message,
            decision,
            model_name=self._engine.model_name,
            channel_id=self._channel_id,
            channel_name=self._channel_name,
            result=result,
        )
        try:
            await self._audit.append(action)
        except Exception as exc:
            self._metrics.incr(metric_names.AUDIT_FAILURES)
            logger.error("[MONITOR] Failed to store audit record for %s: %s", decision.tool_name, exc)
