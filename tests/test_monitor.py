"""End-to-end tests for the Monitor pipeline with in-memory collaborators."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import FakeAuditStore, tool_response
from modstream.ai.decision_engine import DecisionEngine
from modstream.configuration.moderation_config import ModerationConfig, RateLimits
from modstream.moderation.action_dispatcher import DRY_RUN_MESSAGE, ActionDispatcher
from modstream.moderation.errors import EnforcementCallFailed, OracleCallFailed
from modstream.moderation.history_buffer import RecentHistoryBuffer
from modstream.moderation.monitor import MessageOutcome, Monitor
from modstream.moderation.rate_limiter import ActionRateLimiter
from modstream.datatypes.oracle_datatypes import OracleResponse
from modstream.telemetry import metrics as metric_names
from modstream.telemetry.metrics import InMemoryMetrics

SPAM = "AAAAAAAAAAAAAAAAAAAA"
TIMEOUT_ARGS = '{"username": "chatter42", "duration_seconds": 120, "reason": "spam"}'


@pytest.fixture
def metrics():
    return InMemoryMetrics()


@pytest.fixture
def make_monitor(oracle, audit_store, enforcement, identity, transport, metrics):
    def _make(queue_size=100, **config_overrides):
        config_overrides.setdefault("enabled", True)
        config = ModerationConfig(**config_overrides)
        dispatcher = ActionDispatcher(
            config=config,
            rate_limiter=ActionRateLimiter(config.rate_limits.actions_per_minute),
            enforcement=enforcement,
            identity=identity,
            transport=transport,
            channel_name="soypetetech",
        )
        return Monitor(
            config=config,
            engine=DecisionEngine(oracle),
            dispatcher=dispatcher,
            audit=audit_store,
            channel_id="1001",
            channel_name="soypetetech",
            history=RecentHistoryBuffer(capacity=20),
            metrics=metrics,
            queue_size=queue_size,
        )

    return _make


class TestScenarios:
    """Whole-pipeline scenarios."""

    @pytest.mark.asyncio
    async def test_caps_spam_is_timed_out(self, make_monitor, make_message, oracle, audit_store, enforcement, identity, metrics):
        oracle.queue(tool_response("timeout_user", TIMEOUT_ARGS))
        monitor = make_monitor()
        message = make_message(SPAM)

        outcome = await monitor.process_message(message)

        assert outcome is MessageOutcome.EXECUTED
        identity.resolve_user_id.assert_awaited_once_with("chatter42")
        enforcement.ban_user.assert_awaited_once_with("12345", 120, "spam")

        assert len(audit_store.records) == 1
        record = audit_store.records[0]
        assert record.success is True
        assert record.tool_call_name == "timeout_user"
        assert record.tool_call_params == {"username": "chatter42", "duration_seconds": 120, "reason": "spam"}
        assert record.trigger_message_id == message.message_id
        assert record.trigger_message_content == SPAM
        assert record.target_username == "chatter42"
        assert record.target_user_id == "12345"
        assert record.llm_model == "test-model"
        assert record.llm_reasoning == "spam"
        assert record.api_response == b'{"data":[]}'
        assert record.channel_id == "1001"
        assert record.channel_name == "soypetetech"

        assert metrics.get(metric_names.ORACLE_SUCCESS) == 1
        assert metrics.get(metric_names.ACTIONS_EXECUTED) == 1

    @pytest.mark.asyncio
    async def test_short_message_never_reaches_oracle(self, make_monitor, make_message, oracle, audit_store):
        monitor = make_monitor()

        outcome = await monitor.process_message(make_message("hi"))

        assert outcome is MessageOutcome.FILTERED_OUT
        assert oracle.requests == []
        assert audit_store.records == []
        # Filtered messages still become context for later evaluations
        assert [e.text for e in monitor.history.snapshot()] == ["hi"]

    @pytest.mark.asyncio
    async def test_disallowed_tool_denied_without_audit(self, make_monitor, make_message, oracle, audit_store, enforcement, metrics):
        oracle.queue(tool_response("ban_user", '{"username": "chatter42", "reason": "spam"}'))
        monitor = make_monitor(allowed_tools=["no_action", "warn_user"])

        outcome = await monitor.process_message(make_message(SPAM))

        assert outcome is MessageOutcome.DENIED
        enforcement.ban_user.assert_not_awaited()
        assert audit_store.records == []
        assert metrics.get(metric_names.ACTIONS_DENIED) == 1

    @pytest.mark.asyncio
    async def test_third_action_in_a_minute_is_rate_limited(self, make_monitor, make_message, oracle, audit_store, enforcement):
        oracle.queue(*(tool_response("timeout_user", TIMEOUT_ARGS) for _ in range(3)))
        monitor = make_monitor(rate_limits=RateLimits(actions_per_minute=2))

        outcomes = [await monitor.process_message(make_message(SPAM)) for _ in range(3)]

        assert outcomes == [MessageOutcome.EXECUTED, MessageOutcome.EXECUTED, MessageOutcome.DENIED]
        assert enforcement.ban_user.await_count == 2
        assert len(audit_store.records) == 2


class TestOutcomes:
    """Tests for the remaining terminal states."""

    @pytest.mark.asyncio
    async def test_dry_run_is_audited_without_enforcement(self, make_monitor, make_message, oracle, audit_store, enforcement, identity):
        oracle.queue(tool_response("timeout_user", TIMEOUT_ARGS))
        monitor = make_monitor(dry_run=True)

        outcome = await monitor.process_message(make_message(SPAM))

        assert outcome is MessageOutcome.DRY_RUN
        enforcement.ban_user.assert_not_awaited()
        identity.resolve_user_id.assert_not_awaited()
        assert len(audit_store.records) == 1
        record = audit_store.records[0]
        assert record.success is True
        assert record.error_message == DRY_RUN_MESSAGE
        assert record.target_user_id == ""
        assert record.target_username == "chatter42"

    @pytest.mark.asyncio
    async def test_no_action_is_audited(self, make_monitor, make_message, oracle, audit_store, enforcement):
        oracle.queue(tool_response("no_action", '{"reason": "just excited"}'))
        monitor = make_monitor()

        outcome = await monitor.process_message(make_message(SPAM, user="Hyped"))

        assert outcome is MessageOutcome.NO_ACTION
        assert len(audit_store.records) == 1
        record = audit_store.records[0]
        assert record.tool_call_name == "no_action"
        assert record.success is True
        assert record.llm_reasoning == "just excited"
        assert record.target_username == "Hyped"
        assert record.api_response is None
        assert enforcement.method_calls == []

    @pytest.mark.asyncio
    async def test_missing_tool_call_is_audited_as_no_action(self, make_monitor, make_message, oracle, audit_store):
        oracle.queue(OracleResponse(content="Nothing to do."))
        outcome = await make_monitor().process_message(make_message(SPAM))
        assert outcome is MessageOutcome.NO_ACTION
        assert audit_store.records[0].tool_call_params == {"reason": "no tool call in response"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            OracleCallFailed("model offline"),
            ConnectionError("connection refused"),
            tool_response("timeout_user", "{broken"),
            tool_response("kick_user", "{}"),
        ],
    )
    async def test_evaluation_errors_are_not_audited(self, make_monitor, make_message, oracle, audit_store, enforcement, metrics, response):
        oracle.queue(response)

        outcome = await make_monitor().process_message(make_message(SPAM))

        assert outcome is MessageOutcome.EVALUATION_FAILED
        assert audit_store.records == []
        assert enforcement.method_calls == []
        assert metrics.get(metric_names.ORACLE_FAILURE) == 1
        assert metrics.get(metric_names.ORACLE_SUCCESS) == 0

    @pytest.mark.asyncio
    async def test_failed_action_is_audited(self, make_monitor, make_message, oracle, audit_store, enforcement, metrics):
        enforcement.ban_user.side_effect = EnforcementCallFailed(
            "API error: status 403, body: forbidden", response=b"forbidden"
        )
        oracle.queue(tool_response("timeout_user", TIMEOUT_ARGS))

        outcome = await make_monitor().process_message(make_message(SPAM))

        assert outcome is MessageOutcome.FAILED
        record = audit_store.records[0]
        assert record.success is False
        assert record.api_response == b"forbidden"
        assert "status 403" in record.error_message
        assert metrics.get(metric_names.ACTIONS_FAILED) == 1

    @pytest.mark.asyncio
    async def test_broadcaster_tool_without_handler(self, make_monitor, make_message, oracle, audit_store):
        oracle.queue(tool_response("shoutout", '{"username": "friend"}'))
        monitor = make_monitor(allowed_tools=[])

        outcome = await monitor.process_message(make_message(SPAM))

        assert outcome is MessageOutcome.UNKNOWN_TOOL
        assert audit_store.records == []

    @pytest.mark.asyncio
    async def test_broadcaster_tool_without_handler_in_dry_run(self, make_monitor, make_message, oracle, audit_store):
        oracle.queue(tool_response("shoutout", '{"username": "friend"}'))
        monitor = make_monitor(allowed_tools=[], dry_run=True)

        outcome = await monitor.process_message(make_message(SPAM))

        assert outcome is MessageOutcome.UNKNOWN_TOOL
        assert audit_store.records == []

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_raise(self, make_monitor, make_message, oracle, audit_store, metrics):
        async def broken_append(action):
            raise RuntimeError("disk full")

        audit_store.append = broken_append
        oracle.queue(tool_response("no_action", '{"reason": "fine"}'))

        outcome = await make_monitor().process_message(make_message(SPAM))

        assert outcome is MessageOutcome.NO_ACTION
        assert metrics.get(metric_names.AUDIT_FAILURES) == 1


class TestEarlyExits:
    """Messages dropped before evaluation."""

    @pytest.mark.asyncio
    async def test_disabled(self, make_monitor, make_message, oracle):
        monitor = make_monitor(enabled=False)
        assert await monitor.process_message(make_message(SPAM)) is MessageOutcome.DISABLED
        assert oracle.requests == []
        assert len(monitor.history) == 0

    @pytest.mark.asyncio
    async def test_unmoderated_channel(self, make_monitor, make_message, oracle):
        monitor = make_monitor(channels=["someotherchannel"])
        assert await monitor.process_message(make_message(SPAM)) is MessageOutcome.UNMODERATED_CHANNEL
        assert oracle.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user", ["Nightbot", "streamelements", "SoyPeteTech"])
    async def test_skip_listed_users(self, make_monitor, make_message, oracle, user):
        monitor = make_monitor()
        assert await monitor.process_message(make_message(SPAM, user=user)) is MessageOutcome.SKIPPED_USER
        assert oracle.requests == []
        assert len(monitor.history) == 0

    @pytest.mark.asyncio
    async def test_configured_skip_users(self, make_monitor, make_message):
        monitor = make_monitor(skip_users=["ChannelBot"])
        assert await monitor.process_message(make_message(SPAM, user="channelbot")) is MessageOutcome.SKIPPED_USER

    @pytest.mark.asyncio
    async def test_history_includes_candidate_message(self, make_monitor, make_message, oracle):
        oracle.queue(tool_response("no_action", '{"reason": "fine"}'))
        monitor = make_monitor()

        await monitor.process_message(make_message("hello all", user="alice"))
        await monitor.process_message(make_message(SPAM, user="bob"))

        user_prompt = oracle.requests[0].user_prompt
        assert "[alice]: hello all\n[bob]: " + SPAM in user_prompt


class TestLifecycle:
    """Tests for the intake queue and consumer task."""

    @pytest.mark.asyncio
    async def test_submit_processes_in_order(self, make_monitor, make_message, oracle, audit_store):
        oracle.queue(
            tool_response("no_action", '{"reason": "one"}'),
            tool_response("no_action", '{"reason": "two"}'),
        )
        monitor = make_monitor()
        monitor.start()
        assert monitor.is_running

        first = make_message(SPAM)
        second = make_message(SPAM)
        assert monitor.submit(first)
        assert monitor.submit(second)

        await asyncio.wait_for(monitor._queue.join(), timeout=2)
        await monitor.stop()

        assert not monitor.is_running
        assert [r.trigger_message_id for r in audit_store.records] == [first.message_id, second.message_id]

    @pytest.mark.asyncio
    async def test_full_queue_drops_message(self, make_monitor, make_message, metrics):
        monitor = make_monitor(queue_size=1)

        assert monitor.submit(make_message(SPAM)) is True
        assert monitor.submit(make_message(SPAM)) is False
        assert monitor.queue_depth == 1
        assert metrics.get(metric_names.MESSAGES_DROPPED) == 1

    @pytest.mark.asyncio
    async def test_stop_idle_monitor(self, make_monitor):
        monitor = make_monitor()
        monitor.start()
        await asyncio.sleep(0)
        await asyncio.wait_for(monitor.stop(), timeout=2)
        assert not monitor.is_running

    @pytest.mark.asyncio
    async def test_stop_without_start(self, make_monitor):
        await make_monitor().stop()

    @pytest.mark.asyncio
    async def test_stop_finishes_message_in_flight(self, make_monitor, make_message, oracle, audit_store):
        release = asyncio.Event()
        entered = asyncio.Event()
        complete = oracle.complete

        async def slow_complete(request):
            entered.set()
            await release.wait()
            return await complete(request)

        oracle.complete = slow_complete
        oracle.queue(tool_response("timeout_user", TIMEOUT_ARGS))
        monitor = make_monitor()
        monitor.start()
        message = make_message(SPAM)
        monitor.submit(message)
        await asyncio.wait_for(entered.wait(), timeout=2)

        stopping = asyncio.create_task(monitor.stop())
        await asyncio.sleep(0)
        assert not stopping.done()

        release.set()
        await asyncio.wait_for(stopping, timeout=2)

        assert not monitor.is_running
        assert [r.trigger_message_id for r in audit_store.records] == [message.message_id]

    @pytest.mark.asyncio
    async def test_unexpected_execution_error_is_audited(self, make_monitor, make_message, oracle, audit_store, enforcement, metrics):
        enforcement.ban_user.side_effect = asyncio.TimeoutError()
        oracle.queue(tool_response("timeout_user", TIMEOUT_ARGS))

        outcome = await make_monitor().process_message(make_message(SPAM))

        assert outcome is MessageOutcome.FAILED
        enforcement.ban_user.assert_awaited_once()
        assert len(audit_store.records) == 1
        assert audit_store.records[0].success is False
        assert "TimeoutError" in audit_store.records[0].error_message
        assert metrics.get(metric_names.ACTIONS_FAILED) == 1

    @pytest.mark.asyncio
    async def test_consumer_survives_unexpected_errors(self, make_monitor, make_message):
        monitor = make_monitor()
        monitor.process_message = AsyncMock(side_effect=[RuntimeError("boom"), MessageOutcome.NO_ACTION])

        monitor.start()
        monitor.submit(make_message(SPAM))
        monitor.submit(make_message(SPAM))
        await asyncio.wait_for(monitor._queue.join(), timeout=2)

        assert monitor.is_running
        assert monitor.process_message.await_count == 2
        await monitor.stop()


def test_fake_audit_store_is_an_audit_store():
    from modstream.datatypes.collaborators import AuditStore

    assert isinstance(FakeAuditStore(), AuditStore)
