"""
Turn one candidate chat message into a moderation decision.

The engine builds a single oracle request (instructions with channel rules and
sensitivity, the recent-history transcript, the candidate message and the
allowed tool vocabulary), calls the oracle exactly once and converts the first
returned tool call into a typed ``Decision``.

A reply without any tool call is treated as ``no_action``. A failed oracle call
or malformed arguments surface as exceptions and are never retried.
"""

from __future__ import annotations

from typing import Any, List, Sequence

from modstream.ai.prompt_builder import build_system_prompt, build_user_prompt
from modstream.configuration.moderation_config import ModerationConfig
from modstream.datatypes.collaborators import Oracle
from modstream.datatypes.moderation_datatypes import Decision, EvaluationContext
from modstream.datatypes.oracle_datatypes import OracleRequest
from modstream.moderation.errors import OracleCallFailed
from modstream.tools.tool_catalog import (
    Tool,
    ToolName,
    filter_tools,
    get_all_tools,
    get_core_tools,
    parse_tool_call,
)
from modstream.tools.tool_params import parse_tool_params
from modstream.util.logger import get_logger

logger = get_logger("decision_engine")

NO_TOOL_CALL_REASONING = "no tool call in response"


def build_allowed_tools(config: ModerationConfig) -> List[Tool]:
    """Return the tool vocabulary advertised to the oracle for ``config``.

    The configured allow-list is applied to the core catalog (or the full
    catalog with ``broadcaster_tools``), and ``no_action`` is always kept.
    """
    catalog = get_all_tools() if config.broadcaster_tools else get_core_tools()
    return filter_tools(catalog, config.allowed_tools)


def _extract_reasoning(args: dict[str, Any]) -> str:
    reason = args.get("reason")
    return reason if isinstance(reason, str) else ""


class DecisionEngine:
    """Single-shot oracle evaluation of chat messages."""

    def __init__(self, oracle: Oracle, system_prompt_template: str = "") -> None:
        self._oracle = oracle
        self._system_prompt_template = system_prompt_template

    @property
    def model_name(self) -> str:
        return self._oracle.model_name

    async def evaluate(self, context: EvaluationContext, allowed_tools: Sequence[Tool]) -> Decision:
        """Ask the oracle for a decision on ``context.message``.

        Args:
            context: The candidate message with history, rules and sensitivity.
            allowed_tools: Tool vocabulary to advertise to the oracle.

        Returns:
            The parsed decision. A reply with no tool call yields a
            ``no_action`` decision.

        Raises:
            OracleCallFailed: The oracle request raised or returned no choices.
            MalformedToolCall: The tool call's arguments could not be parsed or
                violate the tool schema.
            UnknownTool: The oracle named a tool outside the catalog.
        """
        request = OracleRequest(
            system_prompt=build_system_prompt(context, self._system_prompt_template),
            user_prompt=build_user_prompt(context),
            tools=[tool.to_openai_tool() for tool in allowed_tools],
        )

        try:
            response = await self._oracle.complete(request)
        except OracleCallFailed:
            raise
        except Exception as exc:
            raise OracleCallFailed(f"oracle request failed: {exc}") from exc

        tool_call = response.first_tool_call
        if tool_call is None:
            logger.debug(
                "[DECISION ENGINE] No tool call for message %s; treating as no_action",
                context.message.message_id,
            )
            return Decision.no_action(NO_TOOL_CALL_REASONING)

        if len(response.tool_calls) > 1:
            logger.debug(
                "[DECISION ENGINE] %d tool calls returned, using the first (%s)",
                len(response.tool_calls),
                tool_call.name,
            )

        call = parse_tool_call(tool_call.name, tool_call.arguments)
        params = parse_tool_params(call)

        decision = Decision(
            should_act=call.name != ToolName.NO_ACTION.value,
            tool_name=call.name,
            parameters=dict(call.args),
            params=params,
            reasoning=_extract_reasoning(call.args),
        )
        logger.debug(
            "[DECISION ENGINE] Message %s -> %s (%s)",
            context.message.message_id,
            decision.tool_name,
            decision.reasoning or "no reason given",
        )
        return decision
