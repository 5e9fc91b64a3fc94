"""Render the moderation prompts sent to the decision oracle."""

from __future__ import annotations

from typing import Sequence

from modstream.datatypes.chat_datatypes import HistoryEntry
from modstream.datatypes.moderation_datatypes import EvaluationContext

CHANNEL_NAME_MARKER = "<|CHANNEL_NAME_INJECT|>"
CHANNEL_RULES_MARKER = "<|CHANNEL_RULES_INJECT|>"
SENSITIVITY_MARKER = "<|SENSITIVITY_INJECT|>"

DEFAULT_SYSTEM_PROMPT = f"""You are a Twitch chat moderator assistant for {CHANNEL_NAME_MARKER}'s channel. Your role is to evaluate chat messages and decide if moderation action is needed.

Channel Rules:
{CHANNEL_RULES_MARKER}

Guidelines for moderation:
1. Be CONSERVATIVE - only act on CLEAR violations. When in doubt, use no_action.
2. For first-time minor violations, prefer warn_user over timeout_user.
3. Use timeout_user for moderate violations or repeated warnings (start with 60-300 seconds).
4. Only use ban_user for SEVERE violations like hate speech, harassment, spam bots, or severe repeated offenses.
5. Use delete_message when a single message violates rules but the user doesn't need a timeout.
6. NEVER moderate messages that are just off-topic, jokes, or friendly banter.
7. NEVER moderate messages from the streamer or other moderators.

When evaluating a message, consider:
- The message content and intent
- Whether it targets or harms others
- Whether it's spam or self-promotion
- The context of recent chat messages
- The user's history (if provided)

You MUST call exactly one tool for each message you evaluate. If no moderation is needed, call no_action with a brief reason.

Sensitivity Level: {SENSITIVITY_MARKER}
- conservative: Only act on obvious, severe violations
- moderate: Act on clear violations, give benefit of doubt
- aggressive: Act on potential violations, err on side of caution"""


def format_rules(rules: Sequence[str]) -> str:
    """Render channel rules as a dash list (empty string when there are none)."""
    return "\n".join(f"- {rule}" for rule in rules if rule.strip())


def format_transcript(entries: Sequence[HistoryEntry]) -> str:
    """Render recent history as ``[user]: text`` lines under a heading."""
    lines = ["Recent chat messages:"]
    lines.extend(f"[{entry.username}]: {entry.text}" for entry in entries)
    return "\n".join(lines) + "\n"


def build_system_prompt(context: EvaluationContext, template: str = "") -> str:
    """Inject channel name, rules and sensitivity into the instruction template.

    Args:
        context: Evaluation context carrying rules and sensitivity.
        template: Optional override from the app config; the built-in prompt is
            used when empty.
    """
    prompt = template or DEFAULT_SYSTEM_PROMPT
    prompt = prompt.replace(CHANNEL_NAME_MARKER, context.channel_name or "this")
    prompt = prompt.replace(CHANNEL_RULES_MARKER, format_rules(context.channel_rules))
    prompt = prompt.replace(SENSITIVITY_MARKER, context.sensitivity_level)
    return prompt


def build_user_prompt(context: EvaluationContext) -> str:
    """Render the history transcript followed by the message under evaluation."""
    message = context.message
    return (
        f"{format_transcript(context.recent_messages)}\n"
        "Message to evaluate:\n"
        f"User: {message.author}\n"
        f"Message ID: {message.message_id}\n"
        f"Content: {message.text}\n\n"
        "Analyze this message and decide if moderation action is needed. "
        "Call exactly one tool with your decision."
    )
