"""
Exception hierarchy for the moderation pipeline.

Evaluation errors (``OracleCallFailed``, ``MalformedToolCall``) and dispatch
drift (``UnknownTool``) end processing of a message without an audit row.
``ModerationExecutionError`` subclasses are raised by action handlers and are
recorded in the audit trail as failed attempts.
"""

from __future__ import annotations


class ModerationError(Exception):
    """Base class for every error raised by Modstream."""


class ConfigError(ModerationError):
    """A configuration file is missing or cannot be parsed."""


class MalformedToolCall(ModerationError):
    """The oracle's tool call arguments are not valid JSON or violate the tool schema."""

    def __init__(self, tool_name: str, detail: str) -> None:
        super().__init__(f"malformed call to {tool_name!r}: {detail}")
        self.tool_name = tool_name
        self.detail = detail


class UnknownTool(ModerationError):
    """A tool name has no catalog entry or no dispatcher handler."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"unknown moderation tool: {tool_name!r}")
        self.tool_name = tool_name


class OracleCallFailed(ModerationError):
    """The language model request failed or returned an unusable response."""


class AdmissionDenied(ModerationError):
    """An action was refused before execution by the rate limiter or the allow-list."""

    RATE_LIMITED = "rate_limited"
    TOOL_NOT_ALLOWED = "tool_not_allowed"

    def __init__(self, tool_name: str, reason: str) -> None:
        super().__init__(f"{tool_name} denied: {reason}")
        self.tool_name = tool_name
        self.reason = reason


class ModerationExecutionError(ModerationError):
    """An attempted action failed; the attempt is still audited."""

    def __init__(self, message: str, response: bytes | None = None) -> None:
        super().__init__(message)
        self.response = response


class IdentityResolutionFailed(ModerationExecutionError):
    """A username could not be resolved to a stable user id."""


class UserNotFound(IdentityResolutionFailed):
    """The identity service has no user with the requested login."""

    def __init__(self, login: str) -> None:
        super().__init__(f"user not found: {login}")
        self.login = login


class EnforcementCallFailed(ModerationExecutionError):
    """The enforcement API rejected the request or could not be reached."""


class TransportError(ModerationExecutionError):
    """The chat transport could not deliver an outgoing message."""
