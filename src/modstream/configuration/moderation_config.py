"""
Moderation policy configuration.

``ModerationConfig`` is loaded from a YAML file (``config/moderation.yml`` by
default) and overlaid on built-in defaults. The Monitor receives one fully
populated instance at construction and never reloads it.

Example::

    enabled: true
    channels: [soypetetech]
    sensitivity_level: moderate
    allowed_tools: [no_action, warn_user, timeout_user, delete_message]
    rate_limits:
      actions_per_minute: 10
    channel_rules:
      - Be respectful to all community members
    dry_run: true
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List

import yaml

from modstream.moderation.errors import ConfigError
from modstream.util.logger import get_logger

logger = get_logger("moderation_config")

MODERATION_CONFIG_PATH = Path("./config/moderation.yml").resolve()

SENSITIVITY_LEVELS = ("conservative", "moderate", "aggressive")


@dataclass(slots=True)
class RateLimits:
    """Action budgets.

    Only ``actions_per_minute`` is enforced. The per-hour limits are accepted so
    existing config files keep loading, but nothing reads them yet.
    """

    actions_per_minute: int = 10
    bans_per_hour: int = 5
    timeouts_per_user_per_hour: int = 3


@dataclass(slots=True)
class EscalationConfig:
    """Repeat-offender thresholds. Declared for config compatibility; not read by the pipeline."""

    warnings_before_timeout: int = 2
    timeouts_before_ban: int = 3
    timeout_multiplier: float = 2.0


def _default_allowed_tools() -> List[str]:
    return ["no_action", "warn_user", "timeout_user", "delete_message"]


def _default_channel_rules() -> List[str]:
    return [
        "Be respectful to all community members",
        "No spam or self-promotion",
        "No hate speech or harassment",
        "Keep discussions relevant to the stream",
    ]


@dataclass(slots=True)
class ModerationConfig:
    """Moderation policy for one monitor instance.

    Attributes:
        enabled: Master switch; when False every message is dropped unexamined.
        channels: Channel allow-list. Empty means every channel is moderated.
        sensitivity_level: Passed through to the model prompt verbatim.
        allowed_tools: Tool allow-list. Empty means every tool is allowed.
        rate_limits: Action budgets.
        channel_rules: Free-text rules injected into the model instructions.
        dry_run: Evaluate and audit decisions without enforcing them.
        escalation: Repeat-offender thresholds (unused).
        broadcaster_tools: Offer the full catalog (polls, predictions, VIPs, ...)
            instead of the moderator-token core subset.
        skip_users: Extra usernames exempt from moderation, added to the built-in list.
        warning_suffix: Text appended to chat warnings (typically an emote).
    """

    enabled: bool = False
    channels: List[str] = field(default_factory=list)
    sensitivity_level: str = "moderate"
    allowed_tools: List[str] = field(default_factory=_default_allowed_tools)
    rate_limits: RateLimits = field(default_factory=RateLimits)
    channel_rules: List[str] = field(default_factory=_default_channel_rules)
    dry_run: bool = False
    escalation: EscalationConfig = field(default_factory=EscalationConfig)
    broadcaster_tools: bool = False
    skip_users: List[str] = field(default_factory=list)
    warning_suffix: str = ""

    def is_tool_allowed(self, tool_name: str) -> bool:
        """Return True when ``tool_name`` passes the allow-list (verbatim match)."""
        if not self.allowed_tools:
            return True
        return tool_name in self.allowed_tools

    def is_channel_moderated(self, channel_name: str) -> bool:
        """Return True when ``channel_name`` passes the channel allow-list."""
        if not self.channels:
            return True
        return channel_name in self.channels

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModerationConfig":
        """Build a config from a parsed YAML mapping, keeping defaults for absent keys.

        Unknown keys are logged and ignored.
        """
        config = cls()
        known = {f.name for f in fields(cls)}

        for key, value in data.items():
            if key not in known:
                logger.warning("[MODERATION CONFIG] Ignoring unknown key %r", key)
                continue
            if value is None:
                continue
            if key == "rate_limits":
                value = _overlay(RateLimits(), value, key)
            elif key == "escalation":
                value = _overlay(EscalationConfig(), value, key)
            elif key in ("channels", "allowed_tools", "channel_rules", "skip_users"):
                if not isinstance(value, list):
                    raise ConfigError(f"'{key}' must be a list, got {type(value).__name__}")
                value = [str(item) for item in value]
            setattr(config, key, value)

        if config.sensitivity_level not in SENSITIVITY_LEVELS:
            logger.warning(
                "[MODERATION CONFIG] Unrecognised sensitivity level %r (expected one of %s)",
                config.sensitivity_level,
                ", ".join(SENSITIVITY_LEVELS),
            )
        return config


def _overlay(target: Any, value: Any, section: str) -> Any:
    """Copy a nested YAML mapping onto a section dataclass."""
    if not isinstance(value, dict):
        raise ConfigError(f"'{section}' must be a mapping, got {type(value).__name__}")
    known = {f.name for f in fields(target)}
    for key, item in value.items():
        if key not in known:
            logger.warning("[MODERATION CONFIG] Ignoring unknown key %r in %s", key, section)
            continue
        kind = type(getattr(target, key))
        try:
            setattr(target, key, kind(item))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"'{section}.{key}' must be {kind.__name__}, got {item!r}") from exc
    return target


def default_moderation_config() -> ModerationConfig:
    """Return the built-in moderation defaults (moderation disabled)."""
    return ModerationConfig()


def load_moderation_config(path: Path = MODERATION_CONFIG_PATH) -> ModerationConfig:
    """Load a moderation config file, overlaying it on the defaults.

    Raises:
        ConfigError: If the file cannot be read or is not a YAML mapping.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"moderation config file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse moderation config {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"moderation config {path} must contain a mapping")

    config = ModerationConfig.from_dict(data)
    logger.info(
        "[MODERATION CONFIG] Loaded %s (enabled=%s, dry_run=%s, allowed_tools=%s)",
        path,
        config.enabled,
        config.dry_run,
        config.allowed_tools or "all",
    )
    return config
