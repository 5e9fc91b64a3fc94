"""Tests for ModerationConfig loading and allow-list checks."""

import pytest

from modstream.configuration.moderation_config import (
    ModerationConfig,
    default_moderation_config,
    load_moderation_config,
)
from modstream.moderation.errors import ConfigError


class TestDefaults:
    """Tests for the built-in defaults."""

    def test_default_values(self):
        config = default_moderation_config()
        assert config.enabled is False
        assert config.channels == []
        assert config.sensitivity_level == "moderate"
        assert config.allowed_tools == ["no_action", "warn_user", "timeout_user", "delete_message"]
        assert config.rate_limits.actions_per_minute == 10
        assert config.rate_limits.bans_per_hour == 5
        assert config.rate_limits.timeouts_per_user_per_hour == 3
        assert len(config.channel_rules) == 4
        assert config.dry_run is False
        assert config.escalation.warnings_before_timeout == 2
        assert config.escalation.timeouts_before_ban == 3
        assert config.escalation.timeout_multiplier == 2.0

    def test_defaults_are_not_shared_between_instances(self):
        first = ModerationConfig()
        second = ModerationConfig()
        first.allowed_tools.append("ban_user")
        first.rate_limits.actions_per_minute = 1
        assert "ban_user" not in second.allowed_tools
        assert second.rate_limits.actions_per_minute == 10


class TestAllowLists:
    """Tests for is_tool_allowed and is_channel_moderated."""

    def test_empty_tool_list_allows_everything(self):
        config = ModerationConfig(allowed_tools=[])
        assert config.is_tool_allowed("ban_user")
        assert config.is_tool_allowed("anything")

    def test_tool_list_is_verbatim(self):
        config = ModerationConfig(allowed_tools=["warn_user"])
        assert config.is_tool_allowed("warn_user")
        assert not config.is_tool_allowed("Warn_User")
        assert not config.is_tool_allowed("ban_user")

    def test_empty_channel_list_moderates_everything(self):
        assert ModerationConfig().is_channel_moderated("anychannel")

    def test_channel_list(self):
        config = ModerationConfig(channels=["soypetetech"])
        assert config.is_channel_moderated("soypetetech")
        assert not config.is_channel_moderated("otherchannel")


class TestFromDict:
    """Tests for overlaying a parsed mapping on the defaults."""

    def test_partial_overlay_keeps_defaults(self):
        config = ModerationConfig.from_dict({"enabled": True, "rate_limits": {"actions_per_minute": 3}})
        assert config.enabled is True
        assert config.rate_limits.actions_per_minute == 3
        assert config.rate_limits.bans_per_hour == 5
        assert config.sensitivity_level == "moderate"

    def test_unknown_keys_ignored(self):
        config = ModerationConfig.from_dict({"enabled": True, "auto_ban_everyone": True})
        assert config.enabled is True
        assert not hasattr(config, "auto_ban_everyone")

    def test_null_value_keeps_default(self):
        config = ModerationConfig.from_dict({"channel_rules": None})
        assert len(config.channel_rules) == 4

    def test_empty_list_is_kept(self):
        config = ModerationConfig.from_dict({"allowed_tools": []})
        assert config.allowed_tools == []
        assert config.is_tool_allowed("clear_chat")

    def test_list_field_must_be_a_list(self):
        with pytest.raises(ConfigError):
            ModerationConfig.from_dict({"channels": "soypetetech"})

    def test_section_must_be_a_mapping(self):
        with pytest.raises(ConfigError):
            ModerationConfig.from_dict({"rate_limits": 10})

    @pytest.mark.parametrize("value", [None, "ten", [5]])
    def test_section_value_of_wrong_type(self, value):
        with pytest.raises(ConfigError, match="rate_limits.actions_per_minute"):
            ModerationConfig.from_dict({"rate_limits": {"actions_per_minute": value}})

    def test_unrecognised_sensitivity_passes_through(self):
        config = ModerationConfig.from_dict({"sensitivity_level": "paranoid"})
        assert config.sensitivity_level == "paranoid"


class TestLoad:
    """Tests for load_moderation_config."""

    def test_load_file(self, tmp_path):
        path = tmp_path / "moderation.yml"
        path.write_text(
            "enabled: true\n"
            "dry_run: true\n"
            "channels: [soypetetech]\n"
            "allowed_tools:\n"
            "  - no_action\n"
            "  - timeout_user\n"
            "rate_limits:\n"
            "  actions_per_minute: 2\n"
            "escalation:\n"
            "  timeout_multiplier: 3\n"
            "warning_suffix: soypet2Peace\n",
            encoding="utf-8",
        )

        config = load_moderation_config(path)
        assert config.enabled is True
        assert config.dry_run is True
        assert config.channels == ["soypetetech"]
        assert config.allowed_tools == ["no_action", "timeout_user"]
        assert config.rate_limits.actions_per_minute == 2
        assert config.escalation.timeout_multiplier == 3.0
        assert config.warning_suffix == "soypet2Peace"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "moderation.yml"
        path.write_text("", encoding="utf-8")
        assert load_moderation_config(path) == ModerationConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_moderation_config(tmp_path / "missing.yml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "moderation.yml"
        path.write_text("enabled: [true\nchannels: {", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_moderation_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "moderation.yml"
        path.write_text("- enabled\n- dry_run\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_moderation_config(path)

    def test_blank_section_value(self, tmp_path):
        path = tmp_path / "moderation.yml"
        path.write_text("rate_limits:\n  actions_per_minute:\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_moderation_config(path)
