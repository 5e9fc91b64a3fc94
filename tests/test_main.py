import sys

import pytest

from modstream import main
from modstream.configuration.app_configuration import AppConfig
from modstream.moderation.errors import ConfigError
from modstream.moderation.monitor import Monitor
from modstream.telemetry.metrics import InMemoryMetrics


def test_resolve_base_dir_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("MODSTREAM_HOME", str(tmp_path))

    assert main.resolve_base_dir() == tmp_path.resolve()


def test_resolve_base_dir_compiled(tmp_path, monkeypatch):
    monkeypatch.delenv("MODSTREAM_HOME", raising=False)
    monkeypatch.setattr(sys, "frozen", True, raising=False)
    monkeypatch.setattr(sys, "argv", [str(tmp_path / "modstream.exe")])

    assert main.resolve_base_dir() == tmp_path.resolve()


def test_resolve_base_dir_source(monkeypatch):
    monkeypatch.delenv("MODSTREAM_HOME", raising=False)
    monkeypatch.setattr(sys, "frozen", False, raising=False)
    monkeypatch.setattr(sys, "compiled", False, raising=False)

    assert main.resolve_base_dir() == main.Path(main.__file__).resolve().parents[2]


@pytest.fixture
def app_config(tmp_path, monkeypatch):
    for var in ("OPENAI_API_KEY", "TWITCH_CLIENT_ID", "TWITCH_ACCESS_TOKEN"):
        monkeypatch.delenv(var, raising=False)

    moderation = tmp_path / "moderation.yml"
    moderation.write_text("enabled: true\ndry_run: true\nrate_limits:\n  actions_per_minute: 4\n", encoding="utf-8")

    def _make(twitch_section):
        path = tmp_path / "app_config.yml"
        path.write_text(
            "ai_settings:\n"
            "  base_url: http://localhost:8000\n"
            "  model_name: qwen\n"
            f"twitch:\n{twitch_section}"
            f"moderation_config: {moderation}\n"
            "history_size: 7\n",
            encoding="utf-8",
        )
        return AppConfig(path)

    return _make


def test_build_monitor_wires_components(app_config, audit_store):
    config = app_config(
        "  client_id: abc\n"
        "  access_token: tok\n"
        "  broadcaster_id: '1001'\n"
        "  channel_name: soypetetech\n"
    )

    monitor = main.build_monitor(config, audit_store, InMemoryMetrics())

    assert isinstance(monitor, Monitor)
    assert monitor.config.enabled is True
    assert monitor.config.dry_run is True
    assert monitor.channel_name == "soypetetech"
    assert monitor.dispatcher.rate_limiter.budget == 4
    assert monitor.history.capacity == 7
    assert isinstance(monitor.dispatcher._transport, main.HelixClient)


def test_build_monitor_requires_twitch_credentials(app_config, audit_store):
    config = app_config("  client_id: abc\n  channel_name: soypetetech\n")

    with pytest.raises(ConfigError):
        main.build_monitor(config, audit_store, InMemoryMetrics())


class TestChatTransport:
    """Tests for choosing where warnings are delivered."""

    @pytest.fixture
    def helix(self):
        return main.HelixClient(client_id="abc", access_token="tok", broadcaster_id="1001", moderator_id="1001")

    def test_defaults_to_helix(self, helix):
        assert main.build_chat_transport(main.TwitchSettings({}), helix) is helix

    def test_console(self, helix):
        transport = main.build_chat_transport(main.TwitchSettings({"chat_transport": "Console"}), helix)
        assert isinstance(transport, main.ConsoleChatTransport)

    def test_unknown_transport(self, helix):
        with pytest.raises(ConfigError):
            main.build_chat_transport(main.TwitchSettings({"chat_transport": "irc"}), helix)
