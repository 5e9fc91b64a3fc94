"""Tests for the YAML-backed AppConfig."""

from modstream.configuration.app_configuration import AppConfig


def _write(tmp_path, text):
    path = tmp_path / "app_config.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_file_gives_empty_config(tmp_path):
    config = AppConfig(tmp_path / "missing.yml")
    assert config.data == {}
    assert config.ai_settings.base_url == "http://localhost:8000/v1"
    assert config.ai_settings.api_key == "not-needed"
    assert config.history_size == 20


def test_sections_are_wrapped(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("TWITCH_CLIENT_ID", raising=False)
    monkeypatch.delenv("TWITCH_ACCESS_TOKEN", raising=False)
    path = _write(
        tmp_path,
        "ai_settings:\n"
        "  base_url: http://llm.local:1234\n"
        "  model_name: qwen\n"
        "  temperature: 0.1\n"
        "twitch:\n"
        "  client_id: abc\n"
        "  broadcaster_id: '1001'\n"
        "  channel_name: soypetetech\n"
        "history_size: 5\n",
    )

    config = AppConfig(path)
    assert config.ai_settings.model_name == "qwen"
    assert config.ai_settings.temperature == 0.1
    assert config.ai_settings.max_tokens == 500
    assert config.twitch.client_id == "abc"
    assert config.twitch.moderator_id == "1001"
    assert config.twitch.channel_name == "soypetetech"
    assert config.history_size == 5


def test_environment_overrides_secrets(tmp_path, monkeypatch):
    path = _write(tmp_path, "twitch:\n  access_token: from-file\n")
    monkeypatch.setenv("TWITCH_ACCESS_TOKEN", "from-env")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

    config = AppConfig(path)
    assert config.twitch.access_token == "from-env"
    assert config.ai_settings.api_key == "sk-env"
    # The cached mapping itself is untouched
    assert config.data["twitch"]["access_token"] == "from-file"


def test_invalid_yaml_gives_empty_config(tmp_path):
    path = _write(tmp_path, "twitch: [unclosed\n")
    assert AppConfig(path).data == {}


def test_reload(tmp_path):
    path = _write(tmp_path, "history_size: 5\n")
    config = AppConfig(path)
    path.write_text("history_size: 9\n", encoding="utf-8")
    assert config.history_size == 5
    config.reload()
    assert config.history_size == 9
