"""Tests for configuration loading."""

import pytest

from contractlens_core.config import BUILTIN_PROVIDER, Credentials, load_config, settings_from_config
from contractlens_core.models import Language


@pytest.fixture(autouse=True)
def no_api_key_env(monkeypatch):
    monkeypatch.delenv("CONTRACTLENS_API_KEY", raising=False)
    monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["language"] == "zh-Hans"
    assert config["provider"] == "deepseek"
    assert config["temperature"] == 0.7
    assert config["store"] == "json"
    assert config["max_input_tokens"] is None
    assert config["api_key"] is None


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".lens.yml"
    cfg.write_text("language: en\nstore: sqlite\n")
    config = load_config(config_path=str(cfg))
    assert config["language"] == "en"
    assert config["store"] == "sqlite"


def test_empty_config_file_keeps_defaults(tmp_path):
    cfg = tmp_path / ".lens.yml"
    cfg.write_text("")
    config = load_config(config_path=str(cfg))
    assert config["provider"] == "deepseek"


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".lens.yml"
    cfg.write_text("language: en\n")
    config = load_config(config_path=str(cfg), cli_overrides={"language": "zh-Hans"})
    assert config["language"] == "zh-Hans"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".lens.yml"
    cfg.write_text("language: en\n")
    config = load_config(config_path=str(cfg), cli_overrides={"language": None})
    assert config["language"] == "en"


def test_api_key_read_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-deepseek")
    config = load_config(config_path=str(tmp_path / "none.yml"))
    assert config["api_key"] == "sk-deepseek"


def test_contractlens_env_var_takes_precedence(tmp_path, monkeypatch):
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-deepseek")
    monkeypatch.setenv("CONTRACTLENS_API_KEY", "sk-contractlens")
    config = load_config(config_path=str(tmp_path / "none.yml"))
    assert config["api_key"] == "sk-contractlens"


class TestSettingsFromConfig:
    def test_builtin_provider_ignores_custom_endpoint(self, tmp_path):
        cfg = tmp_path / ".lens.yml"
        cfg.write_text("base_url: https://example.com/v1\nchat_model: other\n")
        settings = settings_from_config(load_config(config_path=str(cfg)))
        assert settings.base_url == BUILTIN_PROVIDER["base_url"]
        assert settings.chat_model == "deepseek-chat"
        assert settings.reasoner_model == "deepseek-reasoner"

    def test_custom_provider_uses_configured_endpoint(self, tmp_path):
        cfg = tmp_path / ".lens.yml"
        cfg.write_text("provider: custom\nbase_url: https://example.com/v1\nchat_model: other\n")
        settings = settings_from_config(load_config(config_path=str(cfg)))
        assert settings.base_url == "https://example.com/v1"
        assert settings.chat_model == "other"
        assert settings.reasoner_model == "deepseek-reasoner"

    def test_language_and_numbers_parsed(self, tmp_path):
        cfg = tmp_path / ".lens.yml"
        cfg.write_text("language: en\nrequest_timeout: 60\nmax_input_tokens: 64000\n")
        settings = settings_from_config(load_config(config_path=str(cfg)))
        assert settings.language == Language.ENGLISH
        assert settings.request_timeout == 60.0
        assert settings.max_input_tokens == 64000

    def test_temperature_read_from_file(self, tmp_path):
        cfg = tmp_path / ".lens.yml"
        cfg.write_text("temperature: 0.2\n")
        settings = settings_from_config(load_config(config_path=str(cfg)))
        assert settings.temperature == 0.2

    def test_unknown_language_falls_back_to_chinese(self):
        settings = settings_from_config({"language": "fr"})
        assert settings.language == Language.CHINESE


def test_credentials_blank_key_is_empty():
    assert Credentials(api_key="   ").is_empty
    assert not Credentials(api_key="sk-1").is_empty
