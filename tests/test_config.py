import pytest
from pydantic import ValidationError

from config import AnalysisConfig, LLMSettings


def test_defaults():
    config = AnalysisConfig()
    assert config.max_chars == 50_000
    assert config.timeout == 30.0
    assert config.max_retries == 2
    assert config.base_delay == 1.0


def test_from_env(monkeypatch):
    monkeypatch.setenv("LOG_SLEUTH_MAX_CHARS", "1000")
    monkeypatch.setenv("LOG_SLEUTH_TIMEOUT", "5")
    monkeypatch.setenv("LOG_SLEUTH_MAX_RETRIES", "3")
    monkeypatch.setenv("LOG_SLEUTH_RETRY_DELAY", "0.25")
    config = AnalysisConfig.from_env()
    assert (config.max_chars, config.timeout, config.max_retries, config.base_delay) == (1000, 5.0, 3, 0.25)


@pytest.mark.parametrize("field, value", [("max_chars", 0), ("timeout", 0), ("max_retries", 0), ("base_delay", -1)])
def test_rejects_invalid_limits(field, value):
    with pytest.raises(ValidationError):
        AnalysisConfig(**{field: value})


def test_llm_settings_from_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-abc")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-test")
    monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
    settings = LLMSettings.from_env()
    assert settings.enabled
    assert settings.model == "gpt-test"
    assert settings.base_url == "https://api.openai.com/v1"


def test_llm_disabled_with_blank_key(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "")
    assert not LLMSettings.from_env().enabled
