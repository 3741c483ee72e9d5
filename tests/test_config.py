"""
Tests for settings resolution.
"""

import pytest

from tabwise.config import clamp_max_tabs, load_env_file, load_settings
from tabwise.constants import ProviderKind
from tabwise.errors import NotConfiguredError
from tabwise.providers import ChatCompletionsAdapter, GeminiAdapter, ProviderConfig, create_adapter

ENV_VARS = [
    "TABWISE_PROVIDER",
    "TABWISE_MODEL",
    "TABWISE_API_KEY",
    "TABWISE_MAX_TABS_PER_WINDOW",
    "TABWISE_DOTENV",
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "DEEPSEEK_API_KEY",
    "OPENROUTER_API_KEY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # set-then-delete so teardown also removes values loaded from .env files
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw, expected",
    [(1, 5), (5, 5), (12, 12), ("20", 20), (30, 30), (99, 30), ("junk", 15), (None, 15)],
)
def test_clamp_max_tabs(raw, expected):
    assert clamp_max_tabs(raw) == expected


@pytest.mark.unit
def test_explicit_provider_and_key(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or")

    settings = load_settings(provider="OpenRouter", use_dotenv=False)

    assert settings.provider is ProviderKind.OPENROUTER
    assert settings.api_key == "sk-or"
    assert settings.max_tabs_per_window == 15
    config = settings.provider_config()
    assert config.model == ""
    assert config.resolved_model() == "google/gemini-2.0-flash-exp:free"


@pytest.mark.unit
def test_provider_detected_from_key(monkeypatch):
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-ds")

    settings = load_settings(use_dotenv=False)

    assert settings.provider is ProviderKind.DEEPSEEK
    assert settings.api_key == "sk-ds"


@pytest.mark.unit
def test_generic_key_and_env_overrides(monkeypatch):
    monkeypatch.setenv("TABWISE_PROVIDER", "gemini")
    monkeypatch.setenv("TABWISE_API_KEY", "generic")
    monkeypatch.setenv("TABWISE_MODEL", "gemini-x")
    monkeypatch.setenv("TABWISE_MAX_TABS_PER_WINDOW", "50")

    settings = load_settings(use_dotenv=False)

    assert settings.provider is ProviderKind.GEMINI
    assert settings.api_key == "generic"
    assert settings.model == "gemini-x"
    assert settings.max_tabs_per_window == 30


@pytest.mark.unit
def test_keyword_overrides_win(monkeypatch):
    monkeypatch.setenv("TABWISE_MAX_TABS_PER_WINDOW", "20")

    settings = load_settings(
        provider="openai", api_key="sk-x", model="m", max_tabs_per_window=7, use_dotenv=False
    )

    assert (settings.api_key, settings.model, settings.max_tabs_per_window) == ("sk-x", "m", 7)


@pytest.mark.unit
def test_unknown_provider():
    with pytest.raises(NotConfiguredError, match="Unknown provider"):
        load_settings(provider="skynet", use_dotenv=False)


@pytest.mark.unit
def test_missing_key_reported():
    settings = load_settings(provider="openai", use_dotenv=False)

    with pytest.raises(NotConfiguredError, match="OPENAI_API_KEY"):
        settings.provider_config()

    with pytest.raises(NotConfiguredError, match="No AI provider configured"):
        load_settings(use_dotenv=False).provider_config()


@pytest.mark.unit
def test_dotenv_file_is_loaded(tmp_path, monkeypatch):
    env_file = tmp_path / "custom.env"
    env_file.write_text("OPENAI_API_KEY=from-dotenv\n")
    monkeypatch.setenv("TABWISE_DOTENV", str(env_file))

    assert load_env_file() == str(env_file)
    settings = load_settings(provider="openai")

    assert settings.api_key == "from-dotenv"


@pytest.mark.unit
def test_create_adapter_per_provider():
    openai = create_adapter(ProviderConfig(ProviderKind.OPENAI, "k", "gpt-test"))
    gemini = create_adapter(ProviderConfig(ProviderKind.GEMINI, "k"))

    assert isinstance(openai, ChatCompletionsAdapter)
    assert openai.endpoint.name == "OpenAI"
    assert openai.model == "gpt-test"
    assert isinstance(gemini, GeminiAdapter)
    assert gemini.model


@pytest.mark.unit
def test_create_adapter_unknown_provider():
    with pytest.raises(ValueError):
        create_adapter(ProviderConfig("skynet", "k"))
