# pylint: disable=missing-module-docstring,missing-function-docstring

import dataclasses

import pytest

from live_relay.config import AppConfig

_ENV_VARS = (
    "ENV", "HOST", "PORT", "GEMINI_API_KEY", "GEMINI_MODEL", "GEMINI_VOICE",
    "DEFAULT_SYSTEM", "ENABLE_DOC", "DOC_PATH", "KB_TEXT_MODEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = AppConfig.load_from_env()

    assert config.port == 3000
    assert config.gemini_api_key is None
    assert config.gemini_model == "gemini-2.0-flash-live-001"
    assert config.gemini_voice is None
    assert config.kb_text_model == "gemini-1.5-flash-002"
    assert config.enable_doc is True
    assert config.doc_path == "data/reference.pdf"
    assert config.default_system == "You are a helpful assistant."


def test_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("GEMINI_API_KEY", "k")
    monkeypatch.setenv("GEMINI_MODEL", "custom-live")
    monkeypatch.setenv("GEMINI_VOICE", "Puck")
    monkeypatch.setenv("ENABLE_DOC", "0")

    config = AppConfig.load_from_env()

    assert config.port == 8080
    assert config.gemini_api_key == "k"
    assert config.gemini_model == "custom-live"
    assert config.gemini_voice == "Puck"
    assert config.enable_doc is False


def test_config_is_immutable() -> None:
    config = AppConfig.load_from_env()

    with pytest.raises(dataclasses.FrozenInstanceError):
        config.gemini_model = "other"  # type: ignore[misc]
