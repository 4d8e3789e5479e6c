"""Unit tests for core/config.py -- validation and provider enablement."""

import pytest
from pydantic import ValidationError

from auth.providers import SUPPORTED_PROVIDERS as REGISTRY_PROVIDERS
from core.config import SUPPORTED_PROVIDERS, Settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_trailing_slashes_are_stripped():
    settings = _settings(ui_url="https://ui.example.com/", api_base_url="https://api.example.com//")
    assert settings.ui_url == "https://ui.example.com"
    assert settings.api_base_url == "https://api.example.com"


@pytest.mark.parametrize("seconds", [0, 1, -5])
def test_unusable_session_lifetime_is_rejected(seconds):
    with pytest.raises(ValidationError):
        _settings(session_expiration_seconds=seconds)


def test_provider_needs_both_id_and_secret():
    settings = _settings(
        google_client_id="id",
        google_client_secret="",
        github_client_id="",
        github_client_secret="",
        discord_client_id="id",
        discord_client_secret="secret",
    )
    assert "discord" in settings.enabled_providers()
    assert "google" not in settings.enabled_providers()


def test_provider_credentials_for_unknown_provider_are_empty():
    assert _settings().provider_credentials("myspace") == ("", "")


def test_provider_list_matches_registry():
    assert set(SUPPORTED_PROVIDERS) == set(REGISTRY_PROVIDERS)
