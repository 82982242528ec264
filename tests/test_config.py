"""Tests for configuration parsing and health checks."""

from food_catalog.config import Settings, config_health, fatsecret_config


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "supabase_url": "https://example.supabase.co",
        "supabase_service_key": "service-key",
        "admin_token": "admin-token",
        "fatsecret_client_id": "client-id",
        "fatsecret_client_secret": "client-secret",
    }
    values.update(overrides)
    return Settings(**values)


def test_fatsecret_config_uses_settings() -> None:
    config = fatsecret_config(
        _settings(fatsecret_timeout="8000", fatsecret_fallback_enabled="false")
    )

    assert config.enabled is True
    assert config.timeout_ms == 8000
    assert config.max_results == 20
    assert config.fallback_enabled is False


def test_invalid_numbers_fall_back_to_defaults() -> None:
    settings = _settings(fatsecret_timeout="fast", fatsecret_max_results="")

    assert settings.fatsecret_timeout == 5000
    assert settings.fatsecret_max_results == 20


def test_non_positive_numbers_fall_back_to_defaults() -> None:
    settings = _settings(fatsecret_timeout=-5, fatsecret_max_results="0")

    assert settings.fatsecret_timeout == 5000
    assert settings.fatsecret_max_results == 20
    assert fatsecret_config(settings).max_results == 20


def test_flags_are_enabled_unless_explicitly_off() -> None:
    assert _settings(fatsecret_enabled="yes please").fatsecret_enabled is True
    assert _settings(fatsecret_enabled="OFF").fatsecret_enabled is False
    assert _settings(search_cache_enabled="0").search_cache_enabled is False


def test_missing_credentials_disable_integration() -> None:
    config = fatsecret_config(_settings(fatsecret_client_secret=""))

    assert config.enabled is False
    assert config.client_id == ""


def test_config_health_reports_healthy_configuration() -> None:
    health = config_health(_settings())

    assert health.healthy is True
    assert health.enabled is True
    assert health.has_credentials is True
    assert health.issues == []
    assert health.timestamp


def test_config_health_flags_issues() -> None:
    health = config_health(
        _settings(
            fatsecret_timeout=500,
            fatsecret_max_results=250,
            fatsecret_base_url="http://platform.fatsecret.com/rest/server.api",
        )
    )

    assert health.healthy is False
    assert health.issues == [
        "Timeout too low: 500ms (minimum 1000ms recommended)",
        "maxResults too high: 250 (maximum 100 recommended)",
        "Base URL should use HTTPS protocol",
    ]


def test_config_health_without_credentials() -> None:
    health = config_health(_settings(fatsecret_client_id=""))

    assert health.healthy is False
    assert health.enabled is False
    assert health.has_credentials is False
    assert "Integration is disabled" in health.issues
    assert (
        "Missing required credentials "
        "(FATSECRET_CLIENT_ID or FATSECRET_CLIENT_SECRET)"
    ) in health.issues


def test_disabled_integration_is_not_healthy() -> None:
    health = config_health(_settings(fatsecret_enabled=False))

    assert health.healthy is False
    assert health.issues == ["Integration is disabled"]
