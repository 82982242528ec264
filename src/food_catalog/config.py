"""Application configuration."""

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

DEFAULT_FATSECRET_BASE_URL = "https://platform.fatsecret.com/rest/server.api"
DEFAULT_FATSECRET_TOKEN_URL = "https://oauth.fatsecret.com/connect/token"
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_MAX_RESULTS = 20

_FALSE_VALUES = {"false", "0", "no", "off"}

_logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    fatsecret_enabled: bool = True
    fatsecret_client_id: str = ""
    fatsecret_client_secret: str = ""
    fatsecret_base_url: str = DEFAULT_FATSECRET_BASE_URL
    fatsecret_token_url: str = DEFAULT_FATSECRET_TOKEN_URL
    fatsecret_timeout: int = DEFAULT_TIMEOUT_MS
    fatsecret_max_results: int = DEFAULT_MAX_RESULTS
    fatsecret_fallback_enabled: bool = True
    openfoodfacts_base_url: str = "https://world.openfoodfacts.org"
    openfoodfacts_user_agent: str = "food-catalog/0.1"
    search_cache_enabled: bool = True
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @field_validator(
        "fatsecret_enabled",
        "fatsecret_fallback_enabled",
        "search_cache_enabled",
        mode="before",
    )
    @classmethod
    def _parse_flag(cls, value: object) -> object:
        """Treat anything but an explicit "off" value as enabled."""
        if isinstance(value, str):
            return value.strip().lower() not in _FALSE_VALUES
        return value

    @field_validator("fatsecret_timeout", "fatsecret_max_results", mode="before")
    @classmethod
    def _parse_int_or_default(cls, value: object, info: ValidationInfo) -> object:
        """Fall back to the field default unless the value is a positive integer."""
        default = cls.model_fields[info.field_name].default
        if isinstance(value, bool):
            return default
        if isinstance(value, int):
            parsed = value
        else:
            try:
                parsed = int(str(value).strip())
            except (TypeError, ValueError):
                return default
        return parsed if parsed > 0 else default


@dataclass(frozen=True)
class FatSecretConfig:
    """Resolved FatSecret integration settings."""

    enabled: bool
    client_id: str
    client_secret: str
    base_url: str = DEFAULT_FATSECRET_BASE_URL
    token_url: str = DEFAULT_FATSECRET_TOKEN_URL
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_results: int = DEFAULT_MAX_RESULTS
    fallback_enabled: bool = True


@dataclass(frozen=True)
class ConfigHealth:
    """Result of a configuration health check."""

    healthy: bool
    enabled: bool
    has_credentials: bool
    issues: list[str] = field(default_factory=list)
    timestamp: str = ""


def fatsecret_config(settings: Settings) -> FatSecretConfig:
    """Build the FatSecret config, disabling it when credentials are missing."""
    has_credentials = bool(
        settings.fatsecret_client_id and settings.fatsecret_client_secret
    )
    if settings.fatsecret_enabled and not has_credentials:
        _logger.error(
            "FatSecret credentials missing, disabling integration "
            "(has_client_id=%s, has_client_secret=%s)",
            bool(settings.fatsecret_client_id),
            bool(settings.fatsecret_client_secret),
        )
        return FatSecretConfig(enabled=False, client_id="", client_secret="")

    config = FatSecretConfig(
        enabled=settings.fatsecret_enabled,
        client_id=settings.fatsecret_client_id,
        client_secret=settings.fatsecret_client_secret,
        base_url=settings.fatsecret_base_url or DEFAULT_FATSECRET_BASE_URL,
        token_url=settings.fatsecret_token_url or DEFAULT_FATSECRET_TOKEN_URL,
        timeout_ms=settings.fatsecret_timeout,
        max_results=settings.fatsecret_max_results,
        fallback_enabled=settings.fatsecret_fallback_enabled,
    )
    if config.enabled:
        _logger.info(
            "FatSecret integration enabled: base_url=%s timeout=%sms "
            "max_results=%s fallback=%s",
            config.base_url,
            config.timeout_ms,
            config.max_results,
            config.fallback_enabled,
        )
    return config


def config_health(settings: Settings) -> ConfigHealth:
    """Check the FatSecret configuration without calling the API."""
    config = fatsecret_config(settings)
    issues: list[str] = []
    if not config.enabled:
        issues.append("Integration is disabled")

    has_credentials = bool(config.client_id and config.client_secret)
    if settings.fatsecret_enabled and not has_credentials:
        issues.append(
            "Missing required credentials "
            "(FATSECRET_CLIENT_ID or FATSECRET_CLIENT_SECRET)"
        )

    if config.timeout_ms < 1000:  # noqa: PLR2004
        issues.append(
            f"Timeout too low: {config.timeout_ms}ms (minimum 1000ms recommended)"
        )
    elif config.timeout_ms > 30000:  # noqa: PLR2004
        issues.append(
            f"Timeout too high: {config.timeout_ms}ms (maximum 30000ms recommended)"
        )

    if config.max_results < 1:
        issues.append(f"maxResults too low: {config.max_results} (minimum 1)")
    elif config.max_results > 100:  # noqa: PLR2004
        issues.append(
            f"maxResults too high: {config.max_results} (maximum 100 recommended)"
        )

    if config.base_url and not config.base_url.startswith("https://"):
        issues.append("Base URL should use HTTPS protocol")

    blocking = [issue for issue in issues if issue != "Integration is disabled"]
    return ConfigHealth(
        healthy=config.enabled and has_credentials and not blocking,
        enabled=config.enabled,
        has_credentials=has_credentials,
        issues=issues,
        timestamp=datetime.now(tz=UTC).isoformat(),
    )
