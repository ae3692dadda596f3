"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``ATTESTOR_``, nested via ``__``)
2. YAML config file (``ATTESTOR_CONFIG_PATH`` env var)
3. Defaults defined here
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class DatabaseEngine(enum.StrEnum):
    """Supported database engines."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class ServerConfig(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_SERVER__",
        case_sensitive=False,
    )

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3010


class DatabaseConfig(BaseSettings):
    """Database settings."""

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_DB__",
        case_sensitive=False,
    )

    engine: DatabaseEngine = Field(
        default=DatabaseEngine.SQLITE,
        description="Database backend: sqlite or postgresql",
    )
    dsn: str = Field(
        default="sqlite+aiosqlite:///./username_attestor.db",
        description="Async database connection string",
    )
    max_idle_connections: int = 5
    max_open_connections: int = 10
    debug_sql: bool = False
    auto_migrate: bool = Field(
        default=True,
        description="Create missing tables on startup; when off, missing tables are fatal",
    )


class LedgerConfig(BaseSettings):
    """Wallet daemon (JSON-RPC) settings."""

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_LEDGER__",
        case_sensitive=False,
    )

    url: str = "http://127.0.0.1:6332"
    token: str = ""
    timeout: float = 30.0


class ChatConfig(BaseSettings):
    """Chat gateway settings."""

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_CHAT__",
        case_sensitive=False,
    )

    url: str = "http://127.0.0.1:6611"
    token: str = ""
    timeout: float = 10.0


class AdminConfig(BaseSettings):
    """Operator notification channel."""

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_ADMIN__",
        case_sensitive=False,
    )

    webhook_url: str = ""
    token: str = ""
    max_retries: int = 2


class PriceThreshold(BaseModel):
    """Price applied to identifiers of at least ``min_length`` characters."""

    min_length: int = Field(ge=0)
    amount: int = Field(ge=0)


def _default_thresholds() -> list[PriceThreshold]:
    return [
        PriceThreshold(min_length=3, amount=1450),
        PriceThreshold(min_length=4, amount=1750),
        PriceThreshold(min_length=5, amount=2050),
    ]


class PricingConfig(BaseSettings):
    """Username price table."""

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_PRICING__",
        case_sensitive=False,
    )

    thresholds: list[PriceThreshold] = Field(default_factory=_default_thresholds)


class ReservationConfig(BaseSettings):
    """Reservation timing and limits."""

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_RESERVATION__",
        case_sensitive=False,
    )

    price_timeout: int = Field(default=3600, description="Seconds a quoted price holds")
    reminder_timeout: int = Field(
        default=120, description="Seconds before expiry at which the holder is warned"
    )
    max_identifiers_per_requester: int = 5

    @model_validator(mode="after")
    def _check_reminder(self) -> Self:
        if self.reminder_timeout > self.price_timeout:
            msg = "reminder_timeout must not exceed price_timeout"
            raise ValueError(msg)
        return self


class FundsConfig(BaseSettings):
    """Bounce and fund consolidation settings."""

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_FUNDS__",
        case_sensitive=False,
    )

    bounce_fee: int = 10000
    min_bounce_margin: int = 1000
    payout_address: str = ""
    max_paying_addresses: int = 16


class AttestationConfig(BaseSettings):
    """Attestation payload settings."""

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_ATTESTATION__",
        case_sensitive=False,
    )

    salt: str = ""
    post_timestamp: bool = False


class TextsConfig(BaseSettings):
    """Localisation settings."""

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_TEXTS__",
        case_sensitive=False,
    )

    multilingual: bool = False
    default_locale: str = "en"
    languages: dict[str, str] = Field(default_factory=lambda: {"en": "English"})


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


class TaskConfig(BaseSettings):
    """Background cron periods (seconds)."""

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_TASK__",
        case_sensitive=False,
    )

    enabled: bool = True
    retry_attestations_period: float = 10
    expiry_sweep_period: float = 60
    accumulate_funds_period: float = 3600
    payout_period: float = 7 * 24 * 3600


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``ATTESTOR_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="ATTESTOR_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    log_level: str = "INFO"
    config_path: str = ""
    callback_token: str = ""

    server: ServerConfig = Field(default_factory=ServerConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    admin: AdminConfig = Field(default_factory=AdminConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    reservation: ReservationConfig = Field(default_factory=ReservationConfig)
    funds: FundsConfig = Field(default_factory=FundsConfig)
    attestation: AttestationConfig = Field(default_factory=AttestationConfig)
    texts: TextsConfig = Field(default_factory=TextsConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    task: TaskConfig = Field(default_factory=TaskConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                values[key] = {**val, **values[key]}
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
