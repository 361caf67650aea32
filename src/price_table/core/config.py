"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from price_table.core.exceptions import ConfigError
from price_table.core.models import AgeLimit, ExchangeId

DEFAULT_PAIRS = ["eur", "usd"]
DEFAULT_ASSETS = ["btc", "eth", "zec", "ltc", "xmr", "dash", "eos", "etc", "xlm", "xrp"]


def _normalize_keys(values: list[str], name: str) -> list[str]:
    keys = [v.strip().lower() for v in values]
    if not keys or any(not k for k in keys):
        raise ValueError(f"{name} must be a non-empty list of non-empty names")
    if len(set(keys)) != len(keys):
        raise ValueError(f"{name} must not contain duplicates")
    return keys


class MarketsConfig(BaseModel):
    """Which fiat pairs and assets are polled."""

    model_config = ConfigDict(frozen=True)

    pairs: list[str] = DEFAULT_PAIRS
    assets: list[str] = DEFAULT_ASSETS

    @field_validator("pairs", mode="before")
    @classmethod
    def split_pairs(cls, v):
        if isinstance(v, str):
            return v.split(",")
        return v

    @field_validator("assets", mode="before")
    @classmethod
    def split_assets(cls, v):
        if isinstance(v, str):
            return v.split(",")
        return v

    @field_validator("pairs")
    @classmethod
    def pairs_valid(cls, v: list[str]) -> list[str]:
        return _normalize_keys(v, "pairs")

    @field_validator("assets")
    @classmethod
    def assets_valid(cls, v: list[str]) -> list[str]:
        return _normalize_keys(v, "assets")


class ExchangeConfig(BaseModel):
    """Upstream ticker source configuration."""

    model_config = ConfigDict(frozen=True)

    id: ExchangeId = ExchangeId.KRAKEN
    base_url: str = "https://api.kraken.com"
    request_timeout: float = 10.0
    rate_limit: int = 1
    mock_failure_rate: float = 0.0
    mock_delay: float = 0.0

    @field_validator("rate_limit")
    @classmethod
    def rate_limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("rate_limit must be >= 1")
        return v

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v

    @field_validator("mock_failure_rate")
    @classmethod
    def failure_rate_is_probability(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("mock_failure_rate must be between 0 and 1")
        return v

    @field_validator("mock_delay")
    @classmethod
    def delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("mock_delay must be >= 0")
        return v


class RetryConfig(BaseModel):
    """Attempt limits for the retried operations."""

    model_config = ConfigDict(frozen=True)

    exchange_data_import: int = 10
    exchange_data_export: int = 9
    state_cache_import: int = 9
    delay_seconds: float = 1.0

    @field_validator("exchange_data_import", "exchange_data_export", "state_cache_import")
    @classmethod
    def limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry limits must be >= 1")
        return v

    @field_validator("delay_seconds")
    @classmethod
    def delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("delay_seconds must be >= 0")
        return v


class CacheConfig(BaseModel):
    """Durable state cache configuration."""

    model_config = ConfigDict(frozen=True)

    path: str = "./data/statecache.json"
    age_limit: AgeLimit = AgeLimit()


class SchedulerConfig(BaseModel):
    """Update cadence. Ticks align to ``interval_seconds`` past the minute."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    skip_minutes: int = 1
    interval_seconds: int = 0

    @field_validator("skip_minutes")
    @classmethod
    def skip_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("skip_minutes must be >= 0")
        return v

    @field_validator("interval_seconds")
    @classmethod
    def interval_within_minute(cls, v: int) -> int:
        if not 0 <= v <= 59:
            raise ValueError("interval_seconds must be between 0 and 59")
        return v


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 9001


class LoggingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def level_known(cls, v: str) -> str:
        upper = v.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v!r}")
        return upper


class PriceTableConfig(BaseModel):
    """Root configuration for the entire price-table-server."""

    model_config = ConfigDict(frozen=True)

    markets: MarketsConfig = MarketsConfig()
    exchange: ExchangeConfig = ExchangeConfig()
    retry: RetryConfig = RetryConfig()
    cache: CacheConfig = CacheConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    api: APIConfig = APIConfig()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def mock_settings_only_for_mock(self) -> PriceTableConfig:
        if self.exchange.id != ExchangeId.MOCK and self.exchange.mock_failure_rate > 0:
            raise ValueError("mock_failure_rate is only supported with exchange id 'mock'")
        return self


def load_config(
    config_path: str | None = None,
    env_prefix: str = "PRICE_TABLE_",
) -> PriceTableConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (PRICE_TABLE_EXCHANGE__ID, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        PRICE_TABLE_RETRY__DELAY_SECONDS=0  ->  retry.delay_seconds = 0
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return PriceTableConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("PRICE_TABLE_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from PRICE_TABLE_CONFIG not found: {env_path}",
                context={"field": "PRICE_TABLE_CONFIG", "value": env_path},
            )
        return p

    default = Path("price-table.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels. Values are auto-cast.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        parts = [p.lower() for p in key[len(prefix) :].split("__")]

        # The config path variable is not a setting
        if parts == ["config"]:
            continue

        target = result
        for part in parts[:-1]:
            nested = target.get(part)
            if not isinstance(nested, dict):
                nested = {} if nested is None else dict(nested)
            else:
                nested = dict(nested)
            target[part] = nested
            target = nested
        target[parts[-1]] = _auto_cast(value)

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
