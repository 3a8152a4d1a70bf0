"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``NXTCONNECTOR_``, nested via ``__``)
2. YAML config file (``NXTCONNECTOR_CONFIG_PATH`` env var)
3. Defaults defined here
"""

from __future__ import annotations

import enum
from decimal import Decimal
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class DatabaseEngine(enum.StrEnum):
    """Supported database engines."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


# Default NXT node HTTP API ports
MAINNET_URL = "http://localhost:7876"
TESTNET_URL = "http://localhost:6876"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class DatabaseConfig(BaseSettings):
    """Wallet database settings."""

    model_config = SettingsConfigDict(
        env_prefix="NXTCONNECTOR_DB__",
        case_sensitive=False,
    )

    engine: DatabaseEngine = Field(
        default=DatabaseEngine.SQLITE,
        description="Database backend: sqlite or postgresql",
    )
    dsn: str = Field(
        default="sqlite+aiosqlite:///./nxtwallet.db",
        description="Async database connection string",
    )
    max_idle_connections: int = 5
    max_open_connections: int = 10
    debug_sql: bool = False


class NxtConfig(BaseSettings):
    """NXT node HTTP API settings."""

    model_config = SettingsConfigDict(
        env_prefix="NXTCONNECTOR_NXT__",
        case_sensitive=False,
    )

    url: str = ""
    testnet: bool = False
    timeout: float = 30.0

    @property
    def effective_url(self) -> str:
        """The configured URL, or the local node default for the network."""
        if self.url:
            return self.url
        return TESTNET_URL if self.testnet else MAINNET_URL


class WalletConfig(BaseSettings):
    """Wallet behaviour: key material protection, fees, scanning."""

    model_config = SettingsConfigDict(
        env_prefix="NXTCONNECTOR_WALLET__",
        case_sensitive=False,
    )

    encryption_key: str = ""
    kdf_iterations: int = Field(default=480_000, ge=1)
    fee: Decimal = Field(default=Decimal("1"), gt=0, description="Fixed fee per transfer (NXT)")
    deadline: int = Field(default=1440, ge=1, le=1440, description="Validity window (minutes)")
    ping_interval: float = Field(default=1.0, ge=0)
    include_unconfirmed: bool = True
    rescan_depth: int = Field(
        default=10, ge=1, description="Blocks re-scanned below a fork before re-linking"
    )


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="NXTCONNECTOR_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


class LoggingConfig(BaseSettings):
    """Log sink settings, applied by the console entry point only."""

    model_config = SettingsConfigDict(
        env_prefix="NXTCONNECTOR_LOGGING__",
        case_sensitive=False,
    )

    level: str = "INFO"
    file: str = ""


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
    """Top-level connector configuration.

    Loads settings from environment variables (``NXTCONNECTOR_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="NXTCONNECTOR_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    version: str = "0.1.0"
    config_path: str = ""

    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    nxt: NxtConfig = Field(default_factory=NxtConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

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
