"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class LedgerSettings(BaseSettings):
    """Ledger node connection used for nonce lookups and payouts."""

    provider: str = Field(
        "http://127.0.0.1:8545",
        description="JSON-RPC endpoint URL of the ledger node",
    )
    network: str = Field(
        "1337",
        description="Blockchain network identifier (chain id) shown to clients",
    )
    faucet_address: str | None = Field(
        None,
        description="Node-managed account that funds payouts",
    )
    timeout_seconds: float = Field(
        10.0,
        description="Timeout for ledger JSON-RPC calls in seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        case_sensitive=False,
    )


class FaucetSettings(BaseSettings):
    """Faucet behaviour and admission configuration."""

    symbol: str = Field(
        "ETH",
        description="Currency symbol (display only)",
    )
    payout: float = Field(
        1.0,
        description="Amount of currency sent per successful claim",
        gt=0,
    )
    interval_minutes: int = Field(
        1440,
        description="Rate limit TTL in minutes; 0 or less disables the limiter",
    )
    proxy_count: int = Field(
        0,
        description="Number of trusted reverse proxies in front of the service",
    )
    http_port: int = Field(
        8080,
        description="Port the HTTP server listens on",
    )
    max_body_bytes: int = Field(
        1024 * 1024,
        description="Maximum accepted claim request body size in bytes",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="FAUCET_",
        case_sensitive=False,
    )


class CaptchaSettings(BaseSettings):
    """hCaptcha configuration. An empty secret disables verification."""

    site_key: str = Field(
        "",
        description="hCaptcha site key exposed to the frontend",
    )
    secret: str = Field(
        "",
        description="hCaptcha secret; empty disables the captcha gate",
    )
    verify_url: str = Field(
        "https://api.hcaptcha.com/siteverify",
        description="hCaptcha verification endpoint",
    )
    timeout_seconds: float = Field(
        5.0,
        description="Timeout for captcha verification calls in seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="HCAPTCHA_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and propagate request ids",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    faucet: FaucetSettings = Field(default_factory=FaucetSettings)
    captcha: CaptchaSettings = Field(default_factory=CaptchaSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
