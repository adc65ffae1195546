"""Configuration for neuramark-identity.

Settings are pydantic-validated and loaded from environment variables with
the ``NEURAMARK_`` prefix. Nested sub-configs use ``__`` as delimiter, e.g.
``NEURAMARK_CHAIN__CONTRACT_ADDRESS`` or ``NEURAMARK_RETRY__MAX_ATTEMPTS``.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from neuramark_identity.credentials.issuer import DEFAULT_ISSUER_NAME
from neuramark_identity.retry import RetryPolicy

# ─── Sub-configs ──────────────────────────────────────────────────


class ChainConfig(BaseModel):
    network: str = "Sepolia"
    contract_address: str = ""
    chain_id: int = 11155111


class RetryConfig(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=0.1, ge=0)
    max_delay: float = Field(default=2.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            multiplier=self.multiplier,
        )


# ─── Root ─────────────────────────────────────────────────────────


class Settings(BaseSettings):
    """Root configuration, overridable by environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NEURAMARK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    data_dir: Path = Path(".neuramark")
    signing_key_path: Path | None = None
    issuer_name: str = DEFAULT_ISSUER_NAME
    commit_attempts: int = Field(default=5, ge=1)
    audit_log_path: Path | None = None
    log_level: str = "INFO"

    chain: ChainConfig = Field(default_factory=ChainConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level {value!r}.")
        return level

    @property
    def resolved_key_path(self) -> Path:
        """Key file used by the CLI: the configured path or one under ``data_dir``."""
        return self.signing_key_path or self.data_dir / "platform_key.pem"

    @property
    def blob_dir(self) -> Path:
        return self.data_dir / "blobs"

    @property
    def records_path(self) -> Path:
        return self.data_dir / "records.ndjson"

    @property
    def proofs_path(self) -> Path:
        return self.data_dir / "proofs.ndjson"


def load_settings(**overrides: Any) -> Settings:
    """Load settings from the environment, with keyword overrides on top."""
    return Settings(**overrides)


__all__ = ["ChainConfig", "RetryConfig", "Settings", "load_settings"]
