"""
Client configuration loading and validation.

Loads client settings from a YAML file. The session token is read from an
environment variable and never stored in config files.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator


class RetryConfig(BaseModel):
    attempts: int = Field(default=3, ge=1)
    backoff_seconds: list[float] = Field(default_factory=lambda: [0.25, 0.8, 2.0])
    # Wait used for a 429 without a usable Retry-After header
    rate_limit_wait_seconds: float = 5.0

    @field_validator("backoff_seconds")
    @classmethod
    def _non_empty(cls, v: list[float]) -> list[float]:
        if not v:
            raise ValueError("backoff_seconds needs at least one delay")
        return v

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1``; the last delay repeats."""
        return self.backoff_seconds[min(attempt, len(self.backoff_seconds) - 1)]


class LoggingConfig(BaseModel):
    level: str = "info"
    timing: bool = True
    include_body: bool = False


class ClientConfig(BaseModel):
    base_url: str = "http://localhost:8000"
    timeout_seconds: float = 10.0
    verify_tls: bool = True
    token_env: str = "ACME_API_TOKEN"
    retries: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def token(self) -> str | None:
        return os.environ.get(self.token_env)


def load_config(path: str | Path) -> ClientConfig:
    """Load and validate client configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return ClientConfig.model_validate(raw)
