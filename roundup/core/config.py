"""Application configuration loaded from environment variables."""

import re
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# GitHub "owner/repo" without trailing or extra segments.
_REPO_SPEC = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Validated roundup settings from env and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    APP_ENV: Literal["dev", "prod"] = "dev"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_V1_PREFIX: str = "/api/v1"

    # Iteration directories (1/, 2/, ...) holding scanner output and tickets
    ITERATIONS_DIR: Path = Path("iterations")
    # One <release>.toml whitelist per scanned channel
    WHITELIST_DIR: Path = Path("whitelists")
    # Build output prefix rewritten out of free-text fields
    STORE_DIR: str = "/nix/store"
    # Directory of store dumps (one path per line); when set only installed packages are ticketed
    STORE_DUMPS_DIR: Path | None = None

    # Maintainer pings: "Cc @handle" lines in ticket footers
    PING_MAINTAINERS: bool = False
    # Check handles against the GitHub users API before pinging
    VALIDATE_HANDLES: bool = False
    HANDLE_VALIDATION_CONCURRENCY: int = 8
    HANDLE_VALIDATION_RETRIES: int = 2

    # GitHub (optional; required only for handle validation with auth and issue export)
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TOKEN: SecretStr | None = None
    GITHUB_REPO: str | None = None
    GITHUB_ISSUE_LABEL: str = "1.severity: security"
    GITHUB_REQUEST_TIMEOUT_SEC: float = 30.0

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = (v or "").strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {list(VALID_LOG_LEVELS)}, got {v!r}")
        return level

    @field_validator("STORE_DIR")
    @classmethod
    def validate_store_dir(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("STORE_DIR must be set and non-empty")
        s = v.strip().rstrip("/")
        if not s.startswith("/"):
            raise ValueError("STORE_DIR must be an absolute path (e.g. /nix/store)")
        return s

    @field_validator("HANDLE_VALIDATION_CONCURRENCY")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1 or v > 64:
            raise ValueError("HANDLE_VALIDATION_CONCURRENCY must be between 1 and 64")
        return v

    @field_validator("HANDLE_VALIDATION_RETRIES")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0 or v > 10:
            raise ValueError("HANDLE_VALIDATION_RETRIES must be between 0 and 10")
        return v

    @field_validator("GITHUB_API_URL")
    @classmethod
    def validate_github_api_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("GITHUB_API_URL must be set and non-empty")
        s = v.strip().rstrip("/")
        if not (s.lower().startswith("http://") or s.lower().startswith("https://")):
            raise ValueError(
                "GITHUB_API_URL must use http or https (e.g. https://api.github.com)"
            )
        return s

    @field_validator("GITHUB_REPO")
    @classmethod
    def validate_github_repo(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        if not _REPO_SPEC.match(v.strip()):
            raise ValueError("GITHUB_REPO must be in the format <OWNER>/<REPO>")
        return v.strip()

    @field_validator("GITHUB_ISSUE_LABEL")
    @classmethod
    def validate_issue_label(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("GITHUB_ISSUE_LABEL must be set and non-empty")
        return v.strip()

    @field_validator("GITHUB_REQUEST_TIMEOUT_SEC")
    @classmethod
    def validate_github_timeout(cls, v: float) -> float:
        if v <= 0 or v > 120:
            raise ValueError(
                "GITHUB_REQUEST_TIMEOUT_SEC must be greater than 0 and at most 120"
            )
        return v


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance (safe to call from dependencies)."""
    return Settings()


settings = get_settings()
