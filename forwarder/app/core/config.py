"""
Centralized configuration management for the forwarder service.

Pydantic v2 settings management to enforce strict validation,
zero secret leakage, and fast-failure on invalid configuration.
"""

import re
from functools import lru_cache
from typing import Annotated

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# -------------------------------------------------------------------------
# Reusable Type Aliases
# -------------------------------------------------------------------------

SensitiveEnv = Annotated[
    SecretStr,
    Field(description="Sensitive credential, redacted from logs"),
]

# Regional SNS endpoints, including the China partition.
DEFAULT_SIGNING_CERT_HOST_PATTERN = r"^sns\.[a-z0-9-]+\.amazonaws\.com(\.cn)?$"


# -------------------------------------------------------------------------
# Settings Model
# -------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Application settings parsed from the environment.

    Fails fast at startup if the Discord webhook is missing or any
    limit is out of range.
    """

    # ---------------------------------------------------------------------
    # Discord delivery
    # ---------------------------------------------------------------------

    discord_webhook_url: SensitiveEnv

    discord_timeout_seconds: Annotated[
        float,
        Field(
            default=10.0,
            gt=0,
            le=60,
            description="Per-request timeout for Discord webhook calls",
        ),
    ]

    # ---------------------------------------------------------------------
    # SNS signing certificate trust
    # ---------------------------------------------------------------------

    signing_cert_host_pattern: Annotated[
        str,
        Field(
            default=DEFAULT_SIGNING_CERT_HOST_PATTERN,
            description=(
                "Regex the SigningCertURL host must fully match before "
                "the certificate is fetched. Empty disables the host check."
            ),
        ),
    ]

    cert_fetch_timeout_seconds: Annotated[
        float,
        Field(
            default=5.0,
            gt=0,
            le=30,
            description="Hard upper bound on signing certificate retrieval",
        ),
    ]

    # ---------------------------------------------------------------------
    # Operational Boundaries
    # ---------------------------------------------------------------------

    max_log_size_mb: Annotated[
        int,
        Field(
            default=10,
            ge=1,
            le=25,
            description="Upload limit for RKHunter log files",
        ),
    ]

    max_request_size_mb: Annotated[
        int,
        Field(
            default=10,
            ge=1,
            le=25,
            description="Upload limit for SNS request bodies",
        ),
    ]

    debug: Annotated[
        bool,
        Field(default=False, description="Enable DEBUG level logging"),
    ]

    model_config = SettingsConfigDict(
        env_prefix="FORWARDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    # ---------------------------------------------------------------------
    # Validators
    # ---------------------------------------------------------------------

    @field_validator("discord_webhook_url")
    @classmethod
    def webhook_must_be_https(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().startswith("https://"):
            raise ValueError("discord_webhook_url must be an https URL")
        return v

    @field_validator("signing_cert_host_pattern")
    @classmethod
    def host_pattern_must_compile(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(
                f"signing_cert_host_pattern is not a valid regex: {exc}"
            ) from exc
        return v


# -------------------------------------------------------------------------
# Settings Dependency Provider
# -------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Dependency injection provider for application settings.

    Uses an explicit singleton pattern within the FastAPI lifecycle.
    """
    return Settings()  # singleton within process
