"""Process level configuration for the Vault blobstore provider."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, PositiveFloat
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["ProviderSettings"]


class ProviderSettings(BaseSettings):
    """Settings shared by every actor link served by the provider."""

    model_config = SettingsConfigDict(env_prefix="VAULT_BLOBSTORE_", extra="ignore")

    log_level: str = Field(
        "INFO",
        min_length=1,
        description="Root log level applied by configure_logging.",
    )
    log_format: Literal["json", "text"] = Field(
        "json",
        description="Emit structured JSON log lines or plain text.",
    )
    request_timeout_seconds: PositiveFloat | None = Field(
        default=None,
        description=(
            "Timeout, in seconds, applied by the HTTP transport to each Vault request. "
            "Leave unset to disable transport timeouts."
        ),
    )
    verify_tls: bool = Field(
        True,
        description="Verify the Vault server certificate. Disable only for local development.",
    )
