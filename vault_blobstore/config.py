"""Typed configuration for a single actor link to HashiCorp Vault."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    TypeAdapter,
    ValidationError,
)

from .errors import ConfigError

__all__ = [
    "DEFAULT_MOUNT",
    "DEFAULT_VAULT_ADDR",
    "VaultLinkConfig",
]

DEFAULT_VAULT_ADDR = "http://127.0.0.1:8200"
DEFAULT_MOUNT = "secret"

_LOGGER = logging.getLogger("vault_blobstore.config")
_HTTP_URL: TypeAdapter[AnyHttpUrl] = TypeAdapter(AnyHttpUrl)


def _lookup(values: Mapping[str, str], key: str) -> str | None:
    """Return the explicit link value for *key*, falling back to its upper-case alias."""

    value = values.get(key)
    if value is None:
        value = values.get(key.upper())
    return value


def _parse_address(raw: str | None) -> AnyHttpUrl:
    if raw is None:
        return _HTTP_URL.validate_python(DEFAULT_VAULT_ADDR)
    try:
        return _HTTP_URL.validate_python(raw.strip())
    except ValidationError:
        _LOGGER.warning(
            "Could not parse Vault address, using default",
            extra={"address": raw, "default": DEFAULT_VAULT_ADDR},
        )
        return _HTTP_URL.validate_python(DEFAULT_VAULT_ADDR)


def _parse_certs(raw: str | None) -> tuple[str, ...]:
    if raw is None:
        return tuple()
    return tuple(entry.strip() for entry in raw.split(",") if entry.strip())


class VaultLinkConfig(BaseModel):
    """Connection parameters negotiated when an actor links to the provider."""

    model_config = ConfigDict(frozen=True)

    token: SecretStr = Field(
        ..., description="Vault token presented on every request made for the actor."
    )
    address: AnyHttpUrl = Field(
        default_factory=lambda: _HTTP_URL.validate_python(DEFAULT_VAULT_ADDR),
        description="Base URL of the Vault server.",
    )
    mount: str = Field(
        DEFAULT_MOUNT,
        description="Mount point of the KV v2 secrets engine holding the actor's objects.",
    )
    ca_certs: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Paths to CA certificate files used to verify the Vault server.",
    )

    @classmethod
    def from_values(cls, values: Mapping[str, str]) -> "VaultLinkConfig":
        """Build a configuration from flat link definition values.

        Each setting is looked up under its lower-case name, then under the
        upper-case alias, then defaulted. Only a missing token is fatal; an
        unparsable address or an empty mount degrade to the defaults.
        """

        token = _lookup(values, "token")
        if token is None:
            raise ConfigError("missing setting for 'token' or 'TOKEN'")
        mount = (_lookup(values, "mount") or "").strip().strip("/")
        if not mount:
            mount = DEFAULT_MOUNT
        try:
            return cls(
                token=SecretStr(token),
                address=_parse_address(_lookup(values, "addr")),
                mount=mount,
                ca_certs=_parse_certs(_lookup(values, "certs")),
            )
        except ValidationError as exc:  # pragma: no cover - inputs are pre-validated
            raise ConfigError(f"invalid link configuration: {exc}") from exc

    @property
    def base_url(self) -> str:
        """Return the Vault address without a trailing slash."""

        return str(self.address).rstrip("/")

    def describe(self) -> dict[str, Any]:
        """Return non-sensitive metadata describing the link."""

        return {
            "address": self.base_url,
            "mount": self.mount,
            "ca_certs": len(self.ca_certs),
        }
