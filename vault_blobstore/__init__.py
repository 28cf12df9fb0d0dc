"""Blobstore capability provider persisting objects as HashiCorp Vault KV v2 secrets."""

from __future__ import annotations

from .blobstore import InvocationContext, VaultBlobstore
from .client import SecretMetadata, SecretVersionMetadata, VaultKV2Client
from .config import DEFAULT_MOUNT, DEFAULT_VAULT_ADDR, VaultLinkConfig
from .dispatch import MessageDispatcher
from .errors import (
    ActorNotLinkedError,
    BackendError,
    ChunkingNotSupportedError,
    ConfigError,
    InvalidObjectPathError,
    MalformedRequestError,
    NotFoundError,
    ProviderInvocationError,
    VaultBlobstoreError,
)
from .provider import LinkDefinition, VaultBlobstoreProvider
from .registry import ActorRegistry
from .settings import ProviderSettings

__all__ = [
    "DEFAULT_MOUNT",
    "DEFAULT_VAULT_ADDR",
    "ActorNotLinkedError",
    "ActorRegistry",
    "BackendError",
    "ChunkingNotSupportedError",
    "ConfigError",
    "InvalidObjectPathError",
    "InvocationContext",
    "LinkDefinition",
    "MalformedRequestError",
    "MessageDispatcher",
    "NotFoundError",
    "ProviderInvocationError",
    "ProviderSettings",
    "SecretMetadata",
    "SecretVersionMetadata",
    "VaultBlobstore",
    "VaultBlobstoreError",
    "VaultBlobstoreProvider",
    "VaultKV2Client",
    "VaultLinkConfig",
]

__version__ = "0.1.0"
