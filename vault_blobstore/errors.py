"""Domain specific exceptions raised by the Vault blobstore provider."""

from __future__ import annotations

from typing import Iterable

__all__ = [
    "ActorNotLinkedError",
    "BackendError",
    "ChunkingNotSupportedError",
    "ConfigError",
    "InvalidObjectPathError",
    "MalformedRequestError",
    "NotFoundError",
    "ProviderInvocationError",
    "VaultBlobstoreError",
]


class VaultBlobstoreError(RuntimeError):
    """Base class for failures raised while serving blobstore requests."""


class ConfigError(VaultBlobstoreError):
    """Raised when link values cannot be turned into a usable configuration."""


class ActorNotLinkedError(VaultBlobstoreError):
    """Raised when a request arrives for an actor without an active link."""

    def __init__(self, actor_id: str) -> None:
        super().__init__("Actor is not linked")
        self.actor_id = actor_id


class NotFoundError(VaultBlobstoreError):
    """Raised when Vault reports a 404 for a secret.

    Vault also answers with 404 when the token lacks permission on the path,
    so callers cannot tell a missing secret from a forbidden one.
    """

    def __init__(self, *, namespace: str, path: str) -> None:
        super().__init__(f"Key not found: namespace/key {namespace}/{path}")
        self.namespace = namespace
        self.path = path


class BackendError(VaultBlobstoreError):
    """Raised when Vault or the HTTP transport fails for any other reason."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        errors: Iterable[str] = (),
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.errors = tuple(errors)


class ChunkingNotSupportedError(VaultBlobstoreError):
    """Raised for every chunked upload attempt."""

    def __init__(self) -> None:
        super().__init__("Chunking not supported")


class MalformedRequestError(VaultBlobstoreError):
    """Raised when an inbound invocation cannot be routed or decoded."""


class ProviderInvocationError(VaultBlobstoreError):
    """Caller-visible failure produced by the message dispatcher."""


class InvalidObjectPathError(BackendError):
    """Raised before any request when an object path has an empty or dot segment."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Invalid object path '{path}'")
        self.path = path
