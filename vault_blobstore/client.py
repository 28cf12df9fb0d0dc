"""Asynchronous HashiCorp Vault KV v2 client storing blob payloads as secrets.

Every object lives at ``{mount}/{path}`` inside a KV v2 engine. The payload is
wrapped in a single-field secret, ``{"data": [<byte>, ...]}``, matching the
layout other blobstore providers write to the same engine.
"""

from __future__ import annotations

import json
import logging
import re
import ssl
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, AsyncIterator, Callable, Mapping
from urllib.parse import quote

import httpx

from .config import VaultLinkConfig
from .errors import BackendError, InvalidObjectPathError, NotFoundError

__all__ = [
    "API_VERSION",
    "SecretMetadata",
    "SecretVersionMetadata",
    "VaultKV2Client",
]

# All Vault HTTP endpoints live under /v1.
API_VERSION = 1

_LOGGER = logging.getLogger("vault_blobstore.client")
_FRACTION = re.compile(r"\.(\d{6})\d+")
_DOT_SEGMENTS = frozenset({"", ".", ".."})


def _parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    text = _FRACTION.sub(r".\1", str(value))
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _safe_json(response: httpx.Response) -> Mapping[str, Any]:
    if not response.content:
        return {}
    try:
        payload = response.json()
    except json.JSONDecodeError:
        return {"raw": response.text}
    return payload if isinstance(payload, dict) else {"raw": payload}


def _quote_segments(path: str) -> str:
    stripped = path.strip("/")
    if not stripped:
        return ""
    segments = stripped.split("/")
    if any(segment in _DOT_SEGMENTS for segment in segments):
        raise InvalidObjectPathError(path)
    return "/".join(quote(segment, safe="") for segment in segments)


@dataclass(frozen=True, slots=True)
class SecretVersionMetadata:
    """Metadata of a single secret version as reported by Vault."""

    version: int
    created_time: datetime | None = None
    deletion_time: datetime | None = None
    destroyed: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, version: int | None = None) -> "SecretVersionMetadata":
        return cls(
            version=int(payload.get("version", version or 0)),
            created_time=_parse_time(payload.get("created_time")),
            deletion_time=_parse_time(payload.get("deletion_time")),
            destroyed=bool(payload.get("destroyed", False)),
        )


@dataclass(frozen=True, slots=True)
class SecretMetadata:
    """Metadata describing every version of a secret.

    Vault does not report the payload size here, so callers that need the
    length must read the secret itself.
    """

    current_version: int
    oldest_version: int = 0
    max_versions: int = 0
    created_time: datetime | None = None
    updated_time: datetime | None = None
    cas_required: bool = False
    delete_version_after: str | None = None
    custom_metadata: Mapping[str, str] = field(default_factory=dict)
    versions: Mapping[int, SecretVersionMetadata] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SecretMetadata":
        versions = {
            int(number): SecretVersionMetadata.from_payload(details, version=int(number))
            for number, details in (payload.get("versions") or {}).items()
        }
        return cls(
            current_version=int(payload.get("current_version", 0)),
            oldest_version=int(payload.get("oldest_version", 0)),
            max_versions=int(payload.get("max_versions", 0)),
            created_time=_parse_time(payload.get("created_time")),
            updated_time=_parse_time(payload.get("updated_time")),
            cas_required=bool(payload.get("cas_required", False)),
            delete_version_after=payload.get("delete_version_after"),
            custom_metadata=MappingProxyType(dict(payload.get("custom_metadata") or {})),
            versions=MappingProxyType(versions),
        )

    @property
    def current(self) -> SecretVersionMetadata | None:
        return self.versions.get(self.current_version)


class VaultKV2Client:
    """Thin async wrapper around the Vault KV v2 HTTP API for one actor link.

    Building the client never contacts Vault; an unreachable server or a bad
    token surfaces on the first request. The instance is shared by the registry
    and by in-flight requests: :meth:`borrow` marks a request as using the
    session, and :meth:`retire` closes it once the last borrower is done.
    """

    def __init__(
        self,
        config: VaultLinkConfig,
        *,
        session_factory: Callable[..., httpx.AsyncClient] | None = None,
        timeout: float | None = None,
        verify: bool = True,
    ) -> None:
        self._config = config
        self._mount = config.mount
        self._token = config.token.get_secret_value()
        factory = session_factory or httpx.AsyncClient
        self._session = factory(
            base_url=config.base_url,
            timeout=timeout,
            verify=self._tls_verification(config, verify),
        )
        self._borrowers = 0
        self._retired = False
        self._closed = False

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------
    @property
    def config(self) -> VaultLinkConfig:
        return self._config

    @property
    def namespace(self) -> str:
        """Return the KV mount every path of this client is resolved against."""

        return self._mount

    @property
    def closed(self) -> bool:
        return self._closed

    @asynccontextmanager
    async def borrow(self) -> AsyncIterator["VaultKV2Client"]:
        """Hold the HTTP session open for the duration of one request."""

        self._borrowers += 1
        try:
            yield self
        finally:
            self._borrowers -= 1
            if self._retired and self._borrowers == 0:
                await self.aclose()

    async def retire(self) -> None:
        """Close the session now, or as soon as the last borrower returns."""

        self._retired = True
        if self._borrowers == 0:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._session.aclose()

    # ------------------------------------------------------------------
    # KV v2 operations
    # ------------------------------------------------------------------
    async def read_object(self, path: str) -> bytes:
        """Return the payload stored at *path*."""

        try:
            payload = await self._request("GET", self._kv_path("data", path))
        except BackendError as exc:
            raise self._not_found(exc, path)
        secret = (payload.get("data") or {}).get("data") or {}
        return self._decode_payload(secret, path)

    async def read_object_with_metadata(self, path: str) -> tuple[SecretMetadata, bytes]:
        # Two requests: the metadata endpoint does not carry the payload size.
        metadata = await self.get_metadata(path)
        data = await self.read_object(path)
        return metadata, data

    async def get_metadata(self, path: str) -> SecretMetadata:
        try:
            payload = await self._request("GET", self._kv_path("metadata", path))
        except BackendError as exc:
            raise self._not_found(exc, path)
        return SecretMetadata.from_payload(payload.get("data") or {})

    async def write_object(self, path: str, data: bytes) -> SecretVersionMetadata:
        """Store *data* at *path*, creating a new version when the secret exists."""

        payload = await self._request(
            "POST",
            self._kv_path("data", path),
            json={"data": {"data": list(data)}},
        )
        return SecretVersionMetadata.from_payload(payload.get("data") or {})

    async def delete_object(self, path: str) -> None:
        """Soft-delete the latest version of *path*; older versions are kept.

        A missing secret is reported as a plain :class:`BackendError`.
        """

        await self._request("DELETE", self._kv_path("data", path))

    async def list_objects(self, prefix: str) -> list[str]:
        """Return the keys directly below *prefix*."""

        try:
            payload = await self._request("LIST", self._kv_path("metadata", prefix))
        except BackendError as exc:
            raise self._not_found(exc, prefix)
        return [str(key) for key in (payload.get("data") or {}).get("keys", [])]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _tls_verification(config: VaultLinkConfig, verify: bool) -> bool | ssl.SSLContext:
        if not verify:
            return False
        if not config.ca_certs:
            return True
        context = ssl.create_default_context()
        for path in config.ca_certs:
            try:
                context.load_verify_locations(cafile=path)
            except (OSError, ssl.SSLError) as exc:
                raise BackendError(f"Unable to load CA certificate '{path}': {exc}") from exc
        return context

    def _kv_path(self, operation: str, path: str) -> str:
        """Build the request path with every segment of mount and *path* quoted.

        Dot segments are rejected before any request is made; they would let
        the path resolve outside the mount.
        """

        return f"/v{API_VERSION}/{_quote_segments(self._mount)}/{operation}/{_quote_segments(path)}"

    def _not_found(self, exc: BackendError, path: str) -> BackendError | NotFoundError:
        if exc.status_code == 404:
            return NotFoundError(namespace=self._mount, path=path)
        return exc

    def _decode_payload(self, secret: Mapping[str, Any], path: str) -> bytes:
        raw = secret.get("data")
        if not isinstance(raw, list):
            raise BackendError(
                f"Secret '{path}' in mount '{self._mount}' does not hold a blob payload"
            )
        try:
            return bytes(raw)
        except (TypeError, ValueError) as exc:
            raise BackendError(
                f"Secret '{path}' in mount '{self._mount}' holds a malformed blob payload"
            ) from exc

    async def _request(self, method: str, path: str, **kwargs: Any) -> Mapping[str, Any]:
        if self._closed:
            raise BackendError(f"Vault client for mount '{self._mount}' has been closed")
        headers = {"X-Vault-Token": self._token, **kwargs.pop("headers", {})}
        try:
            response = await self._session.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise BackendError(f"Vault request to {path} failed: {exc}") from exc
        _LOGGER.debug(
            "Vault request completed",
            extra={"http_method": method, "mount": self._mount, "path": path, "status_code": response.status_code},
        )
        if response.status_code >= 400:
            payload = _safe_json(response)
            errors = payload.get("errors") or ()
            raise BackendError(
                f"Vault request to {path} failed with status {response.status_code}",
                status_code=response.status_code,
                errors=[str(error) for error in errors],
            )
        return _safe_json(response)
