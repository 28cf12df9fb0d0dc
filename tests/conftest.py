"""Shared fixtures: an in-process emulation of the Vault KV v2 HTTP API."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
import pytest

from vault_blobstore import ProviderSettings, VaultBlobstoreProvider


def _vault_time() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f123Z")


@dataclass
class _SecretVersion:
    data: dict[str, Any]
    created_time: str = field(default_factory=_vault_time)
    deletion_time: str = ""
    destroyed: bool = False

    def metadata(self, version: int) -> dict[str, Any]:
        return {
            "created_time": self.created_time,
            "deletion_time": self.deletion_time,
            "destroyed": self.destroyed,
            "version": version,
        }


class VaultKV2Emulator:
    """Serve a subset of the KV v2 API through :class:`httpx.MockTransport`.

    Tokens are scoped to mounts. A token used against a mount it was not
    granted receives a 404, like Vault does for paths hidden by policy.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self._secrets: dict[tuple[str, str], list[_SecretVersion]] = {}
        self._grants: dict[str, set[str]] = {}
        self._failing: dict[str, int] = {}

    # -- test helpers ---------------------------------------------------
    def grant(self, token: str, *mounts: str) -> None:
        self._grants.setdefault(token, set()).update(mounts)

    def seed(self, mount: str, path: str, payload: bytes) -> None:
        self._secrets.setdefault((mount, path), []).append(_SecretVersion({"data": list(payload)}))

    def seed_raw(self, mount: str, path: str, secret: dict[str, Any]) -> None:
        self._secrets.setdefault((mount, path), []).append(_SecretVersion(dict(secret)))

    def fail(self, path: str, status: int = 500) -> None:
        self._failing[path] = status

    def versions(self, mount: str, path: str) -> int:
        return len(self._secrets.get((mount, path), []))

    def stored(self, mount: str, path: str) -> bytes | None:
        versions = self._secrets.get((mount, path))
        if not versions or versions[-1].deletion_time:
            return None
        return bytes(versions[-1].data["data"])

    # -- transport ------------------------------------------------------
    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))
        if path in self._failing:
            return httpx.Response(self._failing[path], json={"errors": ["internal error"]})
        parts = path.split("/")
        if len(parts) < 4 or parts[1] != "v1":
            return _missing()
        mount, operation, secret_path = parts[2], parts[3], "/".join(parts[4:])
        token = request.headers.get("X-Vault-Token", "")
        if mount not in self._grants.get(token, set()):
            return _missing()
        key = (mount, secret_path)
        if operation == "data":
            if request.method == "GET":
                return self._read(key)
            if request.method == "POST":
                return self._write(key, json.loads(request.content))
            if request.method == "DELETE":
                return self._delete(key)
        if operation == "metadata":
            if request.method == "GET":
                return self._metadata(key)
            if request.method == "LIST":
                return self._list(mount, secret_path)
        return httpx.Response(405, json={"errors": ["unsupported operation"]})

    def _read(self, key: tuple[str, str]) -> httpx.Response:
        versions = self._secrets.get(key)
        if not versions or versions[-1].deletion_time:
            return _missing()
        latest = versions[-1]
        return httpx.Response(
            200,
            json={"data": {"data": dict(latest.data), "metadata": latest.metadata(len(versions))}},
        )

    def _write(self, key: tuple[str, str], body: dict[str, Any]) -> httpx.Response:
        versions = self._secrets.setdefault(key, [])
        versions.append(_SecretVersion(dict(body["data"])))
        return httpx.Response(200, json={"data": versions[-1].metadata(len(versions))})

    def _delete(self, key: tuple[str, str]) -> httpx.Response:
        versions = self._secrets.get(key)
        if not versions or versions[-1].deletion_time:
            return _missing()
        versions[-1].deletion_time = _vault_time()
        return httpx.Response(204)

    def _metadata(self, key: tuple[str, str]) -> httpx.Response:
        versions = self._secrets.get(key)
        if not versions:
            return _missing()
        return httpx.Response(
            200,
            json={
                "data": {
                    "cas_required": False,
                    "created_time": versions[0].created_time,
                    "current_version": len(versions),
                    "custom_metadata": None,
                    "delete_version_after": "0s",
                    "max_versions": 0,
                    "oldest_version": 1,
                    "updated_time": versions[-1].created_time,
                    "versions": {
                        str(number): {
                            "created_time": version.created_time,
                            "deletion_time": version.deletion_time,
                            "destroyed": version.destroyed,
                        }
                        for number, version in enumerate(versions, start=1)
                    },
                }
            },
        )

    def _list(self, mount: str, prefix: str) -> httpx.Response:
        base = f"{prefix.strip('/')}/" if prefix.strip("/") else ""
        keys: set[str] = set()
        for secret_mount, secret_path in self._secrets:
            if secret_mount != mount or not secret_path.startswith(base):
                continue
            remainder = secret_path[len(base):]
            head, sep, _ = remainder.partition("/")
            keys.add(f"{head}/" if sep else head)
        if not keys:
            return _missing()
        return httpx.Response(200, json={"data": {"keys": sorted(keys)}})


def _missing() -> httpx.Response:
    return httpx.Response(404, json={"errors": []})


SessionFactory = Callable[..., httpx.AsyncClient]


def _new_backend() -> tuple[VaultKV2Emulator, SessionFactory]:
    api = VaultKV2Emulator()
    api.grant("root-token", "secret", "tenant-a", "tenant-b")
    transport = httpx.MockTransport(api.handler)

    def _factory(**kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=transport, **kwargs)

    return api, _factory


@pytest.fixture()
def vault_backend() -> tuple[VaultKV2Emulator, SessionFactory]:
    return _new_backend()


@pytest.fixture()
def vault_api(vault_backend: tuple[VaultKV2Emulator, SessionFactory]) -> VaultKV2Emulator:
    return vault_backend[0]


@pytest.fixture()
def session_factory(vault_backend: tuple[VaultKV2Emulator, SessionFactory]) -> SessionFactory:
    return vault_backend[1]


@pytest.fixture()
def new_vault_backend() -> Callable[[], tuple[VaultKV2Emulator, SessionFactory]]:
    """Build isolated emulator/session pairs, e.g. one per hypothesis example."""

    return _new_backend


@pytest.fixture()
def provider(session_factory: SessionFactory) -> VaultBlobstoreProvider:
    return VaultBlobstoreProvider(settings=ProviderSettings(), session_factory=session_factory)
