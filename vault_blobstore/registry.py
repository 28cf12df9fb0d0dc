"""Registry mapping linked actors to their Vault clients."""

from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Callable, Mapping

from .client import VaultKV2Client
from .config import VaultLinkConfig
from .errors import ActorNotLinkedError, VaultBlobstoreError

__all__ = ["ActorRegistry", "ClientFactory"]

ClientFactory = Callable[[VaultLinkConfig], VaultKV2Client]


class ActorRegistry:
    """Hold at most one :class:`VaultKV2Client` per linked actor.

    Mutations are serialised by an ``asyncio.Lock`` and publish a fresh
    read-only snapshot of the mapping. :meth:`resolve` only reads the current
    snapshot, so lookups never wait on a writer and never observe a half
    applied change. Clients dropped from the registry are retired after the
    new snapshot is visible; requests that already hold one keep using it.
    """

    def __init__(
        self,
        *,
        client_factory: ClientFactory | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client_factory = client_factory or VaultKV2Client
        self._logger = logger or logging.getLogger("vault_blobstore.registry")
        self._lock = asyncio.Lock()
        self._clients: Mapping[str, VaultKV2Client] = MappingProxyType({})

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, actor_id: object) -> bool:
        return actor_id in self._clients

    def linked_actors(self) -> tuple[str, ...]:
        return tuple(sorted(self._clients))

    def resolve(self, actor_id: str | None) -> VaultKV2Client:
        """Return the client linked to *actor_id* or raise :class:`ActorNotLinkedError`."""

        client = self._clients.get(actor_id or "")
        if client is None:
            raise ActorNotLinkedError(actor_id or "")
        return client

    async def establish_link(self, actor_id: str, values: Mapping[str, str]) -> bool:
        """Create a client for *actor_id* from link *values*.

        Returns ``False`` when the link must be denied because the values do
        not form a valid configuration or the client cannot be built.
        """

        try:
            config = VaultLinkConfig.from_values(values)
        except VaultBlobstoreError as exc:
            self._logger.error(
                "Failed to parse link values",
                extra={"actor_id": actor_id, "error": str(exc)},
            )
            return False
        try:
            client = self._client_factory(config)
        except (VaultBlobstoreError, ValueError, OSError) as exc:
            self._logger.error(
                "Failed to create Vault client",
                extra={"actor_id": actor_id, "error": str(exc), **config.describe()},
            )
            return False

        async with self._lock:
            updated = dict(self._clients)
            previous = updated.get(actor_id)
            updated[actor_id] = client
            self._clients = MappingProxyType(updated)
        if previous is not None:
            await previous.retire()
        self._logger.info(
            "Actor linked",
            extra={"actor_id": actor_id, "replaced": previous is not None, **config.describe()},
        )
        return True

    async def remove_link(self, actor_id: str) -> None:
        """Drop the link of *actor_id*; unknown actors are ignored."""

        async with self._lock:
            if actor_id not in self._clients:
                return
            updated = dict(self._clients)
            client = updated.pop(actor_id)
            self._clients = MappingProxyType(updated)
        self._logger.debug("Unlinking actor", extra={"actor_id": actor_id})
        await client.retire()

    async def shutdown(self) -> None:
        """Drop every link at once."""

        async with self._lock:
            clients = list(self._clients.values())
            self._clients = MappingProxyType({})
        for client in clients:
            try:
                await client.retire()
            except Exception:  # pragma: no cover - best effort teardown
                self._logger.warning("Failed to close Vault client during shutdown", exc_info=True)
        self._logger.info("Registry shut down", extra={"released": len(clients)})
