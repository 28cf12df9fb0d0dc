"""Host-facing facade of the Vault blobstore capability provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Mapping

import httpx

from .blobstore import InvocationContext, VaultBlobstore
from .client import VaultKV2Client
from .config import VaultLinkConfig
from .dispatch import MessageDispatcher
from .interface import CONTRACT_ID
from .logging import configure_logging
from .registry import ActorRegistry
from .settings import ProviderSettings

__all__ = ["LinkDefinition", "VaultBlobstoreProvider"]


@dataclass(frozen=True, slots=True)
class LinkDefinition:
    """Link between an actor and this provider as announced by the host."""

    actor_id: str
    values: Mapping[str, str] = field(default_factory=dict)
    link_name: str = "default"
    contract_id: str = CONTRACT_ID


class VaultBlobstoreProvider:
    """Handle link lifecycle notifications and blobstore invocations."""

    def __init__(
        self,
        *,
        settings: ProviderSettings | None = None,
        session_factory: Callable[..., httpx.AsyncClient] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings or ProviderSettings()
        self._session_factory = session_factory
        self._logger = logger or logging.getLogger("vault_blobstore.provider")
        self._registry = ActorRegistry(client_factory=self._build_client)
        self._blobstore = VaultBlobstore(self._registry)
        self._dispatcher = MessageDispatcher(self._blobstore)

    @classmethod
    def from_settings(cls, settings: ProviderSettings | None = None) -> "VaultBlobstoreProvider":
        """Build a provider and configure process logging from *settings*."""

        resolved = settings or ProviderSettings()
        configure_logging(level=resolved.log_level, fmt=resolved.log_format)
        return cls(settings=resolved)

    @property
    def settings(self) -> ProviderSettings:
        return self._settings

    @property
    def registry(self) -> ActorRegistry:
        return self._registry

    @property
    def blobstore(self) -> VaultBlobstore:
        return self._blobstore

    def _build_client(self, config: VaultLinkConfig) -> VaultKV2Client:
        return VaultKV2Client(
            config,
            session_factory=self._session_factory,
            timeout=self._settings.request_timeout_seconds,
            verify=self._settings.verify_tls,
        )

    async def put_link(self, link: LinkDefinition) -> bool:
        """Accept or deny a new link; the only authorization point for an actor."""

        if link.contract_id != CONTRACT_ID:
            self._logger.error(
                "Rejecting link for unsupported contract",
                extra={"actor_id": link.actor_id, "contract_id": link.contract_id},
            )
            return False
        return await self._registry.establish_link(link.actor_id, link.values)

    async def delete_link(self, actor_id: str) -> None:
        await self._registry.remove_link(actor_id)

    async def shutdown(self) -> None:
        await self._registry.shutdown()
        self._logger.info("Vault blobstore provider exiting")

    async def dispatch(self, ctx: InvocationContext, method: str, body: bytes) -> bytes:
        return await self._dispatcher.dispatch(ctx, method, body)
