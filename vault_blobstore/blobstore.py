"""Blobstore operations backed by Vault KV v2 secrets.

Containers are not materialised in Vault: they only exist as the identifiers
carried through the blobstore API. Objects are stored as secrets named after
their object id inside the actor's mount.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from .client import VaultKV2Client
from .errors import ChunkingNotSupportedError, NotFoundError
from .interface import (
    Chunk,
    ContainerId,
    ContainerIds,
    ContainerMetadata,
    ContainerObject,
    ContainersInfo,
    GetObjectRequest,
    GetObjectResponse,
    ItemResult,
    ListObjectsRequest,
    ListObjectsResponse,
    MultiResult,
    ObjectMetadata,
    PutChunkRequest,
    PutObjectRequest,
    PutObjectResponse,
    RemoveObjectsRequest,
    Timestamp,
)
from .registry import ActorRegistry

__all__ = ["InvocationContext", "VaultBlobstore"]


@dataclass(frozen=True, slots=True)
class InvocationContext:
    """Caller identity attached to an inbound invocation."""

    actor: str | None = None


class VaultBlobstore:
    """Serve the ``wasmcloud:blobstore`` operation set for linked actors."""

    def __init__(self, registry: ActorRegistry, *, logger: logging.Logger | None = None) -> None:
        self._registry = registry
        self._logger = logger or logging.getLogger("vault_blobstore.blobstore")

    @asynccontextmanager
    async def _client(self, ctx: InvocationContext) -> AsyncIterator[VaultKV2Client]:
        client = self._registry.resolve(ctx.actor)
        async with client.borrow():
            yield client

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------
    async def container_exists(self, ctx: InvocationContext, arg: ContainerId) -> bool:
        self._registry.resolve(ctx.actor)
        return True

    async def create_container(self, ctx: InvocationContext, arg: ContainerId) -> None:
        # Containers only exist as a component of object names.
        self._registry.resolve(ctx.actor)

    async def get_container_info(self, ctx: InvocationContext, arg: ContainerId) -> ContainerMetadata:
        self._registry.resolve(ctx.actor)
        return ContainerMetadata(container_id=arg, created_at=Timestamp.now())

    async def list_containers(self, ctx: InvocationContext) -> ContainersInfo:
        self._registry.resolve(ctx.actor)
        return []

    async def remove_containers(self, ctx: InvocationContext, arg: ContainerIds) -> MultiResult:
        """Report no failures: there is nothing to remove."""

        self._registry.resolve(ctx.actor)
        return []

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------
    async def object_exists(self, ctx: InvocationContext, arg: ContainerObject) -> bool:
        async with self._client(ctx) as client:
            try:
                await client.get_metadata(arg.object_id)
            except NotFoundError:
                return False
        return True

    async def get_object_info(self, ctx: InvocationContext, arg: ContainerObject) -> ObjectMetadata:
        """Confirm the object exists and return its identifiers.

        Size, content type, encoding and modification time are not stored with
        the secret and are left unset.
        """

        async with self._client(ctx) as client:
            await client.get_metadata(arg.object_id)
        return ObjectMetadata(object_id=arg.object_id, container_id=arg.container_id)

    async def list_objects(self, ctx: InvocationContext, arg: ListObjectsRequest) -> ListObjectsResponse:
        """List every key under the container in a single page.

        Range and page size hints in the request are accepted but not applied.
        """

        async with self._client(ctx) as client:
            keys = await client.list_objects(arg.container_id)
        return ListObjectsResponse(
            objects=[ObjectMetadata(object_id=key, container_id=arg.container_id) for key in keys],
            is_last=True,
            continuation=None,
        )

    async def remove_objects(self, ctx: InvocationContext, arg: RemoveObjectsRequest) -> MultiResult:
        """Delete every requested object and report one result per key.

        Deletions run concurrently and all of them are awaited; a failing key
        never prevents the others from being attempted.
        """

        async with self._client(ctx) as client:
            outcomes = await asyncio.gather(
                *(client.delete_object(key) for key in arg.objects),
                return_exceptions=True,
            )
        results: MultiResult = []
        for key, outcome in zip(arg.objects, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                self._logger.warning(
                    "Failed to remove object",
                    extra={"actor_id": ctx.actor, "container_id": arg.container_id, "object_id": key},
                    exc_info=outcome,
                )
                results.append(ItemResult(key=key, success=False, error=str(outcome)))
            else:
                results.append(ItemResult(key=key, success=True))
        return results

    async def put_object(self, ctx: InvocationContext, arg: PutObjectRequest) -> PutObjectResponse:
        """Store the whole object from the request's single chunk."""

        async with self._client(ctx) as client:
            await client.write_object(arg.chunk.object_id, arg.chunk.bytes)
        return PutObjectResponse(stream_id=None)

    async def get_object(self, ctx: InvocationContext, arg: GetObjectRequest) -> GetObjectResponse:
        """Return the complete object as one final chunk, ignoring any range."""

        async with self._client(ctx) as client:
            data = await client.read_object(arg.object_id)
        return GetObjectResponse(
            success=True,
            initial_chunk=Chunk(
                object_id=arg.object_id,
                container_id=arg.container_id,
                bytes=data,
                offset=0,
                is_last=True,
            ),
            content_length=len(data),
        )

    async def put_chunk(self, ctx: InvocationContext, arg: PutChunkRequest) -> None:
        raise ChunkingNotSupportedError()
