"""Routing of serialized blobstore invocations to :class:`VaultBlobstore`."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping

import msgspec

from .blobstore import InvocationContext, VaultBlobstore
from .errors import MalformedRequestError, ProviderInvocationError, VaultBlobstoreError
from .interface import (
    ContainerId,
    ContainerIds,
    ContainerObject,
    GetObjectRequest,
    ListObjectsRequest,
    PutChunkRequest,
    PutObjectRequest,
    RemoveObjectsRequest,
)

__all__ = ["MessageDispatcher"]

Handler = Callable[[VaultBlobstore, InvocationContext, Any], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class _Route:
    decoder: msgspec.msgpack.Decoder[Any] | None
    handler: Handler

    def decode(self, body: bytes) -> Any:
        if self.decoder is None:
            return None
        return self.decoder.decode(body)


def _route(arg_type: Any, handler: Handler) -> _Route:
    return _Route(decoder=msgspec.msgpack.Decoder(arg_type), handler=handler)


async def _list_containers(store: VaultBlobstore, ctx: InvocationContext, _: None) -> Any:
    return await store.list_containers(ctx)


_ROUTES: Mapping[str, _Route] = MappingProxyType(
    {
        "Blobstore.ContainerExists": _route(ContainerId, VaultBlobstore.container_exists),
        "Blobstore.CreateContainer": _route(ContainerId, VaultBlobstore.create_container),
        "Blobstore.GetContainerInfo": _route(ContainerId, VaultBlobstore.get_container_info),
        # ListContainers takes no argument; the body is ignored.
        "Blobstore.ListContainers": _Route(decoder=None, handler=_list_containers),
        "Blobstore.RemoveContainers": _route(ContainerIds, VaultBlobstore.remove_containers),
        "Blobstore.ObjectExists": _route(ContainerObject, VaultBlobstore.object_exists),
        "Blobstore.GetObjectInfo": _route(ContainerObject, VaultBlobstore.get_object_info),
        "Blobstore.ListObjects": _route(ListObjectsRequest, VaultBlobstore.list_objects),
        "Blobstore.RemoveObjects": _route(RemoveObjectsRequest, VaultBlobstore.remove_objects),
        "Blobstore.PutObject": _route(PutObjectRequest, VaultBlobstore.put_object),
        "Blobstore.GetObject": _route(GetObjectRequest, VaultBlobstore.get_object),
        "Blobstore.PutChunk": _route(PutChunkRequest, VaultBlobstore.put_chunk),
    }
)


class MessageDispatcher:
    """Decode MessagePack invocations, run them and encode the results.

    Failures raised by the blobstore keep their types up to this point and are
    flattened into :class:`ProviderInvocationError` messages here.
    """

    def __init__(self, store: VaultBlobstore, *, logger: logging.Logger | None = None) -> None:
        self._store = store
        self._encoder = msgspec.msgpack.Encoder()
        self._logger = logger or logging.getLogger("vault_blobstore.dispatch")

    @staticmethod
    def method_names() -> tuple[str, ...]:
        return tuple(_ROUTES)

    async def dispatch(self, ctx: InvocationContext, method: str, body: bytes) -> bytes:
        route = _ROUTES.get(method)
        if route is None:
            raise MalformedRequestError(f"Invalid method name {method}")
        try:
            arg = route.decode(body)
        except msgspec.DecodeError as exc:
            raise MalformedRequestError(f"Failed to decode {method} payload: {exc}") from exc
        try:
            result = await route.handler(self._store, ctx, arg)
        except VaultBlobstoreError as exc:
            self._logger.debug(
                "Blobstore invocation failed",
                extra={"method": method, "actor_id": ctx.actor, "error": str(exc)},
            )
            raise ProviderInvocationError(str(exc)) from exc
        return self._encoder.encode(result)
