"""Wire contracts of the ``wasmcloud:blobstore`` capability.

The structs mirror the blobstore interface schema: field names are encoded in
camelCase, optional fields are omitted when unset and fields carrying a default
may be absent from an inbound payload.
"""

from __future__ import annotations

import time
from typing import List

import msgspec

__all__ = [
    "CONTRACT_ID",
    "Chunk",
    "ChunkResponse",
    "ContainerId",
    "ContainerIds",
    "ContainerMetadata",
    "ContainerObject",
    "ContainersInfo",
    "GetObjectRequest",
    "GetObjectResponse",
    "ItemResult",
    "ListObjectsRequest",
    "ListObjectsResponse",
    "MultiResult",
    "ObjectId",
    "ObjectIds",
    "ObjectMetadata",
    "ObjectsInfo",
    "PutChunkRequest",
    "PutObjectRequest",
    "PutObjectResponse",
    "RemoveObjectsRequest",
    "Timestamp",
]

CONTRACT_ID = "wasmcloud:blobstore"

ContainerId = str
ObjectId = str
ContainerIds = List[ContainerId]
ObjectIds = List[ObjectId]
_Bytes = bytes


class _WireStruct(msgspec.Struct, kw_only=True, omit_defaults=True, rename="camel"):
    """Base struct shared by every blobstore payload."""


class Timestamp(msgspec.Struct, kw_only=True):
    """Seconds and nanoseconds since the Unix epoch."""

    sec: int = 0
    nsec: int = 0

    @classmethod
    def now(cls) -> "Timestamp":
        sec, nsec = divmod(time.time_ns(), 1_000_000_000)
        return cls(sec=sec, nsec=nsec)


class Chunk(_WireStruct):
    object_id: ObjectId
    container_id: ContainerId
    bytes: _Bytes = b""
    offset: int = 0
    is_last: bool = False


class ChunkResponse(_WireStruct):
    """Reply to a chunk pushed to an actor during a chunked download.

    Part of the interface schema only: downloads are answered with a single
    final chunk, so no route sends or receives it.
    """

    # The sender stops streaming chunks when set.
    cancel_download: bool = False


class ContainerMetadata(_WireStruct):
    container_id: ContainerId
    created_at: Timestamp | None = None


class ContainerObject(_WireStruct):
    container_id: ContainerId
    object_id: ObjectId


class GetObjectRequest(_WireStruct):
    object_id: ObjectId
    container_id: ContainerId
    range_start: int | None = None
    range_end: int | None = None


class GetObjectResponse(_WireStruct):
    success: bool = False
    error: str | None = None
    initial_chunk: Chunk | None = None
    content_length: int = 0
    content_type: str | None = None
    content_encoding: str | None = None


class ItemResult(_WireStruct):
    """Outcome of one item of a multi-item request."""

    key: str = ""
    success: bool = False
    error: str | None = None


class ListObjectsRequest(_WireStruct):
    container_id: str = ""
    start_with: str | None = None
    continuation: str | None = None
    end_with: str | None = None
    end_before: str | None = None
    max_items: int | None = None


class ObjectMetadata(_WireStruct):
    object_id: ObjectId
    container_id: ContainerId
    content_length: int = 0
    last_modified: Timestamp | None = None
    content_type: str | None = None
    content_encoding: str | None = None


class ListObjectsResponse(_WireStruct):
    objects: List[ObjectMetadata] = msgspec.field(default_factory=list)
    is_last: bool = False
    continuation: str | None = None


class PutChunkRequest(_WireStruct):
    chunk: Chunk
    stream_id: str | None = None
    cancel_and_remove: bool = False


class PutObjectRequest(_WireStruct):
    chunk: Chunk
    content_type: str | None = None
    content_encoding: str | None = None


class PutObjectResponse(_WireStruct):
    # Never populated: multipart uploads are not offered.
    stream_id: str | None = None


class RemoveObjectsRequest(_WireStruct):
    container_id: ContainerId
    objects: ObjectIds


ContainersInfo = List[ContainerMetadata]
ObjectsInfo = List[ObjectMetadata]
MultiResult = List[ItemResult]
