"""Read the big-endian RIFX chunk container used by .aep project files.

The file is a tree of tagged chunks. ``LIST`` chunks carry a four character
identifier followed by child chunks; every other chunk is an opaque data
block that the item decoders interpret through fixed record layouts.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

import numpy as np

from AEP_Server.errors import MalformedRecordError, MissingChunkError


log = logging.getLogger(__name__)

_RIFX_MAGIC = b"RIFX"
_LIST_TYPE = "LIST"
_CHUNK_HEADER = struct.Struct(">4sI")
# List identifiers whose payload is opaque binary rather than child chunks.
_OPAQUE_LIST_IDENTIFIERS = {"btdk"}


def _fourcc(raw: bytes) -> str:
    return raw.decode("latin-1")


@dataclass
class Block:
    """A single chunk: either raw bytes or a nested ``ChunkList``."""

    type: str
    size: int
    data: Union[bytes, "ChunkList"]

    @property
    def is_list(self) -> bool:
        return isinstance(self.data, ChunkList)

    @property
    def raw(self) -> bytes:
        if isinstance(self.data, ChunkList):
            raise MalformedRecordError(
                f"Chunk '{self.type}' is a list, not a data block",
                code="not_a_data_block",
            )
        return self.data

    def to_text(self) -> str:
        """Decode the block as UTF-8 text without trailing NUL padding."""
        return self.raw.rstrip(b"\x00").decode("utf-8", errors="replace")

    def to_record(self, dtype: np.dtype) -> np.void:
        """Decode the head of the block as one fixed-layout numpy record."""
        raw = self.raw
        if len(raw) < dtype.itemsize:
            raise MalformedRecordError(
                f"Chunk '{self.type}' holds {len(raw)} bytes, record needs {dtype.itemsize}",
                code="record_too_short",
            )
        return np.frombuffer(raw, dtype=dtype, count=1)[0]


@dataclass
class ChunkList:
    """A ``LIST`` chunk (or the file root) and its child blocks in file order."""

    identifier: str
    blocks: List[Block] = field(default_factory=list)

    def _describe(self, context: Optional[str]) -> str:
        return context or f"list '{self.identifier}'"

    def iter_sublists(self) -> Iterator["ChunkList"]:
        for block in self.blocks:
            if isinstance(block.data, ChunkList):
                yield block.data

    def filter_by_type(self, tag: str) -> List[Block]:
        return [block for block in self.blocks if block.type == tag and not block.is_list]

    def find_by_type(self, tag: str, context: Optional[str] = None) -> Block:
        for block in self.blocks:
            if block.type == tag and not block.is_list:
                return block
        raise MissingChunkError(tag, self._describe(context))

    def sublist_filter(self, identifier: str) -> List["ChunkList"]:
        return [sub for sub in self.iter_sublists() if sub.identifier == identifier]

    def sublist_find(self, identifier: str, context: Optional[str] = None) -> "ChunkList":
        for sub in self.iter_sublists():
            if sub.identifier == identifier:
                return sub
        raise MissingChunkError(identifier, self._describe(context))

    def sublist_merge(self, identifier: str) -> "ChunkList":
        """Concatenate the children of every sublist named ``identifier``."""
        merged = ChunkList(identifier=identifier)
        for sub in self.sublist_filter(identifier):
            merged.blocks.extend(sub.blocks)
        return merged


def _parse_blocks(data: bytes, start: int, end: int, depth: int) -> List[Block]:
    blocks: List[Block] = []
    offset = start
    while offset + _CHUNK_HEADER.size <= end:
        raw_type, size = _CHUNK_HEADER.unpack_from(data, offset)
        chunk_type = _fourcc(raw_type)
        payload_start = offset + _CHUNK_HEADER.size
        payload_end = payload_start + size
        if payload_end > end:
            raise MalformedRecordError(
                f"Chunk '{chunk_type}' at offset {offset} declares {size} bytes, "
                f"only {end - payload_start} remain",
                code="truncated_chunk",
            )

        if chunk_type == _LIST_TYPE:
            if size < 4:
                raise MalformedRecordError(
                    f"LIST chunk at offset {offset} is too short for an identifier",
                    code="truncated_chunk",
                )
            identifier = _fourcc(data[payload_start:payload_start + 4])
            if identifier in _OPAQUE_LIST_IDENTIFIERS:
                payload: Union[bytes, ChunkList] = bytes(data[payload_start + 4:payload_end])
            else:
                payload = ChunkList(
                    identifier=identifier,
                    blocks=_parse_blocks(data, payload_start + 4, payload_end, depth + 1),
                )
        else:
            payload = bytes(data[payload_start:payload_end])

        blocks.append(Block(type=chunk_type, size=size, data=payload))
        # Odd-sized chunks are followed by one pad byte.
        offset = payload_end + (size & 1)

    if offset < end and depth == 0:
        log.debug("Ignoring %d trailing bytes after last chunk", end - offset)
    return blocks


def parse_rifx(data: bytes) -> ChunkList:
    """Parse a complete RIFX byte string into its root ``ChunkList``.

    The root list's identifier is the file's form type (``Egg!`` for After
    Effects projects).
    """
    if len(data) < 12 or data[:4] != _RIFX_MAGIC:
        raise MalformedRecordError("Not a RIFX container", code="bad_container_magic")
    _, size = _CHUNK_HEADER.unpack_from(data, 0)
    end = min(len(data), _CHUNK_HEADER.size + size)
    if end < 12:
        raise MalformedRecordError("RIFX header declares no form type", code="bad_container_magic")
    form_type = _fourcc(data[8:12])
    root = ChunkList(identifier=form_type, blocks=_parse_blocks(data, 12, end, 0))
    log.debug("Parsed RIFX form '%s' with %d top-level chunks", form_type, len(root.blocks))
    return root
