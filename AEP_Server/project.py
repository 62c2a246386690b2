"""Top-level .aep project: header metadata, the root folder and the id registry."""

from __future__ import annotations

import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from AEP_Server.errors import MalformedRecordError, MissingChunkError
from AEP_Server.items import (
    ROOT_LIST_IDENTIFIER,
    Item,
    ItemType,
    iter_items_of_type,
    item_to_dict,
    parse_item,
)
from AEP_Server.records import NHED_DTYPE
from AEP_Server.rifx import ChunkList, parse_rifx


log = logging.getLogger(__name__)

PROJECT_HEADER_TAG = "nhed"
EXPRESSION_ENGINE_IDENTIFIER = "ExEn"

_BITS_PER_CHANNEL = {
    0x00: 8,
    0x01: 16,
    0x02: 32,
}


@dataclass
class Project:
    bits_per_channel: int
    expression_engine: Optional[str]
    root_folder: Item
    items: Dict[int, Item] = field(default_factory=dict)

    @classmethod
    def from_chunks(cls, root_list: ChunkList) -> "Project":
        header = root_list.find_by_type(PROJECT_HEADER_TAG, context="project root").to_record(NHED_DTYPE)
        depth_code = int(header["depth"])
        bits_per_channel = _BITS_PER_CHANNEL.get(depth_code)
        if bits_per_channel is None:
            raise MalformedRecordError(
                f"Unknown colour depth code 0x{depth_code:02X} in '{PROJECT_HEADER_TAG}'",
                code="unknown_bit_depth",
            )

        expression_engine = None
        try:
            engine_list = root_list.sublist_find(EXPRESSION_ENGINE_IDENTIFIER)
            expression_engine = engine_list.find_by_type("Utf8", context="expression engine").to_text()
        except MissingChunkError:
            log.debug("Project has no expression engine entry")

        fold_list = root_list.sublist_find(ROOT_LIST_IDENTIFIER, context="project root")
        # Published only once the whole tree decoded.
        registry: Dict[int, Item] = {}
        root_folder = parse_item(fold_list, registry)
        log.debug("Decoded %d project items", len(registry))
        return cls(
            bits_per_channel=bits_per_channel,
            expression_engine=expression_engine,
            root_folder=root_folder,
            items=registry,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "Project":
        return cls.from_chunks(parse_rifx(data))

    @classmethod
    def open(cls, path: str) -> "Project":
        with open(os.path.expanduser(path), "rb") as handle:
            data = handle.read()
        log.info(f"Decoding project {path} ({len(data)} bytes)")
        return cls.from_bytes(data)

    def get_item(self, item_id: int) -> Optional[Item]:
        return self.items.get(int(item_id))

    def iter_items(self) -> Iterator[Item]:
        return self.root_folder.walk()

    def compositions(self) -> List[Item]:
        return iter_items_of_type(self.root_folder, ItemType.COMPOSITION)

    def footage(self) -> List[Item]:
        return iter_items_of_type(self.root_folder, ItemType.FOOTAGE)

    def folders(self) -> List[Item]:
        return iter_items_of_type(self.root_folder, ItemType.FOLDER)


def project_to_dict(project: Project) -> Dict[str, Any]:
    counts = Counter(item.item_type.value for item in project.iter_items())
    return {
        "bits_per_channel": project.bits_per_channel,
        "expression_engine": project.expression_engine,
        "item_count": len(project.items),
        "item_counts_by_type": {item_type.value: counts.get(item_type.value, 0) for item_type in ItemType},
        "root": item_to_dict(project.root_folder),
    }
