"""Decode the project item tree (folders, compositions, footage) from chunk lists."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, ClassVar, Dict, Iterator, List, NamedTuple, Optional, Tuple, Union

from AEP_Server.errors import DivisionByZeroError, MalformedRecordError, UnknownTypeCodeError
from AEP_Server.fixed24 import Fixed24
from AEP_Server.records import (
    CDTA_DTYPE,
    IDTA_DTYPE,
    OPTI_FOOTAGE_TYPE_OFFSET,
    OPTI_PLACEHOLDER_NAME_SLICE,
    OPTI_SOLID_NAME_SLICE,
    SSPC_DTYPE,
)
from AEP_Server.rifx import ChunkList


log = logging.getLogger(__name__)

ROOT_LIST_IDENTIFIER = "Fold"
ITEM_LIST_IDENTIFIER = "Item"
FOLDER_CONTENTS_IDENTIFIER = "Sfdr"
NAME_TAG = "Utf8"
ITEM_DESCRIPTOR_TAG = "idta"
PIN_LIST_IDENTIFIER = "Pin "
FOOTAGE_SPEC_TAG = "sspc"
FOOTAGE_OPTIONS_TAG = "opti"
COMPOSITION_DESCRIPTOR_TAG = "cdta"

# End frames at or past this value are not trustworthy; the comp duration is used instead.
END_FRAME_OVERFLOW_THRESHOLD = 0x0013C680
_UINT32_MASK = 0xFFFFFFFF


class ItemType(str, Enum):
    FOLDER = "Folder"
    COMPOSITION = "Composition"
    FOOTAGE = "Footage"


_ITEM_TYPE_CODES = {
    0x01: ItemType.FOLDER,
    0x04: ItemType.COMPOSITION,
    0x07: ItemType.FOOTAGE,
}


class FootageType(IntEnum):
    PLACEHOLDER = 0x02
    SOLID = 0x09


@dataclass(frozen=True)
class FolderKind:
    contents: Tuple["Item", ...] = ()

    item_type: ClassVar[ItemType] = ItemType.FOLDER


@dataclass(frozen=True)
class FootageKind:
    width: int
    height: int
    framerate: float
    duration_seconds: float
    # FootageType for known sources, the raw code otherwise.
    footage_type: Union[FootageType, int]

    item_type: ClassVar[ItemType] = ItemType.FOOTAGE


@dataclass(frozen=True)
class CompositionKind:
    width: int
    height: int
    framerate: float
    start_frame: float
    end_frame: float
    duration_seconds: float
    background_color: Tuple[int, int, int]
    # Layer decoding is not implemented; always empty.
    layers: Tuple[Any, ...] = ()

    item_type: ClassVar[ItemType] = ItemType.COMPOSITION


ItemKind = Union[FolderKind, FootageKind, CompositionKind]


@dataclass(frozen=True)
class Item:
    name: str
    id: int
    kind: ItemKind = field(default_factory=FolderKind)

    @property
    def item_type(self) -> ItemType:
        return self.kind.item_type

    @property
    def contents(self) -> Tuple["Item", ...]:
        if isinstance(self.kind, FolderKind):
            return self.kind.contents
        return ()

    def walk(self) -> Iterator["Item"]:
        """Yield this item and all of its descendants, depth first."""
        yield self
        for child in self.contents:
            yield from child.walk()


class CompositionTiming(NamedTuple):
    start_offset: int
    start_frame: float
    end_frame: float
    duration_seconds: float
    used_duration_bound: bool


def _describe_item(name: Optional[str], item_id: Optional[int]) -> str:
    if name is None:
        return "unnamed item"
    if item_id is None:
        return f"item '{name}'"
    return f"item '{name}' (id {item_id})"


def _clean_name_bytes(raw: bytes) -> str:
    return raw.strip(b"\x00").replace(b"\x00", b" ").decode("utf-8", errors="replace")


def _classify(item_head: ChunkList) -> Tuple[str, int, ItemType]:
    name = item_head.find_by_type(NAME_TAG, context="item list").to_text()
    descriptor = item_head.find_by_type(ITEM_DESCRIPTOR_TAG, context=_describe_item(name, None))
    record = descriptor.to_record(IDTA_DTYPE)
    item_id = int(record["id"])
    type_code = int(record["type"])
    item_type = _ITEM_TYPE_CODES.get(type_code)
    if item_type is None:
        raise UnknownTypeCodeError(type_code, _describe_item(name, item_id))
    return name, item_id, item_type


def _parse_folder(item_head: ChunkList, registry: Dict[int, Item]) -> FolderKind:
    child_lists = item_head.sublist_filter(ITEM_LIST_IDENTIFIER)
    child_lists += item_head.sublist_merge(FOLDER_CONTENTS_IDENTIFIER).sublist_filter(ITEM_LIST_IDENTIFIER)
    contents = tuple(parse_item(child, registry) for child in child_lists)
    return FolderKind(contents=contents)


def _parse_footage(item_head: ChunkList, name: str, context: str) -> Tuple[str, FootageKind]:
    pin_list = item_head.sublist_find(PIN_LIST_IDENTIFIER, context=context)

    spec = pin_list.find_by_type(FOOTAGE_SPEC_TAG, context=context).to_record(SSPC_DTYPE)
    divisor = int(spec["seconds_divisor"])
    if divisor == 0:
        raise DivisionByZeroError(f"Footage duration denominator is zero in {context}")
    framerate = float(spec["framerate"]) + float(spec["framerate_dividend"]) / float(1 << 16)
    duration_seconds = float(spec["seconds_dividend"]) / float(divisor)

    options = pin_list.find_by_type(FOOTAGE_OPTIONS_TAG, context=context).raw
    if len(options) < OPTI_FOOTAGE_TYPE_OFFSET + 2:
        raise MalformedRecordError(
            f"'{FOOTAGE_OPTIONS_TAG}' block holds {len(options)} bytes in {context}",
            code="record_too_short",
        )
    code = int.from_bytes(options[OPTI_FOOTAGE_TYPE_OFFSET:OPTI_FOOTAGE_TYPE_OFFSET + 2], "big")
    try:
        footage_type: Union[FootageType, int] = FootageType(code)
    except ValueError:
        footage_type = code
        log.debug("Keeping descriptor name for footage sub-type 0x%02X in %s", code, context)

    if footage_type == FootageType.SOLID:
        name = _clean_name_bytes(options[OPTI_SOLID_NAME_SLICE])
    elif footage_type == FootageType.PLACEHOLDER:
        name = _clean_name_bytes(options[OPTI_PLACEHOLDER_NAME_SLICE])

    kind = FootageKind(
        width=int(spec["width"]),
        height=int(spec["height"]),
        framerate=framerate,
        duration_seconds=duration_seconds,
        footage_type=footage_type,
    )
    return name, kind


def decode_composition_timing(record: Any) -> CompositionTiming:
    """Resolve frame range and duration from a decoded ``cdta`` record.

    Sums wrap at 32 bits and are halved with integer division before the
    conversion to float, so odd totals lose their half frame.
    """
    framerate = int(record["framerate"])
    start_offset = Fixed24.from_bytes(record["start_offset"].tobytes()).to_int()
    if int(record["comparison_framerate"]) != framerate:
        start_offset = Fixed24(start_offset // 2).to_int()

    start_frame = Fixed24.from_bytes(record["start_frame"].tobytes())
    end_frame = Fixed24.from_bytes(record["end_frame"].tobytes())
    comp_duration = Fixed24.from_bytes(record["comp_duration"].tobytes()).to_int()
    end_spare = record["end_frame_spare"]

    used_duration_bound = (
        end_frame.to_int() >= END_FRAME_OVERFLOW_THRESHOLD
        or (end_frame[0] > 0x13 and end_frame[1] > 0xC6 and end_frame[2] > 0x80)
        or int(end_spare[0]) > 0
    )
    upper = comp_duration if used_duration_bound else end_frame.to_int()

    first = ((start_offset + start_frame.to_int()) & _UINT32_MASK) // 2
    last = ((start_offset + upper) & _UINT32_MASK) // 2
    return CompositionTiming(
        start_offset=start_offset,
        start_frame=float(first),
        end_frame=float(last),
        duration_seconds=float(comp_duration // 2),
        used_duration_bound=used_duration_bound,
    )


def _parse_composition(item_head: ChunkList, context: str) -> CompositionKind:
    record = item_head.find_by_type(COMPOSITION_DESCRIPTOR_TAG, context=context).to_record(CDTA_DTYPE)
    timing = decode_composition_timing(record)
    if timing.used_duration_bound:
        log.debug("End frame out of range in %s, using comp duration", context)
    color = record["background_color"]
    return CompositionKind(
        width=int(record["width"]),
        height=int(record["height"]),
        framerate=float(record["framerate"]),
        start_frame=timing.start_frame,
        end_frame=timing.end_frame,
        duration_seconds=timing.duration_seconds,
        background_color=(int(color[0]), int(color[1]), int(color[2])),
    )


def parse_item(item_head: ChunkList, registry: Dict[int, Item]) -> Item:
    """Decode one item list (or the root ``Fold`` list) and its descendants.

    Every decoded item is added to ``registry`` after its children, keyed by
    id. Any error aborts the whole descent.
    """
    if item_head.identifier == ROOT_LIST_IDENTIFIER:
        name, item_id, item_type = "root", 0, ItemType.FOLDER
    else:
        name, item_id, item_type = _classify(item_head)
    context = _describe_item(name, item_id)

    kind: ItemKind
    if item_type == ItemType.FOLDER:
        kind = _parse_folder(item_head, registry)
    elif item_type == ItemType.FOOTAGE:
        name, kind = _parse_footage(item_head, name, context)
    else:
        kind = _parse_composition(item_head, context)

    item = Item(name=name, id=item_id, kind=kind)
    if item_id in registry:
        previous = registry[item_id]
        log.warning("Duplicate item id %d: %s replaces '%s'", item_id, context, previous.name)
    registry[item_id] = item
    return item


def item_to_dict(item: Item, include_contents: bool = False) -> Dict[str, Any]:
    """JSON-safe summary of an item."""
    row: Dict[str, Any] = {
        "id": item.id,
        "name": item.name,
        "type": item.item_type.value,
    }
    kind = item.kind
    if isinstance(kind, FolderKind):
        row["child_ids"] = [child.id for child in kind.contents]
        if include_contents:
            row["contents"] = [item_to_dict(child, include_contents=True) for child in kind.contents]
    elif isinstance(kind, FootageKind):
        footage_type = kind.footage_type
        row.update({
            "width": kind.width,
            "height": kind.height,
            "framerate": kind.framerate,
            "duration_seconds": kind.duration_seconds,
            "footage_type": footage_type.name.lower() if isinstance(footage_type, FootageType) else int(footage_type),
        })
    else:
        row.update({
            "width": kind.width,
            "height": kind.height,
            "framerate": kind.framerate,
            "start_frame": kind.start_frame,
            "end_frame": kind.end_frame,
            "duration_seconds": kind.duration_seconds,
            "background_color": list(kind.background_color),
            "layer_count": len(kind.layers),
        })
    return row


def iter_items_of_type(root: Item, item_type: ItemType) -> List[Item]:
    return [item for item in root.walk() if item.item_type == item_type]
