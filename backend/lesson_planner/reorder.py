from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict

from .collection import ActivityEntry, OrderedCollection, Scalar, renumber
from .slots import SlotSchema

logger = logging.getLogger(__name__)


class CapacityExceeded(BaseModel):
    """Returned instead of a collection when an insert would overfill a category."""

    model_config = ConfigDict(frozen=True)

    category: str
    capacity: int
    label: Optional[str] = None

    @property
    def message(self) -> str:
        return f"{self.label or self.category} is full ({self.capacity}/{self.capacity})"


InsertResult = Union[OrderedCollection, CapacityExceeded]


def can_insert(collection: OrderedCollection, schema: SlotSchema) -> bool:
    return len(collection) < schema.capacity


def check_capacity(collection: OrderedCollection, schema: SlotSchema) -> Optional[CapacityExceeded]:
    if can_insert(collection, schema):
        return None
    logger.warning("%s is full (%d/%d)", schema.category, len(collection), schema.capacity)
    return CapacityExceeded(category=schema.category, capacity=schema.capacity, label=schema.label)


def clamp(index: int, upper: int) -> int:
    return max(0, min(index, upper))


def insert_at(collection: OrderedCollection, entry: ActivityEntry, index: int, schema: SlotSchema) -> InsertResult:
    if entry.id in collection:
        logger.debug("%s: %r already present, insert skipped", collection.category, entry.id)
        return collection
    full = check_capacity(collection, schema)
    if full is not None:
        return full
    ordered = list(collection.entries)
    insert_at_idx = clamp(index, len(ordered))
    ordered.insert(insert_at_idx, entry)
    logger.debug("%s: inserted %r at %d", collection.category, entry.id, insert_at_idx)
    return renumber(collection.category, ordered)


def append(collection: OrderedCollection, entry: ActivityEntry, schema: SlotSchema) -> InsertResult:
    return insert_at(collection, entry, len(collection), schema)


def remove_by_id(collection: OrderedCollection, entry_id: str) -> OrderedCollection:
    if entry_id not in collection:
        return collection
    logger.debug("%s: removed %r", collection.category, entry_id)
    return renumber(collection.category, [e for e in collection.entries if e.id != entry_id])


def move_to(collection: OrderedCollection, entry_id: str, target_index: int) -> OrderedCollection:
    current = collection.index_of(entry_id)
    if current is None:
        return collection
    ordered = [e for e in collection.entries if e.id != entry_id]
    insert_at_idx = clamp(target_index, len(ordered))
    if insert_at_idx == current:
        return collection
    ordered.insert(insert_at_idx, collection.entries[current])
    logger.debug("%s: moved %r from %d to %d", collection.category, entry_id, current, insert_at_idx)
    return renumber(collection.category, ordered)


def update_field(
    collection: OrderedCollection, entry_id: str, field: str, value: Scalar, schema: Optional[SlotSchema] = None
) -> OrderedCollection:
    if schema is not None and field not in schema.entry_fields:
        raise ValueError(f"{schema.category} entries have no field {field!r}")
    idx = collection.index_of(entry_id)
    if idx is None:
        return collection
    entry = collection.entries[idx]
    if field in entry.fields and entry.fields[field] == value:
        return collection
    entries = list(collection.entries)
    entries[idx] = entry.with_field(field, value)
    return OrderedCollection(category=collection.category, entries=tuple(entries))


def apply_order(collection: OrderedCollection, entry_ids: Iterable[str]) -> OrderedCollection:
    """Reorder to follow ``entry_ids``; unknown ids are skipped and unlisted entries keep their relative order at the end."""
    by_id = {e.id: e for e in collection.entries}
    ordered: list[ActivityEntry] = []
    for entry_id in entry_ids:
        entry = by_id.pop(entry_id, None)
        if entry is not None:
            ordered.append(entry)
    ordered.extend(e for e in collection.entries if e.id in by_id)
    if [e.id for e in ordered] == collection.ids():
        return collection
    return renumber(collection.category, ordered)
