from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional

from .collection import ActivityEntry, OrderedCollection, Scalar, empty, renumber
from .errors import CapacityExceededError, MalformedFlatRecord
from .slots import SLOT_SCHEMAS, SlotSchema, get_schema

logger = logging.getLogger(__name__)

FlatRecord = dict[str, Scalar]


def is_occupied(value: Any) -> bool:
    if value is None:
        return False
    return str(value).strip() != ""


def coerce_number(key: str, value: Any) -> Optional[int | float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise MalformedFlatRecord(key, value, "expected a number")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise MalformedFlatRecord(key, value, "expected a finite number")
        return int(value) if value.is_integer() else value
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            number = float(s)
        except ValueError:
            raise MalformedFlatRecord(key, value, "expected a number") from None
        if math.isnan(number) or math.isinf(number):
            raise MalformedFlatRecord(key, value, "expected a finite number")
        return int(number) if number.is_integer() else number
    raise MalformedFlatRecord(key, value, "expected a number")


def coerce_scalar(key: str, value: Any) -> Scalar:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return value
    raise MalformedFlatRecord(key, value, "expected a scalar")


def read_slot(record: Mapping[str, Any], schema: SlotSchema, slot: int) -> dict[str, Scalar]:
    out: dict[str, Scalar] = {}
    for field in schema.fields:
        key = schema.key(slot, field)
        raw = record.get(key)
        if field in schema.numeric_fields:
            out[field] = coerce_number(key, raw)
            continue
        value = coerce_scalar(key, raw)
        if field != schema.display_field and isinstance(value, str) and not value.strip():
            value = None
        out[field] = value
    return out


def unused_id(schema: SlotSchema, slot: int, seen: set[str]) -> str:
    candidate = schema.slot_id(slot)
    n = 2
    while candidate in seen:
        candidate = f"{schema.slot_id(slot)}-{n}"
        n += 1
    return candidate


def occupied_slots(record: Mapping[str, Any], schema: SlotSchema) -> list[int]:
    return [slot for slot in range(1, schema.capacity + 1) if is_occupied(record.get(schema.key(slot, schema.display_field)))]


def find_gaps(record: Mapping[str, Any], schema: SlotSchema) -> list[int]:
    """Empty slot numbers that sit before an occupied slot; decode collapses these."""
    occupied = occupied_slots(record, schema)
    if not occupied:
        return []
    last = occupied[-1]
    taken = set(occupied)
    return [slot for slot in range(1, last) if slot not in taken]


def decode(record: Mapping[str, Any], schema: SlotSchema) -> OrderedCollection:
    """Read one category's slots into an ordered collection.

    Occupied slots are taken in slot order and re-positioned densely from 0,
    so empty intermediate slots disappear. Missing keys read as null. Only
    values that cannot be read at all (non-scalars, non-numeric text in a
    numeric field) raise :class:`MalformedFlatRecord`.
    """
    entries: list[ActivityEntry] = []
    seen: set[str] = set()
    occupied = occupied_slots(record, schema)
    for slot in occupied:
        values = read_slot(record, schema, slot)
        entry_id = schema.slot_id(slot)
        if schema.id_field is not None:
            stored = values.pop(schema.id_field)
            if is_occupied(stored):
                entry_id = str(stored).strip()
        if entry_id in seen:
            fallback = unused_id(schema, slot, seen)
            logger.warning("%s: slot %d repeats id %r, using %r", schema.category, slot, entry_id, fallback)
            entry_id = fallback
        seen.add(entry_id)
        entries.append(ActivityEntry(id=entry_id, fields=values))
    if occupied and occupied[-1] != len(occupied):
        logger.warning("%s: collapsed empty slots %s", schema.category, find_gaps(record, schema))
    return renumber(schema.category, entries)


def encode(collection: OrderedCollection, schema: SlotSchema) -> FlatRecord:
    """Write a collection back into the category's fixed slot keys.

    Slots past the last entry are written as all-null. A collection longer
    than the category's capacity raises :class:`CapacityExceededError`.
    """
    if collection.category != schema.category:
        raise ValueError(f"cannot encode {collection.category} entries with the {schema.category} slot schema")
    overflow = len(collection) - schema.capacity
    if overflow > 0:
        raise CapacityExceededError(schema.category, schema.capacity, overflow)
    out: FlatRecord = {}
    for slot in range(1, schema.capacity + 1):
        entry = collection.entries[slot - 1] if slot <= len(collection) else None
        for field in schema.fields:
            if entry is None:
                value = None
            elif field == schema.id_field:
                value = entry.id
            else:
                value = entry.fields.get(field)
            out[schema.key(slot, field)] = value
    return out


def decode_lesson(record: Mapping[str, Any], schemas: Optional[dict[str, SlotSchema]] = None) -> dict[str, OrderedCollection]:
    table = SLOT_SCHEMAS if schemas is None else schemas
    return {name: decode(record, schema) for name, schema in table.items()}


def encode_lesson(collections: Mapping[str, OrderedCollection], schemas: Optional[dict[str, SlotSchema]] = None) -> FlatRecord:
    table = SLOT_SCHEMAS if schemas is None else schemas
    for name in collections:
        get_schema(name, table)
    out: FlatRecord = {}
    for name, schema in table.items():
        collection = collections.get(name)
        out.update(encode(empty(name) if collection is None else collection, schema))
    return out
