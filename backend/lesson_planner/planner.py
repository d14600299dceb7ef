from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from .binder import ResourceDescriptor, bind, category_for_resource
from .codec import FlatRecord, decode_lesson, encode_lesson, is_occupied
from .collection import ActivityEntry, OrderedCollection, Scalar, empty, total_duration
from .reorder import CapacityExceeded, apply_order, insert_at, move_to, remove_by_id, update_field
from .slots import SLOT_SCHEMAS, SlotSchema, get_schema

logger = logging.getLogger(__name__)

CHANGED = "changed"
UNCHANGED = "unchanged"
DUPLICATE = "duplicate"
NOT_FOUND = "not_found"
CAPACITY_EXCEEDED = "capacity_exceeded"
UNSUPPORTED = "unsupported"
OK_STATUSES = {CHANGED, UNCHANGED, DUPLICATE}


class IntentResult(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    plan: LessonPlan
    status: str
    category: Optional[str] = None
    entry_id: Optional[str] = None
    message: Optional[str] = None
    failure: Optional[CapacityExceeded] = None

    @property
    def ok(self) -> bool:
        return self.status in OK_STATUSES

    @property
    def changed(self) -> bool:
        return self.status == CHANGED


class LessonPlan:
    """All activity collections of one lesson.

    Immutable: every intent returns an :class:`IntentResult` carrying a new
    plan (or this plan when nothing changed). Capacity, missing ids and
    duplicates come back as result statuses; only unknown categories and
    unknown field names raise.
    """

    def __init__(self, collections: Optional[Mapping[str, OrderedCollection]] = None, schemas: Optional[dict[str, SlotSchema]] = None):
        self.schemas = SLOT_SCHEMAS if schemas is None else schemas
        given = dict(collections or {})
        for name, collection in given.items():
            get_schema(name, self.schemas)
            if collection.category != name:
                raise ValueError(f"collection for {name} is tagged {collection.category}")
        self._collections = {name: given.get(name, empty(name)) for name in self.schemas}

    @classmethod
    def from_flat_record(cls, record: Mapping[str, Any], schemas: Optional[dict[str, SlotSchema]] = None) -> "LessonPlan":
        table = SLOT_SCHEMAS if schemas is None else schemas
        return cls(decode_lesson(record, table), table)

    def to_flat_record(self) -> FlatRecord:
        return encode_lesson(self._collections, self.schemas)

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(self.schemas)

    def collection(self, category: str) -> OrderedCollection:
        get_schema(category, self.schemas)
        return self._collections[category]

    def schema(self, category: str) -> SlotSchema:
        return get_schema(category, self.schemas)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LessonPlan):
            return NotImplemented
        return self.schemas == other.schemas and self._collections == other._collections

    def __repr__(self) -> str:
        counts = ", ".join(f"{name}={len(c)}" for name, c in self._collections.items())
        return f"LessonPlan({counts})"

    def _replace(self, collection: OrderedCollection) -> "LessonPlan":
        collections = dict(self._collections)
        collections[collection.category] = collection
        return LessonPlan(collections, self.schemas)

    def _result(self, category: str, before: OrderedCollection, after: Any, entry_id: Optional[str] = None) -> IntentResult:
        logger.debug("%s intent on %r: %s", category, entry_id, type(after).__name__ if after is not before else "no change")
        if isinstance(after, CapacityExceeded):
            return IntentResult(plan=self, status=CAPACITY_EXCEEDED, category=category, entry_id=entry_id, message=after.message, failure=after)
        if after is before:
            return IntentResult(plan=self, status=UNCHANGED, category=category, entry_id=entry_id)
        return IntentResult(plan=self._replace(after), status=CHANGED, category=category, entry_id=entry_id)

    def _missing(self, category: str, entry_id: str) -> IntentResult:
        schema = self.schema(category)
        return IntentResult(plan=self, status=NOT_FOUND, category=category, entry_id=entry_id, message=f"no entry {entry_id!r} in {schema.title}")

    def _duplicate(self, category: str, entry_id: str) -> IntentResult:
        schema = self.schema(category)
        existing = self._collections[category].get(entry_id)
        name = existing.display_name(schema) if existing is not None else None
        return IntentResult(plan=self, status=DUPLICATE, category=category, entry_id=entry_id, message=f"{name or entry_id!r} is already in {schema.title}")

    def add_manual_entry(self, category: str, entry_id: str, fields: Mapping[str, Scalar], index: Optional[int] = None) -> IntentResult:
        schema = self.schema(category)
        unknown = set(fields) - set(schema.entry_fields)
        if unknown:
            raise ValueError(f"{category} entries have no fields {sorted(unknown)}")
        if not is_occupied(fields.get(schema.display_field)):
            raise ValueError(f"{category} entries need a non-empty {schema.display_field}")
        before = self._collections[category]
        if entry_id in before:
            return self._duplicate(category, entry_id)
        values = {f: fields.get(f) for f in schema.entry_fields}
        entry = ActivityEntry(id=entry_id, fields=values)
        after = insert_at(before, entry, len(before) if index is None else index, schema)
        return self._result(category, before, after, entry_id)

    def add_from_resource(self, category: str, descriptor: ResourceDescriptor) -> IntentResult:
        schema = self.schema(category)
        before = self._collections[category]
        if descriptor.id in before:
            return self._duplicate(category, descriptor.id)
        return self._result(category, before, bind(before, descriptor, schema), descriptor.id)

    def add_resource(self, descriptor: ResourceDescriptor) -> IntentResult:
        category = category_for_resource(descriptor, self.schemas)
        if category is None:
            return IntentResult(
                plan=self,
                status=UNSUPPORTED,
                entry_id=descriptor.id,
                message=f"resources of type {descriptor.resource_type!r} cannot be added to a lesson plan",
            )
        return self.add_from_resource(category, descriptor)

    def remove_entry(self, category: str, entry_id: str) -> IntentResult:
        before = self.collection(category)
        if entry_id not in before:
            return self._missing(category, entry_id)
        return self._result(category, before, remove_by_id(before, entry_id), entry_id)

    def move_entry(self, category: str, entry_id: str, target_index: int) -> IntentResult:
        before = self.collection(category)
        if entry_id not in before:
            return self._missing(category, entry_id)
        return self._result(category, before, move_to(before, entry_id, target_index), entry_id)

    def reorder_entries(self, category: str, entry_ids: Iterable[str]) -> IntentResult:
        before = self.collection(category)
        return self._result(category, before, apply_order(before, entry_ids))

    def update_field(self, category: str, entry_id: str, field: str, value: Scalar) -> IntentResult:
        schema = self.schema(category)
        if field not in schema.entry_fields:
            raise ValueError(f"{category} entries have no field {field!r}")
        before = self._collections[category]
        if entry_id not in before:
            return self._missing(category, entry_id)
        return self._result(category, before, update_field(before, entry_id, field, value, schema), entry_id)

    def update_notes(self, category: str, entry_id: str, text: Optional[str]) -> IntentResult:
        notes = text if text is not None and text.strip() else None
        return self.update_field(category, entry_id, "notes", notes)

    def summary(self) -> dict[str, dict[str, Any]]:
        out: dict[str, dict[str, Any]] = {}
        for name, schema in self.schemas.items():
            collection = self._collections[name]
            row: dict[str, Any] = {"count": len(collection), "capacity": schema.capacity, "full": len(collection) >= schema.capacity}
            if "duration" in schema.entry_fields:
                row["total_duration"] = total_duration(collection)
            out[name] = row
        return out


IntentResult.model_rebuild()
