from __future__ import annotations

import logging
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .collection import ActivityEntry, OrderedCollection, Scalar
from .reorder import InsertResult, append, check_capacity
from .slots import SLOT_SCHEMAS, SlotSchema

logger = logging.getLogger(__name__)


class ResourceDescriptor(BaseModel):
    """A resource picked from the library, as handed over by the caller."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    title: str = Field(validation_alias=AliasChoices("title", "name"))
    resource_type: Optional[str] = None
    file_type: Optional[str] = None
    file_url: Optional[str] = None
    duration_minutes: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = None


# Slot field -> descriptor attributes, first non-empty wins.
FIELD_SOURCES: dict[str, tuple[str, ...]] = {
    "name": ("title",),
    "title": ("title",),
    "type": ("file_type", "resource_type"),
    "url": ("file_url",),
    "duration": ("duration_minutes",),
    "description": ("description",),
    "notes": (),
}

RESOURCE_TYPE_ALIASES = {"main_activity": "main", "warm_up": "warmup", "warm-up": "warmup"}


def descriptor_value(descriptor: ResourceDescriptor, field: str, schema: Optional[SlotSchema] = None) -> Scalar:
    sources = schema.field_sources.get(field) if schema is not None else None
    for attr in sources or FIELD_SOURCES.get(field, (field,)):
        value = getattr(descriptor, attr, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value
    return None


def to_entry(descriptor: ResourceDescriptor, schema: SlotSchema) -> ActivityEntry:
    fields: dict[str, Scalar] = {}
    for field in schema.entry_fields:
        value = descriptor_value(descriptor, field, schema)
        fields[field] = schema.defaults.get(field) if value is None else value
    return ActivityEntry(id=descriptor.id, fields=fields)


def bind(collection: OrderedCollection, descriptor: ResourceDescriptor, schema: SlotSchema) -> InsertResult:
    """Append a library resource to the collection unless it is already there.

    A resource whose id is present returns ``collection`` itself, so binding
    twice equals binding once. A full category yields ``CapacityExceeded``.
    """
    if descriptor.id in collection:
        logger.debug("%s: resource %r already bound", collection.category, descriptor.id)
        return collection
    full = check_capacity(collection, schema)
    if full is not None:
        return full
    return append(collection, to_entry(descriptor, schema), schema)


def category_for_resource(descriptor: ResourceDescriptor, schemas: Optional[dict[str, SlotSchema]] = None) -> Optional[str]:
    table = SLOT_SCHEMAS if schemas is None else schemas
    raw = (descriptor.resource_type or "").strip().lower()
    if not raw:
        return None
    category = RESOURCE_TYPE_ALIASES.get(raw, raw)
    return category if category in table else None
