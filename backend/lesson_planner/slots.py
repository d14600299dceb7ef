from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import UnknownCategory


class SlotSchema(BaseModel):
    """Fixed-slot layout of one activity category in the flat lesson record.

    Keys look like ``{prefix}{slot}_{field}`` with 1-based slots. A slot is
    occupied iff ``display_field`` holds a non-empty value.
    """

    model_config = ConfigDict(frozen=True)

    category: str
    prefix: str = Field(min_length=1)
    capacity: int = Field(ge=1)
    fields: tuple[str, ...]
    display_field: str
    id_field: Optional[str] = None
    numeric_fields: frozenset[str] = frozenset()
    defaults: dict[str, str] = Field(default_factory=dict)
    field_sources: dict[str, tuple[str, ...]] = Field(default_factory=dict)
    label: Optional[str] = None

    @model_validator(mode="after")
    def _check_fields(self) -> "SlotSchema":
        if len(set(self.fields)) != len(self.fields):
            raise ValueError(f"{self.category}: duplicate slot fields")
        if self.display_field not in self.fields:
            raise ValueError(f"{self.category}: display field {self.display_field!r} is not a slot field")
        if self.id_field is not None and self.id_field not in self.fields:
            raise ValueError(f"{self.category}: id field {self.id_field!r} is not a slot field")
        if self.id_field == self.display_field:
            raise ValueError(f"{self.category}: id field cannot double as the display field")
        unknown = (set(self.numeric_fields) | set(self.defaults) | set(self.field_sources)) - set(self.fields)
        if unknown:
            raise ValueError(f"{self.category}: unknown fields {sorted(unknown)}")
        return self

    @property
    def entry_fields(self) -> tuple[str, ...]:
        """Slot fields that live on an activity entry (everything but the id field)."""
        return tuple(f for f in self.fields if f != self.id_field)

    @property
    def title(self) -> str:
        return self.label or self.category

    def key(self, slot: int, field: str) -> str:
        return f"{self.prefix}{slot}_{field}"

    def slot_id(self, slot: int) -> str:
        return f"{self.prefix}{slot}"

    def slot_keys(self, slot: int) -> list[str]:
        return [self.key(slot, f) for f in self.fields]

    def all_keys(self) -> list[str]:
        return [k for slot in range(1, self.capacity + 1) for k in self.slot_keys(slot)]


LINK_FIELDS = ("name", "type", "url")

SLOT_SCHEMAS: dict[str, SlotSchema] = {
    s.category: s
    for s in (
        SlotSchema(category="warmup", prefix="wp", capacity=4, fields=LINK_FIELDS, display_field="name", defaults={"type": "file"}),
        SlotSchema(
            category="main", prefix="ma", capacity=5, fields=LINK_FIELDS, display_field="name", defaults={"type": "file"}, label="main activities"
        ),
        SlotSchema(category="assessment", prefix="a", capacity=4, fields=LINK_FIELDS, display_field="name", defaults={"type": "file"}),
        SlotSchema(category="homework", prefix="hw", capacity=6, fields=LINK_FIELDS, display_field="name", defaults={"type": "file"}),
        SlotSchema(category="printable", prefix="p", capacity=4, fields=LINK_FIELDS, display_field="name", defaults={"type": "file"}),
        SlotSchema(
            category="resources",
            prefix="r",
            capacity=12,
            fields=("id", "title", "type", "duration", "notes"),
            display_field="title",
            id_field="id",
            numeric_fields=frozenset({"duration"}),
            defaults={"type": "activity"},
            field_sources={"type": ("resource_type", "file_type")},
        ),
    )
}

CATEGORY_ORDER = tuple(SLOT_SCHEMAS)


def get_schema(category: str, schemas: Optional[dict[str, SlotSchema]] = None) -> SlotSchema:
    table = SLOT_SCHEMAS if schemas is None else schemas
    try:
        return table[category]
    except KeyError:
        raise UnknownCategory(category) from None


def validate_schema_table(schemas: dict[str, SlotSchema]) -> None:
    """Reject tables in which two categories would write the same flat key."""
    seen: dict[str, str] = {}
    for name, schema in schemas.items():
        if name != schema.category:
            raise ValueError(f"schema registered as {name!r} describes {schema.category!r}")
        if schema.prefix in seen:
            raise ValueError(f"prefix {schema.prefix!r} used by both {seen[schema.prefix]} and {name}")
        seen[schema.prefix] = name
    all_keys: dict[str, str] = {}
    for name, schema in schemas.items():
        for key in schema.all_keys():
            if key in all_keys:
                raise ValueError(f"flat key {key!r} produced by both {all_keys[key]} and {name}")
            all_keys[key] = name


validate_schema_table(SLOT_SCHEMAS)
