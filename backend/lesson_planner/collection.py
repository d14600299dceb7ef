from __future__ import annotations

from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .slots import SlotSchema

Scalar = Union[str, int, float, None]


class ActivityEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    fields: dict[str, Scalar] = Field(default_factory=dict)
    position: int = Field(default=0, ge=0)

    def display_name(self, schema: SlotSchema) -> Optional[str]:
        value = self.fields.get(schema.display_field)
        return None if value is None else str(value)

    def with_field(self, field: str, value: Scalar) -> "ActivityEntry":
        return self.model_copy(update={"fields": {**self.fields, field: value}})

    def at(self, position: int) -> "ActivityEntry":
        if position == self.position:
            return self
        return self.model_copy(update={"position": position})


class OrderedCollection(BaseModel):
    """Activities of one category in display order.

    ``entries[i].position == i`` always holds and ids are unique. Instances
    are never mutated; engine operations return new collections built with
    :func:`renumber`.
    """

    model_config = ConfigDict(frozen=True)

    category: str
    entries: tuple[ActivityEntry, ...] = ()

    @model_validator(mode="after")
    def _check_positions(self) -> "OrderedCollection":
        seen: set[str] = set()
        for idx, entry in enumerate(self.entries):
            if entry.position != idx:
                raise ValueError(f"{self.category}: entry {entry.id!r} has position {entry.position}, expected {idx}")
            if entry.id in seen:
                raise ValueError(f"{self.category}: duplicate entry id {entry.id!r}")
            seen.add(entry.id)
        return self

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, idx: int) -> ActivityEntry:
        return self.entries[idx]

    def ids(self) -> list[str]:
        return [e.id for e in self.entries]

    def index_of(self, entry_id: str) -> Optional[int]:
        for idx, entry in enumerate(self.entries):
            if entry.id == entry_id:
                return idx
        return None

    def get(self, entry_id: str) -> Optional[ActivityEntry]:
        idx = self.index_of(entry_id)
        return None if idx is None else self.entries[idx]

    def __contains__(self, entry_id: Any) -> bool:
        return self.index_of(entry_id) is not None


def renumber(category: str, entries: Iterable[ActivityEntry]) -> OrderedCollection:
    return OrderedCollection(category=category, entries=tuple(e.at(idx) for idx, e in enumerate(entries)))


def empty(category: str) -> OrderedCollection:
    return OrderedCollection(category=category)


def total_duration(collection: OrderedCollection, field: str = "duration") -> int | float:
    total: int | float = 0
    for entry in collection.entries:
        value = entry.fields.get(field)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            total += value
    return total
