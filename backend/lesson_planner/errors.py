from __future__ import annotations

from typing import Any


class LessonPlannerError(Exception):
    pass


class UnknownCategory(LessonPlannerError, KeyError):
    def __init__(self, category: str):
        super().__init__(category)
        self.category = category

    def __str__(self) -> str:
        return f"unknown category: {self.category!r}"


class MalformedFlatRecord(LessonPlannerError, ValueError):
    """A stored slot value cannot be read as the type its field requires."""

    def __init__(self, key: str, value: Any, reason: str = "unusable value"):
        super().__init__(f"{key}: {reason} ({value!r})")
        self.key = key
        self.value = value
        self.reason = reason


class CapacityExceededError(LessonPlannerError, ValueError):
    """Raised by encode when a collection holds more entries than its category has slots."""

    def __init__(self, category: str, capacity: int, overflow: int):
        super().__init__(f"{category} holds {capacity + overflow} entries but has {capacity} slots ({overflow} over)")
        self.category = category
        self.capacity = capacity
        self.overflow = overflow
