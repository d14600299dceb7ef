from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
BACKEND = ROOT / "backend"
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from lesson_planner.collection import ActivityEntry, OrderedCollection, renumber  # noqa: E402
from lesson_planner.slots import SLOT_SCHEMAS  # noqa: E402


def link_entry(entry_id: str, name: str, kind: str = "video", url: str = "http://x") -> ActivityEntry:
    return ActivityEntry(id=entry_id, fields={"name": name, "type": kind, "url": url})


def make_collection(category: str, count: int) -> OrderedCollection:
    return renumber(category, [link_entry(f"{category}-{i}", f"Item {i}") for i in range(count)])


@pytest.fixture
def warmup_schema():
    return SLOT_SCHEMAS["warmup"]


@pytest.fixture
def homework_schema():
    return SLOT_SCHEMAS["homework"]


@pytest.fixture
def resources_schema():
    return SLOT_SCHEMAS["resources"]
