import pytest
from pydantic import ValidationError

from conftest import make_collection
from lesson_planner.binder import ResourceDescriptor, bind, category_for_resource, to_entry
from lesson_planner.collection import empty
from lesson_planner.reorder import CapacityExceeded


def descriptor(**overrides) -> ResourceDescriptor:
    data = {
        "id": "res-1",
        "name": "Alphabet song",
        "resource_type": "warmup",
        "file_type": "video",
        "file_url": "https://cdn.example/song.mp4",
    }
    data.update(overrides)
    return ResourceDescriptor(**data)


def test_descriptor_accepts_title_or_name() -> None:
    assert ResourceDescriptor(id="a", title="Cards").title == "Cards"
    assert ResourceDescriptor(id="a", name="Cards").title == "Cards"


def test_descriptor_ignores_extra_library_fields() -> None:
    d = ResourceDescriptor(id="a", title="Cards", tags=["phonics"], download_count=4)
    assert not hasattr(d, "tags")


def test_descriptor_requires_id() -> None:
    with pytest.raises(ValidationError):
        ResourceDescriptor(title="Cards")


def test_to_entry_maps_link_fields(warmup_schema) -> None:
    entry = to_entry(descriptor(), warmup_schema)
    assert entry.id == "res-1"
    assert entry.fields == {"name": "Alphabet song", "type": "video", "url": "https://cdn.example/song.mp4"}


def test_to_entry_defaults_missing_type(warmup_schema) -> None:
    entry = to_entry(descriptor(file_type=None, file_url=None, resource_type=None), warmup_schema)
    assert entry.fields == {"name": "Alphabet song", "type": "file", "url": None}


def test_to_entry_falls_back_to_resource_type(warmup_schema) -> None:
    entry = to_entry(ResourceDescriptor(id="x", title="Song", resource_type="video"), warmup_schema)
    assert entry.fields["type"] == "video"
    assert to_entry(descriptor(resource_type="audio"), warmup_schema).fields["type"] == "video"


def test_to_entry_maps_library_fields(resources_schema) -> None:
    d = ResourceDescriptor(id="lib-7", title="Flashcards", resource_type="game", duration_minutes=15, description="Colours")
    entry = to_entry(d, resources_schema)
    assert entry.id == "lib-7"
    assert entry.fields == {"title": "Flashcards", "type": "game", "duration": 15, "notes": None}


def test_bind_appends_at_end(warmup_schema) -> None:
    base = make_collection("warmup", 2)
    result = bind(base, descriptor(), warmup_schema)
    assert result.ids() == ["warmup-0", "warmup-1", "res-1"]
    assert result.get("res-1").position == 2


def test_bind_is_idempotent(warmup_schema) -> None:
    once = bind(empty("warmup"), descriptor(), warmup_schema)
    twice = bind(once, descriptor(), warmup_schema)
    assert twice is once
    assert twice == bind(empty("warmup"), descriptor(), warmup_schema)


def test_bind_duplicate_in_full_collection_is_no_change(warmup_schema) -> None:
    base = bind(make_collection("warmup", 3), descriptor(), warmup_schema)
    assert len(base) == 4
    assert bind(base, descriptor(), warmup_schema) is base


def test_bind_into_full_homework(homework_schema) -> None:
    full = make_collection("homework", 6)
    result = bind(full, descriptor(id="new", resource_type="homework"), homework_schema)
    assert result == CapacityExceeded(category="homework", capacity=6)
    assert len(full) == 6


@pytest.mark.parametrize(
    ("resource_type", "expected"),
    [("main_activity", "main"), ("homework", "homework"), ("Printable", "printable"), ("poster", None), (None, None)],
)
def test_category_for_resource(resource_type, expected) -> None:
    assert category_for_resource(descriptor(resource_type=resource_type)) == expected
