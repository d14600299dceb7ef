import pytest
from pydantic import ValidationError

from lesson_planner.errors import UnknownCategory
from lesson_planner.slots import SLOT_SCHEMAS, SlotSchema, get_schema, validate_schema_table


def test_category_table_matches_stored_columns() -> None:
    caps = {name: (s.prefix, s.capacity) for name, s in SLOT_SCHEMAS.items()}
    assert caps == {
        "warmup": ("wp", 4),
        "main": ("ma", 5),
        "assessment": ("a", 4),
        "homework": ("hw", 6),
        "printable": ("p", 4),
        "resources": ("r", 12),
    }


def test_keys_are_one_based_and_fixed() -> None:
    schema = SLOT_SCHEMAS["warmup"]
    assert schema.key(1, "name") == "wp1_name"
    assert schema.slot_keys(2) == ["wp2_name", "wp2_type", "wp2_url"]
    assert len(schema.all_keys()) == 12
    assert schema.all_keys()[-1] == "wp4_url"


def test_entry_fields_leave_out_id_field() -> None:
    assert SLOT_SCHEMAS["resources"].entry_fields == ("title", "type", "duration", "notes")
    assert SLOT_SCHEMAS["homework"].entry_fields == ("name", "type", "url")


def test_display_field_must_be_a_slot_field() -> None:
    with pytest.raises(ValidationError):
        SlotSchema(category="x", prefix="x", capacity=2, fields=("name",), display_field="title")


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        SlotSchema(category="x", prefix="x", capacity=0, fields=("name",), display_field="name")


def test_unknown_category_raises() -> None:
    with pytest.raises(UnknownCategory):
        get_schema("lunch")
    with pytest.raises(KeyError):
        get_schema("lunch")


def test_schema_table_rejects_shared_prefix() -> None:
    a = SlotSchema(category="a", prefix="x", capacity=1, fields=("name",), display_field="name")
    b = SlotSchema(category="b", prefix="x", capacity=1, fields=("name",), display_field="name")
    with pytest.raises(ValueError, match="prefix"):
        validate_schema_table({"a": a, "b": b})


def test_schema_table_rejects_colliding_keys() -> None:
    a = SlotSchema(category="a", prefix="x1", capacity=1, fields=("name",), display_field="name")
    b = SlotSchema(category="b", prefix="x", capacity=11, fields=("name",), display_field="name")
    with pytest.raises(ValueError, match="x11_name"):
        validate_schema_table({"a": a, "b": b})
