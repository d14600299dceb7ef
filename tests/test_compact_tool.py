import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from lesson_planner.main import Base, LessonPlanRecord, flat_record

TOOLS = Path(__file__).resolve().parents[1] / "tools"
if str(TOOLS) not in sys.path:
    sys.path.insert(0, str(TOOLS))

import compact_lesson_slots  # noqa: E402


@pytest.fixture
def db(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'lessons.db'}", future=True)
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, future=True)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def add_row(db, lesson_id: str, **slots) -> LessonPlanRecord:
    row = LessonPlanRecord(id=lesson_id, lesson_title=lesson_id)
    for key, value in slots.items():
        setattr(row, key, value)
    db.add(row)
    db.commit()
    return row


def test_scan_reports_only_gapped_lessons(db) -> None:
    add_row(db, "tidy", wp1_name="A", wp2_name="B")
    add_row(db, "gapped", wp1_name="A", wp3_name="C", hw2_name="Sheet")
    report = compact_lesson_slots.scan(db, [])
    assert [item["lesson_id"] for item in report] == ["gapped"]
    assert report[0]["gaps"] == {"warmup": [2], "homework": [1]}
    assert report[0]["error"] is None


def test_scan_filters_by_lesson(db) -> None:
    add_row(db, "one", wp2_name="B")
    add_row(db, "two", wp2_name="B")
    report = compact_lesson_slots.scan(db, ["two"])
    assert [item["lesson_id"] for item in report] == ["two"]


def test_compacting_a_scanned_lesson(db) -> None:
    add_row(db, "gapped", wp1_name="A", wp3_name="C", wp3_url="http://c")
    item = compact_lesson_slots.scan(db, [])[0]
    compact_lesson_slots.store_plan(item["row"], item["plan"])
    db.commit()
    record = flat_record(db.get(LessonPlanRecord, "gapped"))
    assert (record["wp1_name"], record["wp2_name"], record["wp2_url"], record["wp3_name"]) == ("A", "C", "http://c", None)
    assert compact_lesson_slots.scan(db, []) == []


def test_scan_flags_unreadable_lessons(db) -> None:
    add_row(db, "bad", r2_title="Quiz")
    db.execute(text("UPDATE lesson_plans SET r2_duration = 'soon' WHERE id = 'bad'"))
    db.commit()
    report = compact_lesson_slots.scan(db, [])
    assert [item["lesson_id"] for item in report] == ["bad"]
    assert "r2_duration" in report[0]["error"]
    assert "plan" not in report[0]
