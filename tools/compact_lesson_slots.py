import argparse
import json
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
BACKEND = ROOT / "backend"
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from lesson_planner.codec import find_gaps  # noqa: E402
from lesson_planner.errors import MalformedFlatRecord  # noqa: E402
from lesson_planner.main import Base, LessonPlanRecord, SessionLocal, engine, flat_record, store_plan  # noqa: E402
from lesson_planner.planner import LessonPlan  # noqa: E402
from lesson_planner.slots import SLOT_SCHEMAS  # noqa: E402
from sqlalchemy import select  # noqa: E402


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Report lesson plans whose activity slots have empty holes, optionally compacting them.")
    ap.add_argument("--apply", action="store_true", help="Rewrite gapped lesson plans with their activities packed into the first slots")
    ap.add_argument("--lesson", action="append", default=[], help="Only check this lesson id (repeatable)")
    ap.add_argument("--json", action="store_true", help="Print the report as JSON")
    return ap.parse_args(argv)


def scan(db, lesson_ids: list[str]) -> list[dict]:
    stmt = select(LessonPlanRecord).order_by(LessonPlanRecord.id.asc())
    if lesson_ids:
        stmt = stmt.where(LessonPlanRecord.id.in_(lesson_ids))
    report = []
    for row in db.scalars(stmt).all():
        record = flat_record(row)
        gaps = {name: find_gaps(record, schema) for name, schema in SLOT_SCHEMAS.items()}
        gaps = {name: slots for name, slots in gaps.items() if slots}
        item = {"lesson_id": row.id, "lesson_title": row.lesson_title, "gaps": gaps, "error": None}
        if gaps:
            try:
                item["plan"] = LessonPlan.from_flat_record(record)
            except MalformedFlatRecord as exc:
                item["error"] = str(exc)
        if gaps or item["error"]:
            item["row"] = row
            report.append(item)
    return report


def main(argv=None) -> int:
    args = parse_args(argv)
    os.chdir(BACKEND)
    Base.metadata.create_all(engine)
    db = SessionLocal()
    try:
        report = scan(db, args.lesson)
        compacted = 0
        for item in report:
            plan = item.get("plan")
            if args.apply and plan is not None:
                store_plan(item["row"], plan)
                compacted += 1
        if args.apply:
            db.commit()
    finally:
        db.close()

    rows = [{k: v for k, v in item.items() if k not in {"row", "plan"}} for item in report]
    if args.json:
        print(json.dumps({"lessons": rows, "compacted": compacted}, indent=2))
    else:
        for r in rows:
            holes = "; ".join(f"{name} {slots}" for name, slots in r["gaps"].items())
            suffix = f" ERROR: {r['error']}" if r["error"] else ""
            print(f"{r['lesson_id']} {r['lesson_title']!r}: {holes}{suffix}")
        print(f"Lessons with gaps: {len(rows)}")
        if args.apply:
            print(f"Compacted: {compacted}")
        else:
            print("Dry run; pass --apply to compact.")
    return 1 if any(r["error"] for r in rows) else 0


if __name__ == "__main__":
    raise SystemExit(main())
