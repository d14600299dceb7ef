from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime
from typing import Any, Callable, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from sqlalchemy import Column, DateTime, Float, String, Text, create_engine, inspect, select, text
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .binder import ResourceDescriptor
from .codec import FlatRecord, find_gaps
from .collection import Scalar
from .errors import MalformedFlatRecord, UnknownCategory
from .planner import IntentResult, LessonPlan
from .slots import CATEGORY_ORDER, SLOT_SCHEMAS, get_schema

DATABASE_URL = os.getenv("LESSON_PLANNER_DATABASE_URL", "sqlite:///./lessons.db")
LOG_LEVEL = os.getenv("LESSON_PLANNER_LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("LESSON_PLANNER_CORS_ORIGINS", "*").split(",") if o.strip()]

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class LessonPlanRecord(Base):
    __tablename__ = "lesson_plans"
    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    lesson_title: Mapped[str] = mapped_column(String, default="")
    subject: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    class_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    teacher_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    lesson_date: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    lesson_skills: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    success_criteria: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


SLOT_COLUMNS: dict[str, Any] = {}
for _schema in SLOT_SCHEMAS.values():
    for _slot in range(1, _schema.capacity + 1):
        for _field in _schema.fields:
            _key = _schema.key(_slot, _field)
            SLOT_COLUMNS[_key] = Float if _field in _schema.numeric_fields else Text
            setattr(LessonPlanRecord, _key, Column(_key, SLOT_COLUMNS[_key], nullable=True))

LESSON_FIELDS = ("lesson_title", "subject", "class_name", "teacher_name", "lesson_date", "lesson_skills", "success_criteria")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, future=True, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
app = FastAPI(title="Lesson Planner")
app.add_middleware(CORSMiddleware, allow_origins=CORS_ORIGINS, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])


class LessonIn(BaseModel):
    lesson_title: str = ""
    subject: Optional[str] = None
    class_name: Optional[str] = None
    teacher_name: Optional[str] = None
    lesson_date: Optional[str] = None
    lesson_skills: Optional[str] = None
    success_criteria: Optional[str] = None
    flat: dict[str, Scalar] = Field(default_factory=dict)


class ManualEntryIn(BaseModel):
    id: Optional[str] = Field(default=None, min_length=1)
    fields: dict[str, Scalar] = Field(default_factory=dict)
    position: Optional[int] = Field(default=None, ge=0)


class MoveIn(BaseModel):
    entry_id: str
    target_position: int = Field(ge=0)


class ReorderIn(BaseModel):
    entry_ids: list[str] = Field(default_factory=list)


class NotesIn(BaseModel):
    notes: Optional[str] = None


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_runtime_migrations(bind=None) -> None:
    """Add slot columns that an older lesson_plans table is missing."""
    target = engine if bind is None else bind
    with target.begin() as conn:
        existing = {c["name"] for c in inspect(conn).get_columns(LessonPlanRecord.__tablename__)}
        for key, col_type in SLOT_COLUMNS.items():
            if key not in existing:
                sql_type = "REAL" if col_type is Float else "TEXT"
                conn.execute(text(f"ALTER TABLE {LessonPlanRecord.__tablename__} ADD COLUMN {key} {sql_type}"))
                logger.info("added slot column %s", key)


def flat_record(row: LessonPlanRecord) -> FlatRecord:
    return {key: getattr(row, key) for key in SLOT_COLUMNS}


def load_plan(row: LessonPlanRecord) -> LessonPlan:
    record = flat_record(row)
    try:
        return LessonPlan.from_flat_record(record)
    except MalformedFlatRecord as exc:
        raise HTTPException(status_code=422, detail=f"Stored lesson plan is unreadable: {exc}") from exc


def store_plan(row: LessonPlanRecord, plan: LessonPlan) -> None:
    for key, value in plan.to_flat_record().items():
        setattr(row, key, value)
    row.updated_at = datetime.utcnow()


def get_lesson_row(db: Session, lesson_id: str) -> LessonPlanRecord:
    row = db.get(LessonPlanRecord, lesson_id)
    if not row:
        raise HTTPException(status_code=404, detail="Lesson plan not found")
    return row


def require_category(category: str) -> str:
    try:
        get_schema(category)
    except UnknownCategory as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return category


def serialize_plan(plan: LessonPlan) -> dict:
    return {name: [e.model_dump() for e in plan.collection(name).entries] for name in plan.categories}


def serialize_lesson(row: LessonPlanRecord, plan: LessonPlan) -> dict:
    out = {"id": row.id, **{f: getattr(row, f) for f in LESSON_FIELDS}}
    out["categories"] = serialize_plan(plan)
    out["summary"] = plan.summary()
    return out


def apply_intent(db: Session, lesson_id: str, intent: Callable[[LessonPlan], IntentResult]) -> dict:
    row = get_lesson_row(db, lesson_id)
    try:
        result = intent(load_plan(row))
    except UnknownCategory as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if result.changed:
        store_plan(row, result.plan)
        db.commit()
        logger.info("lesson %s: %s %s", lesson_id, result.category, result.status)
    elif not result.ok:
        logger.info("lesson %s: %s rejected (%s)", lesson_id, result.category, result.message)
    # Non-id categories re-key to slot ids once stored; report what a reload will see.
    payload = serialize_lesson(row, load_plan(row) if result.changed else result.plan)
    payload.update(
        {
            "status": result.status,
            "ok": result.ok,
            "category": result.category,
            "entry_id": result.entry_id,
            "message": result.message,
            "failure": result.failure.model_dump() if result.failure else None,
        }
    )
    return payload


@app.on_event("startup")
def startup():
    Base.metadata.create_all(engine)
    ensure_runtime_migrations()


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/meta/categories")
def list_categories():
    return [
        {
            "category": s.category,
            "label": s.title,
            "prefix": s.prefix,
            "capacity": s.capacity,
            "fields": list(s.fields),
            "display_field": s.display_field,
        }
        for s in (SLOT_SCHEMAS[name] for name in CATEGORY_ORDER)
    ]


@app.post("/lessons")
def create_lesson(payload: LessonIn, db: Session = Depends(get_db)):
    unknown = sorted(set(payload.flat) - set(SLOT_COLUMNS))
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown slot keys: {', '.join(unknown)}")
    try:
        plan = LessonPlan.from_flat_record(payload.flat)
    except MalformedFlatRecord as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    for name in CATEGORY_ORDER:
        gaps = find_gaps(payload.flat, SLOT_SCHEMAS[name])
        if gaps:
            logger.warning("new lesson: %s slots %s were empty and have been compacted", name, gaps)
    row = LessonPlanRecord(**payload.model_dump(exclude={"flat"}))
    store_plan(row, plan)
    db.add(row)
    db.commit()
    db.refresh(row)
    return serialize_lesson(row, plan)


@app.get("/lessons")
def list_lessons(db: Session = Depends(get_db)):
    rows = db.scalars(select(LessonPlanRecord).order_by(LessonPlanRecord.created_at.desc(), LessonPlanRecord.id.asc())).all()
    return [{"id": r.id, **{f: getattr(r, f) for f in LESSON_FIELDS}} for r in rows]


@app.get("/lessons/{lesson_id}")
def get_lesson(lesson_id: str, db: Session = Depends(get_db)):
    row = get_lesson_row(db, lesson_id)
    return serialize_lesson(row, load_plan(row))


@app.get("/lessons/{lesson_id}/flat")
def get_lesson_flat(lesson_id: str, db: Session = Depends(get_db)):
    row = get_lesson_row(db, lesson_id)
    return load_plan(row).to_flat_record()


@app.post("/lessons/{lesson_id}/resources")
def add_routed_resource(lesson_id: str, payload: ResourceDescriptor, db: Session = Depends(get_db)):
    return apply_intent(db, lesson_id, lambda plan: plan.add_resource(payload))


@app.post("/lessons/{lesson_id}/{category}/entries")
def add_manual_entry(lesson_id: str, category: str, payload: ManualEntryIn, db: Session = Depends(get_db)):
    require_category(category)
    entry_id = payload.id or str(uuid.uuid4())
    return apply_intent(db, lesson_id, lambda plan: plan.add_manual_entry(category, entry_id, payload.fields, payload.position))


@app.post("/lessons/{lesson_id}/{category}/resources")
def add_resource(lesson_id: str, category: str, payload: ResourceDescriptor, db: Session = Depends(get_db)):
    require_category(category)
    return apply_intent(db, lesson_id, lambda plan: plan.add_from_resource(category, payload))


@app.delete("/lessons/{lesson_id}/{category}/entries/{entry_id}")
def remove_entry(lesson_id: str, category: str, entry_id: str, db: Session = Depends(get_db)):
    require_category(category)
    return apply_intent(db, lesson_id, lambda plan: plan.remove_entry(category, entry_id))


@app.post("/lessons/{lesson_id}/{category}/move")
def move_entry(lesson_id: str, category: str, payload: MoveIn, db: Session = Depends(get_db)):
    require_category(category)
    return apply_intent(db, lesson_id, lambda plan: plan.move_entry(category, payload.entry_id, payload.target_position))


@app.post("/lessons/{lesson_id}/{category}/reorder")
def reorder_entries(lesson_id: str, category: str, payload: ReorderIn, db: Session = Depends(get_db)):
    require_category(category)
    return apply_intent(db, lesson_id, lambda plan: plan.reorder_entries(category, payload.entry_ids))


@app.put("/lessons/{lesson_id}/{category}/entries/{entry_id}/notes")
def update_notes(lesson_id: str, category: str, entry_id: str, payload: NotesIn, db: Session = Depends(get_db)):
    require_category(category)
    return apply_intent(db, lesson_id, lambda plan: plan.update_notes(category, entry_id, payload.notes))
