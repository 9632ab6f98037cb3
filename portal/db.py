from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy import text
import json
import logging
import os

from portal.services.schedule import coerce_bool, default_schedule

DATABASE_URL = os.getenv("PORTAL_DATABASE_URL", "sqlite:///./portal.db")

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()

logger = logging.getLogger(__name__)


def _backfill_services(raw: str | None) -> str | None:
    try:
        services = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        services = {}
    if not isinstance(services, dict):
        services = {}

    changed = False
    if not isinstance(services.get("open247"), bool):
        services["open247"] = coerce_bool(services.get("open247"))
        changed = True
    schedule = services.get("schedule")
    if not isinstance(schedule, dict):
        services["schedule"] = default_schedule()
        changed = True
    elif "sameTimeSelectedDays" not in schedule:
        schedule["sameTimeSelectedDays"] = False
        changed = True
    if "hoursOfOperation" in services:
        if services["hoursOfOperation"]:
            logger.info("Dropping legacy hoursOfOperation value %r", services["hoursOfOperation"])
        services.pop("hoursOfOperation")
        changed = True
    if not changed:
        return None
    return json.dumps(services, separators=(",", ":"))


def _backfill_schedule(raw: str | None) -> str | None:
    try:
        schedule = json.loads(raw) if raw else None
    except json.JSONDecodeError:
        schedule = None
    if not isinstance(schedule, dict):
        return json.dumps(default_schedule(), separators=(",", ":"))
    if "sameTimeSelectedDays" not in schedule:
        schedule["sameTimeSelectedDays"] = False
        return json.dumps(schedule, separators=(",", ":"))
    return None


def ensure_sqlite_schema():
    """
    Lightweight runtime schema patching for SQLite.

    `Base.metadata.create_all()` won't add new columns to existing tables.
    This keeps local/dev installs working without requiring Alembic, and
    backfills schedule documents written before the schedule editor existed.
    """
    if not DATABASE_URL.startswith("sqlite"):
        return

    with engine.begin() as conn:
        app_cols = conn.execute(text("PRAGMA table_info(application)")).fetchall()
        app_col_names = {row[1] for row in app_cols}  # (cid, name, type, notnull, dflt_value, pk)
        if app_cols and "step" not in app_col_names:
            conn.execute(text("ALTER TABLE application ADD COLUMN step INTEGER DEFAULT 0"))
        if app_cols and "updated_at" not in app_col_names:
            conn.execute(text("ALTER TABLE application ADD COLUMN updated_at DATETIME"))

        if app_cols:
            rows = conn.execute(text("SELECT id, services_json FROM application")).fetchall()
            for app_id, services_json in rows:
                patched = _backfill_services(services_json)
                if patched is None:
                    continue
                conn.execute(
                    text("UPDATE application SET services_json=:services WHERE id=:id"),
                    {"services": patched, "id": app_id},
                )
                logger.info("Backfilled schedule for application %s", app_id)

        facility_cols = conn.execute(text("PRAGMA table_info(facility)")).fetchall()
        facility_col_names = {row[1] for row in facility_cols}
        if facility_cols and "open247" not in facility_col_names:
            conn.execute(text("ALTER TABLE facility ADD COLUMN open247 INTEGER DEFAULT 0"))
        if facility_cols and "contact_email" not in facility_col_names:
            conn.execute(text("ALTER TABLE facility ADD COLUMN contact_email VARCHAR"))
        if facility_cols and "updated_at" not in facility_col_names:
            conn.execute(text("ALTER TABLE facility ADD COLUMN updated_at DATETIME"))

        if facility_cols:
            conn.execute(text("UPDATE facility SET open247=0 WHERE open247 IS NULL"))
            rows = conn.execute(text("SELECT id, schedule_json FROM facility")).fetchall()
            for facility_id, schedule_json in rows:
                patched = _backfill_schedule(schedule_json)
                if patched is None:
                    continue
                conn.execute(
                    text("UPDATE facility SET schedule_json=:schedule WHERE id=:id"),
                    {"schedule": patched, "id": facility_id},
                )
                logger.info("Backfilled schedule for facility %s", facility_id)
