import json

from sqlalchemy import text

from portal.db import engine, ensure_sqlite_schema
from portal.services.schedule import WEEKDAYS


def _insert_legacy_rows(services_json, schedule_json):
    with engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO application (id, company_name, owner_first_name, owner_last_name, email, services_json) "
                "VALUES ('app-legacy', 'Legacy Tow', 'Pat', 'Lee', 'legacy@example.com', :services)"
            ),
            {"services": services_json},
        )
        conn.execute(
            text(
                "INSERT INTO facility (id, application_id, facility_name, address1, city, state, zip, open247, schedule_json) "
                "VALUES ('fac-legacy', 'app-legacy', 'Old Lot', '9 Elm', 'Dover', 'DE', '19901', 0, :schedule)"
            ),
            {"schedule": schedule_json},
        )


def _read(column, table, row_id):
    with engine.begin() as conn:
        return conn.execute(text(f"SELECT {column} FROM {table} WHERE id=:id"), {"id": row_id}).scalar()


def test_legacy_application_services_are_backfilled():
    _insert_legacy_rows(json.dumps({"open247": "TRUE", "hoursOfOperation": "9-5 weekdays"}), None)
    ensure_sqlite_schema()

    services = json.loads(_read("services_json", "application", "app-legacy"))
    assert services["open247"] is True
    assert "hoursOfOperation" not in services
    assert list(services["schedule"]["days"]) == list(WEEKDAYS)


def test_legacy_facility_schedule_gains_selected_days_flag():
    _insert_legacy_rows(
        json.dumps({"open247": False, "schedule": {"sameEveryDay": False, "sameTimeSelectedDays": False}}),
        json.dumps({"sameEveryDay": True, "everyDayOpen": "09:00", "everyDayClose": "17:00"}),
    )
    ensure_sqlite_schema()

    schedule = json.loads(_read("schedule_json", "facility", "fac-legacy"))
    assert schedule["sameTimeSelectedDays"] is False
    assert schedule["everyDayOpen"] == "09:00"
    assert _read("open247", "facility", "fac-legacy") == 0


def test_current_documents_are_left_alone():
    services = json.dumps({"open247": False, "schedule": {"sameTimeSelectedDays": True}}, separators=(",", ":"))
    schedule = json.dumps({"sameTimeSelectedDays": False}, separators=(",", ":"))
    _insert_legacy_rows(services, schedule)
    ensure_sqlite_schema()

    assert _read("services_json", "application", "app-legacy") == services
    assert _read("schedule_json", "facility", "fac-legacy") == schedule
