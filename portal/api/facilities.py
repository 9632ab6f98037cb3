import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from portal.api.applications import build_schedule_view, get_application_or_404, serialize_application
from portal.db import SessionLocal
from portal.models.application import Application
from portal.models.facility import Facility
from portal.schemas.facility import FacilityIn
from portal.schemas.schedule import ScheduleChangeIn, ScheduleChangeOut, ScheduleView
from portal.services.editor import ScheduleEditor, ScheduleEditorError
from portal.services.merge import deep_merge, remap_schedule_path, set_field_edit
from portal.services.schedule import (
    ScheduleValidationError,
    default_schedule,
    flatten_embedded,
    propagate_schedule,
    read_embedded,
    validate_embedded,
)

router = APIRouter(prefix="/api/v1/facilities", tags=["facilities"])
application_router = APIRouter(prefix="/api/v1/applications", tags=["facilities"])
logger = logging.getLogger(__name__)

FACILITY_FIELDS = {
    "facilityName": "facility_name",
    "address1": "address1",
    "address2": "address2",
    "city": "city",
    "state": "state",
    "zip": "zip",
    "contactName": "contact_name",
    "contactPhone": "contact_phone",
    "contactEmail": "contact_email",
}
REQUIRED_FIELDS = ("facilityName", "address1", "city", "state", "zip")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _normalize_zip_codes(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, list):
        items = value
    else:
        raise HTTPException(status_code=400, detail="coveredZipCodes must be a list or a comma-separated string")
    output: list[str] = []
    for item in items:
        zip_code = str(item or "").strip()
        if zip_code and zip_code not in output:
            output.append(zip_code)
    return output


def _load_schedule(raw: str | None) -> dict[str, Any]:
    if not raw:
        return default_schedule()
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring undecodable facility schedule")
        return default_schedule()
    return decoded if isinstance(decoded, dict) else default_schedule()


def serialize_facility(facility: Facility) -> dict[str, Any]:
    record: dict[str, Any] = {"id": facility.id, "applicationId": facility.application_id}
    for key, column in FACILITY_FIELDS.items():
        record[key] = getattr(facility, column)
    record["coveredZipCodes"] = _normalize_zip_codes(facility.covered_zip_codes)
    record["open247"] = bool(facility.open247)
    record["schedule"] = _load_schedule(facility.schedule_json)
    record["createdAt"] = facility.created_at.isoformat() if facility.created_at else None
    record["updatedAt"] = facility.updated_at.isoformat() if facility.updated_at else None
    return record


def facility_template(application: Application) -> dict[str, Any]:
    """Draft facility pre-filled from the application's primary location and hours."""
    app_record = serialize_application(application)
    embedded = read_embedded(app_record["services"])
    owner = f"{app_record['ownerFirstName'] or ''} {app_record['ownerLastName'] or ''}".strip()
    return {
        "facilityName": app_record["companyName"] or "",
        "address1": app_record["facilityAddress1"] or "",
        "address2": app_record["facilityAddress2"] or "",
        "city": app_record["facilityCity"] or "",
        "state": app_record["facilityState"] or "",
        "zip": app_record["facilityZip"] or "",
        "coveredZipCodes": [],
        "contactName": owner,
        "contactPhone": app_record["phoneNumber"] or "",
        "contactEmail": app_record["email"] or "",
        "open247": embedded["open247"],
        "schedule": embedded["schedule"],
    }


def get_facility_or_404(db: Session, facility_id: str) -> Facility:
    facility = db.query(Facility).get(facility_id)
    if not facility:
        raise HTTPException(status_code=404, detail="Facility not found")
    return facility


def _save_facility(db: Session, facility: Facility, record: dict[str, Any]) -> dict[str, Any]:
    for key in REQUIRED_FIELDS:
        value = record.get(key)
        if not isinstance(value, str) or not value.strip():
            raise HTTPException(status_code=400, detail=f"{key} cannot be empty")
    try:
        validate_embedded(record)
    except ScheduleValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not isinstance(record.get("schedule"), dict):
        record["schedule"] = default_schedule()
    propagate_schedule(record)

    for key, column in FACILITY_FIELDS.items():
        if key in record:
            value = record[key]
            setattr(facility, column, value.strip() if isinstance(value, str) else value)
    facility.covered_zip_codes = ",".join(_normalize_zip_codes(record.get("coveredZipCodes")))
    facility.open247 = bool(record.get("open247", False))
    facility.schedule_json = json.dumps(record["schedule"], separators=(",", ":"))
    db.commit()
    db.refresh(facility)
    logger.info("Saved facility %s for application %s", facility.id, facility.application_id)
    return serialize_facility(facility)


@application_router.get("/{application_id}/facilities")
def list_facilities(application_id: str, db: Session = Depends(get_db)):
    facilities = (
        db.query(Facility)
        .filter(Facility.application_id == application_id)
        .order_by(Facility.created_at.asc(), Facility.id.asc())
        .all()
    )
    return [serialize_facility(item) for item in facilities]


@application_router.get("/{application_id}/facilities/template")
def get_facility_template(application_id: str, db: Session = Depends(get_db)):
    return facility_template(get_application_or_404(db, application_id))


@application_router.post("/{application_id}/facilities")
def create_facility(application_id: str, payload: FacilityIn, db: Session = Depends(get_db)):
    application = get_application_or_404(db, application_id)
    record = deep_merge(facility_template(application), payload.model_dump(exclude_none=True))
    facility = Facility(application_id=application.id)
    db.add(facility)
    return _save_facility(db, facility, record)


@router.get("/{facility_id}")
def get_facility(facility_id: str, db: Session = Depends(get_db)):
    return serialize_facility(get_facility_or_404(db, facility_id))


@router.put("/{facility_id}")
def update_facility(facility_id: str, payload: FacilityIn, db: Session = Depends(get_db)):
    facility = get_facility_or_404(db, facility_id)
    record = deep_merge(serialize_facility(facility), payload.model_dump(exclude_none=True))
    return _save_facility(db, facility, record)


@router.delete("/{facility_id}")
def delete_facility(facility_id: str, db: Session = Depends(get_db)):
    facility = get_facility_or_404(db, facility_id)
    db.delete(facility)
    db.commit()
    return {"ok": True}


@router.get("/{facility_id}/schedule", response_model=ScheduleView)
def get_facility_schedule(facility_id: str, db: Session = Depends(get_db)):
    facility = get_facility_or_404(db, facility_id)
    return build_schedule_view(flatten_embedded(serialize_facility(facility)))


@router.post("/{facility_id}/schedule/changes", response_model=ScheduleChangeOut)
def change_facility_schedule(
    facility_id: str,
    payload: ScheduleChangeIn,
    db: Session = Depends(get_db),
):
    facility = get_facility_or_404(db, facility_id)
    record = serialize_facility(facility)
    edits: dict[str, Any] = {}
    recorded: list[dict[str, Any]] = []

    def handle_change(field_path: str, value: Any) -> None:
        nonlocal edits
        # Facilities keep open247 and schedule side by side at the record root.
        full_path = remap_schedule_path(field_path, None)
        edits = set_field_edit(edits, full_path, value)
        recorded.append({"path": full_path, "value": value})

    editor = ScheduleEditor(flatten_embedded(record), handle_change)
    try:
        editor.change(payload.field_path, payload.value)
    except ScheduleEditorError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    _save_facility(db, facility, deep_merge(record, edits))
    return {"changes": recorded, "mode": editor.mode, "visible_controls": editor.visible_controls()}
