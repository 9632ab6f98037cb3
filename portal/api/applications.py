import json
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from portal.db import SessionLocal
from portal.models.application import Application
from portal.models.facility import Facility
from portal.schemas.application import ApplicationIn
from portal.schemas.schedule import (
    FieldEditIn,
    ScheduleChangeIn,
    ScheduleChangeOut,
    ScheduleView,
)
from portal.services.editor import ScheduleEditor, ScheduleEditorError, visible_controls
from portal.services.merge import (
    PendingEdits,
    deep_merge,
    remap_schedule_path,
    validate_schedule_path,
)
from portal.services.schedule import (
    ScheduleValidationError,
    default_schedule,
    display_mode,
    effective_hours,
    flatten_embedded,
    propagate_schedule,
    read_schedule,
    validate_embedded,
)

router = APIRouter(prefix="/api/v1/applications", tags=["applications"])
logger = logging.getLogger(__name__)

APPLICATION_FIELDS = {
    "step": "step",
    "companyName": "company_name",
    "ownerFirstName": "owner_first_name",
    "ownerLastName": "owner_last_name",
    "email": "email",
    "phoneNumber": "phone_number",
    "facilityAddress1": "facility_address1",
    "facilityAddress2": "facility_address2",
    "facilityCity": "facility_city",
    "facilityState": "facility_state",
    "facilityZip": "facility_zip",
}
REQUIRED_FIELDS = ("companyName", "ownerFirstName", "ownerLastName", "email")

application_edits = PendingEdits()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _load_json_object(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring undecodable services document")
        return {}
    return decoded if isinstance(decoded, dict) else {}


def serialize_application(application: Application) -> dict[str, Any]:
    record: dict[str, Any] = {"id": application.id}
    for key, column in APPLICATION_FIELDS.items():
        record[key] = getattr(application, column)
    record["services"] = _load_json_object(application.services_json)
    record["createdAt"] = application.created_at.isoformat() if application.created_at else None
    record["updatedAt"] = application.updated_at.isoformat() if application.updated_at else None
    return record


def get_application_or_404(db: Session, application_id: str) -> Application:
    application = db.query(Application).get(application_id)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    return application


def build_schedule_view(flat: dict[str, Any]) -> dict[str, Any]:
    schedule = read_schedule(flat)
    open247 = schedule.pop("open247")
    return {
        "open247": open247,
        "schedule": schedule,
        "mode": display_mode(flat),
        "visible_controls": visible_controls(flat),
        "effective_hours": effective_hours(flat),
    }


def _prepare_services(services: Any) -> dict[str, Any]:
    if services is None:
        services = {}
    if not isinstance(services, dict):
        raise HTTPException(status_code=400, detail="services must be an object")
    try:
        validate_embedded(services)
    except ScheduleValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    services.setdefault("open247", False)
    if not isinstance(services.get("schedule"), dict):
        services["schedule"] = default_schedule()
    propagate_schedule(services)
    return services


def _save_record(db: Session, application: Application, record: dict[str, Any]) -> dict[str, Any]:
    for key in REQUIRED_FIELDS:
        value = record.get(key)
        if not isinstance(value, str) or not value.strip():
            raise HTTPException(status_code=400, detail=f"{key} cannot be empty")
    if record.get("step") is None:
        record["step"] = 0
    if not isinstance(record["step"], int) or isinstance(record["step"], bool):
        raise HTTPException(status_code=400, detail="step must be an integer")
    services = _prepare_services(record.get("services"))

    for key, column in APPLICATION_FIELDS.items():
        if key in record:
            value = record[key]
            setattr(application, column, value.strip() if isinstance(value, str) else value)
    application.services_json = json.dumps(services, separators=(",", ":"))
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail="An application with this email already exists") from exc
    db.refresh(application)
    logger.info("Saved application %s", application.id)
    return serialize_application(application)


def _validate_edit_path(path: str) -> None:
    head, _, rest = path.partition(".")
    if head == "services":
        if not rest:
            raise HTTPException(status_code=400, detail="services cannot be replaced through a field edit")
        if rest == "open247" or rest.split(".")[0] == "schedule":
            try:
                validate_schedule_path(rest)
            except ScheduleValidationError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
        elif "." in rest:
            raise HTTPException(status_code=400, detail=f"Unknown services field path: {path!r}")
        return
    if head not in APPLICATION_FIELDS or rest:
        raise HTTPException(status_code=400, detail=f"Unknown application field path: {path!r}")


@router.post("")
def create_application(payload: ApplicationIn, db: Session = Depends(get_db)):
    application = Application()
    db.add(application)
    return _save_record(db, application, payload.model_dump())


@router.get("")
def list_applications(db: Session = Depends(get_db)):
    applications = db.query(Application).order_by(Application.created_at.desc(), Application.id.asc()).all()
    return [serialize_application(item) for item in applications]


@router.get("/{application_id}")
def get_application(application_id: str, db: Session = Depends(get_db)):
    return serialize_application(get_application_or_404(db, application_id))


@router.put("/{application_id}")
def update_application(
    application_id: str,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    application = get_application_or_404(db, application_id)
    payload.pop("id", None)
    record = deep_merge(serialize_application(application), payload)
    return _save_record(db, application, record)


@router.delete("/{application_id}")
def delete_application(application_id: str, db: Session = Depends(get_db)):
    application = get_application_or_404(db, application_id)
    db.query(Facility).filter(Facility.application_id == application_id).delete(synchronize_session=False)
    db.delete(application)
    db.commit()
    return {"ok": True}


@router.get("/{application_id}/schedule", response_model=ScheduleView)
def get_application_schedule(application_id: str, db: Session = Depends(get_db)):
    application = get_application_or_404(db, application_id)
    record = application_edits.merged(application_id, serialize_application(application))
    return build_schedule_view(flatten_embedded(record.get("services")))


@router.post("/{application_id}/schedule/changes", response_model=ScheduleChangeOut)
def change_application_schedule(
    application_id: str,
    payload: ScheduleChangeIn,
    db: Session = Depends(get_db),
):
    application = get_application_or_404(db, application_id)
    record = application_edits.merged(application_id, serialize_application(application))
    recorded: list[dict[str, Any]] = []

    def handle_change(field_path: str, value: Any) -> None:
        full_path = remap_schedule_path(field_path, "services")
        application_edits.set(application_id, full_path, value)
        recorded.append({"path": full_path, "value": value})

    editor = ScheduleEditor(flatten_embedded(record.get("services")), handle_change)
    try:
        editor.change(payload.field_path, payload.value)
    except ScheduleEditorError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"changes": recorded, "mode": editor.mode, "visible_controls": editor.visible_controls()}


@router.get("/{application_id}/edits")
def get_application_edits(application_id: str, db: Session = Depends(get_db)):
    get_application_or_404(db, application_id)
    return application_edits.get(application_id)


@router.post("/{application_id}/edits")
def add_application_edit(application_id: str, payload: FieldEditIn, db: Session = Depends(get_db)):
    get_application_or_404(db, application_id)
    _validate_edit_path(payload.path)
    try:
        return application_edits.set(application_id, payload.path, payload.value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete("/{application_id}/edits")
def discard_application_edits(application_id: str):
    return {"ok": True, "discarded": application_edits.discard(application_id)}


@router.post("/{application_id}/edits/commit")
def commit_application_edits(application_id: str, db: Session = Depends(get_db)):
    application = get_application_or_404(db, application_id)
    pending = application_edits.get(application_id)
    if not pending:
        return serialize_application(application)
    record = deep_merge(serialize_application(application), pending)
    saved = _save_record(db, application, record)
    application_edits.discard(application_id)
    return saved
