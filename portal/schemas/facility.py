from typing import Any
from pydantic import BaseModel


class FacilityIn(BaseModel):
    facilityName: str | None = None
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    coveredZipCodes: list[str] | str | None = None
    contactName: str | None = None
    contactPhone: str | None = None
    contactEmail: str | None = None
    open247: bool | None = None
    schedule: dict[str, Any] | None = None
