from typing import Any
from pydantic import BaseModel, Field


class ApplicationIn(BaseModel):
    companyName: str = Field(..., min_length=1)
    ownerFirstName: str = Field(..., min_length=1)
    ownerLastName: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    step: int = 0
    phoneNumber: str | None = None
    facilityAddress1: str | None = None
    facilityAddress2: str | None = None
    facilityCity: str | None = None
    facilityState: str | None = None
    facilityZip: str | None = None
    services: dict[str, Any] | None = None
