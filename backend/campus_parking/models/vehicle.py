"""
Vehicle Models

Registered vehicle document and its registration status values.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

from campus_parking.database import Document


class RegistrationStatus(str, Enum):
    """Registration state shown for a vehicle"""
    ACTIVE = "active"
    WARNED = "warned"
    SUSPENDED = "suspended"
    REVOKED = "revoked"
    EXPIRED = "expired"
    CLEARED = "cleared"


class Vehicle(BaseModel):
    """
    Registered vehicle

    has_active_sanction mirrors whether any sanction for the vehicle is
    still active; academic metadata is only stamped on renewal.
    """
    id: str
    plate_number: Optional[str] = Field(None, alias="plateNumber")

    registration_status: RegistrationStatus = Field(RegistrationStatus.ACTIVE, alias="registrationStatus")
    has_active_sanction: bool = Field(False, alias="hasActiveSanction")
    has_unresolved_violation: bool = Field(False, alias="hasUnresolvedViolation")

    registration_valid_from: Optional[float] = Field(None, alias="registrationValidFrom")
    registration_valid_until: Optional[float] = Field(None, alias="registrationValidUntil")

    year_level: Optional[Union[int, str]] = Field(None, alias="yearLevel")
    semester: Optional[Union[int, str]] = None
    academic_year: Optional[str] = Field(None, alias="academicYear")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "veh-01",
                "plateNumber": "ABC-1234",
                "registrationStatus": "active",
                "hasActiveSanction": False,
                "hasUnresolvedViolation": False,
                "registrationValidUntil": 1798761600.0
            }
        }

    @classmethod
    def from_document(cls, document: Document) -> "Vehicle":
        return cls.model_validate({**document.data, "id": document.id})
