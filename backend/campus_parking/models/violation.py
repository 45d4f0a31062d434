"""
Violation Models

Traffic/parking violations recorded against a registered vehicle.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from campus_parking.database import Document


class ViolationStatus(str, Enum):
    """pending -> confirmed (once) -> cleared (renewal only)"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CLEARED = "cleared"


class Violation(BaseModel):
    """
    Violation record

    Created externally as pending. sanction_id points back at the
    sanction this violation triggered, if any.
    """
    id: str
    vehicle_id: str = Field(alias="vehicleId")
    violation_type: Optional[str] = Field(None, alias="violationType")
    status: ViolationStatus = ViolationStatus.PENDING

    sanction_applied: bool = Field(False, alias="sanctionApplied")
    sanction_id: Optional[str] = Field(None, alias="sanctionId")

    reported_at: Optional[float] = Field(None, alias="reportedAt")
    confirmed_at: Optional[float] = Field(None, alias="confirmedAt")
    confirmed_by: Optional[str] = Field(None, alias="confirmedBy")
    cleared_at: Optional[float] = Field(None, alias="clearedAt")
    cleared_by: Optional[str] = Field(None, alias="clearedBy")

    class Config:
        populate_by_name = True

    @classmethod
    def from_document(cls, document: Document) -> "Violation":
        return cls.model_validate({**document.data, "id": document.id})
