"""
Sanction Models

Disciplinary consequence records created when a violation is confirmed.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from campus_parking.database import Document


class SanctionType(str, Enum):
    """Escalation tiers"""
    WARNING = "warning"
    SUSPENSION = "suspension"
    REVOCATION = "revocation"


class SanctionStatus(str, Enum):
    """
    Sanction state

    completed: warnings (no enforcement window)
    active: suspension/revocation in force
    cleared: expired by the sweep or cleared by renewal
    resolved: lifted administratively
    """
    ACTIVE = "active"
    COMPLETED = "completed"
    CLEARED = "cleared"
    RESOLVED = "resolved"


class Sanction(BaseModel):
    """
    Sanction record

    offense_number is the ordinal at creation time and is never
    recomputed. Only suspensions carry end_at.
    """
    id: str
    vehicle_id: str = Field(alias="vehicleId")
    violation_id: str = Field(alias="violationId")

    sanction_type: SanctionType = Field(alias="type")
    status: SanctionStatus
    offense_number: int = Field(alias="offenseNumber", ge=1)

    start_at: Optional[float] = Field(None, alias="startAt")
    end_at: Optional[float] = Field(None, alias="endAt")

    created_at: Optional[float] = Field(None, alias="createdAt")
    created_by: Optional[str] = Field(None, alias="createdBy")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "3f9c0d1e2a7b4c5d6e7f",
                "vehicleId": "veh-01",
                "violationId": "vio-02",
                "type": "suspension",
                "status": "active",
                "offenseNumber": 2,
                "startAt": 1767225600.0,
                "endAt": 1770854400.0
            }
        }

    @classmethod
    def from_document(cls, document: Document) -> "Sanction":
        return cls.model_validate({**document.data, "id": document.id})

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude={"id"}, mode="json")
