import uuid
from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from startronics.domain.lifecycle.statuses import Urgency


class RepairRequestCreate(BaseModel):
    """Accepts both the legacy camelCase body and snake_case keys."""

    model_config = ConfigDict(populate_by_name=True)

    device_type: str = Field(
        min_length=1, max_length=100, validation_alias=AliasChoices("deviceType", "device_type")
    )
    brand: str | None = Field(default=None, max_length=100)
    model: str | None = Field(default=None, max_length=100)
    issue_description: str = Field(
        min_length=1,
        max_length=5000,
        validation_alias=AliasChoices("issueDescription", "issue_description"),
    )
    urgency: Urgency = Urgency.normal


class LegacyRepairRequestCreate(RepairRequestCreate):
    user_id: uuid.UUID = Field(validation_alias=AliasChoices("userId", "user_id"))


class RepairRequestUpdate(BaseModel):
    description: str | None = Field(default=None, min_length=1, max_length=5000)
    urgency: Urgency | None = None


class ApproveRequestBody(BaseModel):
    admin_notes: str | None = Field(default=None, max_length=2000)
    technician_id: uuid.UUID | None = None


class ReasonBody(BaseModel):
    reason: str = Field(default="", max_length=2000)


class TechnicianNotesBody(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class DeviceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: str
    brand: str | None = None
    model: str | None = None


class RepairRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    user_id: uuid.UUID
    device_id: uuid.UUID
    title: str
    description: str
    urgency: str
    status: str
    assigned_technician_id: uuid.UUID | None = None
    admin_notes: str | None = None
    technician_notes: str | None = None
    created_at: datetime
    updated_at: datetime
    devices: DeviceResponse | None = Field(default=None, validation_alias=AliasChoices("device", "devices"))
