from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List

from pydantic import Field

from .donor import ApiModel, BloodType, Coordinate


class Urgency(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"

    @property
    def places_call(self) -> bool:
        return self in (Urgency.CRITICAL, Urgency.HIGH)


class RequestStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class Channel(str, Enum):
    SMS = "sms"
    CALL = "call"


class EmergencyRequestCreate(ApiModel):
    blood_type: BloodType
    hospital: str
    urgency: Urgency
    units_required: int
    details: str = ""
    origin: Coordinate
    idempotency_key: str | None = Field(default=None, max_length=128)


class EmergencyRequest(ApiModel):
    id: str
    blood_type: BloodType
    hospital: str
    urgency: Urgency
    units_required: int
    details: str = ""
    origin: Coordinate
    created_at: datetime
    status: RequestStatus = RequestStatus.ACTIVE
    requested_by: str | None = None
    idempotency_key: str | None = None


class RecipientOutcome(ApiModel):
    donor_id: str
    channel: Channel
    success: bool
    delivery_id: str | None = None
    error: str | None = None


class DispatchOutcome(ApiModel):
    request_id: str
    matched_count: int = 0
    notified_count: int = 0
    # No donor response channel exists yet.
    responding_count: int = 0
    per_recipient: List[RecipientOutcome] = Field(default_factory=list)


class EmergencyRequestStatus(ApiModel):
    request: EmergencyRequest
    outcome: DispatchOutcome | None = None


class EmergencyRequestList(ApiModel):
    requests: List[EmergencyRequest]
