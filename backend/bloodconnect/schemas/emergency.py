from __future__ import annotations

from typing import Any, Dict

from ..models.donor import Coordinate
from ..models.emergency import DispatchOutcome, EmergencyRequest


def emergency_request(document: Dict[str, Any]) -> EmergencyRequest:
    return EmergencyRequest(
        id=str(document.get("_id")),
        blood_type=document.get("blood_type"),
        hospital=document.get("hospital"),
        urgency=document.get("urgency"),
        units_required=document.get("units_required"),
        details=document.get("details") or "",
        origin=Coordinate(latitude=document.get("latitude"), longitude=document.get("longitude")),
        created_at=document.get("created_at"),
        status=document.get("status"),
        requested_by=document.get("requested_by"),
        idempotency_key=document.get("idempotency_key"),
    )


def dispatch_outcome(document: Dict[str, Any]) -> DispatchOutcome:
    return DispatchOutcome(
        request_id=document.get("request_id"),
        matched_count=document.get("matched_count", 0),
        notified_count=document.get("notified_count", 0),
        responding_count=document.get("responding_count", 0),
        per_recipient=document.get("per_recipient", []),
    )
