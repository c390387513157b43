from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from ..models.donor import Coordinate, DonorCreate, DonorPublic, DonorRecord
from ..utils.eligibility import is_eligible, next_eligible_at


def storage_time(moment: datetime | None) -> datetime | None:
    """MongoDB keeps naive UTC timestamps."""
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def _location(document: Dict[str, Any]) -> Coordinate | None:
    latitude = document.get("latitude")
    longitude = document.get("longitude")
    if latitude is None or longitude is None:
        return None
    return Coordinate(latitude=latitude, longitude=longitude)


def donor_record(document: Dict[str, Any]) -> DonorRecord:
    return DonorRecord(
        id=str(document.get("_id")),
        name=document.get("full_name") or "",
        blood_type=document.get("blood_type") or "",
        is_donor=bool(document.get("is_donor", False)),
        location=_location(document),
        phone=document.get("phone") or None,
        last_donation_at=document.get("last_donation"),
    )


def donor_document(payload: DonorCreate) -> Dict[str, Any]:
    location = payload.location
    return {
        "full_name": payload.name,
        "blood_type": payload.blood_type.value,
        "is_donor": payload.is_donor,
        "latitude": location.latitude if location else None,
        "longitude": location.longitude if location else None,
        "phone": payload.phone,
        "last_donation": storage_time(payload.last_donation_at),
        "created_at": datetime.utcnow(),
    }


def donor_public(record: DonorRecord, now: datetime | None = None) -> DonorPublic:
    return DonorPublic(
        **record.model_dump(),
        eligible=is_eligible(record.last_donation_at, now),
        next_eligible_at=next_eligible_at(record.last_donation_at),
    )
