from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, status

from ..database import db
from ..models.donor import (
    BloodType,
    DonationCreate,
    DonorCreate,
    DonorList,
    DonorPublic,
    DonorStatusUpdate,
    DonorUpdate,
)
from ..models.search import MatchPublic, SearchCriteria, SearchResponse
from ..schemas.donor import donor_public
from ..services.geo import format_distance
from ..services.matcher import DonorMatcher
from ..stores.donors import DonorStore
from ..utils.eligibility import is_eligible

router = APIRouter(prefix="/donors", tags=["donors"])


async def get_donor_store() -> DonorStore:
    return DonorStore(db.get_collection("donors"))


@router.post("/search", response_model=SearchResponse)
async def search_donors(criteria: SearchCriteria, donors: DonorStore = Depends(get_donor_store)) -> SearchResponse:
    matches = await DonorMatcher(donors).find(criteria)
    return SearchResponse(
        matches=[
            MatchPublic(
                donor_id=match.donor.id,
                name=match.donor.name,
                blood_type=match.donor.blood_type,
                distance_km=round(match.distance_km, 3),
                distance_label=format_distance(match.distance_km),
                eligible=is_eligible(match.donor.last_donation_at),
            )
            for match in matches
        ]
    )


@router.get("", response_model=DonorList)
async def list_donors(
    blood_type: BloodType = Query(default=BloodType.ANY, alias="bloodType"),
    limit: int = Query(default=100, ge=1, le=500),
    donors: DonorStore = Depends(get_donor_store),
) -> DonorList:
    records = await donors.list_donors(blood_type, limit)
    return DonorList(donors=[donor_public(record) for record in records])


@router.post("", response_model=DonorPublic, status_code=status.HTTP_201_CREATED)
async def register_donor(payload: DonorCreate, donors: DonorStore = Depends(get_donor_store)) -> DonorPublic:
    return donor_public(await donors.create(payload))


@router.get("/{donor_id}", response_model=DonorPublic)
async def get_donor(donor_id: str, donors: DonorStore = Depends(get_donor_store)) -> DonorPublic:
    return donor_public(await donors.get(donor_id))


@router.patch("/{donor_id}", response_model=DonorPublic)
async def update_donor(
    donor_id: str, payload: DonorUpdate, donors: DonorStore = Depends(get_donor_store)
) -> DonorPublic:
    return donor_public(await donors.update(donor_id, payload))


@router.put("/{donor_id}/status", response_model=DonorPublic)
async def update_donor_status(
    donor_id: str, payload: DonorStatusUpdate, donors: DonorStore = Depends(get_donor_store)
) -> DonorPublic:
    return donor_public(await donors.set_donor_status(donor_id, payload.is_donor))


@router.post("/{donor_id}/donations", response_model=DonorPublic)
async def record_donation(
    donor_id: str, payload: DonationCreate, donors: DonorStore = Depends(get_donor_store)
) -> DonorPublic:
    donated_at = payload.donated_at or datetime.now(timezone.utc)
    return donor_public(await donors.record_donation(donor_id, donated_at))
