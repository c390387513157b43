from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .donor import ApiModel, BloodType, Coordinate, DonorRecord


class SearchCriteria(ApiModel):
    blood_type: BloodType = BloodType.ANY
    origin: Coordinate
    radius_km: float
    limit: int | None = None


@dataclass(frozen=True)
class MatchResult:
    donor: DonorRecord
    distance_km: float


class MatchPublic(ApiModel):
    donor_id: str
    name: str
    blood_type: str
    distance_km: float
    distance_label: str
    eligible: bool


class SearchResponse(ApiModel):
    matches: List[MatchPublic]
