from __future__ import annotations

from typing import List, Protocol

from ..errors import InvalidCriteria
from ..models.donor import BloodType, DonorRecord
from ..models.search import MatchResult, SearchCriteria
from .geo import distance_km, is_valid_coordinate


class DonorSource(Protocol):
    async def find_donors(self, blood_type: BloodType = BloodType.ANY) -> List[DonorRecord]: ...


def validate_criteria(criteria: SearchCriteria) -> None:
    if not criteria.radius_km > 0:
        raise InvalidCriteria("radiusKm must be greater than 0")
    if not is_valid_coordinate(criteria.origin):
        raise InvalidCriteria("origin coordinates are out of range")
    if criteria.limit is not None and criteria.limit < 1:
        raise InvalidCriteria("limit must be at least 1")


class DonorMatcher:
    """Finds donors of a blood type within a radius, nearest first.

    Matching is exact on blood type (or everyone for ``any``); ABO/Rh
    compatibility is not applied.
    """

    def __init__(self, donors: DonorSource) -> None:
        self.donors = donors

    async def find(self, criteria: SearchCriteria) -> List[MatchResult]:
        validate_criteria(criteria)
        candidates = await self.donors.find_donors(criteria.blood_type)

        matches: List[MatchResult] = []
        for donor in candidates:
            if donor.location is None:
                continue
            distance = distance_km(criteria.origin, donor.location)
            if distance <= criteria.radius_km:
                matches.append(MatchResult(donor=donor, distance_km=distance))

        matches.sort(key=lambda match: (match.distance_km, match.donor.id))
        if criteria.limit is not None:
            matches = matches[: criteria.limit]
        return matches
