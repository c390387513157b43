from __future__ import annotations

import pytest

from bloodconnect.errors import InvalidCriteria
from bloodconnect.models.donor import BloodType, Coordinate
from bloodconnect.models.search import SearchCriteria
from bloodconnect.services.geo import distance_km
from bloodconnect.services.matcher import DonorMatcher

from conftest import SAN_FRANCISCO


def criteria(blood_type="any", radius_km=10.0, origin=SAN_FRANCISCO, limit=None) -> SearchCriteria:
    return SearchCriteria(blood_type=BloodType(blood_type), origin=origin, radius_km=radius_km, limit=limit)


async def test_scenario_returns_only_nearby_exact_type(donor_store, add_donor):
    d1 = await add_donor("D1", "O-", km=2)
    await add_donor("D2", "O-", km=15)
    await add_donor("D3", "A+", km=1)

    matches = await DonorMatcher(donor_store).find(criteria("O-"))

    assert [match.donor.id for match in matches] == [d1.id]
    assert matches[0].distance_km == pytest.approx(2.0, abs=1e-6)


async def test_never_returns_donor_beyond_radius(donor_store, add_donor):
    for index, km in enumerate([0.5, 3, 4.99, 5.01, 7, 12, 40]):
        await add_donor(f"donor-{index}", "B+", km=km)

    matches = await DonorMatcher(donor_store).find(criteria(radius_km=5))

    assert len(matches) == 3
    for match in matches:
        assert distance_km(SAN_FRANCISCO, match.donor.location) <= 5


async def test_blood_type_filter_is_exact(donor_store, add_donor):
    await add_donor("o-pos", "O+", km=1)
    await add_donor("o-neg", "O-", km=1)
    await add_donor("ab-pos", "AB+", km=1)

    matches = await DonorMatcher(donor_store).find(criteria("O+"))

    assert [match.donor.blood_type for match in matches] == ["O+"]


async def test_any_returns_every_type(donor_store, add_donor):
    for blood_type in ["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]:
        await add_donor(blood_type, blood_type, km=1)

    matches = await DonorMatcher(donor_store).find(criteria("any"))

    assert len(matches) == 8


async def test_donor_without_location_is_excluded(donor_store, add_donor):
    await add_donor("nowhere", "O-", km=None)
    located = await add_donor("here", "O-", km=0.1)

    matches = await DonorMatcher(donor_store).find(criteria("O-", radius_km=20000))

    assert [match.donor.id for match in matches] == [located.id]


async def test_inactive_donors_are_excluded(donor_store, add_donor):
    await add_donor("retired", "O-", km=1, is_donor=False)

    assert await DonorMatcher(donor_store).find(criteria("O-")) == []


async def test_results_sorted_by_distance_then_id(donor_store, add_donor):
    far = await add_donor("far", "A+", km=8)
    tied = [await add_donor(f"tied-{index}", "A+", km=3) for index in range(3)]
    near = await add_donor("near", "A+", km=0.5)

    matcher = DonorMatcher(donor_store)
    first = await matcher.find(criteria())
    second = await matcher.find(criteria())

    expected = [near.id] + sorted(donor.id for donor in tied) + [far.id]
    assert [match.donor.id for match in first] == expected
    assert [match.donor.id for match in second] == expected


async def test_limit_truncates_after_sorting(donor_store, add_donor):
    nearest = await add_donor("nearest", "A-", km=1)
    second = await add_donor("second", "A-", km=2)
    await add_donor("third", "A-", km=3)

    matches = await DonorMatcher(donor_store).find(criteria(limit=2))

    assert [match.donor.id for match in matches] == [nearest.id, second.id]


async def test_no_match_is_empty_list(donor_store):
    assert await DonorMatcher(donor_store).find(criteria("AB-")) == []


@pytest.mark.parametrize(
    "kwargs",
    [
        {"radius_km": 0},
        {"radius_km": -3},
        {"origin": Coordinate(lat=91, lng=0)},
        {"origin": Coordinate(lat=0, lng=-181)},
        {"limit": 0},
    ],
)
async def test_invalid_criteria(donor_store, kwargs):
    with pytest.raises(InvalidCriteria):
        await DonorMatcher(donor_store).find(criteria(**kwargs))
