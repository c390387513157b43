from __future__ import annotations

from datetime import datetime

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from bloodconnect.errors import DonorNotFound, RequestNotFound, StoreUnavailable
from bloodconnect.models.donor import BloodType, DonorUpdate
from bloodconnect.stores.donors import DonorStore
from bloodconnect.stores.emergency_requests import EmergencyRequestStore


class UnreachableCollection:
    def find(self, *args, **kwargs):
        raise ServerSelectionTimeoutError("localhost:27017: connection refused")

    async def find_one(self, *args, **kwargs):
        raise ServerSelectionTimeoutError("localhost:27017: connection refused")


async def test_created_donor_round_trips_through_store(donor_store, add_donor):
    created = await add_donor("Emma Wilson", "A+", km=1, phone="+1234567890")

    fetched = await donor_store.get(created.id)

    assert fetched == created
    assert fetched.location is not None
    assert fetched.is_donor


async def test_find_donors_queries_by_type(donor_store, add_donor):
    await add_donor("a", "A+", km=1)
    await add_donor("b", "B+", km=1)
    await add_donor("c", "A+", km=None, is_donor=False)

    assert [d.name for d in await donor_store.find_donors(BloodType.A_POSITIVE)] == ["a"]
    assert len(await donor_store.find_donors()) == 2


async def test_list_donors_includes_donors_without_location(donor_store, add_donor):
    await add_donor("Zed", "O+", km=None)
    await add_donor("Amy", "O+", km=3)

    assert [d.name for d in await donor_store.list_donors(BloodType.O_POSITIVE)] == ["Amy", "Zed"]


async def test_update_clears_location(donor_store, add_donor):
    donor = await add_donor("Moving", "B-", km=1)

    updated = await donor_store.update(donor.id, DonorUpdate(location=None, phone="+15550001111"))

    assert updated.location is None
    assert updated.phone == "+15550001111"
    assert updated.name == "Moving"


async def test_update_with_no_fields_returns_current(donor_store, add_donor):
    donor = await add_donor("Same", "B-", km=1)

    assert await donor_store.update(donor.id, DonorUpdate()) == donor


async def test_status_and_donation(donor_store, add_donor):
    donor = await add_donor("Olivia", "A-", km=1)

    inactive = await donor_store.set_donor_status(donor.id, False)
    donated = await donor_store.record_donation(donor.id, datetime(2026, 10, 1))

    assert not inactive.is_donor
    assert donated.last_donation_at == datetime(2026, 10, 1)


async def test_unknown_donor(donor_store):
    with pytest.raises(DonorNotFound):
        await donor_store.get("64b7f0c2a1b2c3d4e5f60718")
    with pytest.raises(DonorNotFound):
        await donor_store.set_donor_status("not-an-object-id", True)


async def test_unknown_request(request_store):
    with pytest.raises(RequestNotFound):
        await request_store.get("64b7f0c2a1b2c3d4e5f60718")
    with pytest.raises(RequestNotFound):
        await request_store.close("missing")


async def test_driver_errors_become_store_unavailable():
    with pytest.raises(StoreUnavailable):
        await DonorStore(UnreachableCollection()).find_donors()
    with pytest.raises(StoreUnavailable):
        await EmergencyRequestStore(UnreachableCollection()).get("64b7f0c2a1b2c3d4e5f60718")
