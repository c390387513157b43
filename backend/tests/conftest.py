from __future__ import annotations

import asyncio
import math
from typing import List, Tuple

import pytest
from mongomock_motor import AsyncMongoMockClient

from bloodconnect.errors import NotificationError
from bloodconnect.memory.dispatch_memory import DispatchMemory
from bloodconnect.models.donor import BloodType, Coordinate, DonorCreate, DonorRecord
from bloodconnect.services.dispatcher import EmergencyDispatcher
from bloodconnect.services.matcher import DonorMatcher
from bloodconnect.stores.donors import DonorStore
from bloodconnect.stores.emergency_requests import EmergencyRequestStore

SAN_FRANCISCO = Coordinate(latitude=37.7749, longitude=-122.4194)
KM_PER_DEGREE_LATITUDE = 6371.0 * math.pi / 180


def north_of(origin: Coordinate, km: float) -> Coordinate:
    return Coordinate(latitude=origin.latitude + km / KM_PER_DEGREE_LATITUDE, longitude=origin.longitude)


class FakeNotifier:
    """Records deliveries and fails for the configured phone numbers."""

    def __init__(self, failing_phones=(), failing_calls=(), delay: float = 0.0) -> None:
        self.failing_phones = set(failing_phones)
        self.failing_calls = set(failing_calls)
        self.delay = delay
        self.sent: List[Tuple[str, str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _deliver(self, channel: str, phone: str, message: str) -> str:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        self.sent.append((channel, phone, message))
        if phone in self.failing_phones or (channel == "call" and phone in self.failing_calls):
            raise NotificationError(f"carrier rejected {phone}")
        return f"{channel}-{len(self.sent)}"

    async def send_sms(self, phone: str, message: str) -> str:
        return await self._deliver("sms", phone, message)

    async def place_call(self, phone: str, message: str) -> str:
        return await self._deliver("call", phone, message)

    def channels_for(self, phone: str) -> List[str]:
        return sorted(channel for channel, to, _ in self.sent if to == phone)


@pytest.fixture
def mongo():
    return AsyncMongoMockClient()["bloodconnect_test"]


@pytest.fixture
def donor_store(mongo) -> DonorStore:
    return DonorStore(mongo["donors"])


@pytest.fixture
def request_store(mongo) -> EmergencyRequestStore:
    return EmergencyRequestStore(mongo["emergency_requests"])


@pytest.fixture
def memory(mongo) -> DispatchMemory:
    return DispatchMemory(mongo["dispatch_outcomes"])


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def dispatcher(donor_store, request_store, memory, notifier, events) -> EmergencyDispatcher:
    async def sink(event) -> None:
        events.append(event)

    return EmergencyDispatcher(
        DonorMatcher(donor_store),
        request_store,
        notifier,
        memory=memory,
        event_sink=sink,
        attempt_timeout_s=1.0,
    )


@pytest.fixture
def add_donor(donor_store):
    async def _add(
        name: str,
        blood_type: str,
        km: float | None = None,
        phone: str | None = "+14155550100",
        origin: Coordinate = SAN_FRANCISCO,
        is_donor: bool = True,
        **extra,
    ) -> DonorRecord:
        return await donor_store.create(
            DonorCreate(
                name=name,
                blood_type=BloodType(blood_type),
                location=north_of(origin, km) if km is not None else None,
                phone=phone,
                is_donor=is_donor,
                **extra,
            )
        )

    return _add
