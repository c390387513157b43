from __future__ import annotations

from datetime import datetime
from typing import List, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..errors import RequestNotFound
from ..models.emergency import EmergencyRequest, EmergencyRequestCreate, RequestStatus
from ..schemas.emergency import emergency_request
from .base import guarded, id_filter


class EmergencyRequestStore:
    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def ensure_indexes(self) -> None:
        with guarded("ensure_request_indexes"):
            await self.collection.create_index("idempotency_key", unique=True, sparse=True)
            await self.collection.create_index([("created_at", -1)])

    async def create(
        self, payload: EmergencyRequestCreate, requested_by: str | None = None
    ) -> Tuple[EmergencyRequest, bool]:
        """Insert an active request.

        Returns the stored request and whether it was newly created. A request
        that reuses an existing idempotency key returns the earlier request.
        """
        if payload.idempotency_key:
            existing = await self.find_by_idempotency_key(payload.idempotency_key)
            if existing:
                return existing, False

        document = {
            "blood_type": payload.blood_type.value,
            "hospital": payload.hospital,
            "urgency": payload.urgency.value,
            "units_required": payload.units_required,
            "details": payload.details,
            "latitude": payload.origin.latitude,
            "longitude": payload.origin.longitude,
            "created_at": datetime.utcnow(),
            "status": RequestStatus.ACTIVE.value,
            "requested_by": requested_by,
        }
        if payload.idempotency_key:
            document["idempotency_key"] = payload.idempotency_key
        try:
            with guarded("create_emergency_request"):
                result = await self.collection.insert_one(document)
        except DuplicateKeyError:
            # lost a race with a concurrent submission of the same key
            existing = await self.find_by_idempotency_key(payload.idempotency_key)
            if existing is None:
                raise
            return existing, False
        document["_id"] = result.inserted_id
        return emergency_request(document), True

    async def find_by_idempotency_key(self, key: str) -> EmergencyRequest | None:
        with guarded("find_emergency_request"):
            document = await self.collection.find_one({"idempotency_key": key})
        return emergency_request(document) if document else None

    async def get(self, request_id: str) -> EmergencyRequest:
        with guarded("get_emergency_request"):
            document = await self.collection.find_one(id_filter(request_id))
        if not document:
            raise RequestNotFound(f"Emergency request {request_id} not found")
        return emergency_request(document)

    async def recent(self, limit: int = 20, status: RequestStatus | None = None) -> List[EmergencyRequest]:
        query = {"status": status.value} if status else {}
        with guarded("list_emergency_requests"):
            cursor = self.collection.find(query).sort("created_at", -1).limit(limit)
            return [emergency_request(doc) async for doc in cursor]

    async def close(self, request_id: str) -> EmergencyRequest:
        with guarded("close_emergency_request"):
            document = await self.collection.find_one_and_update(
                id_filter(request_id),
                {"$set": {"status": RequestStatus.CLOSED.value}},
                return_document=ReturnDocument.AFTER,
            )
        if not document:
            raise RequestNotFound(f"Emergency request {request_id} not found")
        return emergency_request(document)
