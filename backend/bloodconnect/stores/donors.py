from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument

from ..errors import DonorNotFound
from ..models.donor import BloodType, DonorCreate, DonorRecord, DonorUpdate
from ..schemas.donor import donor_document, donor_record, storage_time
from .base import guarded, id_filter


class DonorStore:
    """Donor profiles kept in the ``donors`` collection."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def ensure_indexes(self) -> None:
        with guarded("ensure_donor_indexes"):
            await self.collection.create_index([("is_donor", 1), ("blood_type", 1)])

    async def find_donors(self, blood_type: BloodType = BloodType.ANY) -> List[DonorRecord]:
        """Active donors, optionally restricted to one blood type by exact match."""
        query: Dict[str, Any] = {"is_donor": True}
        if blood_type is not BloodType.ANY:
            query["blood_type"] = blood_type.value
        with guarded("find_donors"):
            return [donor_record(doc) async for doc in self.collection.find(query)]

    async def list_donors(self, blood_type: BloodType = BloodType.ANY, limit: int = 100) -> List[DonorRecord]:
        with guarded("list_donors"):
            query: Dict[str, Any] = {"is_donor": True}
            if blood_type is not BloodType.ANY:
                query["blood_type"] = blood_type.value
            cursor = self.collection.find(query).sort("full_name", 1).limit(limit)
            return [donor_record(doc) async for doc in cursor]

    async def get(self, donor_id: str) -> DonorRecord:
        with guarded("get_donor"):
            document = await self.collection.find_one(id_filter(donor_id))
        if not document:
            raise DonorNotFound(f"Donor {donor_id} not found")
        return donor_record(document)

    async def create(self, payload: DonorCreate) -> DonorRecord:
        document = donor_document(payload)
        with guarded("create_donor"):
            result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return donor_record(document)

    async def update(self, donor_id: str, payload: DonorUpdate) -> DonorRecord:
        fields: Dict[str, Any] = {}
        changes = payload.model_dump(exclude_unset=True)
        if changes.get("name"):
            fields["full_name"] = payload.name
        if changes.get("blood_type"):
            fields["blood_type"] = payload.blood_type.value
        if "phone" in changes:
            fields["phone"] = payload.phone
        if "location" in changes:
            location = payload.location
            fields["latitude"] = location.latitude if location else None
            fields["longitude"] = location.longitude if location else None
        return await self._set(donor_id, fields, "update_donor")

    async def set_donor_status(self, donor_id: str, is_donor: bool) -> DonorRecord:
        return await self._set(donor_id, {"is_donor": is_donor}, "set_donor_status")

    async def record_donation(self, donor_id: str, donated_at: datetime) -> DonorRecord:
        return await self._set(donor_id, {"last_donation": storage_time(donated_at)}, "record_donation")

    async def _set(self, donor_id: str, fields: Dict[str, Any], context: str) -> DonorRecord:
        if not fields:
            return await self.get(donor_id)
        with guarded(context):
            document = await self.collection.find_one_and_update(
                id_filter(donor_id),
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
            )
        if not document:
            raise DonorNotFound(f"Donor {donor_id} not found")
        return donor_record(document)
