from __future__ import annotations

from datetime import datetime

from motor.motor_asyncio import AsyncIOMotorCollection

from ..database import db
from ..models.emergency import DispatchOutcome
from ..schemas.emergency import dispatch_outcome
from ..stores.base import guarded


class DispatchMemory:
    """Keeps the outcome of each dispatch so request status can be looked up later."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def log(self, outcome: DispatchOutcome) -> None:
        document = {
            **outcome.model_dump(mode="json"),
            "timestamp": datetime.utcnow(),
        }
        with guarded("log_dispatch_outcome"):
            await self.collection.insert_one(document)

    async def outcome_for(self, request_id: str) -> DispatchOutcome | None:
        with guarded("load_dispatch_outcome"):
            document = await self.collection.find_one({"request_id": request_id}, sort=[("timestamp", -1)])
        return dispatch_outcome(document) if document else None


dispatch_memory = DispatchMemory(db.get_collection("dispatch_outcomes"))
