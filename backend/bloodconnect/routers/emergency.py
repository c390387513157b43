from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..database import db
from ..memory.dispatch_memory import DispatchMemory, dispatch_memory
from ..models.emergency import (
    DispatchOutcome,
    EmergencyRequest,
    EmergencyRequestCreate,
    EmergencyRequestList,
    EmergencyRequestStatus,
    RequestStatus,
)
from ..services.dispatcher import EmergencyDispatcher
from ..services.matcher import DonorMatcher
from ..stores.donors import DonorStore
from ..stores.emergency_requests import EmergencyRequestStore
from ..utils.notifications import Notifier, notification_service
from .auth import get_current_user_id
from .donors import get_donor_store

router = APIRouter(prefix="/emergency-requests", tags=["emergency"])
router.event_sink = None


async def get_request_store() -> EmergencyRequestStore:
    return EmergencyRequestStore(db.get_collection("emergency_requests"))


async def get_dispatch_memory() -> DispatchMemory:
    return dispatch_memory


async def get_notifier() -> Notifier:
    return notification_service


async def get_dispatcher(
    donors: DonorStore = Depends(get_donor_store),
    requests: EmergencyRequestStore = Depends(get_request_store),
    memory: DispatchMemory = Depends(get_dispatch_memory),
    notifier: Notifier = Depends(get_notifier),
) -> EmergencyDispatcher:
    return EmergencyDispatcher(
        DonorMatcher(donors),
        requests,
        notifier,
        memory=memory,
        event_sink=router.event_sink,
    )


@router.post("", response_model=DispatchOutcome, status_code=status.HTTP_201_CREATED)
async def create_emergency_request(
    payload: EmergencyRequestCreate,
    user_id: str = Depends(get_current_user_id),
    dispatcher: EmergencyDispatcher = Depends(get_dispatcher),
) -> DispatchOutcome:
    return await dispatcher.create_and_dispatch(payload, requested_by=user_id)


@router.get("", response_model=EmergencyRequestList)
async def list_emergency_requests(
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    requests: EmergencyRequestStore = Depends(get_request_store),
) -> EmergencyRequestList:
    return EmergencyRequestList(requests=await requests.recent(limit, status_filter))


@router.get("/{request_id}", response_model=EmergencyRequestStatus)
async def get_emergency_request(
    request_id: str, dispatcher: EmergencyDispatcher = Depends(get_dispatcher)
) -> EmergencyRequestStatus:
    return await dispatcher.status(request_id)


@router.post("/{request_id}/close", response_model=EmergencyRequest)
async def close_emergency_request(
    request_id: str,
    _: str = Depends(get_current_user_id),
    dispatcher: EmergencyDispatcher = Depends(get_dispatcher),
) -> EmergencyRequest:
    return await dispatcher.close(request_id)


def init_router(event_sink) -> None:
    router.event_sink = event_sink
