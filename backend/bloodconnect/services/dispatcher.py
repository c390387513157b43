from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from langfuse import Langfuse
from loguru import logger

from ..database import settings
from ..errors import InvalidRequest, NotificationError, StoreUnavailable
from ..memory.dispatch_memory import DispatchMemory
from ..models.donor import DonorRecord
from ..models.emergency import (
    Channel,
    DispatchOutcome,
    EmergencyRequest,
    EmergencyRequestCreate,
    EmergencyRequestStatus,
    RecipientOutcome,
)
from ..models.search import MatchResult, SearchCriteria
from ..stores.emergency_requests import EmergencyRequestStore
from ..utils.logging import log_delivery_failure
from ..utils.notifications import Notifier
from .geo import is_valid_coordinate
from .matcher import DonorMatcher

# Emergencies always search a fixed radius around the hospital.
EMERGENCY_RADIUS_KM = 10.0


@dataclass
class DispatchEvent:
    type: str
    payload: Dict[str, Any]


EventSink = Callable[[DispatchEvent], Awaitable[None]]


def sms_message(request: EmergencyRequest) -> str:
    return (
        f"EMERGENCY BLOOD REQUEST: {request.blood_type.value} blood needed at {request.hospital}. "
        f"Urgency: {request.urgency.value}. {request.details}"
    ).strip()


def call_message(request: EmergencyRequest) -> str:
    return (
        f"This is an emergency blood donation request for {request.blood_type.value} blood type "
        f"at {request.hospital}. The urgency level is {request.urgency.value}. {request.details}"
    ).strip()


def channels_for(request: EmergencyRequest) -> List[Channel]:
    if request.urgency.places_call:
        return [Channel.SMS, Channel.CALL]
    return [Channel.SMS]


def summarize(request_id: str, matched: int, results: Sequence[RecipientOutcome]) -> DispatchOutcome:
    reached = {result.donor_id for result in results if result.success}
    return DispatchOutcome(
        request_id=request_id,
        matched_count=matched,
        notified_count=len(reached),
        responding_count=0,
        per_recipient=list(results),
    )


class EmergencyDispatcher:
    """Creates emergency requests and alerts nearby donors.

    Every matched donor with a phone number gets an SMS, and a voice call as
    well when urgency is high or critical. Deliveries run concurrently and a
    failed delivery is recorded against that donor only, so a dispatch
    succeeds even when nobody could be reached. Only invalid input or an
    unavailable store fails the whole call.

    Matching reads the donor store without a snapshot; a donor edited between
    matching and delivery is notified with the data read at match time.
    """

    def __init__(
        self,
        matcher: DonorMatcher,
        requests: EmergencyRequestStore,
        notifier: Notifier,
        memory: DispatchMemory | None = None,
        event_sink: Optional[EventSink] = None,
        attempt_timeout_s: float | None = None,
    ) -> None:
        self.matcher = matcher
        self.requests = requests
        self.notifier = notifier
        self.memory = memory
        self.event_sink = event_sink
        self.attempt_timeout_s = attempt_timeout_s or settings.notification_timeout_s
        self.langfuse = None
        if settings.langfuse_public_key and settings.langfuse_secret_key:
            self.langfuse = Langfuse(
                public_key=settings.langfuse_public_key,
                secret_key=settings.langfuse_secret_key,
                host=settings.langfuse_host,
            )

    async def create_and_dispatch(
        self, params: EmergencyRequestCreate, requested_by: str | None = None
    ) -> DispatchOutcome:
        if params.units_required < 1:
            raise InvalidRequest("unitsRequired must be at least 1")
        if not is_valid_coordinate(params.origin):
            raise InvalidRequest("origin coordinates are out of range")

        request, created = await self.requests.create(params, requested_by)
        if not created:
            previous = await self.memory.outcome_for(request.id) if self.memory else None
            if previous is not None:
                logger.info(
                    "Emergency request {} already dispatched for key {}; not re-sending",
                    request.id,
                    params.idempotency_key,
                )
                return previous
            # stored earlier but never dispatched, e.g. the donor store was down
            logger.info("Resuming dispatch of emergency request {} for key {}", request.id, params.idempotency_key)

        logger.info(
            "Dispatching emergency request {}: {} at {} ({})",
            request.id,
            request.blood_type.value,
            request.hospital,
            request.urgency.value,
        )
        await self._emit("emergency_request_created", request.model_dump(mode="json", by_alias=True))

        trace = self._start_trace(request)
        error: Exception | None = None
        try:
            matches = await self.matcher.find(
                SearchCriteria(blood_type=request.blood_type, origin=request.origin, radius_km=EMERGENCY_RADIUS_KM)
            )
            self._span(trace, "match", {"radius_km": EMERGENCY_RADIUS_KM}, {"matched": len(matches)})

            results = await self._fan_out(request, matches)
            outcome = summarize(request.id, len(matches), results)
            self._span(trace, "notify", {"attempts": len(results)}, {"notified": outcome.notified_count})
        except Exception as exc:
            error = exc
            logger.error("Dispatch for emergency request {} failed: {}", request.id, exc)
            raise
        finally:
            self._end_trace(trace, error)

        logger.info(
            "Emergency request {}: notified {} of {} matched donors",
            request.id,
            outcome.notified_count,
            outcome.matched_count,
        )
        await self._remember(outcome)
        await self._emit("dispatch_completed", outcome.model_dump(mode="json", by_alias=True))
        return outcome

    async def status(self, request_id: str) -> EmergencyRequestStatus:
        request = await self.requests.get(request_id)
        outcome = await self.memory.outcome_for(request_id) if self.memory else None
        return EmergencyRequestStatus(request=request, outcome=outcome)

    async def close(self, request_id: str) -> EmergencyRequest:
        request = await self.requests.close(request_id)
        await self._emit("emergency_request_closed", {"requestId": request.id})
        return request

    async def _fan_out(self, request: EmergencyRequest, matches: Sequence[MatchResult]) -> List[RecipientOutcome]:
        attempts: List[Tuple[DonorRecord, Channel]] = [
            (match.donor, channel)
            for match in matches
            if match.donor.phone
            for channel in channels_for(request)
        ]
        messages = {Channel.SMS: sms_message(request), Channel.CALL: call_message(request)}
        # gather keeps results in attempt order, one slot per attempt
        return list(
            await asyncio.gather(*(self._attempt(donor, channel, messages[channel]) for donor, channel in attempts))
        )

    async def _attempt(self, donor: DonorRecord, channel: Channel, message: str) -> RecipientOutcome:
        send = self.notifier.send_sms if channel is Channel.SMS else self.notifier.place_call
        try:
            delivery_id = await asyncio.wait_for(send(donor.phone, message), timeout=self.attempt_timeout_s)
        except NotificationError as exc:
            reason = exc.reason
        except asyncio.TimeoutError:
            reason = f"timed out after {self.attempt_timeout_s:g}s"
        except Exception as exc:
            logger.exception("Unexpected {} failure for donor {}", channel.value, donor.id)
            reason = str(exc) or exc.__class__.__name__
        else:
            return RecipientOutcome(donor_id=donor.id, channel=channel, success=True, delivery_id=delivery_id)
        log_delivery_failure(donor.id, channel.value, reason)
        return RecipientOutcome(donor_id=donor.id, channel=channel, success=False, error=reason)

    async def _remember(self, outcome: DispatchOutcome) -> None:
        if self.memory is None:
            return
        try:
            await self.memory.log(outcome)
        except StoreUnavailable as exc:
            # notifications are already out; the caller still gets the outcome
            logger.warning("Could not record outcome for emergency request {}: {}", outcome.request_id, exc)

    async def _emit(self, event: str, payload: Dict[str, Any]) -> None:
        if self.event_sink is None:
            return
        try:
            await self.event_sink(DispatchEvent(type=event, payload=payload))
        except Exception:
            # live updates must never decide whether donors are notified
            logger.exception("Publishing {} event failed", event)

    def _start_trace(self, request: EmergencyRequest):
        if not self.langfuse:
            return None
        return self.langfuse.start_span(
            name="bloodconnect_dispatch",
            input=request.model_dump(mode="json"),
            metadata={"urgency": request.urgency.value, "blood_type": request.blood_type.value},
        )

    @staticmethod
    def _span(trace, name: str, payload: Dict[str, Any], output: Dict[str, Any]) -> None:
        if trace:
            trace.start_span(name=f"step_{name}", input=payload, output=output).end()

    @staticmethod
    def _end_trace(trace, error: Exception | None) -> None:
        if not trace:
            return
        if error:
            trace.update(output={"error": str(error)}, level="ERROR", status_message=str(error))
        trace.end()
