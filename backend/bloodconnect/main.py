from __future__ import annotations

from typing import Any, Dict

import socketio
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .database import db
from .errors import BloodConnectError, StoreUnavailable
from .routers import auth, donors, emergency
from .services.dispatcher import DispatchEvent
from .stores.donors import DonorStore
from .stores.emergency_requests import EmergencyRequestStore


class LiveUpdateHub:
    def __init__(self, sio_server: socketio.AsyncServer) -> None:
        self.sio = sio_server
        self.websockets: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.websockets.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self.websockets.discard(websocket)

    async def notify(self, event: str, payload: Dict[str, Any]) -> None:
        message = {"event": event, "payload": payload}
        stale = []
        for connection in list(self.websockets):
            try:
                await connection.send_json(message)
            except Exception:
                stale.append(connection)
        for connection in stale:
            self.disconnect(connection)
        await self.sio.emit(event, payload)

    async def dispatch_event(self, event: DispatchEvent) -> None:
        await self.notify(event.type, event.payload)


sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")
app = FastAPI(title="BloodConnect API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

hub = LiveUpdateHub(sio)

emergency.init_router(hub.dispatch_event)

app.include_router(auth.router)
app.include_router(donors.router)
app.include_router(emergency.router)


@app.exception_handler(BloodConnectError)
async def handle_domain_error(_: Request, exc: BloodConnectError) -> JSONResponse:
    return JSONResponse(
        {"error": exc.__class__.__name__, "detail": str(exc)},
        status_code=exc.status_code,
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = "InvalidCriteria" if request.url.path.rstrip("/") == "/donors/search" else "InvalidRequest"
    return JSONResponse(
        {"error": error, "detail": jsonable_encoder(exc.errors())},
        status_code=400,
    )


@app.get("/health")
async def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.websocket("/ws/events")
async def events_websocket(websocket: WebSocket) -> None:
    await hub.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.disconnect(websocket)


@sio.event
async def connect(sid, environ):  # pragma: no cover - socket handshake
    await hub.notify("socket_connected", {"sid": sid})


@sio.event
async def disconnect(sid):  # pragma: no cover - socket handshake
    await hub.notify("socket_disconnected", {"sid": sid})


socket_app = socketio.ASGIApp(sio, other_asgi_app=app)


@app.on_event("startup")
async def ensure_indexes() -> None:
    try:
        await DonorStore(db.get_collection("donors")).ensure_indexes()
        await EmergencyRequestStore(db.get_collection("emergency_requests")).ensure_indexes()
    except StoreUnavailable as exc:  # pragma: no cover - external service
        logger.warning("MongoDB unavailable; skipping index setup: {}", exc)
