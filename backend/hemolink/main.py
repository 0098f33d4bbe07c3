from __future__ import annotations

import os
from typing import Dict

import socketio
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pymongo.errors import PyMongoError

from .database import ensure_indexes, settings
from .dependencies import dispatcher
from .errors import HemolinkError
from .realtime import hub, sio
from .routers import donors, notifications, patients, requests
from .utils.logging import configure_logging

configure_logging(settings.log_level)

app = FastAPI(title="HemoLink API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(donors.router)
app.include_router(patients.router)
app.include_router(requests.router)
app.include_router(notifications.router)


@app.exception_handler(HemolinkError)
async def hemolink_error_handler(request: Request, exc: HemolinkError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("{} {} failed: {}", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.get("/health")
async def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.websocket("/ws/updates")
async def updates_websocket(websocket: WebSocket, room: str | None = None) -> None:
    await hub.connect(websocket, room)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.disconnect(websocket)


socket_app = socketio.ASGIApp(sio, other_asgi_app=app)


@app.on_event("startup")
async def prepare_indexes() -> None:
    try:
        await ensure_indexes()
    except PyMongoError as exc:  # pragma: no cover - external service
        logger.warning("MongoDB unavailable; skipping index creation: {}", exc)


@app.on_event("shutdown")
async def flush_notifications() -> None:
    await dispatcher.drain()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(socket_app, host="0.0.0.0", port=port)
