from __future__ import annotations

from dataclasses import asdict
from threading import Thread

import uvicorn
from fastapi import FastAPI, Query

from . import db
from .api_models import EventOut, StatusOut, StepOut
from .runtime import RuntimeState


def create_app(runtime: RuntimeState) -> FastAPI:
    """Read-only status surface for a running scheduler."""
    app = FastAPI(title="bubble churn controller")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/status", response_model=StatusOut)
    def status() -> StatusOut:
        return StatusOut(**asdict(runtime.snapshot()))

    @app.get("/events", response_model=list[EventOut])
    def events(limit: int = Query(50, ge=1, le=1000)) -> list[EventOut]:
        return [EventOut(**e) for e in db.latest_events(limit)]

    @app.get("/steps", response_model=list[StepOut])
    def steps(limit: int = Query(20, ge=1, le=1000)) -> list[StepOut]:
        return [StepOut(**s) for s in db.latest_steps(limit)]

    return app


def serve_in_background(runtime: RuntimeState, host: str, port: int) -> Thread:
    server = uvicorn.Server(uvicorn.Config(create_app(runtime), host=host, port=port, log_level="warning"))
    thr = Thread(target=server.run, daemon=True)
    thr.start()
    db.log_event("INFO", f"Status API listening on http://{host}:{port}")
    return thr
