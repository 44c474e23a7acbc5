from __future__ import annotations

from pydantic import BaseModel, Field


class StepOut(BaseModel):
    image: str
    ratio: str = Field(..., description="Resolved up:down ratio, e.g. 2:1")
    started_at: str
    finished_at: str | None = None
    outcome: str = Field(..., description="ok|noop|failed")
    candidates: int = Field(0, ge=0)
    template_id: str | None = None
    created: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    error: str | None = None
    states: list[str] = Field(default_factory=list, description="State machine path of an in-process step")


class StatusOut(BaseModel):
    image: str
    ratio: str
    freq_s: float = Field(..., gt=0)
    state: str = Field(..., description="idle|selecting|no_candidates|has_candidates|replicating|destroying")
    ticks: int = Field(0, ge=0)
    failures: int = Field(0, ge=0)
    started_at: str
    stopping: bool = False
    last_step: StepOut | None = None


class EventOut(BaseModel):
    id: int
    ts: str
    level: str
    image: str | None = None
    container_id: str | None = None
    message: str
