from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from .churn import IDLE, StepReport
from .db import utc_now


@dataclass
class LoopStatus:
    image: str
    ratio: str
    freq_s: float
    state: str = IDLE
    ticks: int = 0
    failures: int = 0
    started_at: str = field(default_factory=utc_now)
    stopping: bool = False
    last_step: dict[str, Any] | None = None


class RuntimeState:
    """In-memory scheduler state, shared with the status API thread."""

    def __init__(self, image: str, ratio: str, freq_s: float) -> None:
        self.lock = Lock()
        self._status = LoopStatus(image=image, ratio=ratio, freq_s=freq_s)

    def set_state(self, state: str) -> None:
        with self.lock:
            self._status.state = state

    def mark_stopping(self) -> None:
        with self.lock:
            self._status.stopping = True

    def record_step(self, report: StepReport) -> None:
        with self.lock:
            self._status.ticks += 1
            if not report.ok:
                self._status.failures += 1
            self._status.last_step = report.as_dict()

    def snapshot(self) -> LoopStatus:
        with self.lock:
            s = self._status
            return LoopStatus(
                image=s.image,
                ratio=s.ratio,
                freq_s=s.freq_s,
                state=s.state,
                ticks=s.ticks,
                failures=s.failures,
                started_at=s.started_at,
                stopping=s.stopping,
                last_step=dict(s.last_step) if s.last_step else None,
            )
