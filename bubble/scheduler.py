from __future__ import annotations

import random
from threading import Event, Thread

from . import db
from .churn import IDLE, ChurnStep, ContainerDriver, StepReport
from .ratio import Ratio, render, resolve
from .runtime import RuntimeState


class Scheduler:
    """Fires one churn step per tick until cancelled.

    The cancel event doubles as the timer: ``Event.wait(freq)`` returning
    False is a tick, True is a cancel. The wait is rearmed only after the
    step finishes, so steps never overlap and a slow step delays the next one.
    """

    def __init__(
        self,
        driver: ContainerDriver,
        image: str,
        ratio: Ratio,
        freq_s: float,
        rng: random.Random | None = None,
        replacement: bool = True,
        stop_timeout: int | None = None,
        runtime: RuntimeState | None = None,
    ):
        self.driver = driver
        self.image = image
        self.ratio = resolve(ratio)
        self.freq_s = float(freq_s)
        self.runtime = runtime or RuntimeState(image, render(self.ratio), self.freq_s)
        self.step = ChurnStep(
            driver,
            image,
            self.ratio,
            rng=rng or random.Random(),
            replacement=replacement,
            stop_timeout=stop_timeout,
            on_state=self._on_state,
        )
        self._cancel = Event()
        self._thr: Thread | None = None

    def _on_state(self, state: str) -> None:
        self.runtime.set_state(state)

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def stop(self) -> None:
        """Ask the loop to exit. A step in progress runs to completion first."""
        self._cancel.set()
        self.runtime.mark_stopping()

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._thr = Thread(target=self.run_forever, daemon=True)
        self._thr.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thr:
            self._thr.join(timeout)

    def run_forever(self) -> None:
        db.log_event(
            "INFO",
            f"Scheduler started (ratio {render(self.ratio)}, every {self.freq_s:g}s)",
            image=self.image,
        )
        while not self._cancel.wait(self.freq_s):
            self.tick()
        db.log_event("INFO", "received stop signal", image=self.image)

    def tick(self) -> StepReport | None:
        try:
            report = self.step.run()
        except Exception as e:
            db.log_event("ERROR", f"Churn step crashed: {type(e).__name__}: {e}", image=self.image)
            self.runtime.set_state(IDLE)
            return None
        self.runtime.record_step(report)
        db.record_step(
            started_at=report.started_at,
            finished_at=report.finished_at or report.started_at,
            image=report.image,
            ratio=report.ratio,
            outcome=report.outcome,
            candidates=report.candidates,
            template_id=report.template_id,
            created=report.created,
            removed=report.removed,
            error=str(report.error) if report.error is not None else None,
        )
        if report.ok:
            db.log_event(
                "INFO",
                f"churn step {report.outcome}: {len(report.created)} created, {len(report.removed)} removed",
                image=self.image,
            )
        return report

