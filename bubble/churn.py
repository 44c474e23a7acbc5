from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, Sequence

from . import db
from .db import utc_now
from .errors import ChurnError, InsufficientCandidatesError
from .ratio import Ratio, render, resolve


@dataclass(frozen=True)
class ContainerDescriptor:
    id: str
    image: str
    networks: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ContainerTemplate:
    """Inspection result a clone is created from."""

    config: dict[str, Any]
    host_config: dict[str, Any]
    endpoints: dict[str, Any] = field(default_factory=dict)


class ContainerDriver(Protocol):
    def list_containers(self) -> list[ContainerDescriptor]: ...

    def inspect(self, container_id: str) -> ContainerTemplate: ...

    def create(
        self,
        config: dict[str, Any],
        host_config: dict[str, Any],
        networking_config: dict[str, Any],
    ) -> tuple[str, list[str]]: ...

    def start(self, container_id: str) -> None: ...

    def stop(self, container_id: str, timeout: int | None = None) -> None: ...

    def wait_not_running(self, container_id: str) -> None: ...

    def remove(self, container_id: str) -> None: ...

    def close(self) -> None: ...


def select_candidates(driver: ContainerDriver, image: str) -> tuple[ContainerDescriptor, ...]:
    """Return the containers whose image is exactly ``image``.

    No tag normalisation or digest resolution: "app" does not match "app:latest".
    """
    candidates = tuple(c for c in driver.list_containers() if c.image == image)
    for c in candidates:
        db.log_event("DEBUG", "found container", container_id=c.id, image=c.image)
    return candidates


def networking_config(template: ContainerTemplate) -> dict[str, Any]:
    return {"EndpointsConfig": dict(template.endpoints)}


def replicate(
    driver: ContainerDriver,
    template: ContainerDescriptor,
    count: int,
    out: list[str] | None = None,
) -> list[str]:
    """Create and start ``count`` clones of ``template``.

    The template is inspected once per call. The first failure is raised and
    clones created before it are left running (they are already in ``out``).
    """
    created: list[str] = out if out is not None else []
    if count <= 0:
        return created

    spec = driver.inspect(template.id)
    net = networking_config(spec)
    for _ in range(count):
        new_id, warnings = driver.create(spec.config, spec.host_config, net)
        for w in warnings:
            db.log_event("WARN", w, container_id=new_id, image=template.image)
        db.log_event("INFO", "create container", container_id=new_id, image=template.image)

        driver.start(new_id)
        db.log_event("INFO", "start container", container_id=new_id, image=template.image)
        created.append(new_id)
    return created


def draw_indices(n: int, count: int, rng: random.Random, replacement: bool = True) -> list[int]:
    if replacement:
        return [rng.randrange(n) for _ in range(count)]
    return rng.sample(range(n), count)


def destroy(
    driver: ContainerDriver,
    pool: Sequence[ContainerDescriptor],
    count: int,
    rng: random.Random,
    replacement: bool = True,
    stop_timeout: int | None = None,
    out: list[str] | None = None,
) -> list[str]:
    """Stop, wait for and remove ``count`` containers drawn from ``pool``.

    With ``replacement`` each draw is independent, so the same container can
    come up twice; the second teardown then fails at the runtime.
    """
    if count > len(pool):
        raise InsufficientCandidatesError(count, len(pool))
    removed: list[str] = out if out is not None else []
    if count <= 0:
        return removed

    snapshot = tuple(pool)
    for idx in draw_indices(len(snapshot), count, rng, replacement):
        c = snapshot[idx]
        driver.stop(c.id, timeout=stop_timeout)
        db.log_event("INFO", "stop container", container_id=c.id, image=c.image)

        driver.wait_not_running(c.id)

        driver.remove(c.id)
        db.log_event("INFO", "remove container", container_id=c.id, image=c.image)
        removed.append(c.id)
    return removed


# Step states
IDLE = "idle"
SELECTING = "selecting"
NO_CANDIDATES = "no_candidates"
HAS_CANDIDATES = "has_candidates"
REPLICATING = "replicating"
DESTROYING = "destroying"


@dataclass
class StepReport:
    image: str
    ratio: str
    started_at: str = field(default_factory=utc_now)
    finished_at: str | None = None
    states: list[str] = field(default_factory=list)
    candidates: int = 0
    template_id: str | None = None
    created: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    error: ChurnError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def outcome(self) -> str:
        if self.error is not None:
            return "failed"
        if NO_CANDIDATES in self.states:
            return "noop"
        return "ok"

    def as_dict(self) -> dict[str, Any]:
        return {
            "image": self.image,
            "ratio": self.ratio,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "states": list(self.states),
            "outcome": self.outcome,
            "candidates": self.candidates,
            "template_id": self.template_id,
            "created": list(self.created),
            "removed": list(self.removed),
            "error": str(self.error) if self.error is not None else None,
        }


class ChurnStep:
    """One churn cycle: select, clone one template ``up`` times, remove ``down``.

    Holds no state between runs; the candidate pool is rebuilt every time.
    """

    def __init__(
        self,
        driver: ContainerDriver,
        image: str,
        ratio: Ratio,
        rng: random.Random | None = None,
        replacement: bool = True,
        stop_timeout: int | None = None,
        on_state: Callable[[str], None] | None = None,
    ):
        self.driver = driver
        self.image = image
        self.ratio = resolve(ratio)
        self.rng = rng or random.Random()
        self.replacement = replacement
        self.stop_timeout = stop_timeout
        self.on_state = on_state
        self.state = IDLE

    def _enter(self, report: StepReport, state: str) -> None:
        self.state = state
        report.states.append(state)
        if self.on_state is not None:
            self.on_state(state)

    def run(self) -> StepReport:
        report = StepReport(image=self.image, ratio=render(self.ratio))
        try:
            self._enter(report, SELECTING)
            pool = select_candidates(self.driver, self.image)
            report.candidates = len(pool)
            if not pool:
                self._enter(report, NO_CANDIDATES)
                return report

            self._enter(report, HAS_CANDIDATES)
            template = pool[self.rng.randrange(len(pool))]
            report.template_id = template.id

            self._enter(report, REPLICATING)
            replicate(self.driver, template, self.ratio.up, out=report.created)

            # Only the pre-replication pool is eligible for removal.
            self._enter(report, DESTROYING)
            destroy(
                self.driver,
                pool,
                self.ratio.down,
                self.rng,
                replacement=self.replacement,
                stop_timeout=self.stop_timeout,
                out=report.removed,
            )
        except ChurnError as e:
            report.error = e
            db.log_event("ERROR", f"churn step failed in {self.state}: {e}", image=self.image)
        finally:
            report.finished_at = utc_now()
            self._enter(report, IDLE)
        return report


def churn_step(
    driver: ContainerDriver,
    image: str,
    ratio: Ratio,
    rng: random.Random | None = None,
    replacement: bool = True,
    stop_timeout: int | None = None,
) -> StepReport:
    return ChurnStep(driver, image, ratio, rng=rng, replacement=replacement, stop_timeout=stop_timeout).run()
