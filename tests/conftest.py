import os as _os
import sys

import pytest

# Ensure project root is importable (so `import cli` works without installing the project)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from bubble import db  # noqa: E402
from bubble.churn import ContainerDescriptor, ContainerTemplate  # noqa: E402
from bubble.errors import DriverError  # noqa: E402


class FakeDriver:
    """In-memory container runtime that records every call."""

    def __init__(self, containers=None, warnings=None):
        self.containers = {c.id: c for c in (containers or [])}
        self.calls = []
        self.fail = {}  # (op, container_id or None) -> exception
        self.warnings = list(warnings or [])
        self.closed = False
        self._next = 0

    def _check(self, op, container_id=None):
        exc = self.fail.get((op, container_id)) or self.fail.get((op, None))
        if exc is not None:
            raise exc

    def mutations(self):
        return [c for c in self.calls if c[0] in {"create", "start", "stop", "wait", "remove"}]

    def ping(self):
        self.calls.append(("ping",))

    def close(self):
        self.closed = True

    def list_containers(self):
        self.calls.append(("list",))
        self._check("list")
        return list(self.containers.values())

    def inspect(self, container_id):
        self.calls.append(("inspect", container_id))
        self._check("inspect", container_id)
        c = self.containers[container_id]
        return ContainerTemplate(
            config={"Image": c.image, "Cmd": ["sleep", "infinity"]},
            host_config={"NetworkMode": "bridge"},
            endpoints={name: {"Aliases": ["web"]} for name in c.networks},
        )

    def create(self, config, host_config, networking_config):
        self._check("create")
        self._next += 1
        new_id = f"clone-{self._next}"
        self.calls.append(("create", new_id, config, host_config, networking_config))
        self.containers[new_id] = ContainerDescriptor(id=new_id, image=config["Image"])
        return new_id, list(self.warnings)

    def start(self, container_id):
        self.calls.append(("start", container_id))
        self._check("start", container_id)

    def stop(self, container_id, timeout=None):
        self.calls.append(("stop", container_id))
        self._check("stop", container_id)

    def wait_not_running(self, container_id):
        self.calls.append(("wait", container_id))
        self._check("wait", container_id)

    def remove(self, container_id):
        self.calls.append(("remove", container_id))
        self._check("remove", container_id)
        if container_id not in self.containers:
            raise DriverError("remove", container_id, "No such container")
        del self.containers[container_id]


class SequenceRandom:
    """Stands in for random.Random; randrange returns scripted values."""

    def __init__(self, values):
        self._values = list(values)

    def randrange(self, n):
        value = self._values.pop(0)
        assert 0 <= value < n
        return value


@pytest.fixture(autouse=True)
def event_db(tmp_path, monkeypatch):
    """Point the event log at an isolated sqlite file for every test."""
    monkeypatch.setattr(db, "_db_path", str(tmp_path / "events.db"))
    db.init_db()
    return db


@pytest.fixture
def app_pool():
    return [
        ContainerDescriptor(id="a1", image="app:v1", networks={"backend": {}}),
        ContainerDescriptor(id="a2", image="app:v1", networks={"backend": {}}),
        ContainerDescriptor(id="a3", image="app:v1", networks={"backend": {}}),
        ContainerDescriptor(id="db1", image="postgres:16"),
        ContainerDescriptor(id="x1", image="app:v2"),
    ]


@pytest.fixture
def driver(app_pool):
    return FakeDriver(app_pool)
