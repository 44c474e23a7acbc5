from __future__ import annotations


class ChurnError(Exception):
    """Base class for errors that abort a churn step or startup validation."""


class FormatError(ChurnError, ValueError):
    """A ratio or duration string could not be parsed."""


class DriverError(ChurnError):
    """A container runtime call failed.

    Carries the failing operation and, when there is one, the container id.
    """

    def __init__(self, op: str, container_id: str | None = None, cause: object | None = None):
        self.op = op
        self.container_id = container_id
        self.cause = cause
        if container_id:
            msg = f"could not {op} container {container_id}"
        else:
            msg = f"could not {op}"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)


class InsufficientCandidatesError(ChurnError):
    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(f"can not delete {requested} containers when only {available} exist")
