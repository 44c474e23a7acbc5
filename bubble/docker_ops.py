from __future__ import annotations

from typing import Any

import docker
import requests
from docker.errors import DockerException

from .churn import ContainerDescriptor, ContainerTemplate
from .errors import DriverError

# EndpointSettings keys the daemon accepts on create. Runtime-assigned fields
# (EndpointID, IPAddress, MacAddress, ...) belong to the template container.
ENDPOINT_CREATE_KEYS = ("IPAMConfig", "Links", "Aliases", "NetworkID", "DriverOpts")

# docker-py lets transport failures (daemon restart, read timeouts) through as
# plain requests exceptions.
_ERRORS = (DockerException, requests.exceptions.RequestException)


def endpoint_create_config(endpoints: dict[str, Any] | None) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, ep in (endpoints or {}).items():
        ep = ep or {}
        out[name] = {k: ep[k] for k in ENDPOINT_CREATE_KEYS if ep.get(k) is not None}
    return out


class DockerDriver:
    """Container runtime driver on top of docker-py's low-level API client.

    Every docker failure is re-raised as DriverError with the operation name
    and container id attached.
    """

    def __init__(self, client: docker.DockerClient | None = None, wait_timeout_s: float | None = None):
        if client is None:
            try:
                client = docker.from_env()
            except _ERRORS as e:
                raise DriverError("connect to docker", cause=e) from e
        self._client = client
        self._api = client.api
        self.wait_timeout_s = wait_timeout_s or None

    def ping(self) -> None:
        try:
            self._client.ping()
        except _ERRORS as e:
            raise DriverError("ping docker", cause=e) from e

    def close(self) -> None:
        self._client.close()

    def list_containers(self) -> list[ContainerDescriptor]:
        try:
            raw = self._api.containers()
        except _ERRORS as e:
            raise DriverError("list containers", cause=e) from e
        out: list[ContainerDescriptor] = []
        for c in raw:
            networks = (c.get("NetworkSettings") or {}).get("Networks") or {}
            out.append(ContainerDescriptor(id=c["Id"], image=c.get("Image", ""), networks=networks))
        return out

    def inspect(self, container_id: str) -> ContainerTemplate:
        try:
            info = self._api.inspect_container(container_id)
        except _ERRORS as e:
            raise DriverError("inspect", container_id, e) from e
        networks = (info.get("NetworkSettings") or {}).get("Networks") or {}
        return ContainerTemplate(
            config=dict(info.get("Config") or {}),
            host_config=dict(info.get("HostConfig") or {}),
            endpoints=endpoint_create_config(networks),
        )

    def create(
        self,
        config: dict[str, Any],
        host_config: dict[str, Any],
        networking_config: dict[str, Any],
    ) -> tuple[str, list[str]]:
        body = dict(config)
        body["HostConfig"] = host_config
        body["NetworkingConfig"] = networking_config
        try:
            res = self._api.create_container_from_config(body, name=None)
        except _ERRORS as e:
            raise DriverError("create container", cause=e) from e
        return res["Id"], list(res.get("Warnings") or [])

    def start(self, container_id: str) -> None:
        try:
            self._api.start(container_id)
        except _ERRORS as e:
            raise DriverError("start", container_id, e) from e

    def stop(self, container_id: str, timeout: int | None = None) -> None:
        try:
            self._api.stop(container_id, timeout=timeout)
        except _ERRORS as e:
            raise DriverError("stop", container_id, e) from e

    def wait_not_running(self, container_id: str) -> None:
        """Block until the container has left the running state."""
        try:
            self._api.wait(container_id, timeout=self.wait_timeout_s, condition="not-running")
        except _ERRORS as e:
            raise DriverError("wait for", container_id, e) from e

    def remove(self, container_id: str) -> None:
        try:
            self._api.remove_container(container_id)
        except _ERRORS as e:
            raise DriverError("remove", container_id, e) from e
