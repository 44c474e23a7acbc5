import random
from unittest.mock import MagicMock

import pytest
import requests
from docker.errors import APIError, DockerException, NotFound

from bubble.churn import ChurnStep, ContainerDescriptor
from bubble.docker_ops import DockerDriver, endpoint_create_config
from bubble.errors import DriverError
from bubble.ratio import Ratio


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def drv(client):
    return DockerDriver(client=client)


def test_list_containers_maps_low_level_payload(drv, client):
    client.api.containers.return_value = [
        {"Id": "abc", "Image": "app:v1", "NetworkSettings": {"Networks": {"bridge": {"NetworkID": "n1"}}}},
        {"Id": "def", "Image": "redis:7", "NetworkSettings": None},
    ]
    out = drv.list_containers()
    assert out[0] == ContainerDescriptor(id="abc", image="app:v1", networks={"bridge": {"NetworkID": "n1"}})
    assert out[1].networks == {}


def test_list_failure_becomes_driver_error(drv, client):
    client.api.containers.side_effect = DockerException("daemon unreachable")
    with pytest.raises(DriverError, match="could not list containers"):
        drv.list_containers()


def test_inspect_returns_config_host_config_and_create_time_endpoints(drv, client):
    client.api.inspect_container.return_value = {
        "Config": {"Image": "app:v1", "Env": ["A=1"]},
        "HostConfig": {"Memory": 0},
        "NetworkSettings": {
            "Networks": {
                "backend": {
                    "Aliases": ["web"],
                    "NetworkID": "n1",
                    "EndpointID": "ep-of-template",
                    "IPAddress": "172.18.0.4",
                    "MacAddress": "02:42:ac:12:00:04",
                    "IPAMConfig": None,
                }
            }
        },
    }
    t = drv.inspect("abc")
    client.api.inspect_container.assert_called_once_with("abc")
    assert t.config == {"Image": "app:v1", "Env": ["A=1"]}
    assert t.host_config == {"Memory": 0}
    assert t.endpoints == {"backend": {"Aliases": ["web"], "NetworkID": "n1"}}


def test_inspect_not_found(drv, client):
    client.api.inspect_container.side_effect = NotFound("No such container: abc")
    with pytest.raises(DriverError) as ei:
        drv.inspect("abc")
    assert ei.value.op == "inspect"
    assert ei.value.container_id == "abc"


def test_create_posts_full_config_without_name(drv, client):
    client.api.create_container_from_config.return_value = {"Id": "new1", "Warnings": ["w1"]}
    new_id, warnings = drv.create({"Image": "app:v1"}, {"NetworkMode": "backend"}, {"EndpointsConfig": {"backend": {}}})

    assert (new_id, warnings) == ("new1", ["w1"])
    body = client.api.create_container_from_config.call_args.args[0]
    assert body == {
        "Image": "app:v1",
        "HostConfig": {"NetworkMode": "backend"},
        "NetworkingConfig": {"EndpointsConfig": {"backend": {}}},
    }
    assert client.api.create_container_from_config.call_args.kwargs == {"name": None}


def test_create_null_warnings(drv, client):
    client.api.create_container_from_config.return_value = {"Id": "new1", "Warnings": None}
    assert drv.create({}, {}, {}) == ("new1", [])


def test_create_does_not_mutate_template_config(drv, client):
    client.api.create_container_from_config.return_value = {"Id": "new1"}
    config = {"Image": "app:v1"}
    drv.create(config, {}, {})
    assert config == {"Image": "app:v1"}


def test_start_stop_remove_wrap_errors_with_context(drv, client):
    client.api.start.side_effect = APIError("conflict")
    client.api.stop.side_effect = APIError("conflict")
    client.api.remove_container.side_effect = APIError("conflict")

    for call, op in ((drv.start, "start"), (drv.stop, "stop"), (drv.remove, "remove")):
        with pytest.raises(DriverError) as ei:
            call("c1")
        assert ei.value.op == op
        assert ei.value.container_id == "c1"


def test_stop_uses_runtime_default_timeout(drv, client):
    drv.stop("c1")
    client.api.stop.assert_called_once_with("c1", timeout=None)
    drv.stop("c2", timeout=3)
    client.api.stop.assert_called_with("c2", timeout=3)


def test_wait_blocks_on_not_running_condition(client):
    DockerDriver(client=client).wait_not_running("c1")
    client.api.wait.assert_called_once_with("c1", timeout=None, condition="not-running")

    DockerDriver(client=client, wait_timeout_s=30).wait_not_running("c2")
    client.api.wait.assert_called_with("c2", timeout=30, condition="not-running")


def test_wait_timeout_becomes_driver_error(drv, client):
    client.api.wait.side_effect = requests.exceptions.ReadTimeout("read timed out")
    with pytest.raises(DriverError, match="could not wait for container c1"):
        drv.wait_not_running("c1")


@pytest.mark.parametrize(
    "method,call,op,container_id",
    [
        ("containers", lambda d: d.list_containers(), "list containers", None),
        ("inspect_container", lambda d: d.inspect("c1"), "inspect", "c1"),
        ("create_container_from_config", lambda d: d.create({}, {}, {}), "create container", None),
        ("start", lambda d: d.start("c1"), "start", "c1"),
        ("stop", lambda d: d.stop("c1"), "stop", "c1"),
        ("wait", lambda d: d.wait_not_running("c1"), "wait for", "c1"),
        ("remove_container", lambda d: d.remove("c1"), "remove", "c1"),
    ],
)
@pytest.mark.parametrize(
    "exc",
    [requests.exceptions.ConnectionError("daemon gone"), requests.exceptions.ReadTimeout("read timed out")],
)
def test_transport_failures_become_driver_errors(drv, client, method, call, op, container_id, exc):
    getattr(client.api, method).side_effect = exc
    with pytest.raises(DriverError) as ei:
        call(drv)
    assert ei.value.op == op
    assert ei.value.container_id == container_id
    assert ei.value.cause is exc


def test_ping_transport_failure(drv, client):
    client.ping.side_effect = requests.exceptions.ConnectionError("refused")
    with pytest.raises(DriverError, match="could not ping docker"):
        drv.ping()


def test_daemon_loss_mid_step_is_reported_not_raised(client):
    client.api.containers.side_effect = requests.exceptions.ConnectionError("daemon gone")
    report = ChurnStep(DockerDriver(client=client), "app:v1", Ratio(1, 1), rng=random.Random(0)).run()
    assert report.outcome == "failed"
    assert isinstance(report.error, DriverError)
    assert report.error.op == "list containers"


def test_ping_and_close(drv, client):
    drv.ping()
    client.ping.assert_called_once()
    client.ping.side_effect = DockerException("connection refused")
    with pytest.raises(DriverError):
        drv.ping()
    drv.close()
    client.close.assert_called_once()


def test_from_env_failure(monkeypatch):
    import bubble.docker_ops as ops

    def boom():
        raise DockerException("Error while fetching server API version")

    monkeypatch.setattr(ops.docker, "from_env", boom)
    with pytest.raises(DriverError, match="could not connect to docker"):
        DockerDriver()


def test_endpoint_create_config_handles_empty():
    assert endpoint_create_config(None) == {}
    assert endpoint_create_config({"bridge": None}) == {"bridge": {}}
