"""Tests for the Docker runtime client.

These tests verify that:
1. Raw Docker events are parsed into ContainerEvents
2. List and inspect calls delegate to the low-level Docker API
3. The reader thread delivers events in order and reports stream end
4. Closing a subscription closes the underlying stream
"""

import asyncio
import threading
from unittest.mock import MagicMock, patch

import pytest

from dotege.events import (
    ContainerEvent,
    DockerRuntimeClient,
    EventStreamClosed,
    EventStreamError,
    MonitorError,
)
from dotege.events.base import CONTAINER_EVENT_FILTERS


class FakeStream:
    """Stand-in for docker's CancellableStream."""

    def __init__(self, events, error=None):
        self._events = events
        self._error = error
        self.closed = False

    def __iter__(self):
        yield from self._events
        if self._error:
            raise self._error

    def close(self):
        self.closed = True


class BlockingStream:
    """A stream that produces nothing until closed."""

    def __init__(self):
        self._closed = threading.Event()

    def __iter__(self):
        self._closed.wait(5.0)
        return iter(())

    def close(self):
        self._closed.set()

    @property
    def closed(self):
        return self._closed.is_set()


def raw_event(action: str, container_id: str, name: str) -> dict:
    return {
        "Type": "container",
        "Action": action,
        "id": container_id,
        "Actor": {"ID": container_id, "Attributes": {"name": name, "image": "nginx"}},
    }


def make_client(stream=None):
    docker_client = MagicMock()
    docker_client.api.events.return_value = stream
    return docker_client, DockerRuntimeClient(docker_client)


# --- Event parsing ---

def test_container_event_from_docker():
    event = ContainerEvent.from_docker(raw_event("destroy", "abc", "web"))

    assert event.action == "destroy"
    assert event.actor_id == "abc"
    assert event.name == "web"


def test_container_event_compound_action():
    event = ContainerEvent.from_docker({"Action": "exec_start: /bin/sh", "Actor": {"ID": "abc"}})

    assert event.action == "exec_start"
    assert event.name == ""


def test_container_event_falls_back_to_top_level_id():
    event = ContainerEvent.from_docker({"Action": "create", "id": "abc"})

    assert event.actor_id == "abc"
    assert event.attributes == {}


# --- List / inspect ---

@pytest.mark.asyncio
async def test_list_containers_delegates_to_api():
    docker_client, client = make_client()
    docker_client.api.containers.return_value = [{"Id": "abc", "Names": ["/web"], "Labels": {}}]

    result = await client.list_containers()

    assert result == [{"Id": "abc", "Names": ["/web"], "Labels": {}}]
    docker_client.api.containers.assert_called_once_with()


@pytest.mark.asyncio
async def test_inspect_container_delegates_to_api():
    docker_client, client = make_client()
    docker_client.api.inspect_container.return_value = {"Id": "abc", "Name": "/web"}

    result = await client.inspect_container("abc")

    assert result == {"Id": "abc", "Name": "/web"}
    docker_client.api.inspect_container.assert_called_once_with("abc")


@pytest.mark.asyncio
async def test_inspect_errors_propagate():
    from docker.errors import NotFound

    docker_client, client = make_client()
    docker_client.api.inspect_container.side_effect = NotFound("gone")

    with pytest.raises(NotFound):
        await client.inspect_container("abc")


# --- Subscription ---

@pytest.mark.asyncio
async def test_subscribe_delivers_events_in_order():
    stream = FakeStream([raw_event("create", "a", "A"), raw_event("destroy", "b", "B")])
    docker_client, client = make_client(stream)

    subscription = await client.subscribe(CONTAINER_EVENT_FILTERS)
    try:
        first = await asyncio.wait_for(subscription.events.get(), timeout=2.0)
        second = await asyncio.wait_for(subscription.events.get(), timeout=2.0)
    finally:
        subscription.close()

    docker_client.api.events.assert_called_once_with(decode=True, filters=CONTAINER_EVENT_FILTERS)
    assert (first.action, first.actor_id) == ("create", "a")
    assert (second.action, second.name) == ("destroy", "B")


@pytest.mark.asyncio
async def test_stream_end_is_reported_as_error():
    _, client = make_client(FakeStream([]))

    subscription = await client.subscribe(CONTAINER_EVENT_FILTERS)
    try:
        error = await asyncio.wait_for(subscription.errors.get(), timeout=2.0)
    finally:
        subscription.close()

    assert isinstance(error, EventStreamClosed)


@pytest.mark.asyncio
async def test_stream_failure_is_reported_as_error():
    failure = ConnectionError("connection reset")
    _, client = make_client(FakeStream([raw_event("create", "a", "A")], error=failure))

    subscription = await client.subscribe(CONTAINER_EVENT_FILTERS)
    try:
        event = await asyncio.wait_for(subscription.events.get(), timeout=2.0)
        error = await asyncio.wait_for(subscription.errors.get(), timeout=2.0)
    finally:
        subscription.close()

    assert event.actor_id == "a"
    assert isinstance(error, EventStreamError)
    assert isinstance(error, MonitorError)
    assert error.__cause__ is failure
    assert "connection reset" in str(error)


@pytest.mark.asyncio
async def test_close_stops_stream_without_error():
    stream = BlockingStream()
    _, client = make_client(stream)

    subscription = await client.subscribe(CONTAINER_EVENT_FILTERS)
    subscription.close()
    subscription.close()
    await asyncio.sleep(0.01)

    assert stream.closed
    assert subscription.errors.empty()
    assert subscription.events.empty()


# --- Construction ---

def test_from_env_uses_docker_environment():
    with patch("dotege.events.docker_events.docker") as mock_docker:
        client = DockerRuntimeClient.from_env()

    mock_docker.from_env.assert_called_once_with()
    client.close()
    mock_docker.from_env.return_value.close.assert_called_once_with()


def test_from_env_with_explicit_host():
    with patch("dotege.events.docker_events.docker") as mock_docker:
        DockerRuntimeClient.from_env("tcp://docker:2375")

    mock_docker.DockerClient.assert_called_once_with(base_url="tcp://docker:2375")
    mock_docker.from_env.assert_not_called()
