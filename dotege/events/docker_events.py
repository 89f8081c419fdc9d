"""Docker implementation of the runtime client interface.

The Docker SDK is blocking, so list and inspect calls run in worker threads
and the event stream is read by a background thread that hands events over
to the asyncio loop.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

import docker

from dotege.events.base import (
    ContainerEvent,
    EventStreamClosed,
    EventStreamError,
    EventSubscription,
    RuntimeClient,
)

logger = logging.getLogger(__name__)


class DockerEventSubscription(EventSubscription):
    """Feeds a blocking Docker event stream into asyncio queues."""

    def __init__(self, stream, loop: asyncio.AbstractEventLoop):
        super().__init__()
        self._stream = stream
        self._loop = loop
        self._closed = threading.Event()
        self._reader_thread = threading.Thread(
            target=self._event_reader_thread,
            name="docker-events",
            daemon=True,
        )

    def start(self) -> None:
        self._reader_thread.start()

    def _publish(self, queue: asyncio.Queue, item) -> None:
        if self._closed.is_set():
            return
        try:
            self._loop.call_soon_threadsafe(queue.put_nowait, item)
        except RuntimeError:
            # Event loop already closed; nobody is listening any more
            logger.debug("Dropping docker event after event loop shutdown")

    def _event_reader_thread(self) -> None:
        """Background thread that reads Docker events and queues them."""
        try:
            for raw in self._stream:
                if self._closed.is_set():
                    return
                self._publish(self.events, ContainerEvent.from_docker(raw))
        except Exception as e:
            error = EventStreamError(str(e))
            error.__cause__ = e
            self._publish(self.errors, error)
            return
        self._publish(self.errors, EventStreamClosed())

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        try:
            self._stream.close()
        except Exception as e:
            logger.debug(f"Error closing docker event stream: {e}")
        if self._reader_thread.is_alive() and self._reader_thread is not threading.current_thread():
            self._reader_thread.join(timeout=2.0)


class DockerRuntimeClient(RuntimeClient):
    """Runtime client backed by the Docker SDK's low-level API."""

    def __init__(self, client: docker.DockerClient):
        self._client = client

    @classmethod
    def from_env(cls, base_url: str = "") -> DockerRuntimeClient:
        """Connect using DOCKER_HOST and friends, or an explicit base URL."""
        if base_url:
            return cls(docker.DockerClient(base_url=base_url))
        return cls(docker.from_env())

    async def subscribe(self, filters: dict[str, list[str]]) -> DockerEventSubscription:
        stream = await asyncio.to_thread(self._client.api.events, decode=True, filters=filters)
        subscription = DockerEventSubscription(stream, asyncio.get_running_loop())
        subscription.start()
        logger.info("Subscribed to docker container events")
        return subscription

    async def list_containers(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._client.api.containers)

    async def inspect_container(self, container_id: str) -> dict[str, Any]:
        return await asyncio.to_thread(self._client.api.inspect_container, container_id)

    def close(self) -> None:
        self._client.close()
