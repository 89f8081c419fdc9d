"""Runtime client interface consumed by the container monitor.

The monitor only needs three capabilities from a container runtime: a
subscription to container events, a list of running containers and the
ability to inspect a single container. Keeping them behind this interface
lets tests drive the monitor with in-memory fakes.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

from dotege.model import Container

ACTION_CREATE = "create"
ACTION_DESTROY = "destroy"

# Filters passed to the runtime when subscribing
CONTAINER_EVENT_FILTERS: dict[str, list[str]] = {
    "type": ["container"],
    "event": [ACTION_CREATE, ACTION_DESTROY],
}

# Callback types
AddedCallback = Callable[[Container], None]
RemovedCallback = Callable[[str], None]


class MonitorError(Exception):
    """Base class for fatal container monitor errors."""


class ContainerListError(MonitorError):
    """Raised when the initial list of containers cannot be retrieved."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"unable to list containers: {reason}")


class EventStreamError(MonitorError):
    """Raised when reading the runtime's event stream fails."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"unable to read container events: {reason}")


class EventStreamClosed(MonitorError):
    """Raised when the runtime stops delivering events without being asked to."""

    def __init__(self):
        super().__init__("container event stream closed by the runtime")


@dataclass(frozen=True)
class ContainerEvent:
    """A container lifecycle event reported by the runtime.

    Attributes:
        action: The event action, e.g. "create" or "destroy"
        actor_id: The ID of the container the event concerns
        attributes: Actor attributes (container name, labels, image, ...)
    """

    action: str
    actor_id: str
    attributes: dict[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        """Container name as reported in the actor attributes."""
        return self.attributes.get("name", "")

    @classmethod
    def from_docker(cls, event: dict[str, Any]) -> ContainerEvent:
        """Parse a raw (decoded) Docker event."""
        actor = event.get("Actor") or {}
        return cls(
            # Handle compound actions like "exec_start: /bin/sh"
            action=(event.get("Action") or "").split(":")[0],
            actor_id=actor.get("ID") or event.get("id", ""),
            attributes=dict(actor.get("Attributes") or {}),
        )


class EventSubscription(ABC):
    """A live subscription to runtime events.

    Events and stream errors are delivered on two separate queues, in the
    order the runtime produced them. Closing the subscription stops delivery
    and releases the underlying stream.
    """

    def __init__(self):
        self.events: asyncio.Queue[ContainerEvent] = asyncio.Queue()
        self.errors: asyncio.Queue[BaseException] = asyncio.Queue()

    @abstractmethod
    def close(self) -> None:
        """Stop delivering events. Safe to call more than once."""
        pass


class RuntimeClient(ABC):
    """Narrow view of a container runtime client."""

    @abstractmethod
    async def subscribe(self, filters: dict[str, list[str]]) -> EventSubscription:
        """Start streaming events matching ``filters``."""
        pass

    @abstractmethod
    async def list_containers(self) -> list[dict[str, Any]]:
        """List running containers (dicts with Id, Names and Labels)."""
        pass

    @abstractmethod
    async def inspect_container(self, container_id: str) -> dict[str, Any]:
        """Inspect a container (dict with Id, Name and Config.Labels).

        Raises the runtime's not-found error if the container is gone.
        """
        pass
