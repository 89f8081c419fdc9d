"""Container event monitoring.

Watches a container runtime for containers being created and destroyed,
publishing the containers that already exist before following the live
event stream.

- RuntimeClient: narrow interface over the runtime (Docker in production)
- monitor_containers: snapshot-then-stream monitor with fail-fast errors
"""

from dotege.events.base import (
    ContainerEvent,
    ContainerListError,
    EventStreamClosed,
    EventStreamError,
    EventSubscription,
    MonitorError,
    RuntimeClient,
)
from dotege.events.docker_events import DockerRuntimeClient
from dotege.events.monitor import monitor_containers

__all__ = [
    "ContainerEvent",
    "ContainerListError",
    "DockerRuntimeClient",
    "EventStreamClosed",
    "EventStreamError",
    "EventSubscription",
    "MonitorError",
    "RuntimeClient",
    "monitor_containers",
]
