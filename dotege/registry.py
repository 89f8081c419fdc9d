"""Registry of running containers maintained from monitor callbacks.

The registry owns the Containers mapping. Every effective change rebuilds
the hostname model from scratch and hands the resulting TemplateContext to
each registered listener (template renderer, certificate manager, ...).
Listeners run synchronously, on the monitor's task.
"""
from __future__ import annotations

import logging
from typing import Callable

from dotege.model import Container, Containers, TemplateContext

logger = logging.getLogger(__name__)

ModelListener = Callable[[TemplateContext], None]


def _log_context(container_id: str, name: str) -> dict[str, str]:
    return {"container_id": container_id, "container_name": name}


class ContainerRegistry:
    """Tracks running containers and publishes the derived hostname model.

    Attributes:
        containers: Running containers keyed by ID
        debug_containers: Log every container added or removed
        debug_hostnames: Log the full hostname model after every change
    """

    def __init__(self, debug_containers: bool = False, debug_hostnames: bool = False):
        self.containers = Containers()
        self.debug_containers = debug_containers
        self.debug_hostnames = debug_hostnames
        self._listeners: list[ModelListener] = []

    def add_listener(self, listener: ModelListener) -> None:
        self._listeners.append(listener)

    def add(self, container: Container) -> None:
        """Record a container. Adding an identical container again is a no-op."""
        if self.containers.get(container.id) == container:
            logger.debug(
                f"Container {container.name} already known, ignoring",
                extra=_log_context(container.id, container.name),
            )
            return

        self.containers[container.id] = container
        if self.debug_containers:
            logger.info(
                f"Container added: {container.name} ({container.id})",
                extra={**_log_context(container.id, container.name), "labels": dict(container.labels)},
            )
        self._publish()

    def remove(self, name: str) -> None:
        """Forget the container with the given name."""
        for container_id, container in self.containers.items():
            if container.name == name:
                del self.containers[container_id]
                break
        else:
            logger.debug(f"Removed container {name} was not known, ignoring")
            return

        if self.debug_containers:
            logger.info(f"Container removed: {name} ({container_id})", extra=_log_context(container_id, name))
        self._publish()

    def context(self) -> TemplateContext:
        return self.containers.template_context()

    def _publish(self) -> None:
        context = self.context()
        if self.debug_hostnames:
            log_hostnames(context)
        for listener in self._listeners:
            listener(context)


def log_hostnames(context: TemplateContext) -> None:
    """Log each hostname with its alternates, containers and auth group."""
    logger.info(f"{len(context.hostnames)} hostnames across {len(context.containers)} containers")
    for hostname in context.hostnames.values():
        logger.info(
            f"Hostname {hostname.name}: "
            f"alternatives={sorted(hostname.alternatives)} "
            f"containers={[c.name for c in hostname.containers]} "
            f"auth={hostname.auth_group if hostname.requires_auth else '-'}"
        )
