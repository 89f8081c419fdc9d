"""Container and hostname model.

Containers are built from Docker list/inspect data and never change once
constructed. Hostnames are derived from container labels by a full rebuild
each time the set of containers changes:

- com.chameth.vhost: comma/space separated list, primary hostname first
- com.chameth.proxy: port the container accepts traffic on
- com.chameth.auth:  auth group required to access the hostname
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Protocol

logger = logging.getLogger(__name__)

LABEL_VHOST = "com.chameth.vhost"
LABEL_PROXY = "com.chameth.proxy"
LABEL_AUTH = "com.chameth.auth"

MIN_PORT = 1
MAX_PORT = 65535

_PORT_PATTERN = re.compile(r"[+-]?[0-9]+")


class WarningSink(Protocol):
    """Anything that accepts logging-style warnings (a Logger qualifies)."""

    def warning(self, msg: str, *args: Any) -> None:
        ...


def split_list(value: str | None) -> list[str]:
    """Split a comma and/or space separated list, dropping empty entries."""
    return [part for part in (value or "").replace(" ", ",").split(",") if part]


def _strip_name(raw: str | None) -> str:
    # Docker reports names with a leading "/"
    raw = raw or ""
    return raw[1:] if raw.startswith("/") else raw


@dataclass(frozen=True)
class Container:
    """A docker container that is running on the system."""

    id: str
    name: str
    labels: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels or {})))

    @classmethod
    def from_list_entry(cls, entry: Mapping[str, Any]) -> Container:
        """Build from an entry of the container list endpoint."""
        names = entry.get("Names") or [""]
        return cls(
            id=entry.get("Id", ""),
            name=_strip_name(names[0]),
            labels=entry.get("Labels") or {},
        )

    @classmethod
    def from_inspect(cls, data: Mapping[str, Any]) -> Container:
        """Build from the container inspect endpoint."""
        config = data.get("Config") or {}
        return cls(
            id=data.get("Id", ""),
            name=_strip_name(data.get("Name")),
            labels=config.get("Labels") or {},
        )

    def should_proxy(self, warnings: WarningSink | None = None) -> bool:
        """Whether the container declares a vhost and a usable port."""
        return LABEL_VHOST in self.labels and self.port(warnings) > -1

    def port(self, warnings: WarningSink | None = None) -> int:
        """Return the port the container accepts traffic on, or -1.

        Invalid values are reported to ``warnings`` (the module logger by
        default) and treated the same as a missing label.
        """
        sink = warnings if warnings is not None else logger
        value = self.labels.get(LABEL_PROXY)
        if value is None:
            return -1

        if not _PORT_PATTERN.fullmatch(value):
            sink.warning(
                "Invalid port specification on container %s: %s (not an integer)",
                self.name,
                value,
            )
            return -1

        port = int(value)
        if port < MIN_PORT or port > MAX_PORT:
            sink.warning(
                "Invalid port specification on container %s: %s (out of range)",
                self.name,
                value,
            )
            return -1

        return port


@dataclass
class Hostname:
    """A DNS name used for proxying, retrieving certificates, etc."""

    name: str
    alternatives: set[str] = field(default_factory=set)
    containers: list[Container] = field(default_factory=list)
    requires_auth: bool = False
    auth_group: str = ""

    def update(self, alternates: list[str], container: Container) -> None:
        """Add alternate names and auth details contributed by a container."""
        self.containers.append(container)
        self.alternatives.update(alternates)

        group = container.labels.get(LABEL_AUTH)
        if group is not None:
            self.requires_auth = True
            self.auth_group = group


def aggregate_hostnames(containers: Mapping[str, Container]) -> dict[str, Hostname]:
    """Map primary hostnames to the containers that serve them.

    Always rebuilt from scratch. When containers sharing a hostname declare
    different auth groups, the last one in iteration order wins.
    """
    hostnames: dict[str, Hostname] = {}
    for container in containers.values():
        label = container.labels.get(LABEL_VHOST)
        if label is None:
            continue

        names = split_list(label)
        if not names:
            logger.debug("Ignoring empty vhost label on container %s", container.name)
            continue

        primary = names[0]
        hostname = hostnames.get(primary)
        if hostname is None:
            hostname = Hostname(name=primary)
            hostnames[primary] = hostname

        hostname.update(names[1:], container)
    return hostnames


@dataclass
class TemplateContext:
    """Snapshot of the model handed to downstream consumers."""

    containers: Containers
    hostnames: dict[str, Hostname]


class Containers(dict[str, Container]):
    """Running containers keyed by container id."""

    def hostnames(self) -> dict[str, Hostname]:
        return aggregate_hostnames(self)

    def template_context(self) -> TemplateContext:
        return TemplateContext(containers=Containers(self), hostnames=self.hostnames())
