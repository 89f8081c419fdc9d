"""Dotege - derives proxy hostnames from running docker containers.

Runs the container monitor for the lifetime of the process, keeping a
registry of running containers and rebuilding the hostname model whenever
a container is created or destroyed.
"""
from __future__ import annotations

import asyncio
import logging
import signal

from docker.errors import DockerException

from dotege.config import ConfigError, Settings, settings as default_settings
from dotege.events import DockerRuntimeClient, MonitorError, RuntimeClient, monitor_containers
from dotege.logging_config import setup_logging
from dotege.model import TemplateContext
from dotege.registry import ContainerRegistry
from dotege.version import __version__

logger = logging.getLogger(__name__)


def report_model(context: TemplateContext) -> None:
    """Default model listener: summarise what would be proxied."""
    proxied = [
        hostname.name
        for hostname in context.hostnames.values()
        if any(container.should_proxy() for container in hostname.containers)
    ]
    logger.info(f"Model updated: {len(proxied)} proxied hostnames of {len(context.hostnames)}")


def describe_config(config: Settings) -> None:
    """Log the settings handed to downstream consumers.

    Raises ConfigError if the users list cannot be parsed.
    """
    users = config.user_list
    for template in config.templates:
        logger.info(f"Template {template.source} -> {template.destination}")
    for container_signal in config.signals:
        logger.info(f"Signalling container {container_signal.name} with SIG{container_signal.signal} on changes")
    acme = config.acme
    logger.info(f"ACME {acme.endpoint} via {acme.dns_provider} ({acme.key_type}), cache {acme.cache_location}")
    logger.info(
        f"Loaded {len(users)} users, wildcard domains: {', '.join(config.wildcard_domain_list) or 'none'}"
    )
    if config.debug_headers:
        logger.info("Header debugging enabled for rendered templates")


async def run(client: RuntimeClient, config: Settings, stop: asyncio.Event | None = None) -> ContainerRegistry:
    """Monitor containers until stopped, returning the final registry.

    SIGINT and SIGTERM set the stop event when no event is supplied.
    """
    registry = ContainerRegistry(
        debug_containers=config.debug_containers,
        debug_hostnames=config.debug_hostnames,
    )
    registry.add_listener(report_model)

    if stop is None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

    await monitor_containers(client, stop, registry.add, registry.remove)
    return registry


def main() -> int:
    """Process entry point. Returns the exit status."""
    config = default_settings
    setup_logging(config)
    logger.info(f"Dotege {__version__} starting")

    try:
        config.validate_required()
        describe_config(config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        client = DockerRuntimeClient.from_env(config.docker_host)
    except DockerException as e:
        logger.error(f"Unable to connect to docker: {e}")
        return 1

    try:
        asyncio.run(run(client, config))
    except (MonitorError, DockerException):
        logger.exception("Container monitoring failed")
        return 1
    except Exception:
        logger.exception("Unexpected error while monitoring containers")
        return 1
    finally:
        client.close()

    logger.info("Dotege stopped")
    return 0
