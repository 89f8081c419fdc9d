"""Container monitor: initial snapshot followed by live create/destroy events.

The monitor subscribes to the event stream before listing containers, so a
container created while the snapshot is taken may be reported twice (once by
the list, once by its queued create event). Callers are expected to treat
``added_fn`` as idempotent by container ID.

Any failure to list containers, inspect a created container or read the
event stream stops the monitor and is raised to the caller. There is no
reconnection logic here; restarting is the owning process's decision.
"""
from __future__ import annotations

import asyncio
import logging

from dotege.events.base import (
    ACTION_CREATE,
    ACTION_DESTROY,
    CONTAINER_EVENT_FILTERS,
    AddedCallback,
    ContainerEvent,
    ContainerListError,
    EventSubscription,
    RemovedCallback,
    RuntimeClient,
)
from dotege.model import Container

logger = logging.getLogger(__name__)


async def monitor_containers(
    client: RuntimeClient,
    stop: asyncio.Event,
    added_fn: AddedCallback,
    removed_fn: RemovedCallback,
) -> None:
    """Publish existing containers, then follow create/destroy events.

    Callbacks are invoked synchronously from this coroutine, in the order
    events are observed. Returns normally only once ``stop`` is set.

    Args:
        client: Runtime client to list, inspect and stream events from
        stop: Event that ends monitoring cleanly when set
        added_fn: Called with each existing or newly created container
        removed_fn: Called with the name of each destroyed container

    Raises:
        ContainerListError: If the initial container list fails
        Exception: Any inspect or event stream error, unchanged
    """
    subscription = await client.subscribe(CONTAINER_EVENT_FILTERS)
    try:
        await _publish_existing_containers(client, added_fn)
        await _process_events(client, subscription, stop, added_fn, removed_fn)
    finally:
        subscription.close()


async def _publish_existing_containers(client: RuntimeClient, added_fn: AddedCallback) -> None:
    try:
        entries = await client.list_containers()
    except Exception as e:
        raise ContainerListError(str(e)) from e

    logger.info(f"Publishing {len(entries)} existing containers")
    for entry in entries:
        added_fn(Container.from_list_entry(entry))


async def _process_events(
    client: RuntimeClient,
    subscription: EventSubscription,
    stop: asyncio.Event,
    added_fn: AddedCallback,
    removed_fn: RemovedCallback,
) -> None:
    event_task = asyncio.ensure_future(subscription.events.get())
    error_task = asyncio.ensure_future(subscription.errors.get())
    stop_task = asyncio.ensure_future(stop.wait())

    try:
        while True:
            done, _ = await asyncio.wait(
                {event_task, error_task, stop_task},
                return_when=asyncio.FIRST_COMPLETED,
            )

            if error_task in done:
                # Events read before the failure still come first
                if event_task in done:
                    await _handle_event(client, event_task.result(), added_fn, removed_fn)
                await _drain_events(client, subscription, added_fn, removed_fn)
                error = error_task.result()
                logger.error(f"Container event stream failed: {error}")
                raise error

            if stop_task in done:
                logger.info("Container monitor stopping")
                return

            event = event_task.result()
            event_task = asyncio.ensure_future(subscription.events.get())
            await _handle_event(client, event, added_fn, removed_fn)
    finally:
        for task in (event_task, error_task, stop_task):
            task.cancel()


async def _drain_events(
    client: RuntimeClient,
    subscription: EventSubscription,
    added_fn: AddedCallback,
    removed_fn: RemovedCallback,
) -> None:
    while True:
        try:
            event = subscription.events.get_nowait()
        except asyncio.QueueEmpty:
            return
        await _handle_event(client, event, added_fn, removed_fn)


async def _handle_event(
    client: RuntimeClient,
    event: ContainerEvent,
    added_fn: AddedCallback,
    removed_fn: RemovedCallback,
) -> None:
    context = {
        "container_id": event.actor_id,
        "container_name": event.name,
        "action": event.action,
    }
    if event.action == ACTION_CREATE:
        logger.debug("Container created", extra=context)
        data = await client.inspect_container(event.actor_id)
        added_fn(Container.from_inspect(data))
    elif event.action == ACTION_DESTROY:
        logger.debug("Container destroyed", extra=context)
        removed_fn(event.name)
    else:
        logger.debug("Ignoring container event", extra=context)
