"""Tests for the process entry point."""

import asyncio
import logging
from unittest.mock import MagicMock, patch

import pytest

from dotege import main as dotege_main
from dotege.config import Settings
from dotege.events import ContainerEvent, ContainerListError
from dotege.tests.test_monitor import FakeRuntimeClient, inspect_data, list_entry


@pytest.mark.asyncio
async def test_run_builds_registry_from_snapshot_and_events():
    client = FakeRuntimeClient(
        containers=[list_entry("a", "A", {"com.chameth.vhost": "a.com", "com.chameth.proxy": "80"})],
        inspected={"b": inspect_data("b", "B", {"com.chameth.vhost": "a.com,b.com"})},
    )
    client.subscription.events.put_nowait(ContainerEvent("create", "b", {"name": "B"}))
    stop = asyncio.Event()

    async def stop_when_drained():
        while not client.subscription.events.empty() or "inspect:b" not in client.calls:
            await asyncio.sleep(0.005)
        stop.set()

    stopper = asyncio.create_task(stop_when_drained())
    registry = await asyncio.wait_for(dotege_main.run(client, Settings(), stop), timeout=5.0)
    await stopper

    assert set(registry.containers) == {"a", "b"}
    hostname = registry.context().hostnames["a.com"]
    assert hostname.alternatives == {"b.com"}


def test_main_returns_2_on_invalid_config():
    config = Settings(dns_provider="", acme_email="")

    with patch.object(dotege_main, "default_settings", config), \
            patch.object(dotege_main, "setup_logging"):
        assert dotege_main.main() == 2


def test_main_returns_1_when_monitor_fails():
    config = Settings(dns_provider="route53", acme_email="admin@example.com")
    client = MagicMock()

    async def failing_run(*args, **kwargs):
        raise ContainerListError("daemon unavailable")

    with patch.object(dotege_main, "default_settings", config), \
            patch.object(dotege_main, "setup_logging"), \
            patch.object(dotege_main.DockerRuntimeClient, "from_env", return_value=client), \
            patch.object(dotege_main, "run", failing_run):
        assert dotege_main.main() == 1

    client.close.assert_called_once_with()


def test_main_returns_0_when_stopped():
    config = Settings(dns_provider="route53", acme_email="admin@example.com")
    client = MagicMock()

    async def stopped_run(*args, **kwargs):
        return None

    with patch.object(dotege_main, "default_settings", config), \
            patch.object(dotege_main, "setup_logging"), \
            patch.object(dotege_main.DockerRuntimeClient, "from_env", return_value=client), \
            patch.object(dotege_main, "run", stopped_run):
        assert dotege_main.main() == 0

    client.close.assert_called_once_with()


def test_main_returns_1_on_unexpected_error():
    config = Settings(dns_provider="route53", acme_email="admin@example.com")
    client = MagicMock()

    async def broken_run(*args, **kwargs):
        raise RuntimeError("boom")

    with patch.object(dotege_main, "default_settings", config), \
            patch.object(dotege_main, "setup_logging"), \
            patch.object(dotege_main.DockerRuntimeClient, "from_env", return_value=client), \
            patch.object(dotege_main, "run", broken_run):
        assert dotege_main.main() == 1

    client.close.assert_called_once_with()


def test_main_returns_2_on_invalid_users():
    config = Settings(dns_provider="route53", acme_email="admin@example.com", users="name: alice")

    with patch.object(dotege_main, "default_settings", config), \
            patch.object(dotege_main, "setup_logging"), \
            patch.object(dotege_main.DockerRuntimeClient, "from_env") as from_env:
        assert dotege_main.main() == 2

    from_env.assert_not_called()


def test_describe_config_logs_consumer_settings(caplog):
    config = Settings(
        dns_provider="route53",
        acme_email="admin@example.com",
        signal_container="haproxy",
        wildcard_domains="example.com",
        users="- name: alice\n  password: secret\n",
        debug="headers",
    )

    with caplog.at_level(logging.INFO, logger="dotege.main"):
        dotege_main.describe_config(config)

    messages = [record.getMessage() for record in caplog.records]
    assert "Template ./templates/haproxy.cfg.tpl -> /data/output/haproxy.cfg" in messages
    assert "Signalling container haproxy with SIGHUP on changes" in messages
    assert any(m.startswith("ACME https://acme-v02.api.letsencrypt.org/directory via route53 (P384)") for m in messages)
    assert "Loaded 1 users, wildcard domains: example.com" in messages
    assert "Header debugging enabled for rendered templates" in messages
