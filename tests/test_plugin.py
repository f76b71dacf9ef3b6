from contextlib import asynccontextmanager

import pytest

from amplugins.device_attributes.config import Settings
from amplugins.device_attributes.plugin import DeviceAttributePlugin

from conftest import FakeStore, FakeSubConfig


def _factory(store):
    @asynccontextmanager
    async def open_fake_store():
        yield store

    return open_fake_store


@pytest.mark.asyncio
async def test_startup_runs_a_pass():
    sc = FakeSubConfig(object_classes={"top"}, attributes={"cn"})
    plugin = DeviceAttributePlugin(_factory(FakeStore({"/": {"opendj": sc}})), settings=Settings())

    report = await plugin.on_startup("NORMAL")

    assert report is not None and report.success
    assert len(sc.writes) == 2


@pytest.mark.asyncio
async def test_startup_and_upgrade_behave_the_same():
    sc = FakeSubConfig(object_classes={"top"}, attributes={"cn"})
    plugin = DeviceAttributePlugin(_factory(FakeStore({"/": {"opendj": sc}})), settings=Settings())

    await plugin.upgrade("0.9.0")
    report = await plugin.on_startup()

    assert report.sub_configs_updated == []
    assert len(sc.writes) == 2


@pytest.mark.asyncio
async def test_install_does_not_touch_the_store():
    sc = FakeSubConfig(object_classes={"top"})
    plugin = DeviceAttributePlugin(_factory(FakeStore({"/": {"opendj": sc}})), settings=Settings())

    await plugin.on_install()

    assert sc.writes == []
    assert plugin.plugin_version == "1.0.0"


@pytest.mark.asyncio
async def test_store_session_failure_is_logged_not_raised(caplog):
    @asynccontextmanager
    async def broken():
        raise RuntimeError("no admin session")
        yield

    plugin = DeviceAttributePlugin(broken, settings=Settings())

    assert await plugin.on_startup() is None
    assert "could not run" in caplog.text


@pytest.mark.asyncio
async def test_enumeration_failure_returns_fatal_report():
    plugin = DeviceAttributePlugin(_factory(FakeStore({}, fail_listing=True)), settings=Settings())

    report = await plugin.on_startup()

    assert report.fatal
