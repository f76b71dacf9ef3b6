from contextlib import asynccontextmanager

import httpx
import pytest
from typer.testing import CliRunner

from amplugins.device_attributes.cli import commands
from amplugins.device_attributes.exceptions import ConfigAccessError
from amplugins.device_attributes.store import AmAuthError

from conftest import OBJECT_CLASS_ATTR, FakeStore, FakeSubConfig

runner = CliRunner()


@pytest.fixture
def store(monkeypatch):
    store = FakeStore({
        "/": {"opendj": FakeSubConfig(object_classes={"top"}, attributes={"cn"})},
        "/sales": {"ad": FakeSubConfig(
            object_classes={"deviceAttributeContainer"}, attributes={"deviceAttributes"},
        )},
    })

    @asynccontextmanager
    async def fake_open_store(am_settings):
        yield store

    monkeypatch.setattr(commands, "open_store", fake_open_store)
    return store


def test_reconcile_dry_run(store):
    result = runner.invoke(commands.app, ["reconcile", "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "[DRY RUN] No changes applied" in result.output
    assert "Would update 1 data stores" in result.output
    assert store.all_writes() == []


def test_reconcile_applies_changes(store):
    result = runner.invoke(commands.app, ["reconcile", "--merge", "replace"])

    assert result.exit_code == 0, result.output
    assert "Updated 1 data stores" in result.output
    assert (OBJECT_CLASS_ATTR, {"deviceAttributeContainer"}) in store.all_writes()


def test_reconcile_with_schema_file(store, tmp_path):
    path = tmp_path / "schema.yaml"
    path.write_text("object_class: top\nattributes: [cn]\n")

    result = runner.invoke(commands.app, ["reconcile", str(path)])

    assert result.exit_code == 0, result.output
    assert "~ /sales:ad (bothUpdated)" in result.output
    assert store.realms["/"]["opendj"].writes == []


def test_reconcile_exits_nonzero_on_errors(store):
    store.failing_realms.add("/sales")

    result = runner.invoke(commands.app, ["reconcile"])

    assert result.exit_code == 1
    assert "Errors: 1" in result.output


def test_reconcile_auth_failure(monkeypatch):
    @asynccontextmanager
    async def failing_open_store(am_settings):
        raise AmAuthError("Admin authentication failed")
        yield

    monkeypatch.setattr(commands, "open_store", failing_open_store)

    result = runner.invoke(commands.app, ["reconcile"])

    assert result.exit_code == 1
    assert "Authentication failed" in result.output


def test_status_shows_compliance(store):
    result = runner.invoke(commands.app, ["status"])

    assert result.exit_code == 0, result.output
    assert "Realms (2):" in result.output
    assert "opendj (LDAPv3ForOpenDS)" in result.output
    assert "objectclass: missing deviceAttributeContainer" in result.output
    assert "objectclass: ok" in result.output
    assert store.all_writes() == []


@pytest.mark.parametrize("command", ["reconcile", "status"])
def test_unreachable_server_exits_cleanly(monkeypatch, command):
    @asynccontextmanager
    async def unreachable_open_store(am_settings):
        raise httpx.ConnectError("All connection attempts failed")
        yield

    monkeypatch.setattr(commands, "open_store", unreachable_open_store)

    result = runner.invoke(commands.app, [command])

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "All connection attempts failed" in result.output


def test_status_isolates_unreadable_data_store(store):
    store.realms["/"]["broken"] = FakeSubConfig(read_error=ConfigAccessError("read timed out"))

    result = runner.invoke(commands.app, ["status"])

    assert result.exit_code == 0, result.output
    assert "! read timed out" in result.output
    assert "ad (LDAPv3ForOpenDS)" in result.output
