"""Configuration store backed by the access-management REST API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from fnmatch import fnmatchcase
from typing import Any, AsyncIterator, Iterable

import httpx

from amplugins.device_attributes.exceptions import (
    ConfigAccessError,
    ConfigWriteError,
    ReconciliationError,
)
from amplugins.device_attributes.store.client import AmAdminClient, AmError
from amplugins.device_attributes.store.settings import AmSettings

logger = logging.getLogger(__name__)

# Service ids as known to the server's service management layer, mapped to
# their realm-config REST endpoint
SERVICE_ENDPOINTS = {
    "sunIdentityRepositoryService": "id-repositories",
}


@asynccontextmanager
async def _store_errors(
    error_cls: type[ReconciliationError],
    message: str,
    realm: str | None = None,
    sub_config: str | None = None,
) -> AsyncIterator[None]:
    """Translate client, transport and decoding failures into reconciliation errors."""
    try:
        yield
    except (AmError, httpx.HTTPError, ValueError) as e:
        raise error_cls(f"{message}: {e}", realm=realm, sub_config=sub_config) from e


def _join_realm(parent: str | None, name: str) -> str:
    if not parent:
        return "/"
    return f"{parent.rstrip('/')}/{name}"


def _as_value_set(value: Any) -> set[str]:
    if value is None:
        return set()
    if isinstance(value, (list, tuple, set)):
        return {str(v) for v in value}
    return {str(value)}


def _attribute_container(record: dict[str, Any], attribute: str) -> dict[str, Any] | None:
    """Find the mapping holding an attribute: the record itself or one of its groups."""
    if attribute in record:
        return record
    for value in record.values():
        if isinstance(value, dict) and attribute in value:
            return value
    return None


class AmSubConfig:
    """A single data store record. Every call goes back to the server."""

    def __init__(self, client: AmAdminClient, realm: str, service: str, type_id: str, name: str):
        self._client = client
        self.realm = realm
        self.service = service
        self.type_id = type_id
        self.name = name

    async def _fetch(self) -> dict[str, Any]:
        async with _store_errors(
            ConfigAccessError, f"Failed to read data store {self.name}", self.realm, self.name
        ):
            return await self._client.get_id_repository(
                self.realm, self.type_id, self.name, service=self.service
            )

    async def get_attribute_value(self, attribute: str) -> set[str]:
        record = await self._fetch()
        container = _attribute_container(record or {}, attribute)
        if container is None:
            return set()
        return _as_value_set(container[attribute])

    async def add_attribute(self, attribute: str, values: Iterable[str]) -> None:
        record = dict(await self._fetch() or {})
        record.pop("_rev", None)

        # Settings the server omitted entirely are written at the top level
        container = _attribute_container(record, attribute) or record
        container[attribute] = sorted(values)

        async with _store_errors(
            ConfigWriteError,
            f"Failed to update {attribute} on data store {self.name}",
            self.realm,
            self.name,
        ):
            await self._client.update_id_repository(
                self.realm, self.type_id, self.name, record, service=self.service
            )


class AmServiceConfig:
    """Organization-level configuration of one service in one realm."""

    def __init__(self, client: AmAdminClient, realm: str, service: str):
        self._client = client
        self.realm = realm
        self.service = service
        self._types: dict[str, str] = {}  # sub-config name -> type id

    async def _refresh(self) -> None:
        async with _store_errors(
            ConfigAccessError, f"Failed to list {self.service} in realm {self.realm}", self.realm
        ):
            entries = await self._client.list_id_repositories(self.realm, service=self.service)

        self._types = {
            e["_id"]: (e.get("_type") or {}).get("_id", "")
            for e in entries
            if e.get("_id")
        }

    async def get_sub_config_names(self, name_pattern: str, type_pattern: str) -> list[str]:
        await self._refresh()
        return [
            name
            for name, type_id in self._types.items()
            if fnmatchcase(name, name_pattern) and fnmatchcase(type_id, type_pattern)
        ]

    async def get_sub_config(self, name: str) -> AmSubConfig:
        if name not in self._types:
            await self._refresh()
        if name not in self._types:
            raise ConfigAccessError(
                f"Data store not found: {name}", realm=self.realm, sub_config=name
            )
        return AmSubConfig(self._client, self.realm, self.service, self._types[name], name)


class AmConfigStore:
    """ConfigStore implementation over an authenticated AmAdminClient."""

    def __init__(self, client: AmAdminClient):
        self._client = client

    async def get_sub_organization_names(self, pattern: str, recursive: bool) -> list[str]:
        async with _store_errors(ConfigAccessError, "Failed to list realms"):
            entries = await self._client.list_realms()

        realms: list[str] = []
        for entry in entries:
            parent = entry.get("parentPath")
            name = entry.get("name", "")
            if not parent:
                continue  # root realm
            if not recursive and parent != "/":
                continue
            if fnmatchcase(name, pattern):
                realms.append(_join_realm(parent, name))

        logger.debug("Found %d sub-realms", len(realms))
        return realms

    async def get_organization_config(self, realm: str, service_id: str) -> AmServiceConfig:
        service = SERVICE_ENDPOINTS.get(service_id, service_id)
        return AmServiceConfig(self._client, realm, service)


@asynccontextmanager
async def open_store(
    settings: AmSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[AmConfigStore]:
    """Open an authenticated admin session and yield a store over it.

    Raises:
        AmAuthError: the administrator could not authenticate.
    """
    async with AmAdminClient(settings or AmSettings(), transport=transport) as client:
        await client.authenticate()
        yield AmConfigStore(client)
