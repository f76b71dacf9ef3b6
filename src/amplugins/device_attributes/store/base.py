"""Configuration-store contract used by the reconciler.

Any backend exposing these operations can host a reconciliation pass: the
access-management REST API (see ``rest.py``) or a test double.
"""

from __future__ import annotations

from typing import Iterable, Protocol


class SubConfig(Protocol):
    """A named configuration record nested under a realm's service config."""

    async def get_attribute_value(self, attribute: str) -> set[str]:
        """Return the current values of an attribute, empty if unset."""
        ...

    async def add_attribute(self, attribute: str, values: Iterable[str]) -> None:
        """Upsert an attribute, replacing its stored value set."""
        ...


class ServiceConfig(Protocol):
    """Organization-level configuration of one service in one realm."""

    async def get_sub_config_names(self, name_pattern: str, type_pattern: str) -> list[str]:
        ...

    async def get_sub_config(self, name: str) -> SubConfig:
        ...


class ConfigStore(Protocol):
    """Entry point into the configuration store."""

    async def get_sub_organization_names(self, pattern: str, recursive: bool) -> list[str]:
        """Return realm paths below the root realm."""
        ...

    async def get_organization_config(self, realm: str, service_id: str) -> ServiceConfig:
        ...
