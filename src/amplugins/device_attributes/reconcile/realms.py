"""Realm enumeration."""

from __future__ import annotations

import logging

from amplugins.device_attributes.store.base import ConfigStore

logger = logging.getLogger(__name__)

ROOT_REALM = "/"


async def list_realms(store: ConfigStore) -> list[str]:
    """List every realm in the deployment, root realm first.

    Raises:
        ConfigAccessError: the store could not be read. Not retried here.
    """
    realms = [ROOT_REALM]
    for realm in await store.get_sub_organization_names("*", recursive=True):
        if realm not in realms:
            realms.append(realm)

    logger.debug("Enumerated %d realms", len(realms))
    return realms
