"""Locate the LDAP data store configurations of a realm."""

from __future__ import annotations

import logging

from amplugins.device_attributes.models import SubConfigHandle, SubConfigRef
from amplugins.device_attributes.store.base import ConfigStore

logger = logging.getLogger(__name__)

IDENTITY_REPOSITORY_SERVICE = "sunIdentityRepositoryService"
LDAPV3_TYPE_PATTERN = "LDAPv3*"


async def find_sub_configurations(
    store: ConfigStore,
    realm: str,
    *,
    service_id: str = IDENTITY_REPOSITORY_SERVICE,
    name_pattern: str = "*",
    type_pattern: str = LDAPV3_TYPE_PATTERN,
) -> list[SubConfigHandle]:
    """Find all sub-configurations of ``service_id`` in ``realm`` matching the patterns.

    A realm without matching data stores yields an empty list.

    Raises:
        ConfigAccessError: the realm's configuration could not be read.
    """
    service_config = await store.get_organization_config(realm, service_id)
    names = await service_config.get_sub_config_names(name_pattern, type_pattern)

    handles = []
    for name in names:
        sub_config = await service_config.get_sub_config(name)
        ref = SubConfigRef(realm=realm, name=name, type_id=getattr(sub_config, "type_id", None))
        handles.append(SubConfigHandle(ref=ref, sub_config=sub_config))

    if not handles:
        logger.debug("No %s data stores in realm %s", type_pattern, realm)
    return handles
