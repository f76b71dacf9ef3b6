"""Configuration store access.

Defines the store contract the reconciler needs and its access-management
REST implementation.
"""

from amplugins.device_attributes.store.base import ConfigStore, ServiceConfig, SubConfig
from amplugins.device_attributes.store.client import (
    AmAdminClient,
    AmAuthError,
    AmConflictError,
    AmError,
    AmNotFoundError,
)
from amplugins.device_attributes.store.rest import AmConfigStore, open_store
from amplugins.device_attributes.store.settings import AmSettings

__all__ = [
    "ConfigStore",
    "ServiceConfig",
    "SubConfig",
    "AmAdminClient",
    "AmAuthError",
    "AmConflictError",
    "AmError",
    "AmNotFoundError",
    "AmConfigStore",
    "open_store",
    "AmSettings",
]
