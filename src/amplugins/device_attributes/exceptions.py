"""Errors raised while reconciling identity-repository configuration."""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base exception for reconciliation failures."""

    def __init__(self, message: str, realm: str | None = None, sub_config: str | None = None):
        super().__init__(message)
        self.realm = realm
        self.sub_config = sub_config


class ConfigAccessError(ReconciliationError):
    """The configuration store could not be read (unreachable, bad credentials, timeout)."""

    pass


class ConfigWriteError(ReconciliationError):
    """The configuration store rejected a write."""

    pass
