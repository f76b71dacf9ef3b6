"""Plugin lifecycle hooks.

The hosting server decides when hooks fire: ``on_install`` once on first
start, ``upgrade`` when the installed version is older than
``plugin_version``, and ``on_startup`` on every start after those. Startup and
upgrade run the same idempotent reconciliation pass, so repeating it is
harmless.
"""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from typing import Callable

from amplugins.device_attributes.config import Settings, get_settings
from amplugins.device_attributes.models import PassReport
from amplugins.device_attributes.reconcile import run_reconciliation_pass
from amplugins.device_attributes.store.base import ConfigStore

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], AbstractAsyncContextManager[ConfigStore]]


class DeviceAttributePlugin:
    """Lifecycle adapter that keeps data stores ready for device attributes."""

    def __init__(self, store_factory: StoreFactory, settings: Settings | None = None):
        """
        Args:
            store_factory: Returns an async context manager yielding an
                authenticated ConfigStore for the duration of one pass.
            settings: Reconciliation settings, the module singleton if omitted.
        """
        self._store_factory = store_factory
        self._settings = settings or get_settings()

    @property
    def plugin_version(self) -> str:
        return self._settings.plugin_version

    async def reconcile(self) -> PassReport | None:
        """Run one pass. Returns None if no store session could be opened."""
        try:
            async with self._store_factory() as store:
                report = await run_reconciliation_pass(store, settings=self._settings)
        except Exception:
            logger.exception("Device attribute reconciliation could not run")
            return None

        if not report.success:
            logger.warning("Device attribute reconciliation finished with errors:\n%s", report.summary())
        return report

    async def on_install(self) -> None:
        logger.info("Installed device attribute plugin %s", self.plugin_version)

    async def on_startup(self, startup_type: str | None = None) -> PassReport | None:
        logger.debug("Plugin startup (%s)", startup_type or "normal")
        return await self.reconcile()

    async def upgrade(self, from_version: str) -> PassReport | None:
        logger.info("Upgrading device attribute plugin %s -> %s", from_version, self.plugin_version)
        return await self.reconcile()

    async def on_shutdown(self) -> None:
        pass
