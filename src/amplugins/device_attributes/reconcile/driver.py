"""Reconciliation pass across all realms.

A pass is stateless and best-effort: realm enumeration failing aborts it,
anything failing inside one realm or one data store is recorded in the
PassReport and the pass moves on.
"""

from __future__ import annotations

import asyncio
import logging

from amplugins.device_attributes.audit import ReconciliationAuditLogger
from amplugins.device_attributes.config import Settings, get_settings
from amplugins.device_attributes.exceptions import ConfigAccessError, ConfigWriteError
from amplugins.device_attributes.models import PassReport, RequiredSchema, SubConfigHandle
from amplugins.device_attributes.reconcile.locator import (
    IDENTITY_REPOSITORY_SERVICE,
    LDAPV3_TYPE_PATTERN,
    find_sub_configurations,
)
from amplugins.device_attributes.reconcile.realms import list_realms
from amplugins.device_attributes.reconcile.reconciler import AttributeReconciler
from amplugins.device_attributes.reconcile.retry import with_read_retries
from amplugins.device_attributes.store.base import ConfigStore

logger = logging.getLogger(__name__)


class ReconciliationDriver:
    """Runs reconciliation passes against a configuration store."""

    def __init__(
        self,
        store: ConfigStore,
        schema: RequiredSchema,
        *,
        service_id: str = IDENTITY_REPOSITORY_SERVICE,
        name_pattern: str = "*",
        type_pattern: str = LDAPV3_TYPE_PATTERN,
        concurrency: int = 1,
        read_retries: int = 0,
        retry_backoff: float = 0.5,
        dry_run: bool = False,
        audit: ReconciliationAuditLogger | None = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self._store = store
        self._service_id = service_id
        self._name_pattern = name_pattern
        self._type_pattern = type_pattern
        self._concurrency = concurrency
        self._read_retries = read_retries
        self._retry_backoff = retry_backoff
        self._dry_run = dry_run
        self._audit = audit or ReconciliationAuditLogger()
        self._reconciler = AttributeReconciler(
            schema,
            dry_run=dry_run,
            read_retries=read_retries,
            retry_backoff=retry_backoff,
        )
        # One lock per (realm, data store): read-then-write never interleaves
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    def _lock_for(self, handle: SubConfigHandle) -> asyncio.Lock:
        key = (handle.ref.realm, handle.ref.name)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def run_pass(self) -> PassReport:
        """Run one reconciliation pass over every realm."""
        report = PassReport(dry_run=self._dry_run)

        try:
            realms = await with_read_retries(
                "Realm enumeration",
                lambda: list_realms(self._store),
                max_retries=self._read_retries,
                initial_delay=self._retry_backoff,
            )
        except ConfigAccessError as e:
            logger.error("Realm enumeration failed, skipping reconciliation: %s", e)
            report.enumeration_error = e
            self._audit.log_pass(report)
            return report
        except Exception as e:
            logger.exception("Unexpected error enumerating realms, skipping reconciliation")
            report.enumeration_error = e
            self._audit.log_pass(report)
            return report

        logger.info("Reconciling %d realms", len(realms))

        if self._concurrency == 1:
            for realm in realms:
                await self._process_realm(realm, report)
        else:
            semaphore = asyncio.Semaphore(self._concurrency)

            async def worker(realm: str) -> None:
                async with semaphore:
                    await self._process_realm(realm, report)

            await asyncio.gather(*(worker(realm) for realm in realms))

        self._audit.log_pass(report)
        logger.info(
            "Reconciliation pass finished: %d data stores examined, %d updated, %d errors",
            report.sub_configs_examined,
            len(report.sub_configs_updated),
            len(report.errors),
        )
        return report

    async def _process_realm(self, realm: str, report: PassReport) -> None:
        try:
            handles = await with_read_retries(
                f"Locate data stores in {realm}",
                lambda: find_sub_configurations(
                    self._store,
                    realm,
                    service_id=self._service_id,
                    name_pattern=self._name_pattern,
                    type_pattern=self._type_pattern,
                ),
                max_retries=self._read_retries,
                initial_delay=self._retry_backoff,
            )
        except ConfigAccessError as e:
            logger.warning("Skipping realm %s: %s", realm, e)
            report.add_error(realm, e)
            self._audit.log_error(report.errors[-1])
            return
        except Exception as e:
            logger.exception("Unexpected error locating data stores in realm %s", realm)
            report.add_error(realm, e)
            self._audit.log_error(report.errors[-1])
            return

        report.realms_processed.append(realm)

        for handle in handles:
            await self._process_sub_config(handle, report)

    async def _process_sub_config(self, handle: SubConfigHandle, report: PassReport) -> None:
        ref = handle.ref
        try:
            async with self._lock_for(handle):
                outcome = await self._reconciler.reconcile(handle.sub_config)
        except (ConfigAccessError, ConfigWriteError) as e:
            logger.warning("Failed to reconcile data store %s: %s", ref, e)
            report.add_error(ref.realm, e, sub_config=ref.name)
            self._audit.log_error(report.errors[-1])
            return
        except Exception as e:
            logger.exception("Unexpected error reconciling data store %s", ref)
            report.add_error(ref.realm, e, sub_config=ref.name)
            self._audit.log_error(report.errors[-1])
            return

        report.record(ref, outcome)
        self._audit.log_outcome(ref, outcome, dry_run=self._dry_run)


async def run_reconciliation_pass(
    store: ConfigStore,
    settings: Settings | None = None,
    schema: RequiredSchema | None = None,
    dry_run: bool = False,
    audit: ReconciliationAuditLogger | None = None,
) -> PassReport:
    """Run one idempotent reconciliation pass configured from settings.

    This is the single entry point lifecycle hooks call, whether on install,
    startup or upgrade.
    """
    settings = settings or get_settings()
    schema = schema or RequiredSchema.from_settings(settings)

    driver = ReconciliationDriver(
        store,
        schema,
        service_id=settings.identity_service,
        name_pattern=settings.sub_config_name_pattern,
        type_pattern=settings.sub_config_type_pattern,
        concurrency=settings.concurrency,
        read_retries=settings.read_retries,
        retry_backoff=settings.retry_backoff_seconds,
        dry_run=dry_run,
        audit=audit,
    )
    return await driver.run_pass()
