"""Structured audit logging for reconciliation passes."""

from __future__ import annotations

import logging
from typing import Any

import structlog

from amplugins.device_attributes.models import PassError, PassReport, ReconcileOutcome, SubConfigRef


def configure_audit_logging(
    *,
    log_level: str | int,
    json_format: bool,
    service_name: str,
) -> None:
    # Resolve log level via stdlib logging (NOT structlog)
    if isinstance(log_level, str):
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        level = int(log_level)

    logging.basicConfig(level=level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)


class ReconciliationAuditLogger:
    """Emits one event per data store outcome, per error and per pass."""

    def __init__(self, enabled: bool = True, logger: Any = None):
        self._enabled = enabled
        self._logger = logger or structlog.get_logger("audit")

    def log_outcome(self, ref: SubConfigRef, outcome: ReconcileOutcome, dry_run: bool = False) -> None:
        if not self._enabled:
            return

        payload = {
            "event": "data_store_reconciled",
            "realm": ref.realm,
            "data_store": ref.name,
            "data_store_type": ref.type_id,
            "outcome": outcome.value,
            "dry_run": dry_run,
        }
        if outcome.changed:
            self._logger.info(**payload)
        else:
            self._logger.debug(**payload)

    def log_error(self, error: PassError) -> None:
        if not self._enabled:
            return

        self._logger.warning(
            event="data_store_reconcile_failed",
            realm=error.realm,
            data_store=error.sub_config,
            error_type=type(error.error).__name__,
            error=str(error.error),
        )

    def log_pass(self, report: PassReport) -> None:
        if not self._enabled:
            return

        payload = {
            "event": "reconciliation_pass",
            "realms_processed": len(report.realms_processed),
            "data_stores_examined": report.sub_configs_examined,
            "data_stores_updated": len(report.sub_configs_updated),
            "errors": len(report.errors),
            "dry_run": report.dry_run,
        }
        if report.fatal:
            self._logger.error(enumeration_error=str(report.enumeration_error), **payload)
        elif report.errors:
            self._logger.warning(**payload)
        else:
            self._logger.info(**payload)
