"""Keeps every realm's LDAP data stores ready for device-attribute storage."""

from amplugins.device_attributes.exceptions import (
    ConfigAccessError,
    ConfigWriteError,
    ReconciliationError,
)
from amplugins.device_attributes.models import (
    MergeStrategy,
    PassReport,
    ReconcileOutcome,
    RequiredSchema,
    SubConfigRef,
)
from amplugins.device_attributes.reconcile import (
    AttributeReconciler,
    ReconciliationDriver,
    run_reconciliation_pass,
)

__all__ = [
    "ConfigAccessError",
    "ConfigWriteError",
    "ReconciliationError",
    "MergeStrategy",
    "PassReport",
    "ReconcileOutcome",
    "RequiredSchema",
    "SubConfigRef",
    "AttributeReconciler",
    "ReconciliationDriver",
    "run_reconciliation_pass",
]
