"""Device-attribute schema reconciliation."""

from .driver import ReconciliationDriver, run_reconciliation_pass
from .locator import find_sub_configurations
from .realms import ROOT_REALM, list_realms
from .reconciler import AttributeReconciler, compute_update

__all__ = [
    "ROOT_REALM",
    "list_realms",
    "find_sub_configurations",
    "AttributeReconciler",
    "compute_update",
    "ReconciliationDriver",
    "run_reconciliation_pass",
]
