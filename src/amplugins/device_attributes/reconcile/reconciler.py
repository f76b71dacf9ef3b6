"""Merge the required object class and attributes into a data store.

For each of the two settings (user object classes, user attributes):

1. Read the current value set.
2. Empty current set: leave the setting alone, the data store is taken as not
   configured for device attributes (unless ``populate_empty`` is set).
3. Required values already present: nothing to do.
4. Otherwise write the new value set. With ``MergeStrategy.UNION`` the stored
   values are kept and the required ones added; ``MergeStrategy.REPLACE``
   stores only the required values.

Writes are single attribute upserts and are never retried. Reads may be
retried on ConfigAccessError.
"""

from __future__ import annotations

import logging
from typing import Iterable

from amplugins.device_attributes.models import MergeStrategy, ReconcileOutcome, RequiredSchema
from amplugins.device_attributes.reconcile.retry import with_read_retries
from amplugins.device_attributes.store.base import SubConfig

logger = logging.getLogger(__name__)


def compute_update(
    current: Iterable[str],
    required: Iterable[str],
    *,
    merge_strategy: MergeStrategy = MergeStrategy.UNION,
    populate_empty: bool = False,
) -> frozenset[str] | None:
    """Return the value set to write, or None when no write is needed."""
    current = frozenset(current)
    required = frozenset(required)

    if not current and not populate_empty:
        return None
    if required <= current:
        return None
    if merge_strategy is MergeStrategy.REPLACE:
        return required
    return current | required


class AttributeReconciler:
    """Reconciles one data store at a time against a RequiredSchema."""

    def __init__(
        self,
        schema: RequiredSchema,
        *,
        dry_run: bool = False,
        read_retries: int = 0,
        retry_backoff: float = 0.5,
    ):
        self._schema = schema
        self._dry_run = dry_run
        self._read_retries = read_retries
        self._retry_backoff = retry_backoff

    @property
    def schema(self) -> RequiredSchema:
        return self._schema

    async def _read(self, sub_config: SubConfig, attribute: str) -> set[str]:
        return await with_read_retries(
            f"Read {attribute}",
            lambda: sub_config.get_attribute_value(attribute),
            max_retries=self._read_retries,
            initial_delay=self._retry_backoff,
        )

    async def _ensure(self, sub_config: SubConfig, attribute: str, required: frozenset[str]) -> bool:
        current = await self._read(sub_config, attribute)
        updated = compute_update(
            current,
            required,
            merge_strategy=self._schema.merge_strategy,
            populate_empty=self._schema.populate_empty,
        )
        if updated is None:
            return False

        if self._dry_run:
            logger.info("[DRY RUN] Would set %s to %s", attribute, sorted(updated))
        else:
            await sub_config.add_attribute(attribute, set(updated))
            logger.debug("Set %s to %s", attribute, sorted(updated))
        return True

    async def reconcile(self, sub_config: SubConfig) -> ReconcileOutcome:
        """Bring one data store in line with the schema.

        Raises:
            ConfigAccessError: a read failed after retries.
            ConfigWriteError: the store rejected a write.
        """
        object_class_changed = await self._ensure(
            sub_config,
            self._schema.object_class_attribute,
            frozenset({self._schema.object_class}),
        )
        attributes_changed = await self._ensure(
            sub_config,
            self._schema.user_attributes_attribute,
            self._schema.attributes,
        )
        return ReconcileOutcome.from_flags(object_class_changed, attributes_changed)
