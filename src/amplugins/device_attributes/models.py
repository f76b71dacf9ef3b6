"""Domain models for device-attribute schema reconciliation.

A required schema can be loaded from YAML:

    object_class: deviceAttributeContainer
    attributes:
      - deviceAttributes
    merge_strategy: union        # or "replace" to overwrite the stored values
    populate_empty: false        # true also writes to data stores with no value yet
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from amplugins.device_attributes.config import Settings
    from amplugins.device_attributes.store.base import SubConfig


# Pattern for ${VAR} and ${VAR:-default} interpolation
_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(:-([^}]*))?\}")


def _resolve_env(value: Any) -> Any:
    """Recursively resolve environment variables in a data structure."""
    if isinstance(value, str):

        def repl(m: re.Match[str]) -> str:
            val = os.getenv(m.group(1))
            if val is None or val == "":
                return m.group(3) if m.group(3) is not None else ""
            return val

        return _ENV_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_resolve_env(v) for v in value]
    if isinstance(value, dict):
        return {k: _resolve_env(v) for k, v in value.items()}
    return value


class MergeStrategy(str, Enum):
    """How a missing required value is written back."""

    UNION = "union"  # keep the stored values, add the required ones
    REPLACE = "replace"  # store only the required values


class RequiredSchema(BaseModel):
    """Object class and attributes every LDAPv3 data store must carry."""

    model_config = ConfigDict(frozen=True)

    object_class: str = Field(
        default="deviceAttributeContainer",
        min_length=1,
        description="Object class that must be present on user entries",
    )
    attributes: frozenset[str] = Field(
        default=frozenset({"deviceAttributes"}),
        description="User attributes that must be present in the data store",
    )
    object_class_attribute: str = Field(
        default="sun-idrepo-ldapv3-config-user-objectclass",
        description="Data store setting listing user object classes",
    )
    user_attributes_attribute: str = Field(
        default="sun-idrepo-ldapv3-config-user-attributes",
        description="Data store setting listing user attributes",
    )
    merge_strategy: MergeStrategy = Field(default=MergeStrategy.UNION)
    populate_empty: bool = Field(
        default=False,
        description="Write to settings that currently have no value at all",
    )

    @field_validator("attributes")
    @classmethod
    def attributes_not_empty(cls, v: frozenset[str]) -> frozenset[str]:
        if not v:
            raise ValueError("at least one required attribute must be given")
        return v

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RequiredSchema":
        return cls(
            object_class=settings.required_object_class,
            attributes=frozenset(settings.required_attributes),
            object_class_attribute=settings.object_class_attribute,
            user_attributes_attribute=settings.user_attributes_attribute,
            merge_strategy=MergeStrategy(settings.merge_strategy),
            populate_empty=settings.populate_empty,
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "RequiredSchema":
        """Load a schema from a YAML file with env var interpolation."""
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Schema file not found: {path}")

        raw = yaml.safe_load(p.read_text())
        if not isinstance(raw, dict):
            raise ValueError(f"Schema file must be a YAML mapping: {path}")

        return cls.model_validate(_resolve_env(raw))


class ReconcileOutcome(str, Enum):
    """What reconciling a single data store changed."""

    UNCHANGED = "unchanged"
    OBJECT_CLASS_UPDATED = "objectClassUpdated"
    ATTRIBUTES_UPDATED = "attributesUpdated"
    BOTH_UPDATED = "bothUpdated"

    @classmethod
    def from_flags(cls, object_class: bool, attributes: bool) -> "ReconcileOutcome":
        if object_class and attributes:
            return cls.BOTH_UPDATED
        if object_class:
            return cls.OBJECT_CLASS_UPDATED
        if attributes:
            return cls.ATTRIBUTES_UPDATED
        return cls.UNCHANGED

    @property
    def changed(self) -> bool:
        return self is not ReconcileOutcome.UNCHANGED


@dataclass(frozen=True)
class SubConfigRef:
    """Identifies a data store configuration within a realm."""

    realm: str
    name: str
    type_id: str | None = None

    def __str__(self) -> str:
        return f"{self.realm}:{self.name}"


@dataclass
class SubConfigHandle:
    """A located data store together with its live store handle."""

    ref: SubConfigRef
    sub_config: "SubConfig"


@dataclass
class PassError:
    """An error recorded for one realm or one data store during a pass."""

    realm: str
    error: Exception
    sub_config: str | None = None

    def __str__(self) -> str:
        where = f"{self.realm}:{self.sub_config}" if self.sub_config else self.realm
        return f"{where}: {self.error}"


@dataclass
class PassReport:
    """Result of a reconciliation pass."""

    dry_run: bool = False
    realms_processed: list[str] = field(default_factory=list)
    sub_configs_examined: int = 0
    sub_configs_updated: list[SubConfigRef] = field(default_factory=list)
    outcomes: dict[SubConfigRef, ReconcileOutcome] = field(default_factory=dict)
    errors: list[PassError] = field(default_factory=list)

    # Set when realm enumeration failed and nothing was processed
    enumeration_error: Exception | None = None

    @property
    def fatal(self) -> bool:
        return self.enumeration_error is not None

    @property
    def success(self) -> bool:
        """Check if the pass completed without errors."""
        return not self.fatal and not self.errors

    def record(self, ref: SubConfigRef, outcome: ReconcileOutcome) -> None:
        self.sub_configs_examined += 1
        self.outcomes[ref] = outcome
        if outcome.changed:
            self.sub_configs_updated.append(ref)

    def add_error(self, realm: str, error: Exception, sub_config: str | None = None) -> None:
        self.errors.append(PassError(realm=realm, error=error, sub_config=sub_config))

    def summary(self) -> str:
        """Get a human-readable summary of the pass."""
        if self.fatal:
            return f"Realm enumeration failed, nothing reconciled: {self.enumeration_error}"

        verb = "Would update" if self.dry_run else "Updated"
        lines = [
            f"Realms processed: {len(self.realms_processed)}",
            f"Data stores examined: {self.sub_configs_examined}",
        ]

        if self.sub_configs_updated:
            lines.append(f"{verb} {len(self.sub_configs_updated)} data stores:")
            for ref in self.sub_configs_updated:
                lines.append(f"  ~ {ref} ({self.outcomes[ref].value})")
        else:
            lines.append("No changes needed - all data stores are in sync")

        if self.errors:
            lines.append(f"Errors: {len(self.errors)}")
            for err in self.errors:
                lines.append(f"  ! {err}")

        return "\n".join(lines)
