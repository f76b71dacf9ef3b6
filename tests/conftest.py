"""Pytest configuration and fixtures."""

from fnmatch import fnmatchcase

import pytest

from amplugins.device_attributes.exceptions import ConfigAccessError, ConfigWriteError
from amplugins.device_attributes.models import RequiredSchema

OBJECT_CLASS_ATTR = "sun-idrepo-ldapv3-config-user-objectclass"
USER_ATTRS_ATTR = "sun-idrepo-ldapv3-config-user-attributes"


class FakeSubConfig:
    """In-memory data store recording every write."""

    def __init__(
        self,
        object_classes=(),
        attributes=(),
        type_id="LDAPv3ForOpenDS",
        read_failures=0,
        fail_write=False,
        read_error=None,
    ):
        self.type_id = type_id
        self.attrs = {
            OBJECT_CLASS_ATTR: set(object_classes),
            USER_ATTRS_ATTR: set(attributes),
        }
        self.writes = []
        self.read_failures = read_failures
        self.fail_write = fail_write
        self.read_error = read_error

    async def get_attribute_value(self, attribute):
        if self.read_error:
            raise self.read_error
        if self.read_failures > 0:
            self.read_failures -= 1
            raise ConfigAccessError("store unreachable")
        return set(self.attrs.get(attribute, set()))

    async def add_attribute(self, attribute, values):
        if self.fail_write:
            raise ConfigWriteError(f"write of {attribute} rejected")
        self.writes.append((attribute, set(values)))
        self.attrs[attribute] = set(values)


class FakeServiceConfig:
    def __init__(self, sub_configs):
        self._sub_configs = sub_configs

    async def get_sub_config_names(self, name_pattern, type_pattern):
        return [
            name
            for name, sc in self._sub_configs.items()
            if fnmatchcase(name, name_pattern) and fnmatchcase(sc.type_id, type_pattern)
        ]

    async def get_sub_config(self, name):
        return self._sub_configs[name]


class FakeStore:
    """In-memory configuration store: realm -> {data store name -> FakeSubConfig}."""

    def __init__(self, realms, fail_listing=False, failing_realms=()):
        self.realms = realms
        self.fail_listing = fail_listing
        self.failing_realms = set(failing_realms)
        self.opened = []  # (realm, service_id)

    async def get_sub_organization_names(self, pattern, recursive):
        if self.fail_listing:
            raise ConfigAccessError("admin token rejected")
        return [r for r in self.realms if r != "/"]

    async def get_organization_config(self, realm, service_id):
        self.opened.append((realm, service_id))
        if realm in self.failing_realms:
            raise ConfigAccessError(f"cannot read realm {realm}", realm=realm)
        return FakeServiceConfig(self.realms.get(realm, {}))

    def all_writes(self):
        return [w for subs in self.realms.values() for sc in subs.values() for w in sc.writes]


class FakeAudit:
    def __init__(self):
        self.outcomes = []
        self.errors = []
        self.passes = []

    def log_outcome(self, ref, outcome, dry_run=False):
        self.outcomes.append((ref, outcome))

    def log_error(self, error):
        self.errors.append(error)

    def log_pass(self, report):
        self.passes.append(report)


@pytest.fixture
def schema() -> RequiredSchema:
    """Default schema: union semantics, empty means skip."""
    return RequiredSchema()


@pytest.fixture
def replace_schema() -> RequiredSchema:
    return RequiredSchema(merge_strategy="replace")


@pytest.fixture
def audit() -> FakeAudit:
    return FakeAudit()
