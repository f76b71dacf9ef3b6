import pytest

from amplugins.device_attributes.exceptions import ConfigAccessError
from amplugins.device_attributes.reconcile import find_sub_configurations, list_realms

from conftest import FakeStore, FakeSubConfig


class ListingStore(FakeStore):
    def __init__(self, names):
        super().__init__({})
        self._names = names
        self.calls = []

    async def get_sub_organization_names(self, pattern, recursive):
        self.calls.append((pattern, recursive))
        return self._names


@pytest.mark.asyncio
async def test_list_realms_puts_root_first_and_asks_recursively():
    store = ListingStore(["/sales", "/sales/emea", "/marketing"])

    realms = await list_realms(store)

    assert realms == ["/", "/sales", "/sales/emea", "/marketing"]
    assert store.calls == [("*", True)]


@pytest.mark.asyncio
async def test_list_realms_never_duplicates():
    store = ListingStore(["/", "/sales", "/sales"])

    assert await list_realms(store) == ["/", "/sales"]


@pytest.mark.asyncio
async def test_list_realms_propagates_access_errors():
    with pytest.raises(ConfigAccessError):
        await list_realms(FakeStore({}, fail_listing=True))


@pytest.mark.asyncio
async def test_find_sub_configurations_matches_type_prefix():
    store = FakeStore({
        "/sales": {
            "opendj": FakeSubConfig(type_id="LDAPv3ForOpenDS"),
            "ad": FakeSubConfig(type_id="LDAPv3ForAD"),
            "generic": FakeSubConfig(type_id="LDAPv3"),
            "db": FakeSubConfig(type_id="Database"),
        },
    })

    handles = await find_sub_configurations(store, "/sales")

    assert sorted(h.ref.name for h in handles) == ["ad", "generic", "opendj"]
    assert all(h.ref.realm == "/sales" for h in handles)
    assert {h.ref.type_id for h in handles} == {"LDAPv3ForOpenDS", "LDAPv3ForAD", "LDAPv3"}


@pytest.mark.asyncio
async def test_find_sub_configurations_name_pattern():
    store = FakeStore({"/": {"opendj": FakeSubConfig(), "other": FakeSubConfig()}})

    handles = await find_sub_configurations(store, "/", name_pattern="open*")

    assert [h.ref.name for h in handles] == ["opendj"]


@pytest.mark.asyncio
async def test_find_sub_configurations_empty_realm():
    assert await find_sub_configurations(FakeStore({"/": {}}), "/") == []


@pytest.mark.asyncio
async def test_find_sub_configurations_realm_failure():
    store = FakeStore({"/sales": {}}, failing_realms={"/sales"})

    with pytest.raises(ConfigAccessError):
        await find_sub_configurations(store, "/sales")
