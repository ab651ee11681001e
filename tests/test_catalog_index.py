import pytest

from tests.helpers import INPUT_ID, make_channel
from tvsync.errors import QueryFailure
from tvsync.services.catalog_index import build_channel_index
from tvsync.services.sync_types import TYPE_OTHER


pytestmark = pytest.mark.asyncio


def _fields(network_id: int, input_id: str = INPUT_ID) -> dict:
    fields = make_channel(network_id).to_fields()
    fields.update(input_id=input_id, type=TYPE_OTHER, package_name="tests")
    return fields


async def test_index_maps_network_ids_to_row_ids(store):
    first = await store.insert_channel(_fields(100))
    second = await store.insert_channel(_fields(200))

    assert await build_channel_index(store, INPUT_ID) == {100: first, 200: second}


async def test_index_excludes_other_inputs(store):
    own = await store.insert_channel(_fields(1))
    await store.insert_channel(_fields(2, input_id="other.input"))

    assert await build_channel_index(store, INPUT_ID) == {1: own}


async def test_index_of_empty_partition_is_empty(store):
    assert await build_channel_index(store, INPUT_ID) == {}


async def test_index_propagates_query_failure(broken_store):
    with pytest.raises(QueryFailure):
        await build_channel_index(broken_store, INPUT_ID)
