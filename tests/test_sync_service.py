import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from tests.helpers import INPUT_ID, lineup_feed, make_channel
from tvsync.config import settings
from tvsync.database import session_scope
from tvsync.services import asset_fetcher
from tvsync.services.asset_fetcher import LogoFetcher
from tvsync.services.catalog_store import LogoStore, SqlCatalogStore
from tvsync.services.lookup_service import get_current_program, list_channels
from tvsync.services.sync_coordinator import get_sync_coordinator
from tvsync.services.sync_service import ChannelSyncPipeline, apply_channel_list, sync_and_process


pytestmark = pytest.mark.asyncio

FEED_URL = "http://feeds.test/lineup.xml"


class FeedServer:
    """Serves a replaceable lineup feed and a logo for every other path."""

    def __init__(self, feed: bytes):
        self.feed = feed
        self.feed_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/lineup.xml":
            return httpx.Response(self.feed_status, content=self.feed)
        return httpx.Response(200, content=b"logo:" + request.url.path.encode())

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def server() -> FeedServer:
    return FeedServer(lineup_feed([("news", 101, "News"), ("sports", 102, "Sports")], _now() - timedelta(hours=1)))


@pytest.fixture
def fetcher(tmp_path, server) -> LogoFetcher:
    return LogoFetcher(LogoStore(tmp_path / "logos"), transport=server.transport)


async def _catalog():
    async with session_scope() as session:
        return await list_channels(SqlCatalogStore(session))


async def test_pipeline_populates_catalog_guide_and_logos(database, server, fetcher):
    pipeline = ChannelSyncPipeline(INPUT_ID, FEED_URL, package_name="com.example.tuner", logo_fetcher=fetcher, transport=server.transport)

    result = await pipeline.run()
    await fetcher.drain()

    assert result["status"] == "success"
    assert (result["inserted"], result["updated"], result["deleted"]) == (2, 0, 0)
    assert result["programs_stored"] == 2
    assert result["logos_queued"] == 2

    channels = await _catalog()
    assert [(c.original_network_id, c.display_name) for c in channels] == [(101, "News"), (102, "Sports")]
    assert all(c.input_id == INPUT_ID and c.package_name == "com.example.tuner" for c in channels)
    assert all(c.type == "TYPE_OTHER" for c in channels)

    news = channels[0]
    assert fetcher.logo_store.path_for(news.id).read_bytes() == b"logo:/news.png"
    async with session_scope() as session:
        current = await get_current_program(SqlCatalogStore(session), news.id)
    assert current.title == "News Live"


async def test_pipeline_rerun_updates_in_place_and_deletes_dropped_channels(database, server, fetcher):
    pipeline = ChannelSyncPipeline(INPUT_ID, FEED_URL, logo_fetcher=fetcher, transport=server.transport)
    await pipeline.run()
    await fetcher.drain()
    before = {c.original_network_id: c.id for c in await _catalog()}

    server.feed = lineup_feed([("news", 101, "News HD"), ("movies", 103, "Movies")], _now())
    result = await pipeline.run()
    await fetcher.drain()

    assert (result["inserted"], result["updated"], result["deleted"]) == (1, 1, 1)
    after = {c.original_network_id: c for c in await _catalog()}
    assert set(after) == {101, 103}
    assert after[101].id == before[101]
    assert after[101].display_name == "News HD"
    assert not fetcher.logo_store.path_for(before[102]).exists()


async def test_apply_channel_list_queues_logos_after_commit(database, fetcher):
    result = await apply_channel_list(
        INPUT_ID,
        [make_channel(1, logo_url="http://logos.test/one.png"), make_channel(2)],
        package_name="com.example.tuner",
        logo_fetcher=fetcher,
    )
    await fetcher.drain()

    assert result.inserted == 2
    assert [row_id for row_id, _ in result.logo_queue] == [result.row_ids[1]]
    assert fetcher.logo_store.path_for(result.row_ids[1]).exists()
    assert not fetcher.logo_store.path_for(result.row_ids[2]).exists()


async def test_apply_channel_list_rejects_duplicate_network_ids(database, fetcher):
    with pytest.raises(ValueError):
        await apply_channel_list(INPUT_ID, [make_channel(1), make_channel(1, "9")], logo_fetcher=fetcher)

    assert await _catalog() == []


async def test_sync_without_feed_url_reports_error(database, monkeypatch):
    monkeypatch.setattr(settings, "feed_url", None)

    assert await sync_and_process() == {"error": "FEED_URL not configured"}


async def test_sync_reports_download_errors(database, server, fetcher, monkeypatch):
    monkeypatch.setattr(settings, "feed_url", FEED_URL)
    monkeypatch.setattr(asset_fetcher, "_fetcher", fetcher)
    server.feed_status = 404

    result = await sync_and_process(transport=server.transport)

    assert "error" in result
    assert await _catalog() == []


async def test_sync_uses_configured_input(database, server, fetcher, monkeypatch):
    monkeypatch.setattr(settings, "feed_url", FEED_URL)
    monkeypatch.setattr(settings, "input_id", INPUT_ID)
    monkeypatch.setattr(asset_fetcher, "_fetcher", fetcher)

    result = await sync_and_process(transport=server.transport)
    await fetcher.drain()

    assert result["status"] == "success"
    assert result["input_id"] == INPUT_ID
    assert {c.input_id for c in await _catalog()} == {INPUT_ID}


async def test_overlapping_sync_is_skipped(database, server, fetcher, monkeypatch):
    release = asyncio.Event()
    feed = server.feed

    async def slow_feed(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/lineup.xml":
            await release.wait()
            return httpx.Response(200, content=feed)
        return httpx.Response(200, content=b"logo")

    monkeypatch.setattr(settings, "feed_url", FEED_URL)
    monkeypatch.setattr(asset_fetcher, "_fetcher", fetcher)
    transport = httpx.MockTransport(slow_feed)

    first = asyncio.create_task(sync_and_process(transport=transport))
    while not get_sync_coordinator().is_syncing():
        await asyncio.sleep(0)

    skipped = await sync_and_process(transport=transport)
    release.set()
    completed = await first
    await fetcher.drain()

    assert skipped["status"] == "skipped"
    assert completed["status"] == "success"


async def test_logo_is_dropped_when_channel_loses_it(database, fetcher):
    first = await apply_channel_list(
        INPUT_ID,
        [make_channel(1, logo_url="http://logos.test/one.png"), make_channel(2, logo_url="http://logos.test/two.png")],
        logo_fetcher=fetcher,
    )
    await fetcher.drain()
    one, two = first.row_ids[1], first.row_ids[2]
    assert fetcher.logo_store.path_for(one).exists()

    await apply_channel_list(
        INPUT_ID,
        [make_channel(1), make_channel(2, logo_url="http://logos.test/two.png")],
        logo_fetcher=fetcher,
    )
    await fetcher.drain()

    assert not fetcher.logo_store.path_for(one).exists()
    assert fetcher.logo_store.path_for(two).exists()
