import asyncio
import logging

import httpx
import pytest

from tvsync.errors import AssetFetchFailure
from tvsync.services.asset_fetcher import LogoFetcher
from tvsync.services.catalog_store import LogoStore


pytestmark = pytest.mark.asyncio

LOGO_BYTES = b"\x89PNG fake logo"


def _logo_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/missing.png"):
        return httpx.Response(404)
    return httpx.Response(200, content=LOGO_BYTES)


@pytest.fixture
def logo_store(tmp_path) -> LogoStore:
    return LogoStore(tmp_path / "logos")


@pytest.fixture
def fetcher(logo_store) -> LogoFetcher:
    return LogoFetcher(logo_store, concurrency=2, transport=httpx.MockTransport(_logo_handler))


async def test_copy_logo_writes_slot_of_row(fetcher, logo_store):
    written = await fetcher.copy_logo(7, "http://logos.test/news.png")

    assert written == len(LOGO_BYTES)
    assert logo_store.path_for(7).read_bytes() == LOGO_BYTES
    assert not logo_store.path_for(7).with_name("channel_7.logo.part").exists()


async def test_copy_logo_failure_leaves_no_slot(fetcher, logo_store):
    with pytest.raises(AssetFetchFailure) as exc_info:
        await fetcher.copy_logo(3, "http://logos.test/missing.png")

    assert exc_info.value.row_id == 3
    assert exc_info.value.url == "http://logos.test/missing.png"
    assert not logo_store.path_for(3).exists()


async def test_copy_logo_failure_keeps_previous_logo(fetcher, logo_store):
    logo_store.ensure_directory()
    logo_store.path_for(3).write_bytes(b"old")

    with pytest.raises(AssetFetchFailure):
        await fetcher.copy_logo(3, "http://logos.test/missing.png")

    assert logo_store.path_for(3).read_bytes() == b"old"


async def test_dispatch_returns_before_downloads_finish(logo_store):
    release = asyncio.Event()

    async def slow_handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(200, content=LOGO_BYTES)

    fetcher = LogoFetcher(logo_store, transport=httpx.MockTransport(slow_handler))

    scheduled = fetcher.dispatch([(1, "http://logos.test/a.png"), (2, "http://logos.test/b.png")])

    assert scheduled == 2
    assert fetcher.pending == 2
    assert not logo_store.path_for(1).exists()

    release.set()
    await fetcher.drain()

    assert fetcher.pending == 0
    assert logo_store.path_for(1).read_bytes() == LOGO_BYTES
    assert logo_store.path_for(2).read_bytes() == LOGO_BYTES


async def test_failed_download_is_logged_and_dropped(fetcher, logo_store, caplog):
    with caplog.at_level(logging.ERROR):
        fetcher.dispatch([(4, "http://logos.test/missing.png"), (5, "http://logos.test/ok.png")])
        await fetcher.drain()

    assert "missing.png" in caplog.text
    assert not logo_store.path_for(4).exists()
    assert logo_store.path_for(5).exists()


async def test_dispatch_of_empty_queue_schedules_nothing(fetcher):
    assert fetcher.dispatch([]) == 0
    assert fetcher.pending == 0


async def test_concurrency_is_bounded(logo_store):
    active = 0
    peak = 0

    async def counting_handler(request: httpx.Request) -> httpx.Response:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return httpx.Response(200, content=LOGO_BYTES)

    fetcher = LogoFetcher(logo_store, concurrency=2, transport=httpx.MockTransport(counting_handler))
    fetcher.dispatch((row_id, f"http://logos.test/{row_id}.png") for row_id in range(1, 7))
    await fetcher.drain()

    assert peak <= 2
    assert all(logo_store.path_for(row_id).exists() for row_id in range(1, 7))


async def test_remove_logo(logo_store):
    logo_store.ensure_directory()
    logo_store.path_for(9).write_bytes(b"logo")

    assert logo_store.remove(9) is True
    assert logo_store.remove(9) is False
