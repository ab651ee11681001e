from datetime import datetime, timezone
from typing import Annotated
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse
import logging

from tvsync.database import get_db
from tvsync.schemas import (
    ChannelIn,
    ChannelListRequest,
    ChannelMapEntry,
    ChannelMapResponse,
    ChannelResponse,
    MutationResponse,
    ProgramResponse,
    ReconcileResponse,
)
from tvsync.services import (
    SqlCatalogStore,
    apply_channel_list,
    build_channel_map,
    get_current_program,
    get_logo_fetcher,
    list_channels,
    list_programs,
    sync_and_process,
    sync_scheduler,
)
from tvsync.utils.timezone import DateFormatError, parse_iso8601_to_utc


logger = logging.getLogger(__name__)

main_router = APIRouter()


async def get_store(db: Annotated[AsyncSession, Depends(get_db)]) -> SqlCatalogStore:
    """Catalog store bound to the request session"""
    return SqlCatalogStore(db)


StoreDep = Annotated[SqlCatalogStore, Depends(get_store)]


@main_router.get("/")
async def root() -> dict:
    """Root endpoint with service information"""
    next_run = sync_scheduler.get_next_run_time()

    return {
        "service": "TV Channel Sync",
        "version": "0.1.0",
        "next_scheduled_sync": next_run.isoformat() if next_run else None,
        "endpoints": {
            "sync": "/sync - Manually trigger a feed sync (POST)",
            "channels": "/channels - List catalog channels",
            "programs": "/channels/{id}/programs - Guide for a channel",
            "health": "/health - Health check"
        }
    }


@main_router.get("/health")
async def health_check() -> dict:
    """Health check endpoint"""
    next_run = sync_scheduler.get_next_run_time()
    return {
        "status": "ok",
        "scheduler_running": sync_scheduler.scheduler.running if sync_scheduler.scheduler else False,
        "next_sync": next_run.isoformat() if next_run else None,
        "logo_downloads_pending": get_logo_fetcher().pending,
    }


@main_router.post("/sync")
async def trigger_sync() -> dict:
    """
    Manually trigger a sync of the configured lineup feed

    Downloads the feed, reconciles the catalog and stores the guide
    """
    logger.info("Manual channel sync triggered via API")
    result = await sync_and_process()

    if "error" in result:
        raise HTTPException(status_code=500, detail=result["error"])

    return result


@main_router.put("/inputs/{input_id:path}/channels", response_model=ReconcileResponse)
async def put_channels(input_id: str, request: ChannelListRequest) -> ReconcileResponse:
    """
    Replace the channel lineup of an input source

    Channels are matched on original_network_id; unmatched catalog rows are deleted
    """
    result = await apply_channel_list(input_id, [channel.to_channel() for channel in request.channels])
    return ReconcileResponse(
        **result.to_dict(),
        mutations=[
            MutationResponse(
                kind=mutation.kind,
                row_id=mutation.row_id,
                original_network_id=mutation.original_network_id,
            )
            for mutation in result.mutations
        ],
    )


@main_router.post("/inputs/{input_id:path}/channel-map", response_model=ChannelMapResponse)
async def post_channel_map(input_id: str, request: ChannelListRequest, store: StoreDep) -> ChannelMapResponse:
    """Resolve the input's catalog rows to the posted channels by display number"""
    channel_map = await build_channel_map(store, input_id, [channel.to_channel() for channel in request.channels])
    entries = None
    if channel_map is not None:
        entries = [
            ChannelMapEntry(row_id=row_id, channel=ChannelIn.model_validate(channel, from_attributes=True))
            for row_id, channel in channel_map.items()
        ]
    return ChannelMapResponse(input_id=input_id, entries=entries)


@main_router.get("/channels", response_model=list[ChannelResponse])
async def get_channels(store: StoreDep) -> list[ChannelResponse]:
    """List every catalog channel"""
    return [ChannelResponse.from_channel(channel) for channel in await list_channels(store)]


@main_router.get("/channels/{channel_id}/programs", response_model=list[ProgramResponse])
async def get_programs(channel_id: int, store: StoreDep) -> list[ProgramResponse]:
    """Guide of a channel in chronological order"""
    return [ProgramResponse.from_program(program) for program in await list_programs(store, channel_id)]


@main_router.get("/channels/{channel_id}/programs/current", response_model=ProgramResponse)
async def get_program_now(
    channel_id: int,
    store: StoreDep,
    at: Annotated[str | None, Query(description="ISO8601 instant, defaults to now")] = None,
) -> ProgramResponse:
    """Program airing on a channel at the given instant"""
    now = datetime.now(timezone.utc)
    if at is not None:
        try:
            now = parse_iso8601_to_utc(at)
        except DateFormatError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

    program = await get_current_program(store, channel_id, now)
    if program is None:
        raise HTTPException(status_code=404, detail=f"No program airing on channel {channel_id}")
    return ProgramResponse.from_program(program)


@main_router.get("/channels/{channel_id}/logo")
async def get_logo(channel_id: int) -> FileResponse:
    """Stored logo of a channel"""
    path = get_logo_fetcher().logo_store.path_for(channel_id)
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"No logo stored for channel {channel_id}")
    return FileResponse(path, media_type="application/octet-stream")
