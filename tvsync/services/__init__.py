"""
Services package for the channel sync service

This package contains the reconciliation core, catalog access and the sync pipeline.
"""
from tvsync.services.asset_fetcher import LogoFetcher, get_logo_fetcher
from tvsync.services.catalog_index import build_channel_index
from tvsync.services.catalog_store import LogoStore, SqlCatalogStore
from tvsync.services.lookup_service import (
    build_channel_map,
    get_current_program,
    list_channels,
    list_programs,
)
from tvsync.services.reconciler import reconcile, update_channels
from tvsync.services.scheduler_service import sync_scheduler
from tvsync.services.sync_service import apply_channel_list, sync_and_process

__all__ = [
    'LogoFetcher',
    'LogoStore',
    'SqlCatalogStore',
    'apply_channel_list',
    'build_channel_index',
    'build_channel_map',
    'get_current_program',
    'get_logo_fetcher',
    'list_channels',
    'list_programs',
    'reconcile',
    'sync_and_process',
    'sync_scheduler',
    'update_channels',
]
