"""
Channel reconciliation

Brings the catalog partition of one input source into agreement with a
desired channel list. Channels are matched on their originating network ID:
matches are updated in place, new channels are inserted and catalog rows
without a desired counterpart are deleted.
"""
import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import replace

from tvsync.services.catalog_index import build_channel_index
from tvsync.services.catalog_store import CatalogStore
from tvsync.services.sync_types import (
    INVALID_CHANNEL_ID,
    TYPE_OTHER,
    Channel,
    Mutation,
    ReconcileResult,
)
from tvsync.utils.logging_helpers import log_reconcile_summary


logger = logging.getLogger(__name__)


def _check_unique_network_ids(channels: Sequence[Channel]) -> None:
    counts = Counter(channel.original_network_id for channel in channels)
    duplicates = sorted(network_id for network_id, count in counts.items() if count > 1)
    if duplicates:
        raise ValueError(f"Duplicate original network IDs in channel list: {duplicates}")


def apply_channel_defaults(
    channel: Channel,
    input_id: str,
    package_name: str,
    index: Mapping[int, int],
) -> Channel:
    """
    Fill required fields the feed left empty.

    The row ID taken from the index is informational only; writes are keyed
    on the originating network ID.
    """
    return replace(
        channel,
        input_id=channel.input_id or input_id,
        package_name=channel.package_name or package_name,
        type=channel.type or TYPE_OTHER,
        id=(
            index.get(channel.original_network_id, INVALID_CHANNEL_ID)
            if channel.id == INVALID_CHANNEL_ID
            else channel.id
        ),
    )


async def reconcile(
    store: CatalogStore,
    input_id: str,
    channels: Sequence[Channel],
    index: Mapping[int, int],
    *,
    package_name: str,
) -> ReconcileResult:
    """
    Apply inserts, updates and deletes so the input's rows match `channels`.

    Args:
        store: Catalog store receiving the mutations
        input_id: Input source owning the catalog partition
        channels: Desired channels, processed in the given order
        index: Originating network ID -> row ID of the current partition
        package_name: Owner written for channels that do not name one

    Returns:
        ReconcileResult with the applied mutations and the logo fetch queue

    Raises:
        ValueError: If two channels share an originating network ID
        QueryFailure: If a store write fails
    """
    _check_unique_network_ids(channels)

    unclaimed = dict(index)
    result = ReconcileResult(input_id=input_id)

    for channel in channels:
        channel = apply_channel_defaults(channel, input_id, package_name, index)
        fields = channel.to_fields()
        # Rows always land in the caller's partition
        fields["input_id"] = input_id

        network_id = channel.original_network_id
        row_id = unclaimed.pop(network_id, None)
        if row_id is None:
            row_id = await store.insert_channel(fields)
            logger.debug("Added channel %s as row %s", channel.display_name, row_id)
            result.mutations.append(Mutation("insert", row_id, network_id))
        else:
            await store.update_channel(row_id, fields)
            logger.debug("Updated channel %s (row %s)", channel.display_name, row_id)
            result.mutations.append(Mutation("update", row_id, network_id))

        result.row_ids[network_id] = row_id
        if channel.logo_url:
            result.logo_queue.append((row_id, channel.logo_url))

    for network_id, row_id in unclaimed.items():
        await store.delete_channel(row_id)
        logger.debug("Deleted channel row %s (network ID %s)", row_id, network_id)
        result.mutations.append(Mutation("delete", row_id, network_id))

    log_reconcile_summary(logger, result)
    return result


async def update_channels(
    store: CatalogStore,
    input_id: str,
    channels: Sequence[Channel],
    *,
    package_name: str,
) -> ReconcileResult:
    """
    Run one full reconciliation pass for an input source.

    Raises:
        QueryFailure: If the catalog index cannot be built; nothing is written
    """
    index = await build_channel_index(store, input_id)
    return await reconcile(store, input_id, channels, index, package_name=package_name)
