"""
Catalog index

Maps each originating network ID of an input source to its catalog row ID.
"""
import logging

from tvsync.services.catalog_store import CatalogStore


logger = logging.getLogger(__name__)

_INDEX_PROJECTION = ("id", "original_network_id")


async def build_channel_index(store: CatalogStore, input_id: str) -> dict[int, int]:
    """
    Build the originating network ID -> row ID map for one input source.

    Store failures are not caught: an empty index would make the reconciler
    delete every existing channel of the input.

    Args:
        store: Catalog store
        input_id: Input source whose rows are indexed

    Returns:
        Dictionary covering every persisted row of the input source

    Raises:
        QueryFailure: If the store query fails
    """
    rows = await store.query_channels(input_id, columns=_INDEX_PROJECTION)

    index: dict[int, int] = {}
    for row in rows:
        network_id = row["original_network_id"]
        if network_id in index:
            logger.warning(
                "Input %s has several rows for network ID %s (rows %s and %s); keeping the latest",
                input_id,
                network_id,
                index[network_id],
                row["id"],
            )
        index[network_id] = row["id"]

    logger.debug("Indexed %s existing channels for input %s", len(index), input_id)
    return index
