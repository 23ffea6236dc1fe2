"""
Batch SKU -> catalog record resolution.
"""

import logging
from typing import Dict, List

from stock_sync.core.catalog import CatalogStore, ResolvedSku
from stock_sync.core.utils import chunked

logger = logging.getLogger(__name__)


# Keeps each catalog lookup within safe request/query limits
SKU_LOOKUP_BATCH_SIZE = 500


def unique_skus(skus: List[str]) -> List[str]:
    """Trim, drop blanks and deduplicate, keeping first-seen order."""
    seen = set()
    result = []
    for sku in skus:
        sku = str(sku).strip()
        if sku and sku not in seen:
            seen.add(sku)
            result.append(sku)
    return result


async def resolve_skus(
    catalog: CatalogStore,
    skus: List[str],
    batch_size: int = SKU_LOOKUP_BATCH_SIZE
) -> Dict[str, ResolvedSku]:
    """
    Resolve SKUs to catalog records in bounded batches.

    Args:
        catalog: Catalog store
        skus: SKUs as read from the CSV
        batch_size: Maximum SKUs per catalog lookup

    Returns:
        Mapping of resolved SKUs; unknown SKUs are absent
    """
    skus = unique_skus(skus)
    if not skus:
        return {}

    resolved: Dict[str, ResolvedSku] = {}
    batches = list(chunked(skus, batch_size))

    for batch_num, batch in enumerate(batches, 1):
        found = await catalog.resolve_skus_batch(batch)
        for sku, info in found.items():
            # First result wins across batches too
            if sku not in resolved:
                resolved[sku] = info
        logger.debug(f"SKU batch {batch_num}/{len(batches)}: {len(found)}/{len(batch)} resolved")

    return resolved
