"""
Catalog store: SKU resolution and stock/price writes against WooCommerce.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from stock_sync.core.sync.errors import CatalogWriteFailure
from stock_sync.core.woo_client import WooClient, WooCommerceError

logger = logging.getLogger(__name__)


RecordKind = Literal["product", "variation"]
StockStatus = Literal["instock", "outofstock"]


@dataclass(frozen=True)
class ResolvedSku:
    """Catalog identity of a SKU."""
    record_id: int
    kind: RecordKind
    parent_id: int = 0


class CatalogRecord:
    """
    A loaded product or variation with pending stock/price changes.

    Setters only stage changes; nothing reaches the store until save().
    """

    def __init__(
        self,
        store: "CatalogStore",
        record_id: int,
        kind: RecordKind,
        parent_id: int = 0,
        product_type: str = "simple",
        children: Optional[List[int]] = None
    ):
        self.store = store
        self.record_id = record_id
        self.kind = kind
        self.parent_id = parent_id
        self.product_type = product_type
        self._children = list(children or [])
        self.changes: Dict[str, Any] = {}

    def children(self) -> List[int]:
        """Variation IDs of a variable product; empty for anything else."""
        return list(self._children)

    def has_children(self) -> bool:
        return bool(self._children)

    def set_manage_stock(self, manage: bool) -> None:
        self.changes["manage_stock"] = bool(manage)

    def set_quantity(self, quantity: int) -> None:
        self.changes["stock_quantity"] = int(quantity)

    def set_status(self, status: StockStatus) -> None:
        self.changes["stock_status"] = status

    def set_regular_price(self, price: str) -> None:
        self.changes["regular_price"] = str(price)

    async def save(self) -> None:
        """Write staged changes to the catalog store."""
        if not self.changes:
            return
        await self.store.save_record(self)
        self.changes = {}


class CatalogStore:
    """Catalog collaborator used by the stock sync core."""

    async def resolve_skus_batch(self, skus: List[str]) -> Dict[str, ResolvedSku]:
        """Resolve one batch of SKUs. Unknown SKUs are left out."""
        raise NotImplementedError

    async def load_record(
        self,
        record_id: int,
        kind: RecordKind = "product",
        parent_id: int = 0
    ) -> Optional[CatalogRecord]:
        """Load a record, or None if it does not exist."""
        raise NotImplementedError

    async def save_record(self, record: CatalogRecord) -> None:
        """Persist staged changes of a record."""
        raise NotImplementedError

    async def query_products_by_category(
        self,
        category_ids: List[int],
        limit: int,
        offset: int = 0
    ) -> List[int]:
        """Product IDs in any of the categories, ascending by ID, offset paged."""
        raise NotImplementedError

    async def list_categories(self) -> List[Dict[str, Any]]:
        """All product categories as {id, name, parent, count} dicts."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release underlying connections."""
        return None


class WooCatalogStore(CatalogStore):
    """CatalogStore backed by the WooCommerce REST API."""

    def __init__(self, client: WooClient):
        """
        Initialize catalog store.

        Args:
            client: WooClient for the store
        """
        self.client = client

    async def resolve_skus_batch(self, skus: List[str]) -> Dict[str, ResolvedSku]:
        items = await self.client.get_products_by_skus(skus)
        wanted = set(skus)
        resolved: Dict[str, ResolvedSku] = {}

        for item in items:
            sku = str(item.get("sku") or "")
            # First match wins for SKUs shared by several records
            if sku not in wanted or sku in resolved:
                continue
            resolved[sku] = ResolvedSku(
                record_id=int(item["id"]),
                kind="variation" if item.get("type") == "variation" else "product",
                parent_id=int(item.get("parent_id") or 0)
            )

        return resolved

    async def load_record(
        self,
        record_id: int,
        kind: RecordKind = "product",
        parent_id: int = 0
    ) -> Optional[CatalogRecord]:
        try:
            if kind == "variation" and parent_id:
                data = await self.client.get_variation(parent_id, record_id)
            else:
                data = await self.client.get_product(record_id)
        except WooCommerceError as e:
            if e.status_code == 404:
                return None
            raise

        product_type = data.get("type") or ("variation" if kind == "variation" else "simple")
        children = data.get("variations") if product_type == "variable" else []

        return CatalogRecord(
            store=self,
            record_id=int(data.get("id", record_id)),
            kind=kind,
            parent_id=int(data.get("parent_id") or parent_id or 0),
            product_type=product_type,
            children=[int(c) for c in children or []]
        )

    async def save_record(self, record: CatalogRecord) -> None:
        try:
            if record.kind == "variation" and record.parent_id:
                await self.client.update_variation(record.parent_id, record.record_id, record.changes)
            else:
                await self.client.update_product(record.record_id, record.changes)
        except WooCommerceError as e:
            logger.warning(f"Catalog write failed for record {record.record_id}: {str(e)}")
            raise CatalogWriteFailure(record.record_id, str(e)) from e

    async def query_products_by_category(
        self,
        category_ids: List[int],
        limit: int,
        offset: int = 0
    ) -> List[int]:
        if not category_ids:
            return []
        return await self.client.get_product_ids_by_categories(category_ids, limit, offset)

    async def list_categories(self) -> List[Dict[str, Any]]:
        categories = await self.client.get_all_categories()
        return [
            {
                "id": int(cat.get("id")),
                "name": cat.get("name", ""),
                "parent": int(cat.get("parent") or 0),
                "count": int(cat.get("count") or 0)
            }
            for cat in categories
        ]

    async def close(self) -> None:
        await self.client.close()
