import fakeredis
import fakeredis.aioredis
import pytest

from stock_sync.core.catalog import CatalogRecord, CatalogStore, ResolvedSku
from stock_sync.core.sync.errors import CatalogWriteFailure
from stock_sync.core.sync.job_store import JobStore, OwnerIndex, PriceAdjustSettingsStore


STORE_ID = "main-store"


class InMemoryCatalog(CatalogStore):
    """Catalog double holding products and variations in dicts."""

    def __init__(self):
        self.records = {}
        self.categories = []
        self.writes = []
        self.fail_ids = {}
        self.batch_calls = []
        self.category_queries = []

    def add_product(self, record_id, sku="", categories=None, product_type="simple", children=None):
        self.records[record_id] = {
            "sku": sku,
            "kind": "product",
            "parent_id": 0,
            "type": product_type,
            "children": list(children or []),
            "categories": list(categories or []),
        }

    def add_variation(self, record_id, parent_id, sku=""):
        self.records[record_id] = {
            "sku": sku,
            "kind": "variation",
            "parent_id": parent_id,
            "type": "variation",
            "children": [],
            "categories": [],
        }
        parent = self.records.get(parent_id)
        if parent is not None and record_id not in parent["children"]:
            parent["children"].append(record_id)

    async def resolve_skus_batch(self, skus):
        self.batch_calls.append(list(skus))
        wanted = set(skus)
        resolved = {}
        for record_id in sorted(self.records):
            data = self.records[record_id]
            sku = data["sku"]
            if sku in wanted and sku not in resolved:
                resolved[sku] = ResolvedSku(record_id, data["kind"], data["parent_id"])
        return resolved

    async def load_record(self, record_id, kind="product", parent_id=0):
        data = self.records.get(record_id)
        if data is None:
            return None
        return CatalogRecord(
            store=self,
            record_id=record_id,
            kind=data["kind"],
            parent_id=data["parent_id"],
            product_type=data["type"],
            children=data["children"],
        )

    async def save_record(self, record):
        if record.record_id in self.fail_ids:
            raise CatalogWriteFailure(record.record_id, self.fail_ids[record.record_id])
        self.writes.append((record.record_id, dict(record.changes)))

    async def query_products_by_category(self, category_ids, limit, offset=0):
        self.category_queries.append((list(category_ids), limit, offset))
        wanted = set(category_ids)
        ids = [
            record_id for record_id in sorted(self.records)
            if self.records[record_id]["kind"] == "product"
            and wanted.intersection(self.records[record_id]["categories"])
        ]
        return ids[offset:offset + limit]

    async def list_categories(self):
        return list(self.categories)

    def written(self, record_id):
        return [changes for rid, changes in self.writes if rid == record_id]


@pytest.fixture
def redis_client():
    return fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def job_store(redis_client):
    return JobStore(redis_client)


@pytest.fixture
def owner_index(redis_client):
    return OwnerIndex(redis_client)


@pytest.fixture
def settings_store(redis_client):
    return PriceAdjustSettingsStore(redis_client, STORE_ID)


@pytest.fixture
def catalog():
    cat = InMemoryCatalog()
    cat.add_product(101, sku="ABC-123")
    cat.add_product(200, sku="VAR-RED", categories=[12], product_type="variable")
    cat.add_variation(201, 200, sku="VAR-RED-S")
    cat.add_variation(202, 200, sku="VAR-RED-M")
    cat.add_product(300, sku="Z-1", categories=[12])
    cat.add_product(301, sku="Z-2", categories=[14])
    cat.categories = [
        {"id": 12, "name": "Shirts", "parent": 0, "count": 2},
        {"id": 14, "name": "Hats", "parent": 0, "count": 1},
    ]
    return cat
