import json

import httpx
import pytest

from stock_sync.core.catalog import WooCatalogStore
from stock_sync.core.sync.errors import CatalogWriteFailure
from stock_sync.core.woo_client import WooClient, WooCommerceError


def _catalog(handler):
    client = WooClient(
        store_url="https://shop.test/",
        consumer_key="ck_test",
        consumer_secret="cs_test",
        rate_limit_rps=0,
        transport=httpx.MockTransport(handler)
    )
    return WooCatalogStore(client)


async def test_resolve_skus_batch_first_match_wins():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["params"] = dict(request.url.params)
        return httpx.Response(200, json=[
            {"id": 5, "sku": "A", "type": "simple", "parent_id": 0},
            {"id": 9, "sku": "B", "type": "variation", "parent_id": 8},
            {"id": 6, "sku": "A", "type": "simple", "parent_id": 0},
            {"id": 7, "sku": "OTHER", "type": "simple", "parent_id": 0},
        ])

    catalog = _catalog(handler)
    resolved = await catalog.resolve_skus_batch(["A", "B"])
    await catalog.close()

    assert captured["path"] == "/wp-json/wc/v3/products"
    assert captured["params"]["sku"] == "A,B"
    assert captured["params"]["status"] == "any"
    assert set(resolved) == {"A", "B"}
    assert resolved["A"].record_id == 5
    assert resolved["A"].kind == "product"
    assert resolved["B"].kind == "variation"
    assert resolved["B"].parent_id == 8


async def test_load_record_missing_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"code": "woocommerce_rest_product_invalid_id"})

    catalog = _catalog(handler)
    record = await catalog.load_record(42)
    await catalog.close()

    assert record is None


async def test_load_variable_product_exposes_children():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": 200, "type": "variable", "variations": [201, 202]})

    catalog = _catalog(handler)
    record = await catalog.load_record(200)
    await catalog.close()

    assert record.has_children()
    assert record.children() == [201, 202]
    assert record.product_type == "variable"


async def test_variation_save_goes_to_variation_endpoint():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "GET":
            return httpx.Response(200, json={"id": 9, "type": "variation", "parent_id": 8})
        return httpx.Response(200, json={"id": 9})

    catalog = _catalog(handler)
    record = await catalog.load_record(9, "variation", 8)
    record.set_manage_stock(True)
    record.set_quantity(3)
    record.set_status("instock")
    record.set_regular_price("12.50")
    await record.save()
    await catalog.close()

    assert requests[0].url.path == "/wp-json/wc/v3/products/8/variations/9"
    put = requests[1]
    assert put.method == "PUT"
    assert put.url.path == "/wp-json/wc/v3/products/8/variations/9"
    assert json.loads(put.content) == {
        "manage_stock": True,
        "stock_quantity": 3,
        "stock_status": "instock",
        "regular_price": "12.50",
    }
    assert record.changes == {}


async def test_rejected_write_raises_catalog_write_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"id": 5, "type": "simple"})
        return httpx.Response(400, json={"message": "Invalid parameter(s): stock_quantity"})

    catalog = _catalog(handler)
    record = await catalog.load_record(5)
    record.set_quantity(1)

    with pytest.raises(CatalogWriteFailure) as exc_info:
        await record.save()
    await catalog.close()

    assert exc_info.value.record_id == 5
    assert "HTTP 400" in str(exc_info.value)


async def test_query_products_by_category_pages_past_per_page_cap():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        params = request.url.params
        calls.append((params["category"], int(params["per_page"]), int(params["offset"])))
        offset = int(params["offset"])
        return httpx.Response(200, json=[{"id": i} for i in range(offset, offset + int(params["per_page"]))])

    catalog = _catalog(handler)
    ids = await catalog.query_products_by_category([12, 14], limit=150, offset=10)
    await catalog.close()

    assert calls == [("12,14", 100, 10), ("12,14", 50, 110)]
    assert ids == list(range(10, 160))


async def test_query_products_without_categories_makes_no_request():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    catalog = _catalog(handler)

    assert await catalog.query_products_by_category([], limit=25) == []
    await catalog.close()


async def test_list_categories():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["hide_empty"] == "false"
        return httpx.Response(200, json=[
            {"id": 12, "name": "Shirts", "parent": 0, "count": 4, "slug": "shirts"},
        ])

    catalog = _catalog(handler)
    categories = await catalog.list_categories()
    await catalog.close()

    assert categories == [{"id": 12, "name": "Shirts", "parent": 0, "count": 4}]


def test_client_requires_credentials():
    with pytest.raises(ValueError):
        WooClient(store_url="https://shop.test")


async def test_error_text_is_sanitized():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="bad request ?consumer_key=ck_abcdef&consumer_secret=cs_123456")

    client = WooClient(
        store_url="https://shop.test",
        consumer_key="ck_test",
        consumer_secret="cs_test",
        rate_limit_rps=0,
        transport=httpx.MockTransport(handler)
    )

    with pytest.raises(WooCommerceError) as exc_info:
        await client.get_product(1)
    await client.close()

    assert exc_info.value.status_code == 401
    assert "cs_123456" not in str(exc_info.value)
