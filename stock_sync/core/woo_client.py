"""
WooCommerce REST API client with retry logic and rate limiting.
"""

import time
import random
import asyncio
from typing import Optional, Dict, List, Any
import httpx
from urllib.parse import urljoin

from stock_sync.core.security import sanitize_string_for_logging


# WooCommerce caps per_page at 100
MAX_PER_PAGE = 100


class WooCommerceError(Exception):
    """Base exception for WooCommerce API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class WooClient:
    """
    Async WooCommerce REST API client.

    Supports:
    - WooCommerce API v3 (consumer_key/consumer_secret)
    - WordPress REST API (wp_username/wp_app_password)
    """

    def __init__(
        self,
        store_url: str,
        consumer_key: Optional[str] = None,
        consumer_secret: Optional[str] = None,
        wp_username: Optional[str] = None,
        wp_app_password: Optional[str] = None,
        rate_limit_rps: float = 5.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize WooCommerce client.

        Args:
            store_url: Store base URL (e.g., https://example.com)
            consumer_key: WooCommerce consumer key
            consumer_secret: WooCommerce consumer secret
            wp_username: WordPress username (fallback)
            wp_app_password: WordPress application password (fallback)
            rate_limit_rps: Rate limit (requests per second)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.store_url = store_url.rstrip('/')
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.wp_username = wp_username
        self.wp_app_password = wp_app_password
        self.rate_limit_rps = rate_limit_rps
        self.timeout = timeout

        # Rate limiting state
        self._last_request_time = 0.0
        self._min_interval = 1.0 / rate_limit_rps if rate_limit_rps > 0 else 0

        # Determine auth method
        if consumer_key and consumer_secret:
            self.auth_method = "woocommerce"
        elif wp_username and wp_app_password:
            self.auth_method = "wordpress"
        else:
            raise ValueError("Must provide either (consumer_key, consumer_secret) or (wp_username, wp_app_password)")

        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport
        )

    def _get_auth(self) -> httpx.Auth:
        """Get authentication for requests."""
        if self.auth_method == "woocommerce":
            return httpx.BasicAuth(self.consumer_key, self.consumer_secret)
        else:
            # WordPress application password
            return httpx.BasicAuth(self.wp_username, self.wp_app_password)

    async def _wait_for_rate_limit(self):
        """Wait if needed to respect rate limit."""
        now = time.time()
        elapsed = now - self._last_request_time
        if elapsed < self._min_interval:
            wait_time = self._min_interval - elapsed
            await asyncio.sleep(wait_time)
        self._last_request_time = time.time()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        json_data: Optional[Dict] = None,
        max_retries: int = 5,
        initial_delay: float = 2.0,
        backoff_factor: float = 2.0
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic.

        Args:
            method: HTTP method
            endpoint: API endpoint (relative to store_url)
            params: Query parameters
            json_data: JSON body
            max_retries: Maximum retry attempts
            initial_delay: Initial retry delay in seconds
            backoff_factor: Backoff multiplier

        Returns:
            httpx.Response

        Raises:
            WooCommerceError: If request fails after retries
        """
        url = urljoin(self.store_url + '/', endpoint.lstrip('/'))
        auth = self._get_auth()

        last_error = None

        for attempt in range(max_retries + 1):
            await self._wait_for_rate_limit()

            try:
                response = await self.client.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json_data,
                    auth=auth
                )

                if response.status_code in (200, 201, 204):
                    return response

                # Non-retryable errors
                if response.status_code in (400, 401, 403, 404, 422):
                    raise WooCommerceError(
                        f"HTTP {response.status_code}: {sanitize_string_for_logging(response.text[:200])}",
                        status_code=response.status_code
                    )

                # Retryable errors (429, 500, 502, 503, 504)
                if response.status_code in (429, 500, 502, 503, 504):
                    last_error = f"HTTP {response.status_code}"
                    if attempt < max_retries:
                        delay = min(
                            initial_delay * (backoff_factor ** attempt),
                            60.0  # Max 60s delay
                        )
                        delay += random.uniform(0, 0.4)  # Jitter
                        await asyncio.sleep(delay)
                        continue
                    else:
                        raise WooCommerceError(
                            f"HTTP {response.status_code} after {max_retries} retries: "
                            f"{sanitize_string_for_logging(response.text[:200])}",
                            status_code=response.status_code
                        )

                response.raise_for_status()
                return response

            except httpx.TimeoutException as e:
                last_error = f"Timeout: {str(e)}"
                if attempt < max_retries:
                    delay = min(
                        initial_delay * (backoff_factor ** attempt),
                        60.0
                    )
                    await asyncio.sleep(delay)
                    continue
                else:
                    raise WooCommerceError(f"Timeout after {max_retries} retries: {e}")

            except httpx.RequestError as e:
                last_error = f"Request error: {str(e)}"
                if attempt < max_retries:
                    delay = min(
                        initial_delay * (backoff_factor ** attempt),
                        60.0
                    )
                    await asyncio.sleep(delay)
                    continue
                else:
                    raise WooCommerceError(f"Request error after {max_retries} retries: {e}")

        raise WooCommerceError(f"Request failed after {max_retries} retries: {last_error}")

    async def get_product(self, product_id: int) -> Dict[str, Any]:
        """
        Get product by ID.

        Args:
            product_id: Product ID

        Returns:
            Product dict
        """
        response = await self._request("GET", f"/wp-json/wc/v3/products/{product_id}")
        return response.json()

    async def get_variation(self, product_id: int, variation_id: int) -> Dict[str, Any]:
        """
        Get a single variation of a variable product.

        Args:
            product_id: Parent product ID
            variation_id: Variation ID

        Returns:
            Variation dict
        """
        response = await self._request(
            "GET", f"/wp-json/wc/v3/products/{product_id}/variations/{variation_id}"
        )
        return response.json()

    async def update_product(self, product_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update product fields.

        Args:
            product_id: Product ID
            data: Update data (partial)

        Returns:
            Updated product dict
        """
        response = await self._request("PUT", f"/wp-json/wc/v3/products/{product_id}", json_data=data)
        return response.json()

    async def update_variation(
        self,
        product_id: int,
        variation_id: int,
        data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Update variation fields.

        Args:
            product_id: Parent product ID
            variation_id: Variation ID
            data: Update data (partial)

        Returns:
            Updated variation dict
        """
        response = await self._request(
            "PUT",
            f"/wp-json/wc/v3/products/{product_id}/variations/{variation_id}",
            json_data=data
        )
        return response.json()

    async def get_products_by_skus(self, skus: List[str]) -> List[Dict[str, Any]]:
        """
        Get products and variations matching any of the given SKUs.

        WooCommerce searches both products and variations when the sku
        filter is set. Results are paged until exhausted.

        Args:
            skus: SKUs to look up (comma-joined into one filter)

        Returns:
            List of product/variation dicts
        """
        if not skus:
            return []

        all_items = []
        page = 1

        while True:
            params = {
                "sku": ",".join(skus),
                "status": "any",
                "per_page": MAX_PER_PAGE,
                "page": page,
                "orderby": "id",
                "order": "asc"
            }
            response = await self._request("GET", "/wp-json/wc/v3/products", params=params)
            items = response.json()

            if not items:
                break

            all_items.extend(items)

            if len(items) < MAX_PER_PAGE:
                break
            page += 1

        return all_items

    async def get_product_ids_by_categories(
        self,
        category_ids: List[int],
        limit: int,
        offset: int = 0
    ) -> List[int]:
        """
        Get a slice of product IDs in any of the categories, by ascending ID.

        Args:
            category_ids: Category IDs
            limit: Maximum number of IDs to return
            offset: Number of matching products to skip

        Returns:
            List of product IDs
        """
        all_ids = []

        while len(all_ids) < limit:
            per_page = min(MAX_PER_PAGE, limit - len(all_ids))
            params = {
                "category": ",".join(str(c) for c in category_ids),
                "status": "any",
                "per_page": per_page,
                "offset": offset + len(all_ids),
                "orderby": "id",
                "order": "asc",
                "_fields": "id"
            }
            response = await self._request("GET", "/wp-json/wc/v3/products", params=params)
            items = response.json()

            if not items:
                break

            all_ids.extend(int(p["id"]) for p in items)

            if len(items) < per_page:
                break

        return all_ids

    async def get_all_categories(self) -> List[Dict]:
        """
        Get all categories with pagination.

        Returns:
            List of category dicts
        """
        all_categories = []
        page = 1
        per_page = MAX_PER_PAGE

        while True:
            params = {
                "per_page": per_page,
                "page": page,
                "orderby": "name",
                "order": "asc",
                "hide_empty": "false"
            }

            response = await self._request("GET", "/wp-json/wc/v3/products/categories", params=params)
            items = response.json()

            if not items:
                break

            all_categories.extend(items)

            if len(items) < per_page:
                break
            page += 1

        return all_categories

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
