# backend/rosterdesk/services/order_feed.py
"""
WooCommerce REST API (wc/v3) client: the read-only order/product feed.

PAGINATION: list endpoints return one page plus the X-WP-TotalPages header.
fetch_all_pages() walks pages 1..total_pages and fails (rather than loops)
when a feed keeps reporting more pages than FEED_MAX_PAGES.

ERRORS: every transport or HTTP failure is raised as FeedError
(kind="upstream"). Timeouts, 429 and 5xx are flagged retryable; the
operator decides whether to re-run the sync.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

import httpx
from flask import current_app

from ..errors import ServiceError, KIND_UPSTREAM


API_PREFIX = "/wp-json/wc/v3/"
TOTAL_PAGES_HEADER = "X-WP-TotalPages"

# Statuses shown on the orders screen (drafts, pending, failed and cancelled are hidden)
VISIBLE_ORDER_STATUSES = ("processing", "completed", "on-hold", "refunded")


class FeedError(ServiceError):
    """Raised when the WooCommerce feed cannot be read."""
    kind = KIND_UPSTREAM

    def __init__(self, message: str, detail: Any = None, *, retryable: bool = False, status_code: int | None = None):
        super().__init__(message, detail)
        self.retryable = retryable
        self.status_code = status_code

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retryable"] = self.retryable
        return body


@dataclass
class FeedPage:
    items: list[dict]
    total_pages: int = 1


@dataclass
class WooCommerceClient:
    """
    Thin httpx wrapper around the three feed calls the sync needs.

    transport is injectable so tests can answer with httpx.MockTransport.
    """
    base_url: str
    consumer_key: str
    consumer_secret: str
    timeout: float = 30.0
    transport: httpx.BaseTransport | None = None
    _client: httpx.Client | None = field(default=None, init=False, repr=False)

    def __post_init__(self):
        if not self.base_url:
            raise FeedError("WooCommerce URL is not configured (WC_URL)")
        if not self.consumer_key or not self.consumer_secret:
            raise FeedError("WooCommerce credentials are not configured (WC_CONSUMER_KEY / WC_CONSUMER_SECRET)")

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url.rstrip("/") + API_PREFIX,
                auth=(self.consumer_key, self.consumer_secret),
                timeout=self.timeout,
                transport=self.transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "WooCommerceClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _get(self, path: str, params: dict | None = None) -> httpx.Response:
        try:
            response = self.client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise FeedError(f"Timed out calling WooCommerce {path}", str(e), retryable=True)
        except httpx.RequestError as e:
            raise FeedError(f"Could not reach WooCommerce ({path})", str(e), retryable=True)

        if response.status_code in (401, 403):
            raise FeedError(
                "WooCommerce rejected the API credentials",
                _error_detail(response),
                status_code=response.status_code,
            )
        if response.status_code == 429:
            raise FeedError(
                "WooCommerce rate limit reached",
                _error_detail(response),
                retryable=True,
                status_code=429,
            )
        if response.status_code >= 400:
            raise FeedError(
                f"WooCommerce returned HTTP {response.status_code} for {path}",
                _error_detail(response),
                retryable=response.status_code >= 500,
                status_code=response.status_code,
            )
        return response

    def _get_page(self, path: str, params: dict) -> FeedPage:
        response = self._get(path, params)
        items = _json_body(response, path)
        if not isinstance(items, list):
            raise FeedError(f"WooCommerce {path} did not return a list", type(items).__name__)
        return FeedPage(items=items, total_pages=_total_pages(response))

    def list_orders(self, page: int = 1, per_page: int = 100, orderby: str = "date",
                    order: str = "desc", status: str | None = None) -> FeedPage:
        params = {"page": page, "per_page": per_page, "orderby": orderby, "order": order}
        if status:
            params["status"] = status
        return self._get_page("orders", params)

    def list_products(self, page: int = 1, per_page: int = 100, status: str = "any") -> FeedPage:
        # status=any returns publish, draft, pending and private products
        return self._get_page("products", {"page": page, "per_page": per_page, "status": status})

    def get_order(self, order_id: int) -> dict:
        response = self._get(f"orders/{int(order_id)}")
        body = _json_body(response, f"orders/{order_id}")
        if not isinstance(body, dict):
            raise FeedError(f"WooCommerce order {order_id} is not an object", type(body).__name__)
        return body


def _json_body(response: httpx.Response, path: str):
    try:
        return response.json()
    except ValueError as e:
        raise FeedError(f"WooCommerce {path} returned invalid JSON", str(e))


def _error_detail(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return response.text[:500]


def _total_pages(response: httpx.Response) -> int:
    raw = response.headers.get(TOTAL_PAGES_HEADER)
    try:
        return max(int(raw), 1) if raw is not None else 1
    except ValueError:
        return 1


def fetch_all_pages(fetch_page: Callable[[int], FeedPage], *, max_pages: int) -> list[dict]:
    """
    Collect every item of a paginated feed call.

    Fetches page 1, then keeps going while page < total_pages (as reported by
    the latest page). A feed with total_pages=3 is asked exactly 3 times.
    """
    items: list[dict] = []
    page = 1
    while True:
        if page > max_pages:
            raise FeedError(
                f"Feed reported more than {max_pages} pages; aborting sync",
                {"max_pages": max_pages},
            )
        result = fetch_page(page)
        items.extend(result.items)
        if page >= result.total_pages:
            return items
        page += 1


def client_from_config(config) -> WooCommerceClient:
    return WooCommerceClient(
        base_url=config.get("WC_URL", ""),
        consumer_key=config.get("WC_CONSUMER_KEY", ""),
        consumer_secret=config.get("WC_CONSUMER_SECRET", ""),
        timeout=float(config.get("FEED_TIMEOUT_SECONDS", 30)),
    )


@contextmanager
def open_order_feed() -> Iterator[Any]:
    """
    The feed for the current app, for the length of one request or command.

    A feed object registered in app.extensions["order_feed"] wins (tests and
    alternative feeds register one there) and is left open for its owner.
    Otherwise a client is built from config and closed on exit.
    """
    feed = current_app.extensions.get("order_feed")
    if feed is not None:
        yield feed
        return
    with client_from_config(current_app.config) as client:
        yield client
