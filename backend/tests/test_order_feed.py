"""
WooCommerce client: pagination, error mapping and connection lifetime.
"""

import httpx
import pytest

from rosterdesk.services import order_feed
from rosterdesk.services.order_feed import FeedError, FeedPage, WooCommerceClient, fetch_all_pages, open_order_feed


def make_client(handler):
    return WooCommerceClient(
        base_url="https://shop.example.com",
        consumer_key="ck_test",
        consumer_secret="cs_test",
        transport=httpx.MockTransport(handler),
    )


class TestPagination:
    def test_walks_every_reported_page(self):
        requested = []

        def handler(request):
            page = int(request.url.params["page"])
            requested.append(page)
            return httpx.Response(200, json=[{"id": page}], headers={"X-WP-TotalPages": "3"})

        client = make_client(handler)
        items = fetch_all_pages(lambda page: client.list_orders(page=page, per_page=1), max_pages=10)

        assert requested == [1, 2, 3]
        assert [item["id"] for item in items] == [1, 2, 3]

    def test_missing_header_means_single_page(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=[{"id": 1}, {"id": 2}])

        client = make_client(handler)
        items = fetch_all_pages(lambda page: client.list_products(page=page), max_pages=10)

        assert len(calls) == 1
        assert len(items) == 2

    def test_request_shape(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[])

        make_client(handler).list_orders(page=2, per_page=50, status="processing,completed")

        assert seen["path"] == "/wp-json/wc/v3/orders"
        assert seen["params"] == {
            "page": "2",
            "per_page": "50",
            "orderby": "date",
            "order": "desc",
            "status": "processing,completed",
        }
        assert seen["auth"].startswith("Basic ")

    def test_endless_feed_is_bounded(self):
        fetched = []

        def fetch_page(page):
            fetched.append(page)
            return FeedPage(items=[{"id": page}], total_pages=10_000)

        with pytest.raises(FeedError) as exc:
            fetch_all_pages(fetch_page, max_pages=5)

        assert fetched == [1, 2, 3, 4, 5]
        assert exc.value.kind == "upstream"


class TestErrors:
    def test_unconfigured_client(self):
        with pytest.raises(FeedError):
            WooCommerceClient(base_url="", consumer_key="ck", consumer_secret="cs")
        with pytest.raises(FeedError):
            WooCommerceClient(base_url="https://shop.example.com", consumer_key="", consumer_secret="")

    def test_rejected_credentials(self):
        client = make_client(lambda request: httpx.Response(401, json={"code": "woocommerce_rest_cannot_view"}))
        with pytest.raises(FeedError) as exc:
            client.list_orders()
        assert exc.value.status_code == 401
        assert exc.value.retryable is False
        assert exc.value.detail == {"code": "woocommerce_rest_cannot_view"}
        assert exc.value.http_status == 502

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_transient_statuses_are_retryable(self, status):
        client = make_client(lambda request: httpx.Response(status, text="busy"))
        with pytest.raises(FeedError) as exc:
            client.list_products()
        assert exc.value.retryable is True
        assert exc.value.status_code == status

    def test_not_found_is_not_retryable(self):
        client = make_client(lambda request: httpx.Response(404, json={"code": "not_found"}))
        with pytest.raises(FeedError) as exc:
            client.get_order(123)
        assert exc.value.retryable is False

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(FeedError) as exc:
            make_client(handler).list_orders()
        assert exc.value.retryable is True

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(FeedError) as exc:
            make_client(handler).list_orders()
        assert exc.value.retryable is True

    def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>maintenance</html>"))
        with pytest.raises(FeedError):
            client.list_orders()

    def test_list_endpoint_returning_object(self):
        client = make_client(lambda request: httpx.Response(200, json={"message": "nope"}))
        with pytest.raises(FeedError):
            client.list_orders()

    def test_error_body_shape(self):
        error = FeedError("WooCommerce rate limit reached", "slow down", retryable=True, status_code=429)
        assert error.to_dict() == {
            "error": "WooCommerce rate limit reached",
            "kind": "upstream",
            "details": "slow down",
            "retryable": True,
        }


class TestLifecycle:
    def test_context_manager_closes_connection_pool(self):
        with make_client(lambda request: httpx.Response(200, json=[])) as client:
            client.list_orders()
            pool = client._client
            assert not pool.is_closed

        assert pool.is_closed
        assert client._client is None

    def test_configured_client_is_closed_after_use(self, app, monkeypatch):
        built = []

        def build(config):
            client = make_client(lambda request: httpx.Response(200, json=[]))
            built.append(client)
            return client

        monkeypatch.setattr(order_feed, "client_from_config", build)

        with app.app_context():
            with open_order_feed() as feed:
                feed.list_orders()
                pool = feed._client

        assert built == [feed]
        assert pool.is_closed

    def test_configured_client_is_closed_when_the_call_fails(self, app, monkeypatch):
        built = []

        def build(config):
            client = make_client(lambda request: httpx.Response(503, text="maintenance"))
            built.append(client)
            return client

        monkeypatch.setattr(order_feed, "client_from_config", build)

        with app.app_context():
            with pytest.raises(FeedError):
                with open_order_feed() as feed:
                    feed.list_orders()

        assert built[0]._client is None

    def test_registered_feed_is_left_open(self, app, feed):
        closed = []
        feed.close = lambda: closed.append(True)

        with app.app_context():
            with open_order_feed() as opened:
                assert opened is feed

        assert closed == []

    def test_sync_status_route_closes_its_client(self, client, db_session, monkeypatch):
        built = []

        def build(config):
            woo = make_client(lambda request: httpx.Response(200, json=[{"id": 900, "number": "900"}]))
            built.append(woo)
            return woo

        monkeypatch.setattr(order_feed, "client_from_config", build)

        resp = client.get("/api/sync/status")

        assert resp.status_code == 200
        assert resp.get_json()["comparison"]["missing_in_database"] == [900]
        assert len(built) == 1
        assert built[0]._client is None
