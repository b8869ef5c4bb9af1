# backend/rosterdesk/services/order_sync_service.py
"""
Order Sync Engine: WooCommerce feed -> orders/products tables.

RUN SHAPE:
1. Fetch every order page and every product page (nothing written yet).
2. Upsert all rows in one transaction keyed by order_id / product_id.
3. Commit, or roll back everything and raise OrderSyncError.

OWNERSHIP: the upsert's UPDATE branch only touches Order.VENDOR_COLUMNS.
payment_status and has_installments are sent as insert defaults and are
never reset for an existing order, so an operator's "unpaid" survives
any number of re-syncs.

Re-running after a failure is safe: both upsert keys come from the feed.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from flask import current_app
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ServiceError, KIND_PERSISTENCE
from ..extensions import db
from ..models import Order, Product, PaymentStatus
from ..time_utils import parse_iso_datetime, utcnow, to_utc_z
from .concurrency import commit_or_rollback
from .order_feed import (
    FeedError,
    VISIBLE_ORDER_STATUSES,
    fetch_all_pages,
)


# Rows per INSERT statement (keeps bound parameters under SQLite's limit)
UPSERT_CHUNK_SIZE = 50

# Dialects with INSERT ... ON CONFLICT; anything else takes the ORM path
NATIVE_UPSERT_DIALECTS = ("sqlite", "postgresql")

PRODUCT_VENDOR_COLUMNS = ("name", "status")

NOT_PROVIDED = "(not provided)"


class OrderSyncError(ServiceError):
    """Raised when a sync run fails; nothing from the run is committed."""


@dataclass(frozen=True)
class SyncResult:
    order_count: int
    product_count: int

    @property
    def message(self) -> str:
        return f"Synced {self.order_count} orders and {self.product_count} products"


def _money(value: Any) -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"))
    except InvalidOperation:
        return None


def _line_item(item: dict) -> dict:
    return {
        "id": item.get("id"),
        "product_id": item.get("product_id"),
        "name": item.get("name") or "",
        "quantity": item.get("quantity"),
        "total": item.get("total"),
    }


def _line_items(value):
    # Anything but a list is stored untouched; registration sync skips it with a warning.
    if value is None:
        return []
    if not isinstance(value, list):
        return value
    return [_line_item(item) for item in value if isinstance(item, dict)]


def map_order(raw: dict) -> dict:
    """
    Feed order -> orders row.

    Billing street address stays upstream; only name, e-mail and phone are kept.
    """
    try:
        order_id = int(raw["id"])
    except (KeyError, TypeError, ValueError):
        raise OrderSyncError("Feed order without a usable id", {"order": raw.get("number")}, kind="data_shape")

    billing = raw.get("billing") or {}
    try:
        date_created = parse_iso_datetime(raw.get("date_created"))
    except ValueError:
        date_created = None

    return {
        "order_id": order_id,
        "order_number": str(raw.get("number") or order_id),
        "date_created": date_created,
        "status": raw.get("status") or "pending",
        "customer_first_name": billing.get("first_name") or "",
        "customer_last_name": billing.get("last_name") or "",
        "customer_email": billing.get("email") or "",
        "customer_phone": billing.get("phone") or "",
        "total": _money(raw.get("total")),
        "payment_method": raw.get("payment_method") or "",
        "payment_method_title": raw.get("payment_method_title") or "",
        "products": _line_items(raw.get("line_items")),
        # Insert-only defaults; see module docstring
        "payment_status": PaymentStatus.PAID.value,
        "has_installments": False,
    }


def map_product(raw: dict) -> dict:
    try:
        product_id = int(raw["id"])
    except (KeyError, TypeError, ValueError):
        raise OrderSyncError("Feed product without a usable id", {"name": raw.get("name")}, kind="data_shape")
    return {
        "product_id": product_id,
        "name": raw.get("name") or "",
        "status": raw.get("status") or "draft",
    }


def _dedupe(rows: Iterable[dict], key: str) -> list[dict]:
    # A row may appear twice when the feed shifts between page requests; last one wins.
    by_key: dict = {}
    for row in rows:
        by_key[row[key]] = row
    return list(by_key.values())


def _chunks(rows: list[dict], size: int):
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def upsert_rows(model, rows: list[dict], *, key: str, update_columns: Iterable[str]) -> None:
    """
    INSERT ... ON CONFLICT (key) DO UPDATE SET <update_columns only>.

    SQLite and PostgreSQL get a native upsert. Other dialects fall back to a
    read-then-write through the ORM with the same column restriction.
    """
    if not rows:
        return
    update_columns = tuple(update_columns)
    dialect = db.session.get_bind().dialect.name
    table = model.__table__

    if dialect in NATIVE_UPSERT_DIALECTS:
        insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
        for chunk in _chunks(rows, UPSERT_CHUNK_SIZE):
            stmt = insert(table).values(chunk)
            set_ = {col: stmt.excluded[col] for col in update_columns}
            set_["updated_at"] = db.func.now()
            db.session.execute(stmt.on_conflict_do_update(index_elements=[key], set_=set_))
        return

    column = getattr(model, key)
    existing = {
        getattr(obj, key): obj
        for obj in db.session.query(model).filter(column.in_([r[key] for r in rows])).all()
    }
    for row in rows:
        obj = existing.get(row[key])
        if obj is None:
            db.session.add(model(**row))
        else:
            for col in update_columns:
                setattr(obj, col, row[col])


def _map_records(raws: list, mapper, label: str) -> list[dict]:
    rows = []
    for raw in raws:
        try:
            rows.append(mapper(raw if isinstance(raw, dict) else {}))
        except OrderSyncError as e:
            current_app.logger.warning("Skipping feed %s: %s (%s)", label, e.message, e.detail)
    return rows


def sync_orders(feed) -> SyncResult:
    """
    Pull the complete order and product sets and upsert them.

    Raises:
        OrderSyncError: feed failure (kind="upstream") or write failure
            (kind="persistence"). Nothing is committed in either case.
    """
    page_size = int(current_app.config.get("FEED_PAGE_SIZE", 100))
    max_pages = int(current_app.config.get("FEED_MAX_PAGES", 500))

    try:
        raw_orders = fetch_all_pages(
            lambda page: feed.list_orders(page=page, per_page=page_size, orderby="date", order="desc"),
            max_pages=max_pages,
        )
        raw_products = fetch_all_pages(
            lambda page: feed.list_products(page=page, per_page=page_size, status="any"),
            max_pages=max_pages,
        )
    except FeedError as e:
        current_app.logger.warning("Order sync aborted while reading feed: %s", e.message)
        raise OrderSyncError(f"Failed to fetch from WooCommerce: {e.message}", e.detail, kind=e.kind)

    order_rows = _dedupe(_map_records(raw_orders, map_order, "order"), "order_id")
    product_rows = _dedupe(_map_records(raw_products, map_product, "product"), "product_id")

    try:
        upsert_rows(Order, order_rows, key="order_id", update_columns=Order.VENDOR_COLUMNS)
        upsert_rows(Product, product_rows, key="product_id", update_columns=PRODUCT_VENDOR_COLUMNS)
        commit_or_rollback()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Order sync failed while writing")
        raise OrderSyncError("Failed to save synced orders", str(e.__cause__ or e), kind=KIND_PERSISTENCE)

    result = SyncResult(order_count=len(order_rows), product_count=len(product_rows))
    current_app.logger.info(result.message)
    return result


def compare_recent_orders(feed, limit: int = 5) -> dict:
    """
    Latest visible orders upstream vs. stored: which ids the last sync missed.
    """
    try:
        page = feed.list_orders(
            page=1, per_page=limit, orderby="date", order="desc",
            status=",".join(VISIBLE_ORDER_STATUSES),
        )
    except FeedError as e:
        raise OrderSyncError(f"Failed to fetch from WooCommerce: {e.message}", e.detail, kind=e.kind)

    upstream = page.items[:limit]
    stored = (
        db.session.query(Order)
        .filter(Order.status.in_(VISIBLE_ORDER_STATUSES))
        .order_by(Order.date_created.desc(), Order.order_id.desc())
        .limit(limit)
        .all()
    )

    upstream_ids = [o.get("id") for o in upstream]
    stored_ids = [o.order_id for o in stored]
    missing = [oid for oid in upstream_ids if oid not in stored_ids]

    latest_up = upstream[0] if upstream else {}
    latest_local = stored[0] if stored else None
    return {
        "woocommerce": {
            "count": len(upstream),
            "latest_order_id": latest_up.get("id"),
            "latest_order_number": latest_up.get("number"),
            "latest_order_date": latest_up.get("date_created"),
            "latest_order_status": latest_up.get("status"),
            "order_ids": upstream_ids,
        },
        "database": {
            "count": len(stored),
            "latest_order_id": latest_local.order_id if latest_local else None,
            "latest_order_number": latest_local.order_number if latest_local else None,
            "latest_order_date": to_utc_z(latest_local.date_created) if latest_local else None,
            "order_ids": stored_ids,
        },
        "comparison": {
            "missing_in_database": missing,
            "all_in_sync": not missing,
        },
        "timestamp": to_utc_z(utcnow()),
    }


def _address(block: dict | None) -> dict:
    block = block or {}
    return {
        key: block.get(key) or NOT_PROVIDED
        for key in ("address_1", "address_2", "city", "state", "postcode", "country")
    }


def inspect_order(feed, order_id: int) -> dict:
    """Single-order detail straight from the feed, for ad-hoc inspection."""
    try:
        raw = feed.get_order(order_id)
    except FeedError as e:
        raise OrderSyncError(f"Failed to fetch order {order_id}: {e.message}", e.detail, kind=e.kind)

    billing = raw.get("billing") or {}
    return {
        "order_number": raw.get("number"),
        "date_created": raw.get("date_created"),
        "status": raw.get("status"),
        "customer": {
            "first_name": billing.get("first_name"),
            "last_name": billing.get("last_name"),
            "email": billing.get("email"),
            "phone": billing.get("phone") or NOT_PROVIDED,
        },
        "billing_address": _address(billing),
        "shipping_address": _address(raw.get("shipping")),
        "products": [
            {"name": item.get("name"), "quantity": item.get("quantity"), "total": item.get("total")}
            for item in (raw.get("line_items") or [])
        ],
        "payment": {
            "method": raw.get("payment_method_title"),
            "total": raw.get("total"),
        },
        "full_data": raw,
    }
