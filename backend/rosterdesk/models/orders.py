from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import PaymentStatus, enum_column_type, enum_value


def format_amount(value) -> str | None:
    return f"{value:.2f}" if value is not None else None


class Order(db.Model):
    """
    Order mirrored from the WooCommerce feed.

    OWNERSHIP:
    - Vendor-owned columns (see VENDOR_COLUMNS) are overwritten on every sync.
    - payment_status and has_installments are operator-owned: the sync only
      supplies them as defaults for a first insert.

    order_id is the upstream id and the upsert key; id is local.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_orders_order_id"),
        db.Index("ix_orders_date_created", "date_created"),
        {"sqlite_autoincrement": True},
    )

    VENDOR_COLUMNS = (
        "order_number",
        "date_created",
        "status",
        "customer_first_name",
        "customer_last_name",
        "customer_email",
        "customer_phone",
        "total",
        "payment_method",
        "payment_method_title",
        "products",
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, nullable=False)
    order_number = db.Column(db.String(32), nullable=False)
    date_created = db.Column(db.DateTime, nullable=True)
    # checkout-draft, pending, processing, completed, on-hold, refunded, failed, cancelled
    status = db.Column(db.String(32), nullable=False, index=True)

    customer_first_name = db.Column(db.String(128), nullable=True)
    customer_last_name = db.Column(db.String(128), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)

    total = db.Column(db.Numeric(10, 2), nullable=True)
    payment_method = db.Column(db.String(64), nullable=True)
    payment_method_title = db.Column(db.String(255), nullable=True)

    # Line items as received: [{"id", "product_id", "name", "quantity", "total"}]
    products = db.Column(db.JSON, nullable=True)

    payment_status = db.Column(
        enum_column_type(PaymentStatus), nullable=False, default=PaymentStatus.PAID
    )
    has_installments = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    installments = db.relationship(
        "Installment",
        backref=db.backref("order", lazy=True),
        lazy=True,
        order_by="Installment.installment_number",
    )

    @property
    def customer_name(self) -> str:
        return f"{self.customer_first_name or ''} {self.customer_last_name or ''}".strip()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "date_created": to_utc_z(self.date_created),
            "status": self.status,
            "customer_first_name": self.customer_first_name,
            "customer_last_name": self.customer_last_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "total": format_amount(self.total),
            "payment_method": self.payment_method,
            "payment_method_title": self.payment_method_title,
            "products": self.products or [],
            "payment_status": enum_value(self.payment_status),
            "has_installments": self.has_installments,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    WooCommerce product, kept only to answer "is this program published?".
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("product_id", name="uq_products_product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    # publish, draft, pending, private
    status = db.Column(db.String(32), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "status": self.status,
            "updated_at": to_utc_z(self.updated_at),
        }
