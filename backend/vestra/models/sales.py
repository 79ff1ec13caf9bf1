from __future__ import annotations

from ..extensions import db
from vestra.time_utils import to_utc_z, utcnow

PAYMENT_METHODS = ("pix", "credit", "debit", "cash")
SALE_CHANNELS = ("store", "ecommerce")
INVOICE_STATUSES = ("authorized", "rejected", "error", "skipped")


class Sale(db.Model):
    """
    Finalized sale.

    Sales are write-once: items, amounts, seller and store never change after
    the creating transaction commits. The only mutable fields are:
    - invoice_* (written by the fiscal bridge after commit)
    - closure_id (stamped by a cash closure, cleared by reopening it)

    MONEY: total_cents = subtotal_cents + interest_cents + surcharge_cents,
    all integer cents.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_store_created", "store_id", "created_at"),
        db.Index("ix_sales_store_closure", "store_id", "closure_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)

    payment_method = db.Column(db.String(16), nullable=False)
    channel = db.Column(db.String(16), nullable=False, default="store")

    subtotal_cents = db.Column(db.Integer, nullable=False)
    interest_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    interest_cents = db.Column(db.Integer, nullable=False, default=0)
    surcharge_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    # Set once the sale is included in a cash closure
    closure_id = db.Column(db.Integer, db.ForeignKey("cash_closures.id"), nullable=True, index=True)

    # Fiscal fields (nullable: not every organization emits NFC-e)
    invoice_status = db.Column(db.String(16), nullable=True)
    invoice_url = db.Column(db.String(512), nullable=True)
    invoice_xml = db.Column(db.String(512), nullable=True)
    invoice_number = db.Column(db.Integer, nullable=True)
    invoice_series = db.Column(db.Integer, nullable=True)

    store = db.relationship("Store", backref=db.backref("sales", lazy=True))
    seller = db.relationship("User")
    client = db.relationship("Client")
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        lazy=True,
        order_by="SaleItem.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} store_id={self.store_id} total_cents={self.total_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "store_id": self.store_id,
            "seller_id": self.seller_id,
            "client_id": self.client_id,
            "payment_method": self.payment_method,
            "channel": self.channel,
            "subtotal_cents": self.subtotal_cents,
            "interest_rate_bps": self.interest_rate_bps,
            "interest_cents": self.interest_cents,
            "surcharge_cents": self.surcharge_cents,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
            "closure_id": self.closure_id,
            "invoice_status": self.invoice_status,
            "invoice_url": self.invoice_url,
            "invoice_number": self.invoice_number,
            "invoice_series": self.invoice_series,
        }


class SaleItem(db.Model):
    """Line item of a sale, created with it and never modified."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "position", name="uq_sale_items_sale_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)

    # 1-based cart order
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")
    variant = db.relationship("ProductVariant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "position": self.position,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
