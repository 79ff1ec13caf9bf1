from __future__ import annotations

from ..extensions import db
from vestra.time_utils import to_utc_z, utcnow

PRODUCT_STATUSES = ("active", "inactive", "archived")

# Default reorder threshold for lazily created inventory rows
DEFAULT_MIN_STOCK = 5


class Color(db.Model):
    __tablename__ = "colors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    hex = db.Column(db.String(7), nullable=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "org_id": self.org_id, "name": self.name, "hex": self.hex}


class Size(db.Model):
    __tablename__ = "sizes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(32), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {"id": self.id, "org_id": self.org_id, "name": self.name, "sort_order": self.sort_order}


class Product(db.Model):
    """
    Product master data.

    MULTI-TENANT: Products are scoped to organizations via org_id and are
    stocked per store through InventoryItem rows.

    SHAPE: a product is either simple (no variants; one inventory row per
    store with variant_id NULL) or variant-bearing (inventory rows keyed by
    store x variant). The two shapes are never mixed for one product; see
    inventory_service.get_product_stock().

    Prices are authoritative in cents.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_org_name", "org_id", "name"),
        db.Index("ix_products_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)

    base_price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active")

    # Fiscal fields used by NFC-e emission
    ncm = db.Column(db.String(8), nullable=False, default="00000000")
    origin = db.Column(db.String(1), nullable=False, default="0")
    cfop = db.Column(db.String(4), nullable=True, default="5102")
    cest = db.Column(db.String(7), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("products", lazy=True))
    variants = db.relationship(
        "ProductVariant",
        back_populates="product",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "sku": self.sku,
            "description": self.description,
            "base_price_cents": self.base_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "status": self.status,
            "ncm": self.ncm,
            "origin": self.origin,
            "cfop": self.cfop,
            "cest": self.cest,
            "has_variants": bool(self.variants),
            "created_at": to_utc_z(self.created_at),
        }


class ProductVariant(db.Model):
    """A color x size combination of a product with its own stock."""
    __tablename__ = "product_variants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    color_id = db.Column(db.Integer, db.ForeignKey("colors.id"), nullable=True)
    size_id = db.Column(db.Integer, db.ForeignKey("sizes.id"), nullable=True)

    # Variants share the parent product's SKU; only color and size differ
    sku = db.Column(db.String(64), nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", back_populates="variants")
    color = db.relationship("Color")
    size = db.relationship("Size")

    @property
    def label(self) -> str:
        """'Color / Size', omitting whichever is missing."""
        parts = [p.name for p in (self.color, self.size) if p is not None]
        return " / ".join(parts)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "color_id": self.color_id,
            "size_id": self.size_id,
            "sku": self.sku,
            "label": self.label,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryItem(db.Model):
    """
    Inventory ledger row: the on-hand counter for one store + product
    (+ variant).

    INVARIANTS:
    - At most one row per (store_id, product_id) when variant_id IS NULL
    - At most one row per (store_id, variant_id) otherwise
    - quantity is never negative (CHECK constraint + guarded decrements)

    Rows are created lazily by receipts, returns and transfers, and removed
    only when their store or product is deleted.

    Mutations go through inventory_service; never assign quantity directly
    outside of it.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.Index(
            "uq_inventory_store_product_simple",
            "store_id",
            "product_id",
            unique=True,
            sqlite_where=db.text("variant_id IS NULL"),
            postgresql_where=db.text("variant_id IS NULL"),
        ),
        db.UniqueConstraint("store_id", "variant_id", name="uq_inventory_store_variant"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=DEFAULT_MIN_STOCK)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    store = db.relationship("Store")
    product = db.relationship("Product")
    variant = db.relationship("ProductVariant")

    def __repr__(self) -> str:
        return (
            f"<InventoryItem id={self.id} store_id={self.store_id} product_id={self.product_id} "
            f"variant_id={self.variant_id} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "updated_at": to_utc_z(self.updated_at),
        }
