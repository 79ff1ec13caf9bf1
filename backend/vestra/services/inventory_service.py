# Overview: Inventory ledger accessor; the only code that mutates InventoryItem.quantity.

"""
Vestra Inventory Invariants (authoritative)

Ledger model:
- Stock is a mutable counter per (store, product, variant-or-NULL): InventoryItem.
- variant_id=None addresses the simple-product row and never matches a variant row.
- Rows are created lazily by upsert_add() and never deleted here.

Business invariants:
- quantity is never negative. decrement() checks the locked row and then
  applies a guarded UPDATE ... WHERE quantity >= delta, so a stale read can
  never overdraw a row even without row locks.
- Credits (receipts, returns, transfer-in) are strictly positive.
- A product is either simple or variant-bearing; resolve_stock_key()
  refuses to address a variant-bearing product without a variant and a
  simple product with one.

Transactions:
- Nothing in this module commits. Callers open the write transaction
  (concurrency.begin_write) and commit or roll back as a whole.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import update

from ..extensions import db
from ..models import InventoryItem, Product, ProductVariant
from ..models.inventory import DEFAULT_MIN_STOCK
from ..validation import ValidationError, NotFoundError, ConflictError, InsufficientStockError
from vestra.time_utils import utcnow
from .concurrency import lock_for_update
from .tenant_service import require_product_in_org, require_variant_of_product


# =============================================================================
# ROW ACCESS
# =============================================================================

def _row_query(store_id: int, product_id: int, variant_id: int | None):
    query = db.session.query(InventoryItem).filter(InventoryItem.store_id == store_id)
    if variant_id is not None:
        return query.filter(InventoryItem.variant_id == variant_id)
    return query.filter(
        InventoryItem.product_id == product_id,
        InventoryItem.variant_id.is_(None),
    )


def get_row(store_id: int, product_id: int, variant_id: int | None = None, *, lock: bool = False) -> InventoryItem | None:
    """Exact-match lookup of one ledger row; lock=True selects it FOR UPDATE."""
    query = _row_query(store_id, product_id, variant_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def require_row(
    store_id: int,
    product_id: int,
    variant_id: int | None = None,
    *,
    lock: bool = False,
    message: str = "Estoque não encontrado para esta loja.",
) -> InventoryItem:
    row = get_row(store_id, product_id, variant_id, lock=lock)
    if row is None:
        raise NotFoundError(message, details={
            "store_id": store_id,
            "product_id": product_id,
            "variant_id": variant_id,
        })
    return row


def upsert_add(
    store_id: int,
    product_id: int,
    variant_id: int | None,
    delta: int,
    *,
    min_stock: int = DEFAULT_MIN_STOCK,
) -> InventoryItem:
    """
    Credit delta units to a row, creating it with quantity=delta if absent.
    """
    if delta <= 0:
        raise ValidationError("Quantidade deve ser maior que zero.")

    row = get_row(store_id, product_id, variant_id, lock=True)
    if row is None:
        row = InventoryItem(
            store_id=store_id,
            product_id=product_id,
            variant_id=variant_id,
            quantity=delta,
            min_stock=min_stock,
        )
        db.session.add(row)
        db.session.flush()
        return row

    db.session.execute(
        update(InventoryItem)
        .where(InventoryItem.id == row.id)
        .values(quantity=InventoryItem.quantity + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(row)
    return row


def decrement(
    row: InventoryItem,
    delta: int,
    *,
    message: str = "Estoque insuficiente. Disponível: {available}.",
) -> InventoryItem:
    """
    Remove delta units from a row, or raise InsufficientStockError.

    message may reference {available} and {requested}. Never partially
    applies: either the full delta is removed or nothing changes.
    """
    if delta <= 0:
        raise ValidationError("Quantidade deve ser maior que zero.")

    available = row.quantity or 0
    if available < delta:
        raise InsufficientStockError(
            message.format(available=available, requested=delta),
            requested=delta,
            available=available,
            details={"inventory_id": row.id},
        )

    result = db.session.execute(
        update(InventoryItem)
        .where(InventoryItem.id == row.id, InventoryItem.quantity >= delta)
        .values(quantity=InventoryItem.quantity - delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Another writer got there between our read and the update
        db.session.refresh(row)
        raise InsufficientStockError(
            message.format(available=row.quantity, requested=delta),
            requested=delta,
            available=row.quantity,
            details={"inventory_id": row.id},
        )

    db.session.refresh(row)
    return row


# =============================================================================
# PRODUCT SHAPE
# =============================================================================

def resolve_stock_key(org_id: int, product_id: int, variant_id: int | None) -> tuple[Product, ProductVariant | None]:
    """
    Validate that (product_id, variant_id) addresses stock inside org_id.

    Simple products must be addressed without a variant; variant-bearing
    products must be addressed with one of their own variants.
    """
    product = require_product_in_org(product_id, org_id)
    has_variants = db.session.query(ProductVariant.id).filter_by(product_id=product.id).first() is not None

    if variant_id is None:
        if has_variants:
            raise ValidationError("Selecione a variante do produto.", details={"product_id": product.id})
        return product, None

    if not has_variants:
        raise NotFoundError("Variante não encontrada para este produto.", details={"product_id": product.id})

    return product, require_variant_of_product(variant_id, product)


@dataclass(frozen=True)
class StoreQuantity:
    inventory_id: int
    store_id: int
    quantity: int
    min_stock: int

    @property
    def is_low(self) -> bool:
        return self.quantity <= self.min_stock

    def to_dict(self) -> dict:
        return {
            "inventory_id": self.inventory_id,
            "store_id": self.store_id,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "is_low": self.is_low,
        }


@dataclass(frozen=True)
class SimpleStock:
    """Stock of a product without variants: one row per store."""
    product_id: int
    stores: list[StoreQuantity] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(s.quantity for s in self.stores)

    def to_dict(self) -> dict:
        return {
            "kind": "simple",
            "product_id": self.product_id,
            "total": self.total,
            "stores": [s.to_dict() for s in self.stores],
        }


@dataclass(frozen=True)
class VariantQuantities:
    variant_id: int
    label: str
    stores: list[StoreQuantity] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(s.quantity for s in self.stores)

    def to_dict(self) -> dict:
        return {
            "variant_id": self.variant_id,
            "label": self.label,
            "total": self.total,
            "stores": [s.to_dict() for s in self.stores],
        }


@dataclass(frozen=True)
class VariantStock:
    """Stock of a variant-bearing product: rows per variant x store."""
    product_id: int
    variants: list[VariantQuantities] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(v.total for v in self.variants)

    def to_dict(self) -> dict:
        return {
            "kind": "variants",
            "product_id": self.product_id,
            "total": self.total,
            "variants": [v.to_dict() for v in self.variants],
        }


ProductStock = SimpleStock | VariantStock


def get_product_stock(ctx, product_id: int) -> ProductStock:
    """
    Read a product's stock across the organization's stores.

    Returns SimpleStock or VariantStock according to the product's shape.
    A product whose rows mix both shapes is reported as a ConflictError.
    """
    product = require_product_in_org(product_id, ctx.org_id)
    rows = (
        db.session.query(InventoryItem)
        .filter(InventoryItem.product_id == product.id)
        .order_by(InventoryItem.store_id.asc(), InventoryItem.id.asc())
        .all()
    )

    if not product.variants:
        if any(r.variant_id is not None for r in rows):
            raise ConflictError("Estoque inconsistente para o produto.", details={"product_id": product.id})
        return SimpleStock(product_id=product.id, stores=[_store_quantity(r) for r in rows])

    if any(r.variant_id is None for r in rows):
        raise ConflictError("Estoque inconsistente para o produto.", details={"product_id": product.id})

    by_variant: dict[int, list[StoreQuantity]] = {v.id: [] for v in product.variants}
    for r in rows:
        by_variant.setdefault(r.variant_id, []).append(_store_quantity(r))

    return VariantStock(
        product_id=product.id,
        variants=[
            VariantQuantities(variant_id=v.id, label=v.label, stores=by_variant[v.id])
            for v in product.variants
        ],
    )


def _store_quantity(row: InventoryItem) -> StoreQuantity:
    return StoreQuantity(
        inventory_id=row.id,
        store_id=row.store_id,
        quantity=row.quantity,
        min_stock=row.min_stock,
    )
