"""
Exchange and Return Stock Service

WHY: Exchanges and returns move stock without a sale document.

- An EXCHANGE hands the customer a replacement unit: stock leaves the store
  (guarded decrement).
- A RETURN brings a unit back: stock is credited to the store. Returns are
  not matched against a prior sale.

Both are single-row, single-transaction ledger mutations.
"""

from flask import current_app

from ..extensions import db
from ..validation import ValidationError, parse_quantity
from .concurrency import begin_write, run_with_retry
from .inventory_service import require_row, decrement, upsert_add, resolve_stock_key
from .tenant_service import require_store_in_org


# =============================================================================
# MOVEMENT KINDS
# =============================================================================

KIND_EXCHANGE = "exchange"
KIND_RETURN = "return"
MOVEMENT_KINDS = (KIND_EXCHANGE, KIND_RETURN)


def register_exchange_or_return(ctx, store_id: int, product_id: int, variant_id: int | None, quantity, kind: str) -> int:
    """
    Take units out of a store for an exchange.

    kind="return" is refused here: returns add stock and go through
    register_return_add_stock(). Returns the row's new quantity.
    """
    if kind not in MOVEMENT_KINDS:
        raise ValidationError("Tipo de movimentação inválido.", details={"allowed": list(MOVEMENT_KINDS)})
    if kind == KIND_RETURN:
        raise ValidationError(
            "Devoluções adicionam estoque; use a operação de devolução.",
            details={"kind": kind},
        )

    qty = parse_quantity(quantity)

    def _op():
        begin_write()

        require_store_in_org(store_id, ctx.org_id)
        product, variant = resolve_stock_key(ctx.org_id, product_id, variant_id)
        vid = variant.id if variant else None

        row = require_row(store_id, product.id, vid, lock=True)
        decrement(row, qty)
        new_quantity = row.quantity
        db.session.commit()

        current_app.logger.info(
            "Exchange removed %s unit(s) of product %s (variant %s) at store %s by user %s",
            qty, product.id, vid, store_id, ctx.user_id,
        )
        return new_quantity

    return run_with_retry(_op)


def register_return_add_stock(ctx, store_id: int, product_id: int, variant_id: int | None, quantity) -> int:
    """Credit returned units to a store, creating its row if needed. Returns the new quantity."""
    qty = parse_quantity(quantity)

    def _op():
        begin_write()

        require_store_in_org(store_id, ctx.org_id)
        product, variant = resolve_stock_key(ctx.org_id, product_id, variant_id)
        vid = variant.id if variant else None

        row = upsert_add(store_id, product.id, vid, qty)
        new_quantity = row.quantity
        db.session.commit()

        current_app.logger.info(
            "Return added %s unit(s) of product %s (variant %s) at store %s by user %s",
            qty, product.id, vid, store_id, ctx.user_id,
        )
        return new_quantity

    return run_with_retry(_op)
